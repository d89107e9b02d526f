"""
Survivor Pool Database Models

SQLAlchemy ORM models for the tournament bracket and survivor pools.
"""

from models.base import (
    Base, engine, SessionLocal, get_session, init_db, create_session_factory,
)
from models.team import Team
from models.tournament import Round, Game, GameStatus
from models.pool import Pool, Entry, Pick, PoolWinner, PoolStatus, EliminationCause
from models.clock_state import ClockOverride

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_session",
    "init_db",
    "create_session_factory",
    "Team",
    "Round",
    "Game",
    "GameStatus",
    "Pool",
    "Entry",
    "Pick",
    "PoolWinner",
    "PoolStatus",
    "EliminationCause",
    "ClockOverride",
]
