"""
Round Sweep

Two passes over the alive entries of active pools once every game of a
round is final: missed picks first, then entries left without an unused
team for the next round.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from engine.grading import delete_future_picks, eliminate_entries
from engine.status import is_round_complete, next_round
from models.tournament import Game
from models.pool import Entry, Pick, Pool, PoolStatus, EliminationCause
from models.schemas import EliminationEvent

logger = logging.getLogger(__name__)


@dataclass
class SweepOutcome:
    eliminations: list[EliminationEvent] = field(default_factory=list)
    future_picks_deleted: int = 0


def _alive_entries(session: Session) -> list[Entry]:
    return list(session.scalars(
        select(Entry)
        .join(Pool, Pool.id == Entry.pool_id)
        .where(Pool.status == PoolStatus.ACTIVE, Entry.is_eliminated.is_(False))
        .order_by(Entry.id)
    ))


def sweep_missed_picks(session: Session, round_id: int, now: datetime) -> SweepOutcome:
    """Eliminate alive entries that never picked for a completed round."""
    if not is_round_complete(session, round_id):
        logger.debug("Round %s not complete, skipping missed-pick pass", round_id)
        return SweepOutcome()

    picked = set(session.scalars(select(Pick.entry_id).where(Pick.round_id == round_id)))
    missing = [e.id for e in _alive_entries(session) if e.id not in picked]

    events = eliminate_entries(session, missing, EliminationCause.MISSED_PICK, round_id)
    deleted = delete_future_picks(session, [e.entry_id for e in events], now, keep_round_id=round_id)
    if events:
        logger.info("Missed-pick pass eliminated %d entries in round %s", len(events), round_id)
    return SweepOutcome(eliminations=events, future_picks_deleted=deleted)


def available_teams(session: Session, round_id: int) -> set[int]:
    """Teams playing in the round's fully populated games."""
    teams: set[int] = set()
    games = session.scalars(
        select(Game).where(
            Game.round_id == round_id,
            Game.team1_id.is_not(None),
            Game.team2_id.is_not(None),
        )
    )
    for game in games:
        teams.update((game.team1_id, game.team2_id))
    return teams


def sweep_no_available_picks(session: Session, round_id: int, now: datetime) -> SweepOutcome:
    """
    Eliminate alive entries that have already used every team of the next round.

    The elimination is recorded against the completed round, the one that
    produced the dead end.
    """
    if not is_round_complete(session, round_id):
        logger.debug("Round %s not complete, skipping no-available-picks pass", round_id)
        return SweepOutcome()

    following = next_round(session, round_id)
    if following is None:
        logger.debug("Round %s is the last round, skipping no-available-picks pass", round_id)
        return SweepOutcome()

    available = available_teams(session, following.id)
    if not available:
        logger.warning("No populated games in %s yet, skipping no-available-picks pass", following.name)
        return SweepOutcome()

    entries = _alive_entries(session)
    used_by_entry: dict[int, set[int]] = {e.id: set() for e in entries}
    if entries:
        rows = session.execute(
            select(Pick.entry_id, Pick.team_id).where(
                Pick.entry_id.in_(list(used_by_entry)),
                Pick.round_id != following.id,
            )
        )
        for entry_id, team_id in rows:
            used_by_entry[entry_id].add(team_id)

    stuck = [entry_id for entry_id, used in used_by_entry.items() if not available - used]

    events = eliminate_entries(session, stuck, EliminationCause.NO_AVAILABLE_PICKS, round_id)
    deleted = delete_future_picks(session, [e.entry_id for e in events], now, keep_round_id=round_id)
    if events:
        logger.info(
            "No-available-picks pass eliminated %d entries after round %s", len(events), round_id,
        )
    return SweepOutcome(eliminations=events, future_picks_deleted=deleted)
