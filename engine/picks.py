"""
Pick-making surface: what an entry may pick, and submitting a pick.

The grading engine trusts that an entry never uses a team twice; this
module is where that rule is enforced.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from engine.clock import as_utc
from engine.status import round_deadlines
from models.tournament import Game, Round
from models.pool import Entry, Pick
from models.schemas import PickableTeam

logger = logging.getLogger(__name__)


class PickError(ValueError):
    """A rejected pick. `code` is machine-readable."""

    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    ROUND_NOT_FOUND = "ROUND_NOT_FOUND"
    ENTRY_ELIMINATED = "ENTRY_ELIMINATED"
    DEADLINE_PASSED = "DEADLINE_PASSED"
    TEAM_USED = "TEAM_USED"
    TEAM_NOT_PLAYING = "TEAM_NOT_PLAYING"

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


def risk_level(seed: int, opponent_seed: int) -> str:
    """low for a strong favorite, high for a big underdog."""
    diff = seed - opponent_seed
    if diff <= -6:
        return "low"
    if diff >= 6:
        return "high"
    return "medium"


def used_teams(session: Session, entry_id: int, exclude_round_id: Optional[int] = None) -> set[int]:
    """Team ids the entry has picked, optionally ignoring one round."""
    query = select(Pick.team_id).where(Pick.entry_id == entry_id)
    if exclude_round_id is not None:
        query = query.where(Pick.round_id != exclude_round_id)
    return set(session.scalars(query))


def _populated_games(session: Session, round_id: int) -> list[Game]:
    return list(session.scalars(
        select(Game).where(
            Game.round_id == round_id,
            Game.team1_id.is_not(None),
            Game.team2_id.is_not(None),
        )
    ))


def pickable_teams(session: Session, entry_id: int, round_id: int) -> list[PickableTeam]:
    """Both teams of every populated game in the round, favorites first within a tip-off."""
    used = used_teams(session, entry_id, exclude_round_id=round_id)

    options = []
    for game in _populated_games(session, round_id):
        for team, opponent in ((game.team1, game.team2), (game.team2, game.team1)):
            options.append(PickableTeam(
                team_id=team.id,
                name=team.name,
                seed=team.seed,
                region=team.region,
                game_id=game.id,
                starts_at=as_utc(game.starts_at),
                opponent_id=opponent.id,
                opponent_name=opponent.name,
                opponent_seed=opponent.seed,
                already_used=team.id in used,
                risk_level=risk_level(team.seed, opponent.seed),
            ))

    options.sort(key=lambda o: (o.starts_at is None, o.starts_at or datetime.min, o.seed))
    return options


def submit_pick(session: Session, entry_id: int, round_id: int, team_id: int, now: datetime) -> Pick:
    """
    Validate and store a pick, replacing the entry's existing pick for the round.

    Raises:
        PickError: if the pick is not allowed
    """
    entry = session.get(Entry, entry_id)
    if entry is None:
        raise PickError(f"Entry {entry_id} not found", PickError.ENTRY_NOT_FOUND)
    if session.get(Round, round_id) is None:
        raise PickError(f"Round {round_id} not found", PickError.ROUND_NOT_FOUND)
    if entry.is_eliminated:
        raise PickError("Entry is eliminated and cannot make picks", PickError.ENTRY_ELIMINATED)

    deadline = round_deadlines(session).get(round_id)
    if deadline is not None and now >= deadline:
        raise PickError("Pick deadline has passed", PickError.DEADLINE_PASSED)

    if team_id in used_teams(session, entry_id, exclude_round_id=round_id):
        raise PickError("Team already picked in a previous round", PickError.TEAM_USED)

    if not any(g.has_team(team_id) for g in _populated_games(session, round_id)):
        raise PickError("Team is not playing in this round", PickError.TEAM_NOT_PLAYING)

    existing = session.scalar(select(Pick).where(Pick.entry_id == entry_id, Pick.round_id == round_id))
    if existing is not None:
        session.delete(existing)
        session.flush()

    pick = Pick(entry_id=entry_id, round_id=round_id, team_id=team_id, submitted_at=now)
    session.add(pick)
    session.flush()
    logger.info("Entry %s picked team %s for round %s", entry_id, team_id, round_id)
    return pick
