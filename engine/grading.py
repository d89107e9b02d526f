"""
Grading Pipeline

Runs once a game is final: grades its picks, eliminates the losing team,
eliminates entries that picked the loser and removes their unlocked future
picks. Every write is guarded so re-running with the same arguments is a
no-op.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from engine.status import round_deadlines
from models.team import Team
from models.tournament import Round
from models.pool import Entry, Pick, Pool, PoolStatus, EliminationCause
from models.schemas import EliminationEvent

logger = logging.getLogger(__name__)


@dataclass
class GradingOutcome:
    """What one grading run changed."""
    picks_correct: int = 0
    picks_incorrect: int = 0
    team_eliminated: bool = False
    future_picks_deleted: int = 0
    eliminations: list[EliminationEvent] = field(default_factory=list)


def eliminate_entries(
    session: Session,
    entry_ids: Iterable[int],
    cause: EliminationCause,
    round_id: int,
    team_ids: Optional[dict[int, int]] = None,
) -> list[EliminationEvent]:
    """
    Eliminate the given entries unless already eliminated.

    Only entries of active pools are touched. Only rows this call actually
    flipped are returned, so a replay produces no duplicate events.
    """
    entry_ids = list(entry_ids)
    if not entry_ids:
        return []

    rows = session.execute(
        update(Entry)
        .where(
            Entry.id.in_(entry_ids),
            Entry.is_eliminated.is_(False),
            Entry.pool_id.in_(select(Pool.id).where(Pool.status == PoolStatus.ACTIVE)),
        )
        .values(is_eliminated=True, elimination_cause=cause, elimination_round_id=round_id)
        .returning(Entry.id, Entry.pool_id, Entry.user_id)
    ).all()

    round_ = session.get(Round, round_id)
    events = []
    for entry_id, pool_id, user_id in rows:
        logger.info("Entry %s (user %s) eliminated: %s", entry_id, user_id, cause.value)
        events.append(EliminationEvent(
            entry_id=entry_id,
            pool_id=pool_id,
            user_id=user_id,
            cause=cause,
            round_id=round_id,
            round_name=round_.name if round_ else "",
            team_id=(team_ids or {}).get(entry_id),
        ))
    return events


def delete_future_picks(
    session: Session,
    entry_ids: Iterable[int],
    now: datetime,
    keep_round_id: Optional[int] = None,
) -> int:
    """
    Delete the entries' picks for every round whose deadline has not passed.

    The round that caused the elimination is kept so its graded picks remain.
    """
    entry_ids = list(entry_ids)
    if not entry_ids:
        return 0

    open_rounds = [
        round_id for round_id, deadline in round_deadlines(session).items()
        if (deadline is None or now < deadline) and round_id != keep_round_id
    ]
    if not open_rounds:
        return 0

    deleted = session.execute(
        delete(Pick)
        .where(Pick.entry_id.in_(entry_ids), Pick.round_id.in_(open_rounds))
        .returning(Pick.id)
    ).all()
    if deleted:
        logger.info("Deleted %d future picks of %d eliminated entries", len(deleted), len(entry_ids))
    return len(deleted)


def process_completed_game(
    session: Session,
    round_id: int,
    winner_id: int,
    loser_id: int,
    now: datetime,
) -> GradingOutcome:
    """Grade one final game. Safe to call any number of times."""
    outcome = GradingOutcome()

    # 1. Grade ungraded picks on either team
    outcome.picks_correct = len(session.execute(
        update(Pick)
        .where(Pick.round_id == round_id, Pick.team_id == winner_id, Pick.is_correct.is_(None))
        .values(is_correct=True)
        .returning(Pick.id)
    ).all())
    outcome.picks_incorrect = len(session.execute(
        update(Pick)
        .where(Pick.round_id == round_id, Pick.team_id == loser_id, Pick.is_correct.is_(None))
        .values(is_correct=False)
        .returning(Pick.id)
    ).all())

    # 2. Knock out the losing team
    outcome.team_eliminated = bool(session.execute(
        update(Team)
        .where(Team.id == loser_id, Team.is_eliminated.is_(False))
        .values(is_eliminated=True)
        .returning(Team.id)
    ).all())

    # 3. Entries holding a losing pick and still alive
    losing_entries = list(session.scalars(
        select(Pick.entry_id).where(
            Pick.round_id == round_id,
            Pick.team_id == loser_id,
            Pick.is_correct.is_(False),
        )
    ))
    outcome.eliminations = eliminate_entries(
        session, losing_entries, EliminationCause.WRONG_PICK, round_id,
        team_ids={entry_id: loser_id for entry_id in losing_entries},
    )

    # 4. Dead entries release their unlocked picks
    outcome.future_picks_deleted = delete_future_picks(
        session, [e.entry_id for e in outcome.eliminations], now, keep_round_id=round_id,
    )

    logger.info(
        "Graded round %s: team %s beat %s, %d correct, %d incorrect, %d entries eliminated",
        round_id, winner_id, loser_id,
        outcome.picks_correct, outcome.picks_incorrect, len(outcome.eliminations),
    )
    return outcome
