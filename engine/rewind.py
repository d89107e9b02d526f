"""
Bracket Rewind

Administrative inverse of grading, sweeps and champion resolution. Used to
replay rounds in test mode and to correct a wrongly entered result.
"""

import logging
from typing import Union

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from engine.bracket import STAGES, clear_advancement_from, repropagate
from engine.status import ordered_rounds
from models.team import Team
from models.tournament import Game, GameStatus, Round
from models.pool import Entry, Pick, Pool, PoolStatus, PoolWinner
from models.clock_state import ClockOverride
from models.schemas import RewindSummary

logger = logging.getLogger(__name__)


ALL_ROUNDS = "all"


def _scope(session: Session, target: Union[int, str]) -> list[Round]:
    if target == ALL_ROUNDS:
        return ordered_rounds(session)
    try:
        round_id = int(target)
    except (TypeError, ValueError):
        raise ValueError(f"Rewind target must be a round id or '{ALL_ROUNDS}', got {target!r}") from None
    round_ = session.get(Round, round_id)
    if round_ is None:
        raise ValueError(f"Round {round_id} not found")
    return [round_]


def rewind_round(session: Session, target: Union[int, str]) -> RewindSummary:
    """
    Undo a round (or the whole tournament with "all").

    Game start times are never touched. Downstream slots are cleared and
    then refilled from every game that is still final, so no slot is left
    empty where a real winner exists.
    """
    rounds = _scope(session, target)
    summary = RewindSummary(rounds=[r.name for r in rounds])
    if not rounds:
        return summary

    round_ids = [r.id for r in rounds]
    games = list(session.scalars(select(Game).where(Game.round_id.in_(round_ids))))

    # Teams that lost in scope come back
    losers = [g.loser_id for g in games if g.is_final and g.loser_id is not None]
    if losers:
        summary.teams_revived += len(session.execute(
            update(Team)
            .where(Team.id.in_(losers), Team.is_eliminated.is_(True))
            .values(is_eliminated=False)
            .returning(Team.id)
        ).all())

    summary.games_reset = len(session.execute(
        update(Game)
        .where(Game.round_id.in_(round_ids), Game.status != GameStatus.SCHEDULED)
        .values(status=GameStatus.SCHEDULED, winner_id=None, team1_score=None, team2_score=None)
        .returning(Game.id)
    ).all())

    # Everything after the earliest stage in scope loses its fill
    earliest = min((r.code for r in rounds), key=STAGES.index)
    cleared, revived = clear_advancement_from(session, earliest)
    summary.downstream_games_cleared = cleared
    summary.teams_revived += revived

    summary.picks_deleted = len(session.execute(
        delete(Pick).where(Pick.round_id.in_(round_ids)).returning(Pick.id)
    ).all())

    summary.entries_revived = len(session.execute(
        update(Entry)
        .where(Entry.is_eliminated.is_(True), Entry.elimination_round_id.in_(round_ids))
        .values(is_eliminated=False, elimination_cause=None, elimination_round_id=None)
        .returning(Entry.id)
    ).all())

    reverted = [row.id for row in session.execute(
        update(Pool)
        .where(Pool.status == PoolStatus.COMPLETE)
        .values(status=PoolStatus.ACTIVE, completed_at=None)
        .returning(Pool.id)
    )]
    if reverted:
        session.execute(delete(PoolWinner).where(PoolWinner.pool_id.in_(reverted)))
    summary.pools_reverted = len(reverted)

    session.execute(
        update(ClockOverride)
        .where(ClockOverride.id == ClockOverride.SINGLETON_ID)
        .values(is_test_mode=False, simulated_at=None)
    )

    summary.slots_repropagated = repropagate(session)

    logger.info(
        "Rewound %s: %d games reset, %d downstream cleared, %d slots refilled, "
        "%d teams and %d entries revived, %d picks deleted, %d pools reverted",
        ", ".join(summary.rounds), summary.games_reset, summary.downstream_games_cleared,
        summary.slots_repropagated, summary.teams_revived, summary.entries_revived,
        summary.picks_deleted, summary.pools_reverted,
    )
    return summary
