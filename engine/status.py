"""
Derived round and tournament status.

Nothing here is stored: status and deadlines are recomputed from the live
game rows on every read, so a rewind never leaves a stale flag behind.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config import ENGINE_SETTINGS
from engine.clock import as_utc
from models.tournament import Game, GameStatus, Round
from models.schemas import (
    DeadlineDisplay, RoundInfo, RoundStatus, TournamentState, TournamentStatus,
)

logger = logging.getLogger(__name__)


def derive_round_status(statuses: Iterable[GameStatus]) -> RoundStatus:
    """pre_round if nothing started, round_complete if all final, else live."""
    statuses = list(statuses)
    if not statuses or all(s == GameStatus.SCHEDULED for s in statuses):
        return RoundStatus.PRE_ROUND
    if all(s == GameStatus.FINAL for s in statuses):
        return RoundStatus.ROUND_COMPLETE
    return RoundStatus.ROUND_LIVE


def build_round_info(
    round_: Round,
    games: list[Game],
    now: datetime,
    grace: timedelta = ENGINE_SETTINGS.deadline_grace,
) -> RoundInfo:
    starts = [as_utc(g.starts_at) for g in games if g.starts_at is not None]
    first = min(starts) if starts else None
    last = max(starts) if starts else None
    deadline = first - grace if first is not None else None

    return RoundInfo(
        id=round_.id,
        name=round_.name,
        code=round_.code,
        date=round_.date,
        status=derive_round_status(g.status for g in games),
        deadline=deadline,
        is_deadline_passed=deadline is not None and now >= deadline,
        games_scheduled=sum(1 for g in games if g.status == GameStatus.SCHEDULED),
        games_in_progress=sum(1 for g in games if g.status == GameStatus.IN_PROGRESS),
        games_final=sum(1 for g in games if g.status == GameStatus.FINAL),
        games_total=len(games),
        first_game_at=first,
        last_game_at=last,
    )


def ordered_rounds(session: Session) -> list[Round]:
    return list(session.scalars(select(Round).order_by(Round.date, Round.sort_order, Round.id)))


def load_round_infos(session: Session, now: datetime) -> list[RoundInfo]:
    rounds = ordered_rounds(session)
    games_by_round: dict[int, list[Game]] = {r.id: [] for r in rounds}
    for game in session.scalars(select(Game)):
        games_by_round.setdefault(game.round_id, []).append(game)
    return [build_round_info(r, games_by_round[r.id], now) for r in rounds]


def tournament_state(session: Session, now: datetime) -> TournamentState:
    """Compute tournament status and the current round."""
    rounds = load_round_infos(session, now)

    if not rounds or all(r.status == RoundStatus.PRE_ROUND for r in rounds):
        status = TournamentStatus.PRE_TOURNAMENT
    elif rounds[-1].status == RoundStatus.ROUND_COMPLETE:
        status = TournamentStatus.TOURNAMENT_COMPLETE
    else:
        status = TournamentStatus.TOURNAMENT_LIVE

    current = next((r for r in rounds if r.status != RoundStatus.ROUND_COMPLETE), None)
    if current is None and rounds:
        current = rounds[-1]

    return TournamentState(status=status, current_round=current, rounds=rounds)


def get_round_by_id(state: TournamentState, round_id: int) -> Optional[RoundInfo]:
    for info in state.rounds:
        if info.id == round_id:
            return info
    return None


def can_join_or_create(state: TournamentState) -> bool:
    """Pools can be joined or created only before the first tip-off."""
    return state.status == TournamentStatus.PRE_TOURNAMENT


def can_make_picks(state: TournamentState, round_id: Optional[int] = None) -> bool:
    """
    Whether picks for a round (default: the current round) are still open.

    Picks close at the deadline even if no game has actually started.
    """
    info = state.current_round if round_id is None else get_round_by_id(state, round_id)
    if info is None:
        return False
    return info.status == RoundStatus.PRE_ROUND and not info.is_deadline_passed


def are_picks_visible(info: RoundInfo) -> bool:
    """Other entries' picks are revealed once the round locks."""
    return info.is_deadline_passed or info.status != RoundStatus.PRE_ROUND


def deadline_display(state: TournamentState, now: datetime) -> Optional[DeadlineDisplay]:
    info = state.current_round
    if info is None or info.deadline is None:
        return None
    remaining = info.deadline - now
    return DeadlineDisplay(
        deadline=info.deadline,
        is_expired=now >= info.deadline,
        minutes_remaining=max(0, int(remaining.total_seconds() // 60)),
    )


def is_round_complete(session: Session, round_id: int) -> bool:
    """Fresh check that the round has games and every one of them is final."""
    total, final = session.execute(
        select(
            func.count(Game.id),
            func.count(Game.id).filter(Game.status == GameStatus.FINAL),
        ).where(Game.round_id == round_id)
    ).one()
    return total > 0 and total == final


def next_round(session: Session, round_id: int) -> Optional[Round]:
    """The round after `round_id` by (date, sort_order), or None for the last."""
    rounds = ordered_rounds(session)
    for index, round_ in enumerate(rounds):
        if round_.id == round_id:
            return rounds[index + 1] if index + 1 < len(rounds) else None
    raise ValueError(f"Round {round_id} not found")


def round_deadlines(
    session: Session,
    grace: timedelta = ENGINE_SETTINGS.deadline_grace,
) -> dict[int, Optional[datetime]]:
    """Deadline of every round; None for a round without scheduled start times."""
    deadlines: dict[int, Optional[datetime]] = {r.id: None for r in ordered_rounds(session)}
    rows = session.execute(
        select(Game.round_id, func.min(Game.starts_at)).group_by(Game.round_id)
    ).all()
    for round_id, first_start in rows:
        if first_start is not None:
            deadlines[round_id] = as_utc(first_start) - grace
    return deadlines
