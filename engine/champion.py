"""
Champion Resolver

Decides, per active pool, whether a completed round produced a champion.

- One entry alive: that entry wins.
- None alive: the round wiped the pool out. Entries eliminated in this
  round are revived as co-champions, preferring those that lost on a pick
  (wrong_pick, no_available_picks) over those that forfeited (missed_pick).
- Several alive: play continues, unless the final round is done, in which
  case every survivor shares the title.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models.pool import Entry, Pool, PoolStatus, PoolWinner, EliminationCause
from models.schemas import ChampionEvent

logger = logging.getLogger(__name__)


# Entries that played and lost outrank entries that did not play
TIER_ONE = (EliminationCause.WRONG_PICK, EliminationCause.NO_AVAILABLE_PICKS)
TIER_TWO = (EliminationCause.MISSED_PICK,)


def select_tie_winners(candidates: list[Entry]) -> list[Entry]:
    """Pick the co-champions among entries eliminated in the emptying round."""
    tier_one = [e for e in candidates if e.elimination_cause in TIER_ONE]
    if tier_one:
        return tier_one
    return [e for e in candidates if e.elimination_cause in TIER_TWO]


def _complete_pool(
    session: Session,
    pool: Pool,
    winners: list[Entry],
    round_id: int,
    now: datetime,
) -> Optional[ChampionEvent]:
    flipped = session.execute(
        update(Pool)
        .where(Pool.id == pool.id, Pool.status == PoolStatus.ACTIVE)
        .values(status=PoolStatus.COMPLETE, completed_at=now)
        .returning(Pool.id)
    ).all()
    if not flipped:
        return None

    for entry in winners:
        session.add(PoolWinner(pool_id=pool.id, entry_id=entry.id, user_id=entry.user_id))
    session.flush()

    logger.info(
        "Pool %s complete with %d winner(s): %s",
        pool.id, len(winners), ", ".join(e.user_id for e in winners),
    )
    return ChampionEvent(
        pool_id=pool.id,
        pool_name=pool.name,
        round_id=round_id,
        winners=[(e.id, e.user_id) for e in winners],
    )


def resolve_pool(
    session: Session,
    pool: Pool,
    round_id: int,
    is_final_round: bool,
    now: datetime,
) -> Optional[ChampionEvent]:
    alive = list(session.scalars(
        select(Entry)
        .where(Entry.pool_id == pool.id, Entry.is_eliminated.is_(False))
        .order_by(Entry.id)
    ))

    if len(alive) == 1:
        return _complete_pool(session, pool, alive, round_id, now)

    if len(alive) > 1:
        if is_final_round:
            logger.info("Tournament over with %d entries alive in pool %s", len(alive), pool.id)
            return _complete_pool(session, pool, alive, round_id, now)
        return None

    candidates = list(session.scalars(
        select(Entry)
        .where(
            Entry.pool_id == pool.id,
            Entry.is_eliminated.is_(True),
            Entry.elimination_round_id == round_id,
        )
        .order_by(Entry.id)
    ))
    winners = select_tie_winners(candidates)
    if not winners:
        logger.warning("Pool %s has no alive entries and none eliminated in round %s", pool.id, round_id)
        return None

    event = _complete_pool(session, pool, winners, round_id, now)
    if event is None:
        return None

    session.execute(
        update(Entry)
        .where(Entry.id.in_([e.id for e in winners]), Entry.is_eliminated.is_(True))
        .values(is_eliminated=False, elimination_cause=None, elimination_round_id=None)
    )
    logger.info("Revived %d co-champions in pool %s", len(winners), pool.id)
    return event


def resolve_champions(
    session: Session,
    round_id: int,
    is_final_round: bool,
    now: datetime,
) -> list[ChampionEvent]:
    """Run the resolver for every active pool."""
    events = []
    pools = list(session.scalars(select(Pool).where(Pool.status == PoolStatus.ACTIVE).order_by(Pool.id)))
    for pool in pools:
        event = resolve_pool(session, pool, round_id, is_final_round, now)
        if event is not None:
            events.append(event)
    return events
