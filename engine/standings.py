"""
Pool standings.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from engine.status import ordered_rounds
from models.pool import Entry, Pick, Pool
from models.schemas import EntryStanding, PoolStandings


def _streak(picks: list[Pick], round_order: dict[int, int]) -> int:
    """Consecutive correct picks counting back from the latest graded round."""
    streak = 0
    graded = sorted(
        (p for p in picks if p.is_correct is not None),
        key=lambda p: round_order.get(p.round_id, 0),
        reverse=True,
    )
    for pick in graded:
        if not pick.is_correct:
            break
        streak += 1
    return streak


def pool_standings(session: Session, pool_id: int) -> PoolStandings:
    pool = session.get(Pool, pool_id)
    if pool is None:
        raise ValueError(f"Pool {pool_id} not found")

    round_order = {r.id: index for index, r in enumerate(ordered_rounds(session))}
    entries = list(session.scalars(select(Entry).where(Entry.pool_id == pool_id).order_by(Entry.id)))

    rows = []
    for entry in entries:
        picks = sorted(entry.picks, key=lambda p: round_order.get(p.round_id, 0))
        rows.append(EntryStanding(
            entry_id=entry.id,
            user_id=entry.user_id,
            label=entry.label,
            is_eliminated=entry.is_eliminated,
            elimination_cause=entry.elimination_cause,
            elimination_round_name=entry.elimination_round.name if entry.elimination_round else None,
            picks_count=len(picks),
            correct_picks=sum(1 for p in picks if p.is_correct),
            survival_streak=_streak(picks, round_order),
            teams_used=[p.team.name for p in picks],
        ))

    # Alive first, then the longest runs
    rows.sort(key=lambda r: (r.is_eliminated, -r.correct_picks, r.entry_id))
    alive = sum(1 for r in rows if not r.is_eliminated)

    return PoolStandings(
        pool_id=pool.id,
        pool_name=pool.name,
        pool_status=pool.status,
        total_entries=len(rows),
        alive_entries=alive,
        eliminated_entries=len(rows) - alive,
        winner_user_ids=pool.winner_user_ids,
        entries=rows,
    )
