"""
Pool, Entry, Pick and PoolWinner models.

Entries and picks are created by players outside the engine; the engine
only eliminates entries, grades picks, and deletes picks an eliminated
entry can no longer use.
"""

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    String, DateTime, ForeignKey, UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base

if TYPE_CHECKING:
    from models.team import Team
    from models.tournament import Round


class PoolStatus(enum.Enum):
    """Pool lifecycle states."""
    OPEN = "open"
    ACTIVE = "active"
    COMPLETE = "complete"


class EliminationCause(enum.Enum):
    """Why an entry was knocked out."""
    WRONG_PICK = "wrong_pick"
    MISSED_PICK = "missed_pick"
    NO_AVAILABLE_PICKS = "no_available_picks"


class Pool(Base):
    """A survivor pool. Completed by the champion resolver only."""
    __tablename__ = "pools"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[PoolStatus] = mapped_column(
        SAEnum(PoolStatus),
        default=PoolStatus.OPEN
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    entries: Mapped[list["Entry"]] = relationship(
        back_populates="pool",
        cascade="all, delete-orphan"
    )
    winners: Mapped[list["PoolWinner"]] = relationship(
        back_populates="pool",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Pool(id={self.id}, name='{self.name}', status={self.status.value})>"

    @property
    def winner_user_ids(self) -> list[str]:
        return [w.user_id for w in self.winners]


class Entry(Base):
    """
    One bracket run belonging to a pool participant.

    A user may own several entries in the same pool.
    """
    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    pool_id: Mapped[int] = mapped_column(ForeignKey("pools.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Elimination state
    is_eliminated: Mapped[bool] = mapped_column(default=False)
    elimination_cause: Mapped[Optional[EliminationCause]] = mapped_column(
        SAEnum(EliminationCause),
        nullable=True
    )
    elimination_round_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("rounds.id"),
        nullable=True
    )

    # Relationships
    pool: Mapped["Pool"] = relationship(back_populates="entries")
    picks: Mapped[list["Pick"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan"
    )
    elimination_round: Mapped[Optional["Round"]] = relationship()

    def __repr__(self) -> str:
        return f"<Entry(id={self.id}, pool={self.pool_id}, user='{self.user_id}', eliminated={self.is_eliminated})>"


class Pick(Base):
    """
    An entry's team choice for one round.

    `is_correct` is None until the pick's game is graded.
    """
    __tablename__ = "picks"
    __table_args__ = (
        UniqueConstraint("entry_id", "round_id", name="uq_picks_entry_round"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    entry_id: Mapped[int] = mapped_column(ForeignKey("entries.id"), nullable=False)
    round_id: Mapped[int] = mapped_column(ForeignKey("rounds.id"), nullable=False)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)

    is_correct: Mapped[Optional[bool]] = mapped_column(nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    entry: Mapped["Entry"] = relationship(back_populates="picks")
    team: Mapped["Team"] = relationship()
    round: Mapped["Round"] = relationship()

    def __repr__(self) -> str:
        return f"<Pick(id={self.id}, entry={self.entry_id}, round={self.round_id}, team={self.team_id})>"


class PoolWinner(Base):
    """A pool champion. Ties produce several rows for the same pool."""
    __tablename__ = "pool_winners"
    __table_args__ = (
        UniqueConstraint("pool_id", "entry_id", name="uq_pool_winners_entry"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    pool_id: Mapped[int] = mapped_column(ForeignKey("pools.id"), nullable=False)
    entry_id: Mapped[int] = mapped_column(ForeignKey("entries.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Relationships
    pool: Mapped["Pool"] = relationship(back_populates="winners")

    def __repr__(self) -> str:
        return f"<PoolWinner(pool={self.pool_id}, entry={self.entry_id}, user='{self.user_id}')>"
