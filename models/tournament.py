"""
Round and Game models for the single-elimination bracket.

The bracket is a pre-generated forest of games: every game except the
championship carries an advancement edge (advances_to_game_id,
advances_to_slot) naming the game and slot its winner fills.
"""

import enum
import datetime as dt
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    String, Integer, Date, DateTime, ForeignKey, CheckConstraint,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base

if TYPE_CHECKING:
    from models.team import Team


class GameStatus(enum.Enum):
    """Game lifecycle states. Moves forward only, except through a rewind."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"


class Round(Base):
    """
    One scheduled slate of games sharing a pick deadline.

    A round's status and deadline are derived from its games on every read
    (see engine.status); nothing about progress is stored here.
    """
    __tablename__ = "rounds"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Bracket stage code: R64, R32, S16, E8, F4, CHIP
    code: Mapped[str] = mapped_column(String(8), nullable=False)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    games: Mapped[list["Game"]] = relationship(back_populates="round")

    def __repr__(self) -> str:
        return f"<Round(id={self.id}, name='{self.name}', code={self.code}, date={self.date})>"


class Game(Base):
    """
    A single bracket game.

    Team slots are filled at generation time for the Round of 64 and by
    winner propagation for every later round. `winner_id` is set exactly
    when the game is final.
    """
    __tablename__ = "games"
    __table_args__ = (
        UniqueConstraint(
            "advances_to_game_id", "advances_to_slot",
            name="uq_games_advancement_target",
        ),
        CheckConstraint(
            "advances_to_slot IS NULL OR advances_to_slot IN (1, 2)",
            name="ck_games_advancement_slot",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(ForeignKey("rounds.id"), nullable=False)

    # Bracket position
    tournament_round: Mapped[str] = mapped_column(String(8), nullable=False)
    matchup_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    region: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # None for F4/CHIP
    bracket_position: Mapped[int] = mapped_column(Integer, default=0)

    # Participants (nullable until populated)
    team1_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)
    team2_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)

    # Result
    status: Mapped[GameStatus] = mapped_column(
        SAEnum(GameStatus),
        default=GameStatus.SCHEDULED
    )
    winner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)
    team1_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    team2_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Tip-off; never modified by result processing or rewind
    starts_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Advancement edge (None for the championship game)
    advances_to_game_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("games.id"),
        nullable=True
    )
    advances_to_slot: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationships
    round: Mapped["Round"] = relationship(back_populates="games")
    team1: Mapped[Optional["Team"]] = relationship(foreign_keys=[team1_id])
    team2: Mapped[Optional["Team"]] = relationship(foreign_keys=[team2_id])

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, matchup='{self.matchup_code}', status={self.status.value})>"

    @property
    def is_final(self) -> bool:
        return self.status == GameStatus.FINAL

    @property
    def is_populated(self) -> bool:
        """Both team slots are filled."""
        return self.team1_id is not None and self.team2_id is not None

    @property
    def loser_id(self) -> Optional[int]:
        """The losing team of a final game."""
        if self.winner_id is None:
            return None
        return self.team2_id if self.winner_id == self.team1_id else self.team1_id

    def has_team(self, team_id: int) -> bool:
        return team_id in (self.team1_id, self.team2_id)
