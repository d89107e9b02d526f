"""
Team model for the 64-team tournament field.
"""

from sqlalchemy import String, Integer, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Team(Base):
    """
    A team in the tournament field.

    Teams are created once when the bracket is generated. `is_eliminated`
    only ever moves from False to True during grading; a rewind is the one
    path that clears it.
    """
    __tablename__ = "teams"
    __table_args__ = (
        CheckConstraint("seed BETWEEN 1 AND 16", name="ck_teams_seed_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    abbreviation: Mapped[str] = mapped_column(String(10), nullable=False)
    seed: Mapped[int] = mapped_column(Integer, nullable=False)
    region: Mapped[str] = mapped_column(String(20), nullable=False)

    is_eliminated: Mapped[bool] = mapped_column(default=False)

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name='{self.name}', seed={self.seed}, region='{self.region}')>"

    @property
    def label(self) -> str:
        """Display label such as '(1) Duke'."""
        return f"({self.seed}) {self.name}"
