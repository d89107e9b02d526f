"""
Simulated clock override, persisted so every process sees the same "now".
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class ClockOverride(Base):
    """
    Singleton row holding the operator's simulated instant.

    When `is_test_mode` is False (or `simulated_at` is None) the engine runs
    on wall-clock time.
    """
    __tablename__ = "clock_overrides"

    SINGLETON_ID = 1

    id: Mapped[int] = mapped_column(primary_key=True)
    is_test_mode: Mapped[bool] = mapped_column(default=False)
    simulated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<ClockOverride(test_mode={self.is_test_mode}, simulated_at={self.simulated_at})>"
