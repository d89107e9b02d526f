"""
Clock Provider

Every time-sensitive decision reads "now" through a Clock. Production runs on
SystemClock; test mode uses SimulatedClock, whose instant is persisted in the
clock_overrides table so every process sees the same simulated time.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from config import ENGINE_SETTINGS
from models.base import get_session
from models.clock_state import ClockOverride
from models.schemas import RoundInfo

logger = logging.getLogger(__name__)


PHASES = ("pre_round", "live", "post_round")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from the store."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime: ...

    def invalidate(self) -> None: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return utcnow()

    def invalidate(self) -> None:
        pass

    def is_test_mode(self) -> bool:
        return False

    def offset(self) -> timedelta:
        return timedelta(0)


class SimulatedClock:
    """
    Operator-settable clock backed by the ClockOverride singleton row.

    Reads are cached for `ttl_seconds`. Any change made through set() drops
    the cache immediately; writers that touch the row directly (rewind) must
    call invalidate() after committing.

    Usage:
        clock = SimulatedClock(session_factory)
        clock.set(datetime(2026, 3, 19, 15, 0, tzinfo=timezone.utc))
        clock.now()        # the simulated instant
        clock.set(None)    # back to real time
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        ttl_seconds: Optional[float] = None,
        wall_clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._ttl = ENGINE_SETTINGS.clock_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._wall_clock = wall_clock

        self._cached: Optional[datetime] = None
        self._cached_at: Optional[float] = None

    def _override(self) -> Optional[datetime]:
        """The simulated instant, or None when running on real time."""
        if self._cached_at is not None and time.monotonic() - self._cached_at < self._ttl:
            return self._cached

        with get_session(self._session_factory) as session:
            row = session.get(ClockOverride, ClockOverride.SINGLETON_ID)
            if row is not None and row.is_test_mode and row.simulated_at is not None:
                value = as_utc(row.simulated_at)
            else:
                value = None

        self._cached = value
        self._cached_at = time.monotonic()
        return value

    def now(self) -> datetime:
        simulated = self._override()
        if simulated is not None:
            return simulated
        return self._wall_clock()

    def is_test_mode(self) -> bool:
        return self._override() is not None

    def offset(self) -> timedelta:
        """Simulated time minus real time; zero outside test mode."""
        simulated = self._override()
        if simulated is None:
            return timedelta(0)
        return simulated - self._wall_clock()

    def invalidate(self) -> None:
        self._cached = None
        self._cached_at = None

    def set(self, instant: Optional[datetime]) -> None:
        """Pin the clock to `instant`, or return to real time with None."""
        instant = as_utc(instant)
        with get_session(self._session_factory) as session:
            row = session.get(ClockOverride, ClockOverride.SINGLETON_ID)
            if row is None:
                row = ClockOverride(id=ClockOverride.SINGLETON_ID)
                session.add(row)
            row.is_test_mode = instant is not None
            row.simulated_at = instant
            row.updated_at = utcnow()

        self.invalidate()
        if instant is None:
            logger.info("Simulated clock cleared, using real time")
        else:
            logger.info("Simulated clock set to %s", instant.isoformat())


def simulated_time_for_phase(round_info: RoundInfo, phase: str) -> datetime:
    """
    Instant that puts a round into the requested phase.

    pre_round: one hour before the deadline
    live: one hour after the deadline
    post_round: four hours after the latest tip-off
    """
    if phase not in PHASES:
        raise ValueError(f"Unknown phase '{phase}', expected one of {', '.join(PHASES)}")
    if round_info.deadline is None:
        raise ValueError(f"Round {round_info.id} has no scheduled games")

    if phase == "pre_round":
        return round_info.deadline - timedelta(hours=1)
    if phase == "live":
        return round_info.deadline + timedelta(hours=1)
    latest = round_info.last_game_at or round_info.deadline
    return latest + timedelta(hours=4)
