"""
SurvivorPool Application Controller

Top-level controller that wires together all application components.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import QObject
from sqlalchemy.orm import Session

from services.event_bus import EventBus
from services.notifications import LoggingSink, NotificationDispatcher, NotificationSink
from engine.bracket import generate_bracket
from engine.clock import Clock, SimulatedClock
from engine.picks import submit_pick
from engine.processor import GameProcessor
from engine.standings import pool_standings
from engine.status import tournament_state
from models.base import create_session_factory, get_session, init_db
from models.pool import Entry, Pool
from models.schemas import GenerateBracketResult, PoolStandings, TournamentState

logger = logging.getLogger(__name__)


class SurvivorPoolApp(QObject):
    """
    Top-level application controller.
    Wires together the session factory, clock, event bus, notifications and processor.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        sink: Optional[NotificationSink] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__()

        # Database
        if database_url is None:
            init_db()
            self.session_factory: Optional[Callable[[], Session]] = None
        else:
            self.session_factory = create_session_factory(database_url)

        # Core services
        self.event_bus = EventBus()
        self.clock = clock if clock is not None else SimulatedClock(self.session_factory)
        self.notifications = NotificationDispatcher(self.event_bus, sink or LoggingSink())
        self.processor = GameProcessor(self.session_factory, self.clock, self.event_bus)

        self.event_bus.system_message.connect(self._on_system_message)

    def _on_system_message(self, level: str, message: str) -> None:
        logger.log(logging.WARNING if level in ("warning", "error") else logging.INFO, message)

    # ============ Setup ============

    def generate_bracket_from_file(
        self,
        teams_file: Path,
        start_date: date,
        split_days: bool = True,
    ) -> GenerateBracketResult:
        """Load a JSON list of {name, abbreviation, seed, region} and build the bracket."""
        with open(teams_file, "r") as f:
            teams = json.load(f)
        with get_session(self.session_factory) as session:
            return generate_bracket(session, teams, start_date, split_days=split_days)

    def create_pool(self, name: str) -> int:
        with get_session(self.session_factory) as session:
            pool = Pool(name=name)
            session.add(pool)
            session.flush()
            return pool.id

    def add_entry(self, pool_id: int, user_id: str, label: Optional[str] = None) -> int:
        with get_session(self.session_factory) as session:
            if session.get(Pool, pool_id) is None:
                raise ValueError(f"Pool {pool_id} not found")
            entry = Entry(pool_id=pool_id, user_id=user_id, label=label)
            session.add(entry)
            session.flush()
            return entry.id

    def make_pick(self, entry_id: int, round_id: int, team_id: int) -> int:
        now = self.clock.now()
        with get_session(self.session_factory) as session:
            return submit_pick(session, entry_id, round_id, team_id, now).id

    # ============ Queries ============

    def state(self) -> TournamentState:
        now = self.clock.now()
        with get_session(self.session_factory) as session:
            return tournament_state(session, now)

    def standings(self, pool_id: int) -> PoolStandings:
        with get_session(self.session_factory) as session:
            return pool_standings(session, pool_id)
