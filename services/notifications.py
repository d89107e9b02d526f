"""
Notification Sink

Outbound, best-effort delivery of eliminations and pool results to users.
Delivery itself (push, email) lives behind the sink; a failing sink is
logged and never interrupts the engine.
"""

import logging
from typing import Any, Protocol

from services.event_bus import EventBus
from models.schemas import ChampionEvent, EliminationEvent

logger = logging.getLogger(__name__)


CHAMPION = "champion"
CO_CHAMPION = "co_champion"


class NotificationSink(Protocol):
    def __call__(self, user_id: str, cause: str, context: dict[str, Any]) -> None: ...


class LoggingSink:
    """Default sink: writes each notification to the log."""

    def __init__(self):
        self.sent = 0

    def __call__(self, user_id: str, cause: str, context: dict[str, Any]) -> None:
        self.sent += 1
        logger.info("Notify %s: %s %s", user_id, cause, context)


class NotificationDispatcher:
    """
    Subscribes to the event bus and fans events out to a sink.

    Usage:
        dispatcher = NotificationDispatcher(event_bus, sink)
    """

    def __init__(self, event_bus: EventBus, sink: NotificationSink):
        self.event_bus = event_bus
        self.sink = sink

        self.event_bus.entry_eliminated.connect(self.on_entry_eliminated)
        self.event_bus.pool_completed.connect(self.on_pool_completed)

    def _send(self, user_id: str, cause: str, context: dict[str, Any]) -> None:
        try:
            self.sink(user_id, cause, context)
        except Exception:
            logger.exception("Notification sink failed for %s (%s)", user_id, cause)
            self.event_bus.emit_message("warning", f"Notification to {user_id} failed")

    def on_entry_eliminated(self, event: EliminationEvent) -> None:
        self._send(event.user_id, event.cause.value, {
            "entry_id": event.entry_id,
            "pool_id": event.pool_id,
            "round_id": event.round_id,
            "round_name": event.round_name,
            "team_id": event.team_id,
        })

    def on_pool_completed(self, event: ChampionEvent) -> None:
        cause = CO_CHAMPION if event.is_tie else CHAMPION
        for entry_id, user_id in event.winners:
            self._send(user_id, cause, {
                "entry_id": entry_id,
                "pool_id": event.pool_id,
                "pool_name": event.pool_name,
                "winner_count": len(event.winners),
            })
