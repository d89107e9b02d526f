"""
Tests for notification dispatch.
"""

from unittest.mock import MagicMock

from models.pool import EliminationCause
from models.schemas import ChampionEvent, EliminationEvent
from services.event_bus import EventBus
from services.notifications import CHAMPION, CO_CHAMPION, LoggingSink, NotificationDispatcher


def elimination(user_id="bob"):
    return EliminationEvent(
        entry_id=2, pool_id=1, user_id=user_id, cause=EliminationCause.WRONG_PICK,
        round_id=1, round_name="Round of 64 - Day 1", team_id=16,
    )


class TestNotificationDispatcher:
    """Events on the bus become sink calls."""

    def test_elimination_notifies_user(self):
        bus = EventBus()
        sink = MagicMock()
        dispatcher = NotificationDispatcher(bus, sink)

        bus.entry_eliminated.emit(elimination())

        sink.assert_called_once()
        assert dispatcher.sink is sink
        user_id, cause, context = sink.call_args[0]
        assert (user_id, cause) == ("bob", "wrong_pick")
        assert context["round_name"] == "Round of 64 - Day 1"

    def test_single_champion(self):
        bus = EventBus()
        sink = MagicMock()
        dispatcher = NotificationDispatcher(bus, sink)

        bus.pool_completed.emit(ChampionEvent(pool_id=1, pool_name="Office", winners=[(1, "alice")]))

        sink.assert_called_once()
        assert sink.call_args[0][:2] == ("alice", CHAMPION)

    def test_co_champions(self):
        bus = EventBus()
        sink = MagicMock()
        dispatcher = NotificationDispatcher(bus, sink)

        bus.pool_completed.emit(ChampionEvent(pool_id=1, winners=[(1, "erin"), (2, "frank")]))

        assert sink.call_count == 2
        assert {c[0][0] for c in sink.call_args_list} == {"erin", "frank"}
        assert all(c[0][1] == CO_CHAMPION for c in sink.call_args_list)
        assert sink.call_args[0][2]["winner_count"] == 2

    def test_failing_sink_is_logged_not_raised(self):
        """A sink error becomes a warning message; later notifications still go out."""
        bus = EventBus()
        sink = MagicMock(side_effect=[RuntimeError("smtp down"), None])
        messages = MagicMock()
        bus.system_message.connect(messages)
        dispatcher = NotificationDispatcher(bus, sink)

        bus.entry_eliminated.emit(elimination("bob"))
        bus.entry_eliminated.emit(elimination("carol"))

        assert sink.call_count == 2
        messages.assert_called_once()
        assert messages.call_args[0][0] == "warning"


def test_logging_sink_counts():
    sink = LoggingSink()
    sink("alice", CHAMPION, {"pool_id": 1})
    assert sink.sent == 1
