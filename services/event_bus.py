"""
Event Bus - Central signal hub for the survivor pool engine.

The processor emits here after each transaction commits; notification
dispatch, logging and any host UI listen here rather than calling into the
engine.
"""

from PySide6.QtCore import QObject, Signal


class EventBus(QObject):
    """
    Central signal hub for SurvivorPool.

    - GameProcessor emits results, eliminations and completions
    - NotificationDispatcher forwards eliminations and champions to a sink
    - Host applications listen for status changes

    Usage:
        # In GameProcessor
        self.event_bus.entry_eliminated.emit(elimination_event)

        # In a listener
        self.event_bus.pool_completed.connect(self._on_pool_completed)
    """

    # ============ Bracket Events ============
    game_finalized = Signal(object)     # GameFinalizedEvent
    round_completed = Signal(int)       # round_id
    bracket_rewound = Signal(object)    # RewindSummary

    # ============ Pool Events ============
    entry_eliminated = Signal(object)   # EliminationEvent
    pool_completed = Signal(object)     # ChampionEvent
    pools_activated = Signal(int)       # number of pools opened for play

    # ============ Clock Events ============
    clock_changed = Signal(object)      # datetime, or None for real time

    # ============ System Events ============
    system_message = Signal(str, str)   # (level, message) - e.g., ("info", "Round complete")

    def __init__(self):
        super().__init__()

    def emit_eliminations(self, events) -> None:
        """Convenience method to emit a batch of elimination events."""
        for event in events:
            self.entry_eliminated.emit(event)

    def emit_message(self, level: str, message: str) -> None:
        """Emit a system message (info, warning, error)."""
        self.system_message.emit(level, message)
