"""Events published by the round engine."""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable


class EventType(Enum):
    """What happened at the table."""

    ROUND_STARTED = "round.started"
    ROUND_RESTORED = "round.restored"
    ROUND_ENDED = "round.ended"
    ROUND_RESET = "round.reset"

    BET_PLACED = "bet.placed"
    BET_SETTLED = "bet.settled"

    CARD_DEALT = "card.dealt"

    PLAYER_HIT = "player.hit"
    PLAYER_STAND = "player.stand"
    PLAYER_BLACKJACK = "player.blackjack"
    PLAYER_BUSTS = "player.busts"
    PLAYER_WINS = "player.wins"
    PLAYER_LOSES = "player.loses"

    DEALER_HITS = "dealer.hits"
    DEALER_STANDS = "dealer.stands"
    DEALER_BUSTS = "dealer.busts"

    PUSH = "push"

    # Rejected actions, reported before the matching exception is raised
    INVALID_ACTION = "error.invalid_action"
    INSUFFICIENT_FUNDS = "error.insufficient_funds"


@dataclass(frozen=True)
class GameEvent:
    """One engine event with its payload."""

    event_type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"{self.event_type.name}: {self.data}"


EventHandler = Callable[[GameEvent], None]


class EventEmitter:
    """
    Synchronous publish/subscribe for engine events.

    Handlers registered for a type run before catch-all handlers. The most
    recent `max_history` events are kept for inspection.
    """

    def __init__(self, max_history: int = 500) -> None:
        self._handlers: defaultdict[EventType | None, list[EventHandler]] = defaultdict(list)
        self._history: deque[GameEvent] = deque(maxlen=max_history)

    def subscribe(self, handler: EventHandler, event_type: EventType | None = None) -> None:
        """Call `handler` for `event_type`, or for every event when it is None."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, handler: EventHandler, event_type: EventType | None = None) -> None:
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: GameEvent) -> None:
        self._history.append(event)
        for handler in [*self._handlers.get(event.event_type, ()), *self._handlers.get(None, ())]:
            handler(event)

    def emit_new(self, event_type: EventType, **data: Any) -> GameEvent:
        """Build an event from keyword data, emit it and return it."""
        event = GameEvent(event_type=event_type, data=data)
        self.emit(event)
        return event

    @property
    def history(self) -> list[GameEvent]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
