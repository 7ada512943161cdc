"""Game engine and state management."""

from core.game.events import GameEvent, EventType
from core.game.state import GamePhase
from core.game.rules import RuleSet
from core.game.round import GameRound
from core.game.settlement import GameResult, Settlement, settle
from core.game.engine import BlackjackGame

__all__ = [
    "GameEvent",
    "EventType",
    "GamePhase",
    "RuleSet",
    "GameRound",
    "GameResult",
    "Settlement",
    "settle",
    "BlackjackGame",
]
