"""Exceptions raised by the blackjack engine and its collaborators."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.game.round import GameRound


class BlackjackError(Exception):
    """Base class for all game errors."""


class InvalidAmount(BlackjackError):
    """Bet amount is not a positive integer."""

    def __init__(self, amount: int) -> None:
        super().__init__(f"Bet must be a positive number, got {amount}")
        self.amount = amount


class InsufficientBalance(BlackjackError):
    """Bet exceeds the available balance."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"Insufficient balance: bet {required}, available {available}")
        self.required = required
        self.available = available


class InvalidStateTransition(BlackjackError):
    """Action attempted outside the phase where it is legal."""

    def __init__(self, action: str, phase: str, message: str | None = None) -> None:
        super().__init__(message or f"Cannot {action} during {phase}")
        self.action = action
        self.phase = phase


class RoundInProgress(InvalidStateTransition):
    """A non-finished round already exists for the player."""

    def __init__(self, existing: "GameRound") -> None:
        super().__init__(
            "start a round",
            existing.phase.value,
            message=f"Must finish current game {existing.id} first",
        )
        self.existing = existing


class PersistenceFailure(BlackjackError):
    """A store call failed. The caller may retry."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Store operation '{operation}' failed{detail}")
        self.operation = operation
        self.cause = cause


class MalformedPersistedRecord(BlackjackError):
    """A stored round could not be read back."""
