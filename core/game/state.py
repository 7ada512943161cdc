"""Game phase enumeration."""

from enum import Enum


class GamePhase(Enum):
    """
    Round state machine phases.

    Flow: IDLE → PLAYER_TURN → DEALER_TURN → FINISHED → IDLE

    A natural on the opening deal or a player bust goes straight to FINISHED.
    """

    # Waiting for a bet
    IDLE = "idle"

    # Player hits or stands
    PLAYER_TURN = "player_turn"

    # Dealer draws to 17
    DEALER_TURN = "dealer_turn"

    # Round settled, ready for next
    FINISHED = "finished"

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()

