"""Advice on whether to hit, for display next to the table."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from core.cards import Card
from core.hand import Hand
from core.strategy.basic import Action, BasicStrategy


@dataclass(frozen=True)
class Advice:
    """A hit/stand suggestion. Never changes the rules of play."""

    should_hit: bool
    explanation: str


class Advisor(ABC):
    """Something that can suggest the next move."""

    @abstractmethod
    def advise(self, player_hand: Hand, dealer_upcard: Card) -> Advice:
        """Suggest whether the player should hit."""
        ...


class BasicStrategyAdvisor(Advisor):
    """Answers from the basic strategy tables."""

    def __init__(self) -> None:
        self.strategy = BasicStrategy()

    def advise(self, player_hand: Hand, dealer_upcard: Card) -> Advice:
        total = player_hand.value
        soft = player_hand.is_soft
        action = self.strategy.get_action(
            player_total=total,
            dealer_upcard=dealer_upcard.value,
            is_soft=soft,
        )

        kind = "soft" if soft else "hard"
        upcard = str(dealer_upcard.rank)
        if total > 21:
            explanation = f"Your hand is bust at {total}."
        elif action == Action.HIT:
            explanation = (
                f"Basic strategy hits {kind} {total} against a dealer {upcard}: "
                f"standing loses more often than drawing."
            )
        else:
            explanation = (
                f"Basic strategy stands on {kind} {total} against a dealer {upcard}: "
                f"let the dealer risk the bust."
            )
        return Advice(should_hit=action == Action.HIT, explanation=explanation)
