"""Hand evaluation for blackjack."""

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from core.cards import Card

BLACKJACK = 21


def score(cards: Iterable[Card]) -> int:
    """
    Calculate the best total for a set of cards.

    Aces count 11 until the total would pass 21, then drop to 1 one at a time.
    """
    total = 0
    aces = 0

    for card in cards:
        if card.is_ace:
            aces += 1
        total += card.value

    # Reduce aces from 11 to 1 as needed
    while total > BLACKJACK and aces > 0:
        total -= 10
        aces -= 1

    return total


def is_blackjack(cards: Iterable[Card]) -> bool:
    """Check for a natural: exactly an ace and a ten-valued card."""
    cards = list(cards)
    if len(cards) != 2:
        return False
    return any(c.is_ace for c in cards) and any(c.is_ten_value for c in cards)


@dataclass
class Hand:
    """A blackjack hand with value calculation."""

    cards: list[Card] = field(default_factory=list)

    def add_card(self, card: Card) -> None:
        """Add a card to the hand."""
        self.cards.append(card)

    def clear(self) -> None:
        """Remove all cards from the hand."""
        self.cards.clear()

    @property
    def value(self) -> int:
        """Return the best hand total."""
        return score(self.cards)

    @property
    def is_soft(self) -> bool:
        """
        Check if the hand is soft (has an ace counted as 11).
        """
        if not any(card.is_ace for card in self.cards):
            return False

        total_hard = sum(1 if card.is_ace else card.value for card in self.cards)
        return total_hard + 10 <= BLACKJACK

    @property
    def is_blackjack(self) -> bool:
        """Check if the hand is a natural blackjack."""
        return is_blackjack(self.cards)

    @property
    def is_busted(self) -> bool:
        """Check if the hand has busted (value > 21)."""
        return self.value > BLACKJACK

    def copy(self) -> "Hand":
        return Hand(cards=list(self.cards))

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __str__(self) -> str:
        cards_str = " ".join(str(card) for card in self.cards)
        value_str = f"({self.value})"
        if self.is_soft:
            value_str = f"(soft {self.value})"
        if self.is_blackjack:
            value_str = "(BLACKJACK)"
        if self.is_busted:
            value_str = "(BUST)"
        return f"{cards_str} {value_str}"

    def __repr__(self) -> str:
        return f"Hand({self.cards!r}, value={self.value})"


def compare_hands(player_hand: Hand, dealer_hand: Hand) -> int:
    """
    Compare player and dealer hands once both are complete.

    Returns:
        1 if player wins
        -1 if dealer wins
        0 if push (tie)
    """
    # Player busts always loses
    if player_hand.is_busted:
        return -1

    # Dealer busts, player wins
    if dealer_hand.is_busted:
        return 1

    player_value = player_hand.value
    dealer_value = dealer_hand.value

    if player_value > dealer_value:
        return 1
    if dealer_value > player_value:
        return -1
    return 0  # Push
