"""Core blackjack engine - 100% UI-agnostic."""

from core.cards import Card, InfiniteShoe, Rank, Suit
from core.hand import Hand, score, is_blackjack

__all__ = [
    "Card",
    "InfiniteShoe",
    "Rank",
    "Suit",
    "Hand",
    "score",
    "is_blackjack",
]
