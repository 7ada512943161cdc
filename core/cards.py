"""Card model and the infinite shoe cards are drawn from."""

from dataclasses import dataclass
from enum import Enum, auto
from random import Random


class Suit(Enum):
    """Card suits."""

    SPADES = auto()
    HEARTS = auto()
    DIAMONDS = auto()
    CLUBS = auto()

    def __str__(self) -> str:
        return _SUIT_SYMBOLS[self]

    @classmethod
    def from_symbol(cls, symbol: str) -> "Suit":
        """Parse a suit from its symbol ('♠') or letter ('S')."""
        key = symbol.strip().upper()
        if key not in _SUIT_LOOKUP:
            raise ValueError(f"Invalid suit: {symbol}")
        return _SUIT_LOOKUP[key]


_SUIT_SYMBOLS = {
    Suit.SPADES: "♠",
    Suit.HEARTS: "♥",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
}

_SUIT_LOOKUP = {
    "S": Suit.SPADES,
    "♠": Suit.SPADES,
    "H": Suit.HEARTS,
    "♥": Suit.HEARTS,
    "D": Suit.DIAMONDS,
    "♦": Suit.DIAMONDS,
    "C": Suit.CLUBS,
    "♣": Suit.CLUBS,
}


class Rank(Enum):
    """Card ranks with blackjack values."""

    ACE = 14
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13

    def __str__(self) -> str:
        if self.value <= 10:
            return str(self.value)
        return {
            Rank.JACK: "J",
            Rank.QUEEN: "Q",
            Rank.KING: "K",
            Rank.ACE: "A",
        }[self]

    @classmethod
    def from_symbol(cls, symbol: str) -> "Rank":
        """Parse a rank from 'A', '2'..'10', 'T', 'J', 'Q' or 'K'."""
        key = symbol.strip().upper()
        if key == "T":
            key = "10"
        for rank in cls:
            if str(rank) == key:
                return rank
        raise ValueError(f"Invalid rank: {symbol}")

    @property
    def blackjack_value(self) -> int:
        """Return the blackjack point value (Ace = 11, face cards = 10)."""
        if self.value <= 10:
            return self.value
        if self == Rank.ACE:
            return 11
        return 10  # Face cards

    @property
    def is_ace(self) -> bool:
        """Check if this rank is an Ace."""
        return self == Rank.ACE

    @property
    def is_ten_value(self) -> bool:
        """Check if this rank has a value of 10."""
        return self.blackjack_value == 10


@dataclass(frozen=True, slots=True)
class Card:
    """Immutable playing card."""

    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    def __repr__(self) -> str:
        return f"Card({self.rank.name}, {self.suit.name})"

    @property
    def value(self) -> int:
        """Return the blackjack point value."""
        return self.rank.blackjack_value

    @property
    def is_ace(self) -> bool:
        return self.rank.is_ace

    @property
    def is_ten_value(self) -> bool:
        return self.rank.is_ten_value

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Create a card from a string like 'A♠', 'AS', '10h'."""
        s = s.strip()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s}")
        return cls(Rank.from_symbol(s[:-1]), Suit.from_symbol(s[-1]))


class InfiniteShoe:
    """
    A shoe that never runs out.

    Every draw picks a rank and a suit independently and uniformly, with
    replacement, so the odds never change as cards are dealt.
    """

    RANKS: tuple[Rank, ...] = tuple(Rank)
    SUITS: tuple[Suit, ...] = tuple(Suit)

    def __init__(self, rng: Random | None = None) -> None:
        """
        Initialize the shoe.

        Args:
            rng: Random number generator, seed it for reproducible games
        """
        self._rng = rng or Random()

    def draw(self) -> Card:
        """Draw a card."""
        rank = self._rng.choice(self.RANKS)
        suit = self._rng.choice(self.SUITS)
        return Card(rank, suit)
