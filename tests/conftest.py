"""Pytest fixtures for blackjack tests."""

import pytest
import pytest_asyncio
from random import Random
from fakeredis import FakeAsyncRedis

from api.store import InMemoryRoundStore, RedisRoundStore
from core.cards import Card, InfiniteShoe, Rank, Suit
from core.game import BlackjackGame, RuleSet
from core.hand import Hand


class StackedShoe:
    """Deals a fixed sequence of cards, for scripted rounds."""

    def __init__(self, cards: list[Card]) -> None:
        self._cards = list(cards)
        self.drawn = 0

    def draw(self) -> Card:
        if not self._cards:
            raise AssertionError("Stacked shoe ran out of cards")
        self.drawn += 1
        return self._cards.pop(0)

    @property
    def remaining(self) -> int:
        return len(self._cards)


def _cards(*symbols: str) -> list[Card]:
    """Build cards from rank symbols, cycling through the suits."""
    suits = list(Suit)
    return [Card(Rank.from_symbol(s), suits[i % len(suits)]) for i, s in enumerate(symbols)]


def _hand(*symbols: str) -> Hand:
    return Hand(cards=_cards(*symbols))


@pytest.fixture
def make_hand():
    """Factory for hands, e.g. make_hand("A", "K")."""
    return _hand


@pytest.fixture
def make_shoe():
    """Factory for stacked shoes dealing the given ranks in order."""

    def factory(*symbols: str) -> StackedShoe:
        return StackedShoe(_cards(*symbols))

    return factory


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def shoe(rng):
    """An infinite shoe over the seeded generator."""
    return InfiniteShoe(rng=rng)


@pytest.fixture
def empty_hand():
    """An empty player hand."""
    return Hand()


@pytest.fixture
def blackjack_hand():
    """A natural blackjack hand."""
    return _hand("A", "K")


@pytest.fixture
def soft_17_hand():
    """A soft 17 hand (A-6)."""
    return _hand("A", "6")


@pytest.fixture
def hard_16_hand():
    """A hard 16 hand (10-6)."""
    return _hand("10", "6")


@pytest.fixture
def bust_hand():
    """A busted hand."""
    return _hand("10", "6", "K")


@pytest.fixture
def rules():
    """Default ruleset."""
    return RuleSet()


@pytest.fixture
def game(rng):
    """A new game instance."""
    return BlackjackGame(bankroll=1000, rng=rng)


@pytest.fixture
def store():
    """An empty in-memory round store."""
    return InMemoryRoundStore(starting_balance=1000)



@pytest_asyncio.fixture
async def redis_store():
    """A Redis round store on an in-process fake server."""
    client = FakeAsyncRedis()
    await client.flushall()
    yield RedisRoundStore(client, starting_balance=1000)
    await client.flushall()
    await client.aclose()
