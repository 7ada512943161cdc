"""Hit/stand basic strategy tables."""

from enum import Enum, auto
from typing import Mapping


class Action(Enum):
    """Player actions available at this table."""

    HIT = auto()
    STAND = auto()

    def __str__(self) -> str:
        return self.name.lower()


# Type aliases for clarity
DealerUpcard = int  # 2-11 (11 = Ace)
PlayerTotal = int  # Hard total or soft total value

UPCARDS: tuple[DealerUpcard, ...] = tuple(range(2, 12))

# Upcards each total stands against. Totals not listed always hit.
# Without doubling or splitting, hard 4-11 and soft 12-17 can only improve by drawing.
_HARD_STANDS: dict[PlayerTotal, frozenset[DealerUpcard]] = {
    12: frozenset({4, 5, 6}),
    **{total: frozenset(range(2, 7)) for total in range(13, 17)},
    **{total: frozenset(UPCARDS) for total in range(17, 22)},
}

_SOFT_STANDS: dict[PlayerTotal, frozenset[DealerUpcard]] = {
    18: frozenset(range(2, 9)),
    **{total: frozenset(UPCARDS) for total in range(19, 22)},
}


def _build_table(
    totals: range,
    stands: Mapping[PlayerTotal, frozenset[DealerUpcard]],
) -> dict[tuple[PlayerTotal, DealerUpcard], Action]:
    return {
        (total, upcard): Action.STAND if upcard in stands.get(total, ()) else Action.HIT
        for total in totals
        for upcard in UPCARDS
    }


class BasicStrategy:
    """
    Basic strategy lookup tables.

    Pre-computed dictionaries for O(1) lookup. Only hit and stand are
    offered, so cells that would double, split or surrender fall back to
    the better of those two.
    """

    def __init__(self) -> None:
        self._hard_table = _build_table(range(4, 22), _HARD_STANDS)
        self._soft_table = _build_table(range(12, 22), _SOFT_STANDS)

    def get_action(
        self,
        player_total: PlayerTotal,
        dealer_upcard: DealerUpcard,
        is_soft: bool = False,
    ) -> Action:
        """
        Get the basic strategy action.

        Args:
            player_total: Player's hand total
            dealer_upcard: Dealer's upcard value (2-11, Ace=11)
            is_soft: Whether the hand is soft

        Returns:
            The recommended action, STAND for a busted total
        """
        if player_total > 21:
            return Action.STAND

        table = self._soft_table if is_soft else self._hard_table
        action = table.get((player_total, dealer_upcard))
        if action is not None:
            return action
        return Action.STAND if player_total >= 17 else Action.HIT

    @property
    def hard_table(self) -> Mapping[tuple[PlayerTotal, DealerUpcard], Action]:
        return self._hard_table

    @property
    def soft_table(self) -> Mapping[tuple[PlayerTotal, DealerUpcard], Action]:
        return self._soft_table
