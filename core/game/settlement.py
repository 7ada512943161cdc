"""Round results and the payout table."""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from enum import Enum

from core.game.rules import RuleSet


class GameResult(Enum):
    """How a round ended."""

    WIN = "win"
    LOSE = "lose"
    PUSH = "push"
    EARLY_WIN = "early-win"  # Natural blackjack on the opening deal
    EARLY_PUSH = "early-push"  # Both sides dealt a natural

    @property
    def is_natural(self) -> bool:
        return self in (GameResult.EARLY_WIN, GameResult.EARLY_PUSH)


@dataclass(frozen=True)
class Settlement:
    """
    Balance movement for a finished round.

    The bet has already been debited when the round started, so `credited`
    is what goes back to the balance and `payout` is the net result.
    """

    result: GameResult
    bet: int
    credited: int

    @property
    def payout(self) -> int:
        return self.credited - self.bet


def credited_amount(result: GameResult, bet: int, rules: RuleSet | None = None) -> int:
    """
    Return the amount credited back for a result.

    | result     | credited                  |
    |------------|---------------------------|
    | win        | 2 x bet                   |
    | early-win  | bet + bet x payout ratio  |
    | push       | bet                       |
    | early-push | bet                       |
    | lose       | 0                         |

    Fractional natural payouts are rounded down to whole chips.
    """
    rules = rules or RuleSet()
    if result == GameResult.WIN:
        return bet * 2
    if result == GameResult.EARLY_WIN:
        bonus = (Decimal(bet) * Decimal(str(rules.blackjack_payout))).to_integral_value(
            rounding=ROUND_FLOOR
        )
        return bet + int(bonus)
    if result in (GameResult.PUSH, GameResult.EARLY_PUSH):
        return bet
    return 0


def settle(result: GameResult, bet: int, rules: RuleSet | None = None) -> Settlement:
    """Compute the settlement for a finished round."""
    if bet <= 0:
        raise ValueError(f"Cannot settle a round with bet {bet}")
    return Settlement(result=result, bet=bet, credited=credited_amount(result, bet, rules))
