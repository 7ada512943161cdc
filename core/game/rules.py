"""Table rule variations."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from config import GameConfig

HitMode = Literal["multi", "single"]


@dataclass(frozen=True)
class RuleSet:
    """
    Blackjack table rules configuration.

    All rules that change how a round is dealt, played or paid.
    """

    # Betting limits (max_bet None means bounded only by the balance)
    min_bet: int = 1
    max_bet: int | None = None

    # Dealer draws while below this total, soft or hard
    dealer_stands_on: int = 17

    # Natural payout (3:2 = 1.5, 6:5 = 1.2)
    blackjack_payout: float = 1.5

    # "multi": hit until stand or bust. "single": one hit, then the dealer plays
    hit_mode: HitMode = "multi"

    # Deal the dealer's second card with the opening deal instead of at dealer turn
    deal_hole_card: bool = False

    def __post_init__(self) -> None:
        """Validate rule combinations."""
        if self.min_bet < 1:
            raise ValueError("min_bet must be at least 1")
        if self.max_bet is not None and self.max_bet < self.min_bet:
            raise ValueError("max_bet must not be below min_bet")
        if self.blackjack_payout < 1.0:
            raise ValueError("blackjack_payout must be at least 1.0")
        if not 12 <= self.dealer_stands_on <= 21:
            raise ValueError("dealer_stands_on must be between 12 and 21")
        if self.hit_mode not in ("multi", "single"):
            raise ValueError(f"Unknown hit_mode: {self.hit_mode}")

    @classmethod
    def from_config(cls, game_config: "GameConfig") -> "RuleSet":
        """Build the rule set from application configuration."""
        return cls(
            min_bet=game_config.min_bet,
            max_bet=game_config.max_bet,
            dealer_stands_on=game_config.dealer_stands_on,
            blackjack_payout=game_config.blackjack_payout,
            hit_mode=game_config.hit_mode,
            deal_hole_card=game_config.deal_hole_card,
        )

    @classmethod
    def single_hit(cls) -> "RuleSet":
        """One hit per round, then the dealer plays."""
        return cls(hit_mode="single")

    @classmethod
    def hole_card(cls) -> "RuleSet":
        """Dealer takes two cards on the opening deal."""
        return cls(deal_hole_card=True)
