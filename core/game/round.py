"""The round aggregate shared by the engine and the store."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from uuid import uuid4

from core.game.settlement import GameResult
from core.game.state import GamePhase
from core.hand import Hand


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GameRound:
    """
    One bet and the hands played for it.

    Created when a bet is placed; frozen in practice once `phase` is
    FINISHED and `result`/`payout` are recorded.
    """

    bet: int
    id: str = field(default_factory=lambda: str(uuid4()))
    started_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    player_hand: Hand = field(default_factory=Hand)
    dealer_hand: Hand = field(default_factory=Hand)
    phase: GamePhase = GamePhase.IDLE
    result: GameResult | None = None
    payout: int | None = None

    @property
    def is_finished(self) -> bool:
        return self.phase == GamePhase.FINISHED

    @property
    def player_total(self) -> int:
        return self.player_hand.value

    @property
    def dealer_total(self) -> int:
        return self.dealer_hand.value

    def touch(self) -> None:
        """Bump the last-updated timestamp."""
        self.updated_at = utc_now()

    def snapshot(self) -> "GameRound":
        """Return a copy that later play cannot mutate."""
        return replace(
            self,
            player_hand=self.player_hand.copy(),
            dealer_hand=self.dealer_hand.copy(),
        )
