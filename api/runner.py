"""Plays a player's rounds and keeps the store in step with the engine."""

import asyncio
import logging
from random import Random

from api.store import RoundStore
from core.cards import Card
from core.errors import (
    BlackjackError,
    InsufficientBalance,
    InvalidStateTransition,
    PersistenceFailure,
    RoundInProgress,
)
from core.game import BlackjackGame, GameEvent, GamePhase, GameRound, RuleSet
from core.game.engine import CardSource
from core.strategy import Advice, Advisor, BasicStrategyAdvisor

log = logging.getLogger(__name__)


class GameRunner:
    """
    One player's table.

    Every mutating call holds a lock, so a round never has two store writes
    in flight. When a write fails the engine keeps its new state, the
    snapshot is kept as pending and `PersistenceFailure` is raised; the
    pending snapshot is written first on the next call or on `sync()`.
    """

    def __init__(
        self,
        store: RoundStore,
        player_id: str,
        rules: RuleSet | None = None,
        rng: Random | None = None,
        shoe: CardSource | None = None,
        advisor: Advisor | None = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            store: Where the balance, active round and history live
            player_id: Owner of the balance
            rules: Table rules
            rng: Random number generator for the shoe
            shoe: Card source, overrides `rng`
            advisor: Hint provider, basic strategy if not provided
        """
        self.store = store
        self.player_id = player_id
        self.game = BlackjackGame(rules=rules, bankroll=0, rng=rng, shoe=shoe)
        self.advisor = advisor or BasicStrategyAdvisor()
        self._lock = asyncio.Lock()
        self._pending: GameRound | None = None
        self._loaded = False
        self.game.subscribe(self._log_event)

    @property
    def phase(self) -> GamePhase:
        return self.game.phase

    @property
    def balance(self) -> int:
        return self.game.bankroll

    @property
    def round(self) -> GameRound | None:
        return self.game.round

    @property
    def pending_sync(self) -> bool:
        """Check if a round change has not reached the store yet."""
        return self._pending is not None

    async def load(self) -> None:
        """Read the balance and resume any unfinished round."""
        async with self._lock:
            await self._load()

    async def place_bet(self, amount: int) -> GameRound:
        """
        Start a round with a bet.

        Raises:
            InvalidAmount, InsufficientBalance: the bet was refused
            RoundInProgress: the store already has an unfinished round,
                which is resumed
            PersistenceFailure: the store could not be reached
        """
        async with self._lock:
            await self._ensure_ready()
            self.game.validate_bet(amount)

            try:
                round_ = await self.store.start_round(self.player_id, amount)
            except RoundInProgress as exc:
                log.warning(
                    "Player %s already has round %s in progress, resuming it",
                    self.player_id,
                    exc.existing.id,
                )
                self.game.bankroll = await self.store.get_balance(self.player_id)
                await self._resume(exc.existing)
                raise
            except InsufficientBalance:
                self.game.bankroll = await self.store.get_balance(self.player_id)
                raise

            # The store has debited already; the engine debits its mirror again
            self.game.bankroll = await self.store.get_balance(self.player_id) + amount
            self.game.bet(amount, round_id=round_.id, started_at=round_.started_at)
            await self._save(self.game.round)
            return self.game.round

    async def hit(self) -> GameRound:
        """Player takes a card."""
        async with self._lock:
            await self._ensure_ready()
            round_ = self.game.hit()
            await self._save(round_)
            return round_

    async def stand(self) -> GameRound:
        """Player stands and the dealer plays."""
        async with self._lock:
            await self._ensure_ready()
            round_ = self.game.stand()
            await self._save(round_)
            return round_

    async def start_new_round(self) -> None:
        """Clear the finished round."""
        async with self._lock:
            await self._ensure_ready()
            self.game.start_new_round()

    async def reset(self) -> int:
        """
        Refill the balance and clear history between rounds.

        Raises:
            InvalidStateTransition: a round is being played
        """
        async with self._lock:
            await self._ensure_ready()
            if self.game.phase not in (GamePhase.IDLE, GamePhase.FINISHED):
                raise InvalidStateTransition("reset", self.game.phase.value)

            balance = await self.store.reset_player(self.player_id)
            if self.game.phase == GamePhase.FINISHED:
                self.game.start_new_round()
            self.game.bankroll = balance
            return balance

    async def sync(self) -> int:
        """
        Retry any pending store write and refresh the balance.

        Returns:
            The current balance
        """
        async with self._lock:
            if not self._loaded:
                await self._load()
            await self._flush()
            self.game.bankroll = await self.store.get_balance(self.player_id)
            return self.game.bankroll

    async def history(self, page: int = 1, page_size: int | None = None) -> list[GameRound]:
        """Get finished rounds, most recent first."""
        return await self.store.get_history_page(self.player_id, page, page_size)

    def advice(self) -> Advice:
        """Ask the advisor about the current hand."""
        if self.game.phase != GamePhase.PLAYER_TURN or not self.game.dealer_hand.cards:
            raise InvalidStateTransition("ask for advice", self.game.phase.value)
        upcard: Card = self.game.dealer_hand.cards[0]
        return self.advisor.advise(self.game.player_hand, upcard)

    async def _ensure_ready(self) -> None:
        if not self._loaded:
            await self._load()
        await self._flush()

    async def _load(self) -> None:
        self.game.bankroll = await self.store.get_balance(self.player_id)
        if self.game.phase == GamePhase.IDLE:
            active = await self.store.get_active_round(self.player_id)
            if active is not None:
                await self._resume(active)
        self._loaded = True

    async def _resume(self, active: GameRound) -> None:
        """Pick up a round the store has but the engine does not."""
        if active.is_finished:
            # Settled but never moved to history
            log.info("Finishing stored round %s", active.id)
            self._pending = active
            await self._flush()
            return
        if active.phase == GamePhase.IDLE:
            # Bet taken but never dealt
            log.info("Dealing stored round %s", active.id)
            self.game.bankroll += active.bet
            self.game.bet(active.bet, round_id=active.id, started_at=active.started_at)
        else:
            log.info("Restoring round %s in %s", active.id, active.phase.value)
            self.game.restore(active)
            if active.phase == GamePhase.DEALER_TURN:
                self.game.resume_dealer()
            else:
                return
        await self._save(self.game.round)

    async def _save(self, round_: GameRound | None) -> None:
        if round_ is None:
            return
        self._pending = round_.snapshot()
        await self._flush()

    async def _flush(self) -> None:
        """Write the pending snapshot, finishing the round if it is settled."""
        snapshot = self._pending
        if snapshot is None:
            return

        try:
            if snapshot.is_finished:
                self.game.bankroll = await self.store.finish_round(self.player_id, snapshot)
            else:
                await self.store.update_round(self.player_id, snapshot)
        except PersistenceFailure:
            log.warning("Could not save round %s, will retry", snapshot.id)
            raise
        except BlackjackError:
            log.exception("Store rejected round %s, dropping unsaved state", snapshot.id)
            self._pending = None
            raise
        self._pending = None

    def _log_event(self, event: GameEvent) -> None:
        log.debug("[%s] %s", self.player_id, event)
