"""Round and balance storage with Redis backend and in-memory option."""

import json
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from api.records import deserialize_round, serialize_round
from config import config
from core.errors import (
    InsufficientBalance,
    InvalidAmount,
    InvalidStateTransition,
    PersistenceFailure,
    RoundInProgress,
)
from core.game.round import GameRound

log = logging.getLogger(__name__)


class RoundStore(ABC):
    """
    Durable home of a player's balance, active round and history.

    The store owns the balance: it debits the bet when a round starts and
    credits the settlement when the round finishes.
    """

    def __init__(self, starting_balance: int | None = None) -> None:
        if starting_balance is None:
            starting_balance = config.store.starting_balance
        self._starting_balance = starting_balance

    @abstractmethod
    async def get_balance(self, player_id: str) -> int:
        """Get the player's balance, opening an account on first use."""
        ...

    @abstractmethod
    async def start_round(self, player_id: str, bet: int) -> GameRound:
        """
        Debit the bet and record a new active round.

        Raises:
            InvalidAmount: bet is not positive
            InsufficientBalance: bet exceeds the balance
            RoundInProgress: the player already has an unfinished round
        """
        ...

    @abstractmethod
    async def update_round(self, player_id: str, round_: GameRound) -> None:
        """Save the current state of the active round."""
        ...

    @abstractmethod
    async def finish_round(self, player_id: str, round_: GameRound) -> int:
        """
        Save a finished round, credit its settlement and add it to history.

        Finishing the same round twice credits it once.

        Returns:
            The balance after the credit
        """
        ...

    @abstractmethod
    async def get_active_round(self, player_id: str) -> GameRound | None:
        """Get the player's unfinished round, if any."""
        ...

    @abstractmethod
    async def get_history_page(
        self,
        player_id: str,
        page: int = 1,
        page_size: int | None = None,
    ) -> list[GameRound]:
        """Get finished rounds, most recent first. Pages start at 1."""
        ...

    @abstractmethod
    async def reset_player(self, player_id: str) -> int:
        """
        Refill the balance to the starting amount and clear history.

        Raises:
            RoundInProgress: the player has an unfinished round

        Returns:
            The new balance
        """
        ...

    def _page_bounds(self, page: int, page_size: int | None) -> tuple[int, int]:
        """Return the [start, stop) slice for a history page."""
        if page_size is None:
            page_size = config.store.history_page_size
        if page < 1:
            raise ValueError("page must be at least 1")
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        start = (page - 1) * page_size
        return start, start + page_size

    @staticmethod
    def _check_finished(round_: GameRound) -> None:
        if not round_.is_finished or round_.result is None or round_.payout is None:
            raise InvalidStateTransition(
                "finish a round",
                round_.phase.value,
                f"Round {round_.id} has not been settled",
            )

    @classmethod
    def _credited(cls, round_: GameRound) -> int:
        cls._check_finished(round_)
        return round_.bet + (round_.payout or 0)


class InMemoryRoundStore(RoundStore):
    """Process-local store for development and memory-only play."""

    def __init__(self, starting_balance: int | None = None) -> None:
        super().__init__(starting_balance)
        self._balances: dict[str, int] = {}
        self._active: dict[str, dict[str, Any]] = {}
        self._history: dict[str, list[dict[str, Any]]] = {}
        self._finished_ids: set[str] = set()

    async def get_balance(self, player_id: str) -> int:
        """Get the player's balance."""
        return self._balances.setdefault(player_id, self._starting_balance)

    async def start_round(self, player_id: str, bet: int) -> GameRound:
        """Debit the bet and record a new active round."""
        if player_id in self._active:
            raise RoundInProgress(deserialize_round(self._active[player_id]))
        if bet <= 0:
            raise InvalidAmount(bet)

        balance = await self.get_balance(player_id)
        if bet > balance:
            raise InsufficientBalance(bet, balance)

        round_ = GameRound(bet=bet)
        self._balances[player_id] = balance - bet
        self._active[player_id] = serialize_round(round_)
        log.info("Started round %s for %s, bet %d", round_.id, player_id, bet)
        return round_

    async def update_round(self, player_id: str, round_: GameRound) -> None:
        """Save the current state of the active round."""
        self._require_active(player_id, round_, "update a round")
        self._active[player_id] = serialize_round(round_)

    async def finish_round(self, player_id: str, round_: GameRound) -> int:
        """Save a finished round and credit its settlement."""
        if round_.id in self._finished_ids:
            log.debug("Round %s already finished, nothing to credit", round_.id)
            return await self.get_balance(player_id)

        self._check_finished(round_)
        self._require_active(player_id, round_, "finish a round")

        balance = await self.get_balance(player_id) + self._credited(round_)
        self._balances[player_id] = balance
        self._history.setdefault(player_id, []).insert(0, serialize_round(round_))
        self._finished_ids.add(round_.id)
        del self._active[player_id]
        log.info(
            "Finished round %s for %s: %s, payout %d",
            round_.id,
            player_id,
            round_.result.value if round_.result else None,
            round_.payout,
        )
        return balance

    async def get_active_round(self, player_id: str) -> GameRound | None:
        """Get the player's unfinished round, if any."""
        data = self._active.get(player_id)
        return deserialize_round(data) if data is not None else None

    async def get_history_page(
        self,
        player_id: str,
        page: int = 1,
        page_size: int | None = None,
    ) -> list[GameRound]:
        """Get finished rounds, most recent first."""
        start, stop = self._page_bounds(page, page_size)
        records = self._history.get(player_id, [])[start:stop]
        return [deserialize_round(r) for r in records]

    async def reset_player(self, player_id: str) -> int:
        """Refill the balance and clear history."""
        if player_id in self._active:
            raise RoundInProgress(deserialize_round(self._active[player_id]))
        self._balances[player_id] = self._starting_balance
        self._history.pop(player_id, None)
        log.info("Reset %s to %d chips", player_id, self._starting_balance)
        return self._starting_balance

    def _require_active(self, player_id: str, round_: GameRound, action: str) -> None:
        active = self._active.get(player_id)
        if active is None or active["id"] != round_.id:
            raise InvalidStateTransition(
                action,
                round_.phase.value,
                f"Round {round_.id} is not the active round",
            )


class RedisRoundStore(RoundStore):
    """Redis-backed store. Balance changes run in WATCH/MULTI transactions."""

    def __init__(
        self,
        redis_client: "redis.Redis",
        starting_balance: int | None = None,
    ) -> None:
        super().__init__(starting_balance)
        self._redis = redis_client
        self._prefix = "blackjack:player:"

    def _key(self, player_id: str, name: str) -> str:
        """Get Redis key for one of a player's records."""
        return f"{self._prefix}{player_id}:{name}"

    @contextmanager
    def _failures(self, operation: str) -> Iterator[None]:
        """Report Redis errors as persistence failures."""
        try:
            yield
        except RedisError as exc:
            log.warning("Redis %s failed: %s", operation, exc)
            raise PersistenceFailure(operation, exc) from exc

    async def get_balance(self, player_id: str) -> int:
        """Get the player's balance."""
        key = self._key(player_id, "balance")
        with self._failures("get_balance"):
            await self._redis.set(key, self._starting_balance, nx=True)
            return int(await self._redis.get(key))

    async def start_round(self, player_id: str, bet: int) -> GameRound:
        """Debit the bet and record a new active round."""
        if bet <= 0:
            raise InvalidAmount(bet)

        balance_key = self._key(player_id, "balance")
        active_key = self._key(player_id, "active")

        with self._failures("start_round"):
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(balance_key, active_key)
                        existing = await pipe.get(active_key)
                        if existing is not None:
                            raise RoundInProgress(deserialize_round(json.loads(existing)))

                        raw_balance = await pipe.get(balance_key)
                        balance = (
                            int(raw_balance) if raw_balance is not None else self._starting_balance
                        )
                        if bet > balance:
                            raise InsufficientBalance(bet, balance)

                        round_ = GameRound(bet=bet)
                        pipe.multi()
                        pipe.set(balance_key, balance - bet)
                        pipe.set(active_key, json.dumps(serialize_round(round_)))
                        await pipe.execute()
                    except WatchError:
                        # Balance or active round changed underneath us
                        continue
                    log.info("Started round %s for %s, bet %d", round_.id, player_id, bet)
                    return round_

    async def update_round(self, player_id: str, round_: GameRound) -> None:
        """Save the current state of the active round."""
        active_key = self._key(player_id, "active")
        with self._failures("update_round"):
            existing = await self._redis.get(active_key)
            if existing is None or json.loads(existing).get("id") != round_.id:
                raise InvalidStateTransition(
                    "update a round",
                    round_.phase.value,
                    f"Round {round_.id} is not the active round",
                )
            await self._redis.set(active_key, json.dumps(serialize_round(round_)))

    async def finish_round(self, player_id: str, round_: GameRound) -> int:
        """Save a finished round and credit its settlement."""
        self._check_finished(round_)

        balance_key = self._key(player_id, "balance")
        active_key = self._key(player_id, "active")
        history_key = self._key(player_id, "history")
        finished_key = self._key(player_id, "finished")
        credited = self._credited(round_)

        with self._failures("finish_round"):
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(balance_key, active_key, finished_key)
                        raw_balance = await pipe.get(balance_key)
                        balance = (
                            int(raw_balance) if raw_balance is not None else self._starting_balance
                        )
                        if await pipe.sismember(finished_key, round_.id):
                            log.debug("Round %s already finished, nothing to credit", round_.id)
                            return balance

                        existing = await pipe.get(active_key)
                        if existing is None or json.loads(existing).get("id") != round_.id:
                            raise InvalidStateTransition(
                                "finish a round",
                                round_.phase.value,
                                f"Round {round_.id} is not the active round",
                            )

                        pipe.multi()
                        pipe.set(balance_key, balance + credited)
                        pipe.lpush(history_key, json.dumps(serialize_round(round_)))
                        pipe.sadd(finished_key, round_.id)
                        pipe.delete(active_key)
                        await pipe.execute()
                    except WatchError:
                        continue
                    log.info(
                        "Finished round %s for %s: %s, payout %d",
                        round_.id,
                        player_id,
                        round_.result.value if round_.result else None,
                        round_.payout,
                    )
                    return balance + credited

    async def get_active_round(self, player_id: str) -> GameRound | None:
        """Get the player's unfinished round, if any."""
        with self._failures("get_active_round"):
            data = await self._redis.get(self._key(player_id, "active"))
        if data is None:
            return None
        return deserialize_round(json.loads(data))

    async def get_history_page(
        self,
        player_id: str,
        page: int = 1,
        page_size: int | None = None,
    ) -> list[GameRound]:
        """Get finished rounds, most recent first."""
        start, stop = self._page_bounds(page, page_size)
        with self._failures("get_history_page"):
            records = await self._redis.lrange(self._key(player_id, "history"), start, stop - 1)
        return [deserialize_round(json.loads(r)) for r in records]

    async def reset_player(self, player_id: str) -> int:
        """Refill the balance and clear history."""
        balance_key = self._key(player_id, "balance")
        active_key = self._key(player_id, "active")
        history_key = self._key(player_id, "history")

        with self._failures("reset_player"):
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(active_key)
                        existing = await pipe.get(active_key)
                        if existing is not None:
                            raise RoundInProgress(deserialize_round(json.loads(existing)))

                        pipe.multi()
                        pipe.set(balance_key, self._starting_balance)
                        pipe.delete(history_key)
                        await pipe.execute()
                    except WatchError:
                        continue
                    log.info("Reset %s to %d chips", player_id, self._starting_balance)
                    return self._starting_balance


# Global round store instance
_round_store: RoundStore | None = None


async def get_round_store() -> RoundStore:
    """Get or create the round store for the configured backend."""
    global _round_store

    if _round_store is not None:
        return _round_store

    backend = config.store.backend
    if backend in ("redis", "auto"):
        redis_client = redis.from_url(config.redis.url)
        try:
            await redis_client.ping()
        except RedisError as exc:
            if backend == "redis":
                raise PersistenceFailure("connect", exc) from exc
            log.warning("Redis unavailable at %s, keeping rounds in memory", config.redis.url)
        else:
            _round_store = RedisRoundStore(redis_client)
            log.info("Storing rounds in Redis at %s", config.redis.url)
            return _round_store

    _round_store = InMemoryRoundStore()
    return _round_store
