"""Tests for GameRunner, the engine and store working together."""

import pytest

from api.runner import GameRunner
from api.store import InMemoryRoundStore
from core.errors import (
    InsufficientBalance,
    InvalidAmount,
    InvalidStateTransition,
    PersistenceFailure,
    RoundInProgress,
)
from core.game import GamePhase, GameResult


class FlakyStore(InMemoryRoundStore):
    """In-memory store whose round writes can be switched off."""

    def __init__(self, starting_balance: int = 1000) -> None:
        super().__init__(starting_balance)
        self.failing = False

    async def update_round(self, player_id, round_):
        if self.failing:
            raise PersistenceFailure("update_round")
        await super().update_round(player_id, round_)

    async def finish_round(self, player_id, round_):
        if self.failing:
            raise PersistenceFailure("finish_round")
        return await super().finish_round(player_id, round_)


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def runner_for(make_shoe):
    """Build a runner for player "p1" dealing the given ranks in order."""

    def factory(store, *ranks: str) -> GameRunner:
        return GameRunner(store=store, player_id="p1", shoe=make_shoe(*ranks))

    return factory


class TestPlaying:
    """Tests for normal rounds through the runner."""

    @pytest.mark.asyncio
    async def test_bet_is_debited_in_store(self, store, runner_for):
        runner = runner_for(store, "10", "7", "9")
        round_ = await runner.place_bet(100)

        assert runner.phase == GamePhase.PLAYER_TURN
        assert runner.balance == 900
        assert await store.get_balance("p1") == 900

        active = await store.get_active_round("p1")
        assert active.id == round_.id
        assert active.phase == GamePhase.PLAYER_TURN
        assert len(active.player_hand) == 2
        assert len(active.dealer_hand) == 1

    @pytest.mark.asyncio
    async def test_hit_is_saved(self, store, runner_for):
        runner = runner_for(store, "10", "2", "9", "5")
        await runner.place_bet(100)
        await runner.hit()

        active = await store.get_active_round("p1")
        assert active.player_hand.value == 17

    @pytest.mark.asyncio
    async def test_stand_finishes_in_store(self, store, runner_for):
        runner = runner_for(store, "10", "K", "9", "Q")
        await runner.place_bet(100)
        round_ = await runner.stand()

        assert round_.result == GameResult.WIN
        assert runner.balance == 1100
        assert await store.get_balance("p1") == 1100
        assert await store.get_active_round("p1") is None

        (entry,) = await runner.history()
        assert entry.id == round_.id
        assert entry.result == GameResult.WIN

    @pytest.mark.asyncio
    async def test_natural_finishes_on_bet(self, store, runner_for):
        runner = runner_for(store, "A", "K", "9", "7")
        round_ = await runner.place_bet(100)

        assert round_.result == GameResult.EARLY_WIN
        assert await store.get_balance("p1") == 1150
        assert await store.get_active_round("p1") is None

    @pytest.mark.asyncio
    async def test_bust_finishes_in_store(self, store, runner_for):
        runner = runner_for(store, "10", "9", "8", "5")
        await runner.place_bet(100)
        await runner.hit()

        assert runner.phase == GamePhase.FINISHED
        assert await store.get_balance("p1") == 900
        assert len(await runner.history()) == 1

    @pytest.mark.asyncio
    async def test_next_round(self, store, runner_for):
        runner = runner_for(store, "10", "9", "8", "5", "10", "7", "9")
        await runner.place_bet(100)
        await runner.hit()
        await runner.start_new_round()

        assert runner.phase == GamePhase.IDLE
        assert runner.round is None

        await runner.place_bet(50)
        assert runner.balance == 850

    @pytest.mark.asyncio
    async def test_rejected_bets_touch_nothing(self, store, runner_for):
        runner = runner_for(store)

        with pytest.raises(InvalidAmount):
            await runner.place_bet(0)
        with pytest.raises(InsufficientBalance):
            await runner.place_bet(5000)

        assert await store.get_balance("p1") == 1000
        assert await store.get_active_round("p1") is None
        assert runner.phase == GamePhase.IDLE

    @pytest.mark.asyncio
    async def test_actions_out_of_turn(self, store, runner_for):
        runner = runner_for(store)
        with pytest.raises(InvalidStateTransition):
            await runner.hit()
        with pytest.raises(InvalidStateTransition):
            await runner.start_new_round()

    @pytest.mark.asyncio
    async def test_sync_returns_balance(self, store, runner_for):
        runner = runner_for(store)
        assert await runner.sync() == 1000


class TestAdvice:
    """Tests for hints during the player's turn."""

    @pytest.mark.asyncio
    async def test_advice_during_turn(self, store, runner_for):
        runner = runner_for(store, "10", "6", "K")
        await runner.place_bet(100)

        advice = runner.advice()
        assert advice.should_hit

    @pytest.mark.asyncio
    async def test_advice_needs_a_hand(self, store, runner_for):
        runner = runner_for(store)
        with pytest.raises(InvalidStateTransition):
            runner.advice()


class TestPersistenceFailure:
    """Tests for rounds the store could not save."""

    @pytest.mark.asyncio
    async def test_failed_save_keeps_round_pending(self, flaky_store, runner_for):
        runner = runner_for(flaky_store, "10", "7", "9")
        await runner.load()
        flaky_store.failing = True

        with pytest.raises(PersistenceFailure):
            await runner.place_bet(100)

        # The engine keeps the dealt round, the store only knows about the bet
        assert runner.phase == GamePhase.PLAYER_TURN
        assert runner.pending_sync
        active = await flaky_store.get_active_round("p1")
        assert active.phase == GamePhase.IDLE

        flaky_store.failing = False
        assert await runner.sync() == 900
        assert not runner.pending_sync

        active = await flaky_store.get_active_round("p1")
        assert active.phase == GamePhase.PLAYER_TURN
        assert len(active.player_hand) == 2

    @pytest.mark.asyncio
    async def test_pending_write_blocks_next_action(self, flaky_store, runner_for):
        runner = runner_for(flaky_store, "10", "2", "9", "5")
        await runner.place_bet(100)
        flaky_store.failing = True

        with pytest.raises(PersistenceFailure):
            await runner.hit()
        assert runner.round.player_total == 17

        # Still failing: the pending write is retried before the stand
        with pytest.raises(PersistenceFailure):
            await runner.stand()
        assert runner.phase == GamePhase.PLAYER_TURN

    @pytest.mark.asyncio
    async def test_next_action_flushes_pending_first(self, flaky_store, runner_for):
        runner = runner_for(flaky_store, "10", "2", "9", "5", "K")
        await runner.place_bet(100)
        flaky_store.failing = True
        with pytest.raises(PersistenceFailure):
            await runner.hit()

        flaky_store.failing = False
        await runner.stand()

        assert runner.phase == GamePhase.FINISHED
        assert not runner.pending_sync
        assert await flaky_store.get_active_round("p1") is None

    @pytest.mark.asyncio
    async def test_failed_finish_credits_once_on_sync(self, flaky_store, runner_for):
        runner = runner_for(flaky_store, "10", "K", "9", "Q")
        await runner.place_bet(100)
        flaky_store.failing = True

        with pytest.raises(PersistenceFailure):
            await runner.stand()

        assert runner.phase == GamePhase.FINISHED
        assert await flaky_store.get_balance("p1") == 900

        flaky_store.failing = False
        assert await runner.sync() == 1100
        assert await runner.sync() == 1100
        assert len(await runner.history()) == 1


class TestResume:
    """Tests for picking up rounds left in the store."""

    @pytest.mark.asyncio
    async def test_resume_player_turn(self, store, runner_for):
        first = runner_for(store, "10", "2", "9")
        round_ = await first.place_bet(100)

        second = runner_for(store, "5")
        await second.load()

        assert second.phase == GamePhase.PLAYER_TURN
        assert second.round.id == round_.id
        assert second.balance == 900

        await second.hit()
        assert second.round.player_total == 17

    @pytest.mark.asyncio
    async def test_resume_undealt_round(self, store, runner_for):
        """Test a round with a bet but no cards is dealt on load."""
        stored = await store.start_round("p1", 100)

        runner = runner_for(store, "10", "7", "9")
        await runner.load()

        assert runner.phase == GamePhase.PLAYER_TURN
        assert runner.round.id == stored.id
        assert runner.balance == 900
        active = await store.get_active_round("p1")
        assert len(active.player_hand) == 2

    @pytest.mark.asyncio
    async def test_resume_dealer_turn(self, store, runner_for, make_hand):
        """Test a round stopped in the dealer's turn is played out on load."""
        stored = await store.start_round("p1", 100)
        stored.player_hand = make_hand("10", "9")
        stored.dealer_hand = make_hand("9")
        stored.phase = GamePhase.DEALER_TURN
        await store.update_round("p1", stored)

        runner = runner_for(store, "8")
        await runner.load()

        assert runner.phase == GamePhase.FINISHED
        assert runner.round.result == GameResult.WIN
        assert await store.get_balance("p1") == 1100
        assert await store.get_active_round("p1") is None

    @pytest.mark.asyncio
    async def test_resume_settled_round(self, store, runner_for, make_hand):
        """Test a settled round left active is moved to history on load."""
        stored = await store.start_round("p1", 100)
        stored.player_hand = make_hand("10", "9", "5")
        stored.dealer_hand = make_hand("9")
        stored.phase = GamePhase.FINISHED
        stored.result = GameResult.LOSE
        stored.payout = -100
        await store.update_round("p1", stored)

        runner = runner_for(store)
        await runner.load()

        assert runner.phase == GamePhase.IDLE
        assert await store.get_active_round("p1") is None
        assert len(await store.get_history_page("p1")) == 1
        assert runner.balance == 900

    @pytest.mark.asyncio
    async def test_bet_while_round_in_progress(self, store, runner_for):
        """Test a second table for the same player picks up the first one's round."""
        other = runner_for(store, "10", "7", "9")
        runner = runner_for(store)
        await runner.load()

        round_ = await other.place_bet(100)

        with pytest.raises(RoundInProgress):
            await runner.place_bet(50)

        assert runner.phase == GamePhase.PLAYER_TURN
        assert runner.round.id == round_.id
        assert await store.get_balance("p1") == 900
        assert runner.balance == 900

    @pytest.mark.asyncio
    async def test_resume_finished_round_without_result(self, store, runner_for, make_hand):
        """Test a finished round whose result was lost is played on, not stuck."""
        stored = await store.start_round("p1", 100)
        stored.player_hand = make_hand("10", "6")
        stored.dealer_hand = make_hand("9")
        stored.phase = GamePhase.PLAYER_TURN
        await store.update_round("p1", stored)
        store._active["p1"].update(phase="finished", result="bogus")

        runner = runner_for(store, "5", "8")
        await runner.load()

        assert runner.phase == GamePhase.PLAYER_TURN
        assert runner.round.id == stored.id
        assert runner.round.result is None

        await runner.hit()
        round_ = await runner.stand()
        assert round_.result == GameResult.WIN
        assert await store.get_balance("p1") == 1100
        assert await store.get_active_round("p1") is None

    @pytest.mark.asyncio
    async def test_bet_after_unreadable_result(self, store, runner_for, make_hand):
        stored = await store.start_round("p1", 100)
        stored.player_hand = make_hand("10", "6")
        stored.dealer_hand = make_hand("9")
        stored.phase = GamePhase.PLAYER_TURN
        await store.update_round("p1", stored)
        store._active["p1"].update(phase="finished", result="bogus")

        runner = runner_for(store)
        for _ in range(3):
            with pytest.raises(InvalidStateTransition):
                await runner.place_bet(10)
        assert runner.phase == GamePhase.PLAYER_TURN
        assert runner.round.id == stored.id
        assert not runner.pending_sync

    @pytest.mark.asyncio
    async def test_resume_settled_round_without_payout(self, store, runner_for, make_hand):
        """Test a settled round missing its payout is credited from its result."""
        stored = await store.start_round("p1", 100)
        stored.player_hand = make_hand("10", "9")
        stored.dealer_hand = make_hand("9", "8")
        stored.phase = GamePhase.PLAYER_TURN
        await store.update_round("p1", stored)
        store._active["p1"].update(phase="finished", result="win", payout=None)

        runner = runner_for(store)
        await runner.load()

        assert runner.phase == GamePhase.IDLE
        assert runner.balance == 1100
        (entry,) = await store.get_history_page("p1")
        assert entry.payout == 100


class TestReset:
    """Tests for refilling chips."""

    @pytest.mark.asyncio
    async def test_reset_after_going_broke(self, runner_for):
        store = InMemoryRoundStore(starting_balance=100)
        runner = runner_for(store, "10", "9", "8", "5")
        await runner.place_bet(100)
        await runner.hit()

        assert runner.balance == 0
        assert not runner.game.can_bet

        assert await runner.reset() == 100
        assert runner.phase == GamePhase.IDLE
        assert runner.balance == 100
        assert runner.game.can_bet
        assert await runner.history() == []

    @pytest.mark.asyncio
    async def test_reset_during_round(self, store, runner_for):
        runner = runner_for(store, "10", "7", "9")
        await runner.place_bet(100)

        with pytest.raises(InvalidStateTransition):
            await runner.reset()
        assert await store.get_balance("p1") == 900


class TestRedisBackedRunner:
    """Tests for a runner on the Redis store."""

    @pytest.mark.asyncio
    async def test_round_through_redis(self, redis_store, runner_for):
        runner = runner_for(redis_store, "10", "K", "9", "Q")
        await runner.place_bet(100)
        assert await redis_store.get_balance("p1") == 900

        round_ = await runner.stand()

        assert round_.result == GameResult.WIN
        assert runner.balance == 1100
        assert await redis_store.get_active_round("p1") is None
        (entry,) = await runner.history()
        assert entry.id == round_.id

    @pytest.mark.asyncio
    async def test_second_table_resumes_redis_round(self, redis_store, runner_for):
        first = runner_for(redis_store, "10", "2", "9")
        round_ = await first.place_bet(100)

        second = runner_for(redis_store, "5")
        await second.load()

        assert second.phase == GamePhase.PLAYER_TURN
        assert second.round.id == round_.id
        await second.hit()
        assert (await redis_store.get_active_round("p1")).player_hand.value == 17
