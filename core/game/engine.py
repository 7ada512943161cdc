"""Blackjack round engine with state machine."""

from datetime import datetime
from random import Random
from typing import Callable, Protocol

from transitions import Machine

from core.cards import Card, InfiniteShoe
from core.errors import InsufficientBalance, InvalidAmount, InvalidStateTransition
from core.game.events import EventEmitter, EventType, GameEvent
from core.game.round import GameRound
from core.game.rules import RuleSet
from core.game.settlement import GameResult, Settlement, settle
from core.game.state import GamePhase
from core.hand import Hand, compare_hands


class CardSource(Protocol):
    """Anything cards can be drawn from."""

    def draw(self) -> Card: ...


class BlackjackGame:
    """
    Single-player blackjack round engine using a state machine.

    This is the core game logic, completely UI-agnostic and free of I/O.
    Rejected actions raise before touching any state; everything else is
    reported through events and the current `round`.
    """

    # State machine states (settlement happens on entering "finished")
    STATES = [
        {"name": GamePhase.IDLE.value},
        {"name": GamePhase.PLAYER_TURN.value},
        {"name": GamePhase.DEALER_TURN.value},
        {"name": GamePhase.FINISHED.value, "on_enter": "_settle"},
    ]

    # State machine transitions
    TRANSITIONS = [
        {"trigger": "deal", "source": "idle", "dest": "player_turn"},
        {"trigger": "deal_natural", "source": "idle", "dest": "finished"},
        {"trigger": "player_done", "source": "player_turn", "dest": "dealer_turn"},
        {"trigger": "player_busts", "source": "player_turn", "dest": "finished"},
        {"trigger": "dealer_done", "source": "dealer_turn", "dest": "finished"},
        {"trigger": "new_round", "source": "finished", "dest": "idle"},
    ]

    def __init__(
        self,
        rules: RuleSet | None = None,
        bankroll: int = 1000,
        rng: Random | None = None,
        shoe: CardSource | None = None,
    ) -> None:
        """
        Initialize a new blackjack game.

        Args:
            rules: Table rules (uses defaults if not provided)
            bankroll: Starting balance mirror
            rng: Random number generator for reproducible games
            shoe: Card source, an infinite shoe over `rng` if not provided
        """
        self.rules = rules or RuleSet()
        self.shoe: CardSource = shoe or InfiniteShoe(rng=rng)
        self.bankroll = bankroll
        self.round: GameRound | None = None
        self.settlement: Settlement | None = None
        self.events = EventEmitter()

        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial=GamePhase.IDLE.value,
            auto_transitions=False,
            model_attribute="_machine_state",
            after_state_change="_sync_phase",
        )

    @property
    def phase(self) -> GamePhase:
        """Get current phase as enum."""
        return GamePhase(self._machine_state)  # type: ignore[attr-defined]

    @property
    def player_hand(self) -> Hand:
        return self.round.player_hand if self.round else Hand()

    @property
    def dealer_hand(self) -> Hand:
        return self.round.dealer_hand if self.round else Hand()

    @property
    def result(self) -> GameResult | None:
        return self.round.result if self.round else None

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to game events."""
        self.events.subscribe(handler, event_type)

    def validate_bet(self, amount: int) -> None:
        """
        Check that a bet could be placed right now.

        Raises:
            InvalidStateTransition: not waiting for a bet
            InvalidAmount: amount is not a positive whole number within limits
            InsufficientBalance: amount exceeds the bankroll
        """
        self._require_phase("bet", GamePhase.IDLE)

        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            self.events.emit_new(EventType.INVALID_ACTION, message="Bet must be positive")
            raise InvalidAmount(amount)

        if amount < self.rules.min_bet or (
            self.rules.max_bet is not None and amount > self.rules.max_bet
        ):
            self.events.emit_new(
                EventType.INVALID_ACTION,
                message=f"Bet must be between {self.rules.min_bet} and {self.rules.max_bet}",
            )
            raise InvalidAmount(amount)

        if amount > self.bankroll:
            self.events.emit_new(
                EventType.INSUFFICIENT_FUNDS,
                required=amount,
                available=self.bankroll,
            )
            raise InsufficientBalance(amount, self.bankroll)

    def bet(
        self,
        amount: int,
        round_id: str | None = None,
        started_at: datetime | None = None,
    ) -> GameRound:
        """
        Place a bet and deal the opening hands.

        Args:
            amount: Bet amount, debited from the bankroll immediately
            round_id: Identifier assigned by the store, generated if omitted
            started_at: Start time assigned by the store

        Returns:
            The new round, already finished if the player was dealt a natural
        """
        self.validate_bet(amount)

        self.bankroll -= amount
        self.settlement = None
        self.round = GameRound(bet=amount)
        if round_id is not None:
            self.round.id = round_id
        if started_at is not None:
            self.round.started_at = started_at
            self.round.updated_at = started_at

        self.events.emit_new(EventType.BET_PLACED, amount=amount, round_id=self.round.id)
        return self._deal_initial_cards()

    # Alias matching the action name used by callers
    place_bet = bet

    def _deal_initial_cards(self) -> GameRound:
        """Deal the opening cards and check for a natural."""
        round_ = self._current_round("deal")

        self._deal_card_to_hand(round_.player_hand)
        self._deal_card_to_hand(round_.player_hand)
        self._deal_card_to_hand(round_.dealer_hand)
        if self.rules.deal_hole_card:
            self._deal_card_to_hand(round_.dealer_hand, face_up=False)

        self.events.emit_new(EventType.ROUND_STARTED, round_id=round_.id)

        if round_.player_hand.is_blackjack:
            self.events.emit_new(EventType.PLAYER_BLACKJACK)
            # Complete the dealer's hand to check for a matching natural
            if len(round_.dealer_hand) < 2:
                self._deal_card_to_hand(round_.dealer_hand)
            result = (
                GameResult.EARLY_PUSH
                if round_.dealer_hand.is_blackjack
                else GameResult.EARLY_WIN
            )
            self.deal_natural(result=result)  # type: ignore[attr-defined]
            return round_

        self.deal()  # type: ignore[attr-defined]
        return round_

    def _deal_card_to_hand(self, hand: Hand, face_up: bool = True) -> Card:
        """Deal a card to a hand."""
        card = self.shoe.draw()
        hand.add_card(card)
        is_dealer = self.round is not None and hand is self.round.dealer_hand
        self.events.emit_new(
            EventType.CARD_DEALT,
            card=str(card) if face_up else "??",
            hand="dealer" if is_dealer else "player",
            hand_value=hand.value if face_up else None,
        )
        return card

    def hit(self) -> GameRound:
        """Player hits (takes another card)."""
        if not self.can_hit:
            self._reject("hit")

        round_ = self._current_round("hit")
        self._deal_card_to_hand(round_.player_hand)
        self.events.emit_new(EventType.PLAYER_HIT, hand_value=round_.player_total)

        if round_.player_hand.is_busted:
            self.events.emit_new(EventType.PLAYER_BUSTS, hand_value=round_.player_total)
            self.player_busts(result=GameResult.LOSE)  # type: ignore[attr-defined]
            return round_

        if self.rules.hit_mode == "single":
            self.player_done()  # type: ignore[attr-defined]
            self._play_dealer()
            return round_

        round_.touch()
        return round_

    def stand(self) -> GameRound:
        """Player stands and the dealer plays out the hand."""
        if not self.can_stand:
            self._reject("stand")

        round_ = self._current_round("stand")
        self.events.emit_new(EventType.PLAYER_STAND, hand_value=round_.player_total)
        self.player_done()  # type: ignore[attr-defined]
        self._play_dealer()
        return round_

    def resume_dealer(self) -> GameRound:
        """Play out a restored round that stopped during the dealer's turn."""
        self._require_phase("resume dealer play", GamePhase.DEALER_TURN)
        round_ = self._current_round("resume dealer play")
        self._play_dealer()
        return round_

    def _play_dealer(self) -> None:
        """Dealer draws until reaching the stand total, then the round resolves."""
        dealer_hand = self.dealer_hand

        while dealer_hand.value < self.rules.dealer_stands_on:
            self._deal_card_to_hand(dealer_hand)
            self.events.emit_new(EventType.DEALER_HITS, hand_value=dealer_hand.value)

        if dealer_hand.is_busted:
            self.events.emit_new(EventType.DEALER_BUSTS, hand_value=dealer_hand.value)
        else:
            self.events.emit_new(EventType.DEALER_STANDS, hand_value=dealer_hand.value)

        outcome = compare_hands(self.player_hand, dealer_hand)
        if outcome == 1:
            result = GameResult.WIN
        elif outcome == -1:
            result = GameResult.LOSE
        else:
            result = GameResult.PUSH
        self.dealer_done(result=result)  # type: ignore[attr-defined]

    def _settle(self, result: GameResult) -> None:
        """Pay out the round on entering the finished phase."""
        round_ = self._current_round("settle")
        if round_.result is not None:
            raise InvalidStateTransition("settle", self.phase.value, "Round already settled")

        self.settlement = settle(result, round_.bet, self.rules)
        round_.result = result
        round_.payout = self.settlement.payout
        self.bankroll += self.settlement.credited

        if result in (GameResult.WIN, GameResult.EARLY_WIN):
            self.events.emit_new(EventType.PLAYER_WINS, amount=self.settlement.payout)
        elif result == GameResult.LOSE:
            self.events.emit_new(EventType.PLAYER_LOSES, amount=-self.settlement.payout)
        else:
            self.events.emit_new(EventType.PUSH)

        self.events.emit_new(
            EventType.BET_SETTLED,
            result=result.value,
            credited=self.settlement.credited,
            payout=self.settlement.payout,
        )
        self.events.emit_new(
            EventType.ROUND_ENDED,
            round_id=round_.id,
            result=result.value,
            bankroll=self.bankroll,
        )

    def _sync_phase(self, *args, **kwargs) -> None:
        """Mirror the machine state onto the round."""
        if self.round is not None:
            self.round.phase = self.phase
            self.round.touch()

    def start_new_round(self) -> None:
        """Clear the finished round and wait for the next bet."""
        self._require_phase("start a new round", GamePhase.FINISHED)
        self.round = None
        self.settlement = None
        self.new_round()  # type: ignore[attr-defined]
        self.events.emit_new(EventType.ROUND_RESET, bankroll=self.bankroll)

    def restore(self, round_: GameRound) -> None:
        """
        Resume an in-progress round read back from storage.

        Only rounds in the player's or dealer's turn can be resumed.
        """
        self._require_phase("restore a round", GamePhase.IDLE)
        if round_.phase not in (GamePhase.PLAYER_TURN, GamePhase.DEALER_TURN):
            raise InvalidStateTransition(
                "restore a round",
                round_.phase.value,
                f"Cannot resume a round in phase {round_.phase.value}",
            )

        self.round = round_
        self.settlement = None
        self.machine.set_state(round_.phase.value)
        self.events.emit_new(EventType.ROUND_RESTORED, round_id=round_.id, phase=round_.phase.value)

    def _require_phase(self, action: str, phase: GamePhase) -> None:
        if self.phase != phase:
            self._reject(action)

    def _reject(self, action: str) -> None:
        self.events.emit_new(
            EventType.INVALID_ACTION,
            message=f"Cannot {action} in current state",
            state=self.phase.name,
        )
        raise InvalidStateTransition(action, self.phase.value)

    def _current_round(self, action: str) -> GameRound:
        """Get the round in play, raising if there is none."""
        if self.round is None:
            raise InvalidStateTransition(action, self.phase.value, "No round in play")
        return self.round

    @property
    def can_bet(self) -> bool:
        """Check if a bet can be placed."""
        return self.phase == GamePhase.IDLE and self.bankroll >= self.rules.min_bet

    @property
    def can_hit(self) -> bool:
        """Check if hitting is allowed."""
        return self.phase == GamePhase.PLAYER_TURN and not self.player_hand.is_busted

    @property
    def can_stand(self) -> bool:
        """Check if standing is allowed."""
        return self.phase == GamePhase.PLAYER_TURN and not self.player_hand.is_busted

    @property
    def can_start_new_round(self) -> bool:
        return self.phase == GamePhase.FINISHED
