"""Game API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, Query

from api.runner import GameRunner
from api.schemas import (
    ActionRequest,
    AdviceResponse,
    BetRequest,
    CardResponse,
    GameStateResponse,
    HandResponse,
    HistoryEntryResponse,
    HistoryPageResponse,
)
from api.session import create_session, extract_session_id
from api.store import get_round_store
from config import config
from core.cards import Card
from core.errors import (
    BlackjackError,
    InsufficientBalance,
    InvalidAmount,
    InvalidStateTransition,
    MalformedPersistedRecord,
    PersistenceFailure,
)
from core.game import GamePhase, GameRound, RuleSet
from core.hand import Hand

log = logging.getLogger(__name__)

router = APIRouter()

# One runner per session (the store holds the durable state)
_runners: dict[str, GameRunner] = {}


def _error_status(exc: BlackjackError) -> int:
    """Map a game error to an HTTP status code."""
    if isinstance(exc, (InvalidAmount, InsufficientBalance)):
        return 400
    if isinstance(exc, InvalidStateTransition):
        return 409
    if isinstance(exc, (PersistenceFailure, MalformedPersistedRecord)):
        return 503
    return 400


def _http_error(exc: BlackjackError) -> HTTPException:
    return HTTPException(status_code=_error_status(exc), detail=str(exc))


async def _get_runner(token: str) -> GameRunner:
    """Get or create the runner for a session token."""
    session_id = extract_session_id(token)
    if session_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    runner = _runners.get(session_id)
    if runner is None:
        store = await get_round_store()
        runner = GameRunner(
            store=store,
            player_id=session_id,
            rules=RuleSet.from_config(config.game),
        )
        _runners[session_id] = runner
    return runner


def _card_to_response(card: Card, hidden: bool = False) -> CardResponse:
    if hidden:
        return CardResponse(rank="?", suit="?", value=0, hidden=True)
    return CardResponse(rank=str(card.rank), suit=str(card.suit), value=card.value)


def _hand_to_response(hand: Hand, hide_hole_card: bool = False) -> HandResponse:
    """Convert a Hand to HandResponse."""
    if hide_hole_card and len(hand.cards) > 1:
        cards = [_card_to_response(hand.cards[0])]
        cards += [_card_to_response(c, hidden=True) for c in hand.cards[1:]]
        return HandResponse(
            cards=cards,
            value=None,
            is_soft=False,
            is_blackjack=False,
            is_busted=False,
        )

    return HandResponse(
        cards=[_card_to_response(c) for c in hand.cards],
        value=hand.value,
        is_soft=hand.is_soft,
        is_blackjack=hand.is_blackjack,
        is_busted=hand.is_busted,
    )


def _game_state_response(runner: GameRunner) -> GameStateResponse:
    """Convert runner state to response."""
    game = runner.game
    round_ = game.round
    # The hole card stays face down until the player's turn is over
    hide_hole_card = game.phase == GamePhase.PLAYER_TURN

    return GameStateResponse(
        phase=game.phase.value,
        round_id=round_.id if round_ else None,
        bet=round_.bet if round_ else 0,
        player_hand=_hand_to_response(game.player_hand),
        dealer_hand=_hand_to_response(game.dealer_hand, hide_hole_card=hide_hole_card),
        result=round_.result.value if round_ and round_.result else None,
        payout=round_.payout if round_ else None,
        balance=game.bankroll,
        hit_mode=game.rules.hit_mode,
        can_bet=game.can_bet,
        can_hit=game.can_hit,
        can_stand=game.can_stand,
        can_start_new_round=game.can_start_new_round,
        pending_sync=runner.pending_sync,
    )


def _history_entry(round_: GameRound) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=round_.id,
        started_at=round_.started_at,
        updated_at=round_.updated_at,
        bet=round_.bet,
        player_hand=_hand_to_response(round_.player_hand),
        dealer_hand=_hand_to_response(round_.dealer_hand),
        result=round_.result.value if round_.result else None,
        payout=round_.payout,
    )


@router.post("/new")
async def new_game() -> dict[str, str]:
    """Create a new player session."""
    return {"session_id": create_session()}


@router.get("/state")
async def get_state(
    session_id: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Get current round state."""
    runner = await _get_runner(session_id)
    try:
        await runner.sync()
    except PersistenceFailure as exc:
        # Still show the in-memory state, flagged as unsynced
        log.warning("State read with unsynced round: %s", exc)
    except BlackjackError as exc:
        raise _http_error(exc) from exc
    return _game_state_response(runner)


@router.post("/bet")
async def place_bet(
    request: BetRequest,
    session_id: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Place a bet and deal cards."""
    runner = await _get_runner(session_id)
    try:
        await runner.place_bet(request.amount)
    except BlackjackError as exc:
        raise _http_error(exc) from exc
    return _game_state_response(runner)


@router.post("/action")
async def player_action(
    request: ActionRequest,
    session_id: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Execute a player action."""
    runner = await _get_runner(session_id)

    actions = {
        "hit": runner.hit,
        "stand": runner.stand,
    }

    try:
        await actions[request.action]()
    except BlackjackError as exc:
        raise _http_error(exc) from exc
    return _game_state_response(runner)


@router.post("/next")
async def next_round(
    session_id: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Clear the finished round and wait for a new bet."""
    runner = await _get_runner(session_id)
    try:
        await runner.start_new_round()
    except BlackjackError as exc:
        raise _http_error(exc) from exc
    return _game_state_response(runner)


@router.post("/reset")
async def reset(
    session_id: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Refill chips to the starting balance and clear history."""
    runner = await _get_runner(session_id)
    try:
        await runner.reset()
    except BlackjackError as exc:
        raise _http_error(exc) from exc
    return _game_state_response(runner)


@router.post("/sync")
async def sync(
    session_id: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Retry saving a round the store did not accept."""
    runner = await _get_runner(session_id)
    try:
        await runner.sync()
    except BlackjackError as exc:
        raise _http_error(exc) from exc
    return _game_state_response(runner)


@router.get("/history")
async def history(
    session_id: Annotated[str, Header(alias="X-Session-ID")],
    page: Annotated[int, Query(ge=1)] = 1,
) -> HistoryPageResponse:
    """List finished rounds, most recent first."""
    runner = await _get_runner(session_id)
    page_size = config.store.history_page_size
    try:
        rounds = await runner.history(page=page, page_size=page_size)
    except BlackjackError as exc:
        raise _http_error(exc) from exc
    return HistoryPageResponse(
        page=page,
        page_size=page_size,
        rounds=[_history_entry(r) for r in rounds],
    )


@router.get("/advice")
async def advice(
    session_id: Annotated[str, Header(alias="X-Session-ID")],
) -> AdviceResponse:
    """Suggest whether to hit the current hand."""
    runner = await _get_runner(session_id)
    try:
        await runner.sync()
        hint = runner.advice()
    except BlackjackError as exc:
        raise _http_error(exc) from exc
    return AdviceResponse(should_hit=hint.should_hit, explanation=hint.explanation)
