"""Conversion between rounds and their stored form."""

import logging
from typing import Any

from pydantic import ValidationError

from api.schemas import RESULT_VALUES, CardData, RoundRecord
from config import config
from core.cards import Card, Rank, Suit
from core.errors import MalformedPersistedRecord
from core.game.round import GameRound, utc_now
from core.game.rules import RuleSet
from core.game.settlement import GameResult, settle
from core.game.state import GamePhase
from core.hand import Hand

log = logging.getLogger(__name__)

_HAND_FIELDS = ("player_hand", "dealer_hand")
_REQUIRED_FIELDS = ("id", "bet")


def serialize_card(card: Card) -> dict[str, str]:
    """Serialize a card to a dict."""
    return {"rank": str(card.rank), "suit": str(card.suit)}


def deserialize_card(data: CardData | dict[str, str]) -> Card:
    """Deserialize a card from its stored form."""
    if isinstance(data, dict):
        data = CardData.model_validate(data)
    return Card(Rank.from_symbol(data.rank), Suit.from_symbol(data.suit))


def round_to_record(round_: GameRound) -> RoundRecord:
    """Build the stored form of a round."""
    return RoundRecord(
        id=round_.id,
        started_at=round_.started_at,
        updated_at=round_.updated_at,
        bet=round_.bet,
        player_hand=[CardData(**serialize_card(c)) for c in round_.player_hand],
        dealer_hand=[CardData(**serialize_card(c)) for c in round_.dealer_hand],
        phase=round_.phase.value,
        result=round_.result.value if round_.result else None,
        payout=round_.payout,
    )


def serialize_round(round_: GameRound) -> dict[str, Any]:
    """Serialize a round to JSON-compatible data."""
    return round_to_record(round_).model_dump(mode="json")


def record_to_round(record: RoundRecord) -> GameRound:
    """Rebuild a round from a validated record."""
    return GameRound(
        id=record.id,
        bet=record.bet,
        started_at=record.started_at,
        updated_at=record.updated_at,
        player_hand=Hand(cards=[deserialize_card(c) for c in record.player_hand]),
        dealer_hand=Hand(cards=[deserialize_card(c) for c in record.dealer_hand]),
        phase=GamePhase(record.phase),
        result=GameResult(record.result) if record.result else None,
        payout=record.payout,
    )


def deserialize_round(data: Any, strict: bool = False) -> GameRound:
    """
    Restore a round from stored data.

    Damaged fields are replaced with defaults unless `strict` is set:
    unreadable hands become empty, an unknown result is dropped, and an
    unknown phase becomes FINISHED when a result survives or PLAYER_TURN
    otherwise. A finished round left without a result goes back to
    PLAYER_TURN, and a missing payout is recomputed from the result.

    Raises:
        MalformedPersistedRecord: the record is not a mapping, lacks a usable
            id or bet, or `strict` is set and any field is invalid
    """
    try:
        record = RoundRecord.model_validate(data)
    except ValidationError as exc:
        if strict or not isinstance(data, dict):
            raise MalformedPersistedRecord(f"Invalid round record: {exc}") from exc
        record = _repair_record(data, exc)
    return record_to_round(_reconcile_settlement(record, strict))


def _repair_record(data: dict[str, Any], exc: ValidationError) -> RoundRecord:
    """Apply defaults to the fields a validation error points at."""
    bad_fields = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
    unrecoverable = bad_fields.intersection(_REQUIRED_FIELDS)
    if unrecoverable:
        raise MalformedPersistedRecord(
            f"Round record has no usable {', '.join(sorted(unrecoverable))}"
        ) from exc

    repaired = dict(data)
    for name in _HAND_FIELDS:
        if name in bad_fields:
            repaired[name] = []
    for name in ("started_at", "updated_at"):
        if name in bad_fields:
            repaired[name] = utc_now()
    if "payout" in bad_fields:
        repaired["payout"] = None
    if "result" in bad_fields:
        repaired["result"] = None
    if "phase" in bad_fields:
        has_result = repaired.get("result") in RESULT_VALUES
        repaired["phase"] = (
            GamePhase.FINISHED.value if has_result else GamePhase.PLAYER_TURN.value
        )

    log.warning(
        "Repaired round record %s, defaulted fields: %s",
        data.get("id"),
        ", ".join(sorted(bad_fields)),
    )
    try:
        return RoundRecord.model_validate(repaired)
    except ValidationError as retry_exc:
        raise MalformedPersistedRecord(f"Invalid round record: {retry_exc}") from retry_exc


def _reconcile_settlement(record: RoundRecord, strict: bool) -> RoundRecord:
    """Make the phase, result and payout of a record agree with each other."""
    finished = record.phase == GamePhase.FINISHED.value
    if finished and record.result is None:
        problem = "is finished without a result"
        fixes: dict[str, Any] = {"phase": GamePhase.PLAYER_TURN.value, "payout": None}
    elif not finished and record.result is not None:
        problem = f"has a result during {record.phase}"
        fixes = {"result": None, "payout": None}
    elif finished and record.payout is None:
        problem = "has no payout"
        rules = RuleSet.from_config(config.game)
        fixes = {"payout": settle(GameResult(record.result), record.bet, rules).payout}
    else:
        return record

    if strict:
        raise MalformedPersistedRecord(f"Round record {record.id} {problem}")
    log.warning("Round record %s %s, setting %s", record.id, problem, fixes)
    return record.model_copy(update=fixes)
