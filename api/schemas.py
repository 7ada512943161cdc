"""Pydantic schemas for API requests, responses and persisted rounds."""

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.cards import Rank, Suit


# Game schemas
class BetRequest(BaseModel):
    """Request to place a bet."""

    amount: int = Field(..., description="Bet amount")


class ActionRequest(BaseModel):
    """Request for player action."""

    action: Literal["hit", "stand"]


class CardResponse(BaseModel):
    """Card representation."""

    model_config = ConfigDict(from_attributes=True)

    rank: str
    suit: str
    value: int
    hidden: bool = False


class HandResponse(BaseModel):
    """Hand representation."""

    cards: list[CardResponse]
    value: int | None
    is_soft: bool
    is_blackjack: bool
    is_busted: bool


class GameStateResponse(BaseModel):
    """Current round state."""

    phase: str
    round_id: str | None
    bet: int
    player_hand: HandResponse
    dealer_hand: HandResponse
    result: str | None
    payout: int | None
    balance: int
    hit_mode: str
    can_bet: bool
    can_hit: bool
    can_stand: bool
    can_start_new_round: bool
    pending_sync: bool


class HistoryEntryResponse(BaseModel):
    """A finished round as shown in the history list."""

    id: str
    started_at: datetime
    updated_at: datetime
    bet: int
    player_hand: HandResponse
    dealer_hand: HandResponse
    result: str | None
    payout: int | None


class HistoryPageResponse(BaseModel):
    """One page of finished rounds, most recent first."""

    page: int
    page_size: int
    rounds: list[HistoryEntryResponse]


class AdviceResponse(BaseModel):
    """Advisor suggestion for the current hand."""

    should_hit: bool
    explanation: str


# Round persistence schemas
RESULT_VALUES = ("win", "lose", "push", "early-win", "early-push")

# Older records stored the phase as a number
_LEGACY_PHASES = {0: "idle", 1: "player_turn", 2: "dealer_turn", 3: "finished"}


class CardData(BaseModel):
    """Serialized card data."""

    rank: str
    suit: str

    @field_validator("rank")
    @classmethod
    def _check_rank(cls, value: str) -> str:
        return str(Rank.from_symbol(value))

    @field_validator("suit")
    @classmethod
    def _check_suit(cls, value: str) -> str:
        return str(Suit.from_symbol(value))


class RoundRecord(BaseModel):
    """Serialized round as kept by the store."""

    id: str = Field(..., min_length=1)
    started_at: datetime
    updated_at: datetime
    bet: int = Field(..., ge=1)
    player_hand: list[CardData] = Field(default_factory=list)
    dealer_hand: list[CardData] = Field(default_factory=list)
    phase: Literal["idle", "player_turn", "dealer_turn", "finished"]
    result: Literal["win", "lose", "push", "early-win", "early-push"] | None = None
    payout: int | None = None

    @field_validator("player_hand", "dealer_hand", mode="before")
    @classmethod
    def _decode_hand(cls, value: Any) -> Any:
        # Hands are sometimes stored as JSON text
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_validator("phase", mode="before")
    @classmethod
    def _normalize_phase(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return _LEGACY_PHASES.get(value, value)
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value
