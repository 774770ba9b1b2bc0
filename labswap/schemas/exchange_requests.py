"""Exchange request schemas for API contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from labswap.core.enums import RequestSource


class ExchangeRequestCreate(BaseModel):
    target_item_id: int = Field(ge=1)
    requested_quantity: int = Field(ge=1)
    # Validated by the offer model so that variant errors surface as invalid_offer.
    offer: dict[str, Any]
    message: str | None = Field(default=None, max_length=1000)
    source: RequestSource = RequestSource.API


class ExchangeRequestRespond(BaseModel):
    action: str = Field(min_length=2, max_length=20)
    rejection_reason: str | None = Field(default=None, max_length=2000)
    withdrawal_reason: str | None = Field(default=None, max_length=2000)
    counter_offer: dict[str, Any] | None = None


class ExchangeRequestWithdraw(BaseModel):
    reason: str = Field(max_length=2000)


class ExchangeStatusEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: str | None = None
    to_status: str
    action: str
    actor_id: int | None = None
    reason: str | None = None
    created_at: datetime


class ExchangeRequestSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    request_number: str
    status: str
    initiator_id: int
    responder_id: int
    target_item_id: int
    requested_quantity: int
    offer_kind: str
    created_at: datetime
    last_status_change_at: datetime
    expires_at: datetime


class ExchangeRequestDetail(ExchangeRequestSummary):
    offer: dict[str, Any]
    offered_item_id: int | None = None
    message: str | None = None
    counter_offer: dict[str, Any] | None = None
    rejection_reason: str | None = None
    withdrawal_reason: str | None = None
    source: str | None = None
    version: int
    viewed_at: datetime | None = None
    responded_at: datetime | None = None
    withdrawn_at: datetime | None = None
    history: list[ExchangeStatusEventResponse] = Field(default_factory=list)
    is_receiver: bool = False
    allowed_actions: list[str] = Field(default_factory=list)


class ExchangeRequestListResponse(BaseModel):
    items: list[ExchangeRequestSummary]
    total: int
    limit: int
    offset: int


class ExchangeRequestStats(BaseModel):
    total: int
    sent: int
    received: int
    accepted: int
    pending: int
