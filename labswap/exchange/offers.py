"""Offer model: what the initiator gives in return for the target item.

An offer is a tagged union. ``ExistingItemOffer`` points at one of the
initiator's own listings; ``CustomOffer`` describes equipment that is not
listed. Parsing never reserves inventory.
"""

from __future__ import annotations

import copy
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from sqlalchemy.orm import Session

from labswap.core.enums import ItemCondition, ItemStatus, ListingType, OfferKind
from labswap.core.exceptions import InvalidOfferError, InvalidPayloadError
from labswap.database.models import Item
from labswap.exchange.ledger import InventoryLedger

OFFER_VARIANT_KEYS = (OfferKind.EXISTING_ITEM.value, OfferKind.CUSTOM.value)


class Specification(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    value: str = Field(max_length=500)
    unit: str | None = Field(default=None, max_length=50)


class Warranty(BaseModel):
    model_config = ConfigDict(extra="forbid")

    available: bool = False
    duration: int | None = Field(default=None, ge=0)
    unit: Literal["days", "months", "years"] | None = None
    description: str | None = Field(default=None, max_length=1000)


class ExistingItemOffer(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["existing_item"] = "existing_item"
    item_id: int = Field(ge=1)
    quantity: int = Field(ge=1)


class CustomOffer(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["custom"] = "custom"
    name: str = Field(max_length=200)
    description: str = Field(max_length=2000)
    condition: ItemCondition | None = None
    quantity: int = Field(default=1, ge=1)
    estimated_value: float | None = Field(default=None, ge=0)
    currency: str = Field(default="SAR", min_length=3, max_length=3)
    brand: str | None = Field(default=None, max_length=200)
    model: str | None = Field(default=None, max_length=200)
    specifications: list[Specification] = Field(default_factory=list)
    warranty: Warranty | None = None

    @field_validator("name", "description")
    @classmethod
    def must_not_be_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


Offer = Annotated[Union[ExistingItemOffer, CustomOffer], Field(discriminator="kind")]

_OFFER_ADAPTER: TypeAdapter = TypeAdapter(Offer)


class CounterOfferTerms(BaseModel):
    """Responder's alternative terms attached on ``counter_offer``."""

    model_config = ConfigDict(extra="forbid")

    message: str = Field(min_length=1, max_length=500)
    proposed_quantity: int | None = Field(default=None, ge=1)
    additional_terms: str | None = Field(default=None, max_length=2000)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


def _first_error(exc: ValidationError) -> tuple[str, str]:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return location, error.get("msg", "invalid value")


def tagged_offer(payload: Any) -> dict[str, Any]:
    """Return the submitted offer in tagged form, values untouched.

    Accepts ``{"kind": "existing_item", ...}`` or
    ``{"existing_item": {...}}`` / ``{"custom": {...}}``. Exactly one variant
    must be populated.
    """
    if isinstance(payload, (ExistingItemOffer, CustomOffer)):
        data = payload.model_dump(mode="json", exclude_unset=True)
        data["kind"] = payload.kind
        return data
    if not isinstance(payload, dict):
        raise InvalidOfferError("Offer must be an object.", constraint="offer.shape")

    if "kind" in payload:
        return copy.deepcopy(payload)

    populated = [key for key in OFFER_VARIANT_KEYS if payload.get(key)]
    if len(populated) != 1:
        raise InvalidOfferError(
            "Exactly one of existing_item or custom must be provided.",
            constraint="offer.exactly_one_variant",
        )
    variant = populated[0]
    body = payload[variant]
    if not isinstance(body, dict):
        raise InvalidOfferError(f"Offer variant {variant} must be an object.", constraint="offer.shape")
    return {"kind": variant, **copy.deepcopy(body)}


def parse_offer(payload: Any) -> ExistingItemOffer | CustomOffer:
    """Build a validated offer from its tagged or envelope form."""
    if isinstance(payload, (ExistingItemOffer, CustomOffer)):
        return payload
    data = tagged_offer(payload)
    try:
        return _OFFER_ADAPTER.validate_python(data)
    except ValidationError as exc:
        location, msg = _first_error(exc)
        raise InvalidOfferError(f"Invalid offer field {location}: {msg}", constraint=f"offer.{location}") from exc


def parse_counter_offer(payload: Any) -> CounterOfferTerms:
    if not isinstance(payload, dict):
        raise InvalidPayloadError("counter_offer details are required.", constraint="counter_offer.required")
    try:
        return CounterOfferTerms.model_validate(payload)
    except ValidationError as exc:
        location, msg = _first_error(exc)
        raise InvalidPayloadError(
            f"Invalid counter_offer field {location}: {msg}",
            constraint=f"counter_offer.{location}",
        ) from exc


def offer_from_storage(data: dict[str, Any]) -> ExistingItemOffer | CustomOffer:
    return _OFFER_ADAPTER.validate_python(data)


def validate_offer(
    offer: ExistingItemOffer | CustomOffer,
    initiator_id: int,
    db: Session,
    ledger: InventoryLedger,
) -> None:
    """Check an offer against the catalog. Raises InvalidOfferError."""
    if isinstance(offer, CustomOffer):
        return

    item = db.get(Item, offer.item_id)
    if item is None:
        raise InvalidOfferError(f"Offered item {offer.item_id} does not exist.", constraint="offer.item_exists")
    if item.owner_id != initiator_id:
        raise InvalidOfferError(
            f"Offered item {item.id} is not owned by lab {initiator_id}.",
            constraint="offer.item_owned_by_initiator",
        )
    if item.listing_type != ListingType.EXCHANGE.value:
        raise InvalidOfferError(
            f"Offered item {item.id} is not listed for exchange.",
            constraint="offer.item_listed_for_exchange",
        )
    if item.status != ItemStatus.ACTIVE.value:
        raise InvalidOfferError(f"Offered item {item.id} is not active.", constraint="offer.item_active")
    if not ledger.check_available(item.id, offer.quantity):
        raise InvalidOfferError(
            f"Offered quantity {offer.quantity} exceeds available quantity {item.quantity} of item {item.id}.",
            constraint="offer.quantity_available",
        )
