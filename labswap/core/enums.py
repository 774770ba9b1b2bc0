"""Enums for the LabSwap application.

Values are the lowercase wire strings stored in the database and returned by
the API, so ``.value`` is what gets persisted.
"""

from enum import Enum


class ExchangeRequestStatus(Enum):
    """Lifecycle status of an exchange request."""

    PENDING = "pending"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTER_OFFER = "counter_offer"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"


class ExchangeAction(Enum):
    """Actions that move an exchange request between statuses."""

    VIEW = "view"
    ACCEPT = "accept"
    REJECT = "reject"
    COUNTER_OFFER = "counter_offer"
    WITHDRAW = "withdraw"
    EXPIRE = "expire"


class PartyRole(Enum):
    """Who is performing a transition."""

    INITIATOR = "initiator"
    RESPONDER = "responder"
    SYSTEM = "system"


class OfferKind(Enum):
    EXISTING_ITEM = "existing_item"
    CUSTOM = "custom"


class ItemCondition(Enum):
    NEW = "new"
    LIKE_NEW = "like-new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class ListingType(Enum):
    SALE = "sale"
    EXCHANGE = "exchange"
    ASSET = "asset"


class ItemStatus(Enum):
    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SOLD = "sold"
    EXCHANGED = "exchanged"


class ListRole(Enum):
    """Which side of the negotiation a listing is scoped to."""

    SENT = "sent"
    RECEIVED = "received"
    ALL = "all"


class RequestSource(Enum):
    WEB = "web"
    MOBILE = "mobile"
    API = "api"


TERMINAL_STATUSES = frozenset(
    {
        ExchangeRequestStatus.ACCEPTED,
        ExchangeRequestStatus.REJECTED,
        ExchangeRequestStatus.WITHDRAWN,
        ExchangeRequestStatus.EXPIRED,
    }
)

# Statuses the expiry sweep may move to ``expired``.
EXPIRABLE_STATUSES = frozenset({ExchangeRequestStatus.PENDING, ExchangeRequestStatus.VIEWED})

# Notification event emitted on entering each status.
STATUS_EVENTS = {
    ExchangeRequestStatus.PENDING: "created",
    ExchangeRequestStatus.VIEWED: "viewed",
    ExchangeRequestStatus.ACCEPTED: "accepted",
    ExchangeRequestStatus.REJECTED: "rejected",
    ExchangeRequestStatus.COUNTER_OFFER: "counter_offer",
    ExchangeRequestStatus.WITHDRAWN: "withdrawn",
    ExchangeRequestStatus.EXPIRED: "expired",
}
