"""Pydantic schema package for API contracts."""

from labswap.schemas.common import ErrorEnvelope
from labswap.schemas.exchange_requests import (
    ExchangeRequestCreate,
    ExchangeRequestDetail,
    ExchangeRequestListResponse,
    ExchangeRequestRespond,
    ExchangeRequestStats,
    ExchangeRequestSummary,
    ExchangeRequestWithdraw,
    ExchangeStatusEventResponse,
)

__all__ = [
    "ErrorEnvelope",
    "ExchangeRequestCreate",
    "ExchangeRequestDetail",
    "ExchangeRequestListResponse",
    "ExchangeRequestRespond",
    "ExchangeRequestStats",
    "ExchangeRequestSummary",
    "ExchangeRequestWithdraw",
    "ExchangeStatusEventResponse",
]
