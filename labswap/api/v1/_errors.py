"""Map domain exceptions to HTTP status codes and error envelopes."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from labswap.core.exceptions import (
    AlreadyFinalizedError,
    AuthenticationError,
    ExchangeError,
    ForbiddenError,
    InsufficientQuantityError,
    InvalidOfferError,
    InvalidPayloadError,
    InvalidTransitionError,
    NotFoundError,
    SelfTargetError,
    UnauthorizedActionError,
)
from labswap.schemas.common import ErrorEnvelope

# Ordered most specific first: AlreadyFinalizedError is an InvalidTransitionError.
ERROR_STATUS_CODES: tuple[tuple[type[ExchangeError], int], ...] = (
    (AlreadyFinalizedError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (InsufficientQuantityError, status.HTTP_409_CONFLICT),
    (UnauthorizedActionError, status.HTTP_403_FORBIDDEN),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidOfferError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidPayloadError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (SelfTargetError, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def map_exchange_error(exc: ExchangeError) -> tuple[int, ErrorEnvelope]:
    code = status.HTTP_400_BAD_REQUEST
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            code = status_code
            break
    return code, ErrorEnvelope(error_code=exc.code, detail=exc.message, constraint=exc.constraint)


async def exchange_error_handler(request: Request, exc: ExchangeError) -> JSONResponse:
    code, envelope = map_exchange_error(exc)
    return JSONResponse(status_code=code, content=envelope.model_dump())


async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    envelope = ErrorEnvelope(error_code="unauthenticated", detail=str(exc))
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=envelope.model_dump())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    envelope = ErrorEnvelope(
        error_code=InvalidPayloadError.code,
        detail=f"Invalid field {location}: {first.get('msg', 'invalid value')}",
        constraint=location or None,
    )
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=envelope.model_dump())
