"""Dependency providers for API handlers and background workers."""

from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from labswap.core.config import Config, get_config
from labswap.core.exceptions import AuthenticationError
from labswap.database.db import get_db
from labswap.services.exchange_request_service import ExchangeRequestService
from labswap.services.notifications import Notifier, build_notifier


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_db_session() -> Generator[Session, None, None]:
    """Yield SQLAlchemy session for dependency injection."""
    yield from get_db()


def get_notifier() -> Notifier:
    return build_notifier(get_settings())


def get_viewer_id(x_lab_id: str | None = Header(default=None, alias="X-Lab-Id")) -> int:
    """Resolve the pre-authenticated lab id forwarded by the auth gateway."""
    if x_lab_id is None or not x_lab_id.strip():
        raise AuthenticationError("X-Lab-Id header is required.")
    try:
        viewer_id = int(x_lab_id)
    except ValueError as exc:
        raise AuthenticationError("X-Lab-Id header must be an integer lab id.") from exc
    if viewer_id < 1:
        raise AuthenticationError("X-Lab-Id header must be a positive lab id.")
    return viewer_id


def get_exchange_service(
    db: Session = Depends(get_db_session),
    notifier: Notifier = Depends(get_notifier),
) -> ExchangeRequestService:
    return ExchangeRequestService(db=db, notifier=notifier)
