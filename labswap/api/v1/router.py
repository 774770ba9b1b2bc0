"""Root API router for v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from labswap.api.v1 import exchange_requests, health
from labswap.core.config import get_config


def get_api_router(prefix: str | None = None) -> APIRouter:
    api_router = APIRouter(prefix=prefix or get_config().API_PREFIX)
    api_router.include_router(health.router)
    api_router.include_router(exchange_requests.router)
    return api_router
