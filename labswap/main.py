"""Application entrypoint for the exchange negotiation API."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from labswap.api.v1._errors import (
    authentication_error_handler,
    exchange_error_handler,
    validation_error_handler,
)
from labswap.api.v1.router import get_api_router
from labswap.core.config import get_config
from labswap.core.exceptions import AuthenticationError, ExchangeError
from labswap.core.startup import bootstrap


@asynccontextmanager
async def lifespan(app: FastAPI):
    bootstrap()
    yield


def create_app() -> FastAPI:
    cfg = get_config()
    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION, lifespan=lifespan)
    app.include_router(get_api_router(cfg.API_PREFIX))
    app.add_exception_handler(ExchangeError, exchange_error_handler)
    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.get("/")
    def root() -> dict:
        return {"service": cfg.APP_NAME, "version": cfg.APP_VERSION, "api_prefix": cfg.API_PREFIX}

    return app


# Expose ASGI app for `uvicorn labswap.main:app`.
app = create_app()


if __name__ == "__main__":
    import uvicorn

    cfg = get_config()
    uvicorn.run("labswap.main:app", host=cfg.API_HOST, port=cfg.API_PORT)
