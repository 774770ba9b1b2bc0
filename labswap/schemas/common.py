"""Common schema module."""

from __future__ import annotations

from pydantic import BaseModel


class ErrorEnvelope(BaseModel):
    status: str = "error"
    error_code: str
    detail: str
    constraint: str | None = None
