"""Identifier generation helpers."""

from __future__ import annotations

import random
import uuid
from datetime import datetime


def new_request_id() -> str:
    """Create a UUID4-based exchange request identifier."""
    return str(uuid.uuid4())


def new_request_number(now: datetime) -> str:
    """Human-readable number, e.g. ``REQ-20261017-0042``."""
    return f"REQ-{now:%Y%m%d}-{random.randint(0, 9999):04d}"


def fallback_request_number(now: datetime) -> str:
    """Wider suffix used once the four-digit space keeps colliding."""
    return f"REQ-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"
