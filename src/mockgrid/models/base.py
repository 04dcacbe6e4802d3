"""Shared helpers for Mockgrid models."""

from __future__ import annotations

import secrets
import time
from uuid import uuid4


def generate_id(prefix: str) -> str:
    """Generate a unique ID with the given prefix.

    Examples:
        generate_id("whk") -> "whk_a1b2c3d4e5f6"
    """
    return f"{prefix}_{uuid4().hex[:12]}"


def generate_message_id() -> str:
    """Generate a message ID from the clock and 8 random bytes.

    Format is "<unix-nanos>.<16 hex chars>", which sorts roughly by
    creation time and stays unique across concurrent senders.
    """
    return f"{time.time_ns()}.{secrets.token_hex(8)}"


def now_unix() -> int:
    """Current time as whole unix seconds."""
    return int(time.time())
