"""Webhook models for status-change notifications.

Provides webhook registration and the event payload posted to subscribers
when a message changes status.
"""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .base import generate_id
from .message import MessageStatus


class WebhookConfig(BaseModel):
    """Configuration for a registered webhook.

    Attributes:
        id: Unique identifier for this webhook.
        url: Endpoint that receives event POSTs.
        enabled: Whether this webhook is active.
        events: Statuses this webhook subscribes to.
        secret: Shared secret for HMAC-SHA256 signatures. Empty means unsigned.
        created_at: When the webhook was registered (unix seconds).
        updated_at: When the webhook was last modified (unix seconds).
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"))
    url: str = Field(min_length=1, description="Endpoint to receive events")
    enabled: bool = Field(default=True, description="Whether webhook is active")
    events: set[MessageStatus] = Field(
        default_factory=set,
        description="Statuses to subscribe to",
    )
    secret: str = Field(default="", description="Shared secret for HMAC-SHA256 signatures")
    created_at: int = Field(default=0, ge=0)
    updated_at: int = Field(default=0, ge=0)

    @field_serializer("events")
    def _serialize_events(self, events: set[MessageStatus]) -> list[str]:
        # Stable order keeps stored files and rows diffable
        return sorted(status.value for status in events)

    def subscribes_to(self, status: MessageStatus | str) -> bool:
        """Check if this webhook wants events for the given status."""
        try:
            return MessageStatus(status) in self.events
        except ValueError:
            return False


class WebhookEvent(BaseModel):
    """Event payload sent to webhook endpoints (SendGrid event format).

    Empty sender, subject and reason are omitted from the wire payload.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    event_id: str
    event: MessageStatus
    timestamp: int
    sg_message_id: str
    email: str
    from_email: str | None = Field(default=None, alias="from")
    subject: str | None = None
    status: MessageStatus
    reason: str | None = None

    @classmethod
    def for_status_change(
        cls,
        msg_id: str,
        email: str,
        from_email: str,
        subject: str,
        status: MessageStatus,
        reason: str | None = None,
    ) -> "WebhookEvent":
        """Build the event for a message that just moved to ``status``."""
        now_ns = time.time_ns()
        return cls(
            event_id=f"{now_ns}-{msg_id}",
            event=status,
            timestamp=now_ns // 1_000_000_000,
            sg_message_id=msg_id,
            email=email,
            from_email=from_email or None,
            subject=subject or None,
            status=status,
            reason=reason or None,
        )

    def to_payload(self) -> bytes:
        """Serialize to the exact bytes that are posted and signed."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


__all__ = [
    "WebhookConfig",
    "WebhookEvent",
]
