"""Message records and delivery status.

A Message is one outbound email attempt for one recipient. It is created
when the send pipeline first persists it and afterwards only updated by
re-saving with the same ``msg_id``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_QUERY_LIMIT = 100


class MessageStatus(str, Enum):
    """Delivery status of a message, modelled on SendGrid delivery events.

    A classification tag, not a progression: a message may move between
    any two statuses.
    """

    PROCESSED = "processed"  # Accepted and ready for delivery
    DELIVERED = "delivered"  # Accepted by the receiving server
    DEFERRED = "deferred"  # Receiving server temporarily unreachable
    BOUNCE = "bounce"  # Permanent failure (hard bounce)
    BLOCKED = "blocked"  # Temporary rejection (soft bounce)
    DROPPED = "dropped"  # Dropped before sending


class Message(BaseModel):
    """A stored email message with its delivery status.

    Attributes:
        msg_id: Unique, immutable identifier.
        from_email: Sender address.
        to_email: Recipient address.
        subject: Rendered subject line.
        html_body: Rendered HTML body.
        text_body: Plain-text body, if one was sent.
        status: Current delivery status.
        smtp_response: Raw transport response, for diagnostics.
        reason: Failure detail for non-delivered statuses.
        timestamp: Creation time (unix seconds).
        last_event_time: Time of the latest status event (unix seconds).
        opens_count: Tracking-pixel opens.
        clicks_count: Tracked link clicks.
    """

    model_config = ConfigDict(extra="forbid")

    msg_id: str = Field(description="Unique message identifier")
    from_email: str = Field(description="Sender address")
    to_email: str = Field(description="Recipient address")
    subject: str = Field(default="")
    html_body: str = Field(default="")
    text_body: str | None = Field(default=None)
    status: MessageStatus = Field(default=MessageStatus.PROCESSED)
    smtp_response: str | None = Field(default=None, description="Transport diagnostic text")
    reason: str | None = Field(default=None, description="Failure detail")
    timestamp: int = Field(default=0, ge=0, description="Creation time, unix seconds")
    last_event_time: int = Field(default=0, ge=0, description="Latest event, unix seconds")
    opens_count: int = Field(default=0, ge=0)
    clicks_count: int = Field(default=0, ge=0)


class MessageQuery(BaseModel):
    """Parameters for fetching messages from a store.

    Attributes:
        id: Exact message ID. When set, the result holds zero or one record.
        status: Only return messages with this status.
        limit: Maximum results. None or 0 means DEFAULT_QUERY_LIMIT.
        offset: Number of matches to skip when listing.
    """

    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    status: MessageStatus | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)

    @property
    def effective_limit(self) -> int:
        """Limit with the default cap applied."""
        return self.limit or DEFAULT_QUERY_LIMIT


__all__ = [
    "DEFAULT_QUERY_LIMIT",
    "Message",
    "MessageQuery",
    "MessageStatus",
]
