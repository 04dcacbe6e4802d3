"""Data models for Mockgrid.

Records:
    - Message: One outbound email attempt per recipient
    - WebhookConfig: A registered status-change subscriber

Supporting Types:
    - MessageStatus: Closed set of delivery statuses
    - MessageQuery: Filter and pagination for message lookups
    - WebhookEvent: Ephemeral payload posted to subscribers
"""

from .base import generate_id, generate_message_id, now_unix
from .message import DEFAULT_QUERY_LIMIT, Message, MessageQuery, MessageStatus
from .webhook import WebhookConfig, WebhookEvent

__all__ = [
    # Helpers
    "generate_id",
    "generate_message_id",
    "now_unix",
    # Messages
    "DEFAULT_QUERY_LIMIT",
    "Message",
    "MessageQuery",
    "MessageStatus",
    # Webhooks
    "WebhookConfig",
    "WebhookEvent",
]
