"""Mockgrid: a test-double mail gateway core.

Persists SendGrid-style message records, classifies delivery outcomes and
notifies webhook subscribers whenever a message changes status.

Quick Start:
    from mockgrid import Settings, open_storage, record_send_outcome

    bundle = await open_storage(Settings(storage={"type": "sqlite", "path": "mail.db"}))
    await bundle.webhooks.create(
        WebhookConfig(url="https://example.com/hook", events={MessageStatus.BOUNCE})
    )
    await record_send_outcome(
        bundle.messages,
        from_email="app@example.com",
        recipients=["user@example.com"],
        subject="Welcome",
        error="550 mailbox unavailable",
    )
    await bundle.close()
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, StorageSettings, WebhookSettings, settings

# Exceptions
from .exceptions import (
    ConfigurationError,
    ConflictError,
    DispatchError,
    InvalidArgumentError,
    MockgridError,
    NotFoundError,
    StorageError,
)

# Logging
from .logging import configure_logging, get_logger, log_context

# Models
from .models import (
    Message,
    MessageQuery,
    MessageStatus,
    WebhookConfig,
    WebhookEvent,
    generate_message_id,
)

# Outcome classification
from .outcome import classify, record_send_outcome

# Storage
from .storage import (
    DispatchingMessageStore,
    MessageStore,
    StorageBundle,
    WebhookRegistry,
    open_storage,
)

# Webhooks
from .webhooks import WebhookDispatcher, compute_signature, verify_signature

__all__ = [
    "__version__",
    # Configuration
    "Settings",
    "StorageSettings",
    "WebhookSettings",
    "settings",
    # Exceptions
    "MockgridError",
    "InvalidArgumentError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
    "DispatchError",
    "ConfigurationError",
    # Logging
    "configure_logging",
    "get_logger",
    "log_context",
    # Models
    "Message",
    "MessageQuery",
    "MessageStatus",
    "WebhookConfig",
    "WebhookEvent",
    "generate_message_id",
    # Outcome
    "classify",
    "record_send_outcome",
    # Storage
    "DispatchingMessageStore",
    "MessageStore",
    "StorageBundle",
    "WebhookRegistry",
    "open_storage",
    # Webhooks
    "WebhookDispatcher",
    "compute_signature",
    "verify_signature",
]
