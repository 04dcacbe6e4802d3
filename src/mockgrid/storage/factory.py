"""Resolve storage configuration into concrete backends.

The storage kind is read once at startup; everything downstream only sees
the MessageStore and WebhookRegistry interfaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from mockgrid.exceptions import ConfigurationError
from mockgrid.logging import configure_logging, get_logger

from .base import MessageStore, WebhookRegistry
from .filesystem import FileSystemMessageStore, FileSystemWebhookRegistry
from .memory import MemoryMessageStore, MemoryWebhookRegistry
from .noop import NoOpMessageStore, NoOpWebhookRegistry
from .sqlite import SQLiteBackend, SQLiteMessageStore, SQLiteWebhookRegistry
from .wrapper import DispatchingMessageStore

if TYPE_CHECKING:
    import httpx

    from mockgrid.config import Settings, StorageSettings
    from mockgrid.webhooks import WebhookDispatcher

logger = get_logger(__name__)


def _require_path(storage: StorageSettings) -> str:
    if not storage.path:
        raise ConfigurationError(f"storage type '{storage.type}' requires a path")
    return storage.path


def create_message_store(storage: StorageSettings) -> MessageStore:
    """Build the configured message store.

    SQLite stores are returned unconnected; call ``connect()`` or use
    ``open_storage``.
    """
    if storage.type == "none":
        return NoOpMessageStore()
    if storage.type == "memory":
        return MemoryMessageStore()
    if storage.type == "sqlite":
        return SQLiteMessageStore(_require_path(storage))
    if storage.type == "filesystem":
        return FileSystemMessageStore(_require_path(storage))
    raise ConfigurationError(f"unknown storage type: {storage.type}")


def create_webhook_registry(storage: StorageSettings) -> WebhookRegistry:
    """Build the webhook registry matching the configured storage kind."""
    if storage.type == "none":
        return NoOpWebhookRegistry()
    if storage.type == "memory":
        return MemoryWebhookRegistry()
    if storage.type == "sqlite":
        return SQLiteWebhookRegistry(_require_path(storage))
    if storage.type == "filesystem":
        return FileSystemWebhookRegistry(_require_path(storage))
    raise ConfigurationError(f"unknown storage type: {storage.type}")


@dataclass
class StorageBundle:
    """Wired-up persistence and notification layer.

    Attributes:
        messages: Message store that notifies on status transitions.
        webhooks: Webhook registry read by the dispatcher.
        dispatcher: Background webhook dispatcher.
    """

    messages: DispatchingMessageStore
    webhooks: WebhookRegistry
    dispatcher: WebhookDispatcher

    async def close(self) -> None:
        """Drain pending deliveries, then close both stores."""
        await self.dispatcher.aclose()
        await self.messages.close()
        await self.webhooks.close()


async def open_storage(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> StorageBundle:
    """Apply logging settings, then create, connect and wire the backends.

    Args:
        settings: Configuration. Defaults to the global settings.
        transport: Optional httpx transport for webhook delivery.

    Returns:
        A StorageBundle whose message store dispatches webhooks.
    """
    from mockgrid.config import settings as default_settings
    from mockgrid.webhooks import WebhookDispatcher

    cfg = settings or default_settings
    configure_logging(level=cfg.log_level, format=cfg.log_format)

    store = create_message_store(cfg.storage)
    registry = create_webhook_registry(cfg.storage)

    try:
        for backend in (store, registry):
            if isinstance(backend, SQLiteBackend):
                await backend.connect()
    except Exception:
        await store.close()
        await registry.close()
        raise

    dispatcher = WebhookDispatcher.from_settings(registry, cfg.webhooks, transport=transport)
    logger.info("storage opened", storage=cfg.storage.type, path=cfg.storage.path)
    return StorageBundle(
        messages=DispatchingMessageStore(store, dispatcher),
        webhooks=registry,
        dispatcher=dispatcher,
    )
