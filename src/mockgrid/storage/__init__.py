"""Storage backends for Mockgrid.

Message stores and webhook registries share one async contract across
no-op, in-memory, file-per-record and SQLite backends.

Example:
    ```python
    from mockgrid.storage import open_storage

    bundle = await open_storage(settings)
    await bundle.messages.save(message)
    delivered = await bundle.messages.get(MessageQuery(status=MessageStatus.DELIVERED))
    await bundle.close()
    ```
"""

from .base import MessageStore, WebhookRegistry
from .factory import StorageBundle, create_message_store, create_webhook_registry, open_storage
from .filesystem import FileSystemMessageStore, FileSystemWebhookRegistry, safe_filename
from .memory import MemoryMessageStore, MemoryWebhookRegistry
from .noop import NoOpMessageStore, NoOpWebhookRegistry
from .sqlite import SQLiteBackend, SQLiteMessageStore, SQLiteWebhookRegistry
from .wrapper import DispatchingMessageStore, EventDispatcher, NoOpDispatcher

__all__ = [
    # Interfaces
    "MessageStore",
    "WebhookRegistry",
    "EventDispatcher",
    # Backends
    "NoOpMessageStore",
    "NoOpWebhookRegistry",
    "MemoryMessageStore",
    "MemoryWebhookRegistry",
    "FileSystemMessageStore",
    "FileSystemWebhookRegistry",
    "SQLiteBackend",
    "SQLiteMessageStore",
    "SQLiteWebhookRegistry",
    # Notification bridge
    "DispatchingMessageStore",
    "NoOpDispatcher",
    # Factory
    "StorageBundle",
    "create_message_store",
    "create_webhook_registry",
    "open_storage",
    "safe_filename",
]
