"""Base classes for message stores and webhook registries.

Every backend implements the same async contract, so callers never depend
on which one is configured. Correctness is defined by the shared contract
test suite rather than by any one backend's internals.

Lookup convention: ``MessageStore.get`` with an ID that has no record
returns an empty list on every backend. ``WebhookRegistry.get`` is a
single-item lookup and raises NotFoundError instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from mockgrid.exceptions import InvalidArgumentError
from mockgrid.models import Message, MessageQuery, WebhookConfig


class MessageStore(ABC):
    """Abstract base class for message persistence.

    Example:
        ```python
        async with FileSystemMessageStore("./data") as store:
            await store.save(message)
            delivered = await store.get(MessageQuery(status=MessageStatus.DELIVERED))
        ```
    """

    @abstractmethod
    async def save(self, message: Message) -> None:
        """Insert or fully overwrite the record keyed by ``message.msg_id``.

        Raises:
            InvalidArgumentError: If ``msg_id`` is empty.
            StorageError: On backend I/O failure.
        """
        ...

    @abstractmethod
    async def get(self, query: MessageQuery) -> list[Message]:
        """Retrieve messages matching the query.

        With ``query.id`` set the result holds zero or one message.
        Otherwise results are filtered by status, newest first, with
        offset and limit applied after filtering.

        Raises:
            StorageError: On backend I/O failure.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources. Safe to call more than once."""
        ...

    async def __aenter__(self) -> MessageStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class WebhookRegistry(ABC):
    """Abstract base class for webhook subscription storage."""

    @abstractmethod
    async def create(self, hook: WebhookConfig) -> None:
        """Store a new webhook.

        Raises:
            InvalidArgumentError: If ``hook.id`` is empty.
            ConflictError: If a webhook with this ID already exists.
        """
        ...

    @abstractmethod
    async def get(self, webhook_id: str) -> WebhookConfig:
        """Fetch one webhook.

        Raises:
            NotFoundError: If no webhook has this ID.
        """
        ...

    @abstractmethod
    async def list(self) -> list[WebhookConfig]:
        """All webhooks, most recently created first."""
        ...

    async def list_enabled(self) -> list[WebhookConfig]:
        """Enabled webhooks, most recently created first."""
        return [hook for hook in await self.list() if hook.enabled]

    @abstractmethod
    async def update(self, hook: WebhookConfig) -> None:
        """Overwrite an existing webhook and stamp ``updated_at``.

        Raises:
            NotFoundError: If no webhook has this ID.
        """
        ...

    @abstractmethod
    async def delete(self, webhook_id: str) -> None:
        """Remove a webhook.

        Raises:
            NotFoundError: If no webhook has this ID.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources. Safe to call more than once."""
        ...

    async def __aenter__(self) -> WebhookRegistry:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def require_id(value: str, field: str) -> None:
    """Reject an empty record key."""
    if not value:
        raise InvalidArgumentError(field, "is required")


def select_messages(messages: Iterable[Message], query: MessageQuery) -> list[Message]:
    """Filter, order and paginate messages in memory.

    Used by the backends that cannot push the query down to a database.
    """
    matches = [m for m in messages if query.status is None or m.status == query.status]
    matches.sort(key=lambda m: (m.timestamp, m.msg_id), reverse=True)
    return matches[query.offset : query.offset + query.effective_limit]


def newest_webhooks_first(hooks: Iterable[WebhookConfig]) -> list[WebhookConfig]:
    """Order webhooks by creation time, newest first."""
    return sorted(hooks, key=lambda h: (h.created_at, h.id), reverse=True)
