"""In-memory storage backends.

Records live in dicts for the lifetime of the process. Both classes guard
their dicts with a lock because request handlers and tests hit them
concurrently, and they copy records on the way in and out so callers
never share mutable state with the store.
"""

from __future__ import annotations

import threading

from mockgrid.exceptions import ConflictError, NotFoundError
from mockgrid.models import Message, MessageQuery, WebhookConfig, now_unix

from .base import (
    MessageStore,
    WebhookRegistry,
    newest_webhooks_first,
    require_id,
    select_messages,
)


class MemoryMessageStore(MessageStore):
    """Dict-backed message store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: dict[str, Message] = {}

    async def save(self, message: Message) -> None:
        require_id(message.msg_id, "msg_id")
        with self._lock:
            self._messages[message.msg_id] = message.model_copy(deep=True)

    async def get(self, query: MessageQuery) -> list[Message]:
        with self._lock:
            if query.id is not None:
                found = self._messages.get(query.id)
                return [found.model_copy(deep=True)] if found is not None else []
            selected = select_messages(self._messages.values(), query)
            return [m.model_copy(deep=True) for m in selected]

    async def close(self) -> None:
        return None

    def messages(self) -> list[Message]:
        """Snapshot of every stored message, for assertions."""
        with self._lock:
            return [m.model_copy(deep=True) for m in self._messages.values()]

    def reset(self) -> None:
        """Drop all stored messages."""
        with self._lock:
            self._messages.clear()


class MemoryWebhookRegistry(WebhookRegistry):
    """Dict-backed webhook registry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hooks: dict[str, WebhookConfig] = {}

    async def create(self, hook: WebhookConfig) -> None:
        require_id(hook.id, "id")
        with self._lock:
            if hook.id in self._hooks:
                raise ConflictError("webhook", hook.id)
            if not hook.created_at:
                hook.created_at = now_unix()
            if not hook.updated_at:
                hook.updated_at = hook.created_at
            self._hooks[hook.id] = hook.model_copy(deep=True)

    async def get(self, webhook_id: str) -> WebhookConfig:
        with self._lock:
            hook = self._hooks.get(webhook_id)
            if hook is None:
                raise NotFoundError("webhook", webhook_id)
            return hook.model_copy(deep=True)

    async def list(self) -> list[WebhookConfig]:
        with self._lock:
            return [h.model_copy(deep=True) for h in newest_webhooks_first(self._hooks.values())]

    async def update(self, hook: WebhookConfig) -> None:
        with self._lock:
            existing = self._hooks.get(hook.id)
            if existing is None:
                raise NotFoundError("webhook", hook.id)
            hook.created_at = existing.created_at
            hook.updated_at = now_unix()
            self._hooks[hook.id] = hook.model_copy(deep=True)

    async def delete(self, webhook_id: str) -> None:
        with self._lock:
            if self._hooks.pop(webhook_id, None) is None:
                raise NotFoundError("webhook", webhook_id)

    async def close(self) -> None:
        return None
