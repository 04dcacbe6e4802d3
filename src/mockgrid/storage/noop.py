"""No-op storage backends, used when persistence is disabled."""

from __future__ import annotations

from mockgrid.exceptions import NotFoundError
from mockgrid.models import Message, MessageQuery, WebhookConfig

from .base import MessageStore, WebhookRegistry, require_id


class NoOpMessageStore(MessageStore):
    """Discards every message; lookups always come back empty."""

    async def save(self, message: Message) -> None:
        require_id(message.msg_id, "msg_id")

    async def get(self, query: MessageQuery) -> list[Message]:
        return []

    async def close(self) -> None:
        return None


class NoOpWebhookRegistry(WebhookRegistry):
    """Accepts and discards webhooks; nothing is ever found."""

    async def create(self, hook: WebhookConfig) -> None:
        require_id(hook.id, "id")

    async def get(self, webhook_id: str) -> WebhookConfig:
        raise NotFoundError("webhook", webhook_id)

    async def list(self) -> list[WebhookConfig]:
        return []

    async def update(self, hook: WebhookConfig) -> None:
        raise NotFoundError("webhook", hook.id)

    async def delete(self, webhook_id: str) -> None:
        raise NotFoundError("webhook", webhook_id)

    async def close(self) -> None:
        return None
