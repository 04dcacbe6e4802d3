"""Message store decorator that notifies on status transitions.

Notification is a function of the observed status change, not of the save
call: a save that leaves the status unchanged notifies nobody.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from mockgrid.exceptions import NotFoundError
from mockgrid.logging import get_logger
from mockgrid.models import Message, MessageQuery, MessageStatus

from .base import MessageStore

logger = get_logger(__name__)


@runtime_checkable
class EventDispatcher(Protocol):
    """Receives status-change notifications.

    Implementations must return without blocking and must never raise:
    the save that triggered the call has already succeeded.
    """

    def dispatch_message_event(
        self,
        msg_id: str,
        email: str,
        from_email: str,
        subject: str,
        status: MessageStatus,
        reason: str | None,
    ) -> None: ...


class NoOpDispatcher:
    """Discards every event."""

    def dispatch_message_event(
        self,
        msg_id: str,
        email: str,
        from_email: str,
        subject: str,
        status: MessageStatus,
        reason: str | None,
    ) -> None:
        return None


class DispatchingMessageStore(MessageStore):
    """Wraps a MessageStore and dispatches an event when a status changes.

    Example:
        ```python
        store = DispatchingMessageStore(SQLiteMessageStore(path), dispatcher)
        await store.save(message)  # notifies if new or status changed
        ```
    """

    def __init__(self, wrapped: MessageStore, dispatcher: EventDispatcher) -> None:
        """Initialize the wrapper.

        Args:
            wrapped: Store that actually persists messages.
            dispatcher: Receives transition events. Use NoOpDispatcher to
                disable notifications.
        """
        self._wrapped = wrapped
        self._dispatcher = dispatcher

    @property
    def wrapped(self) -> MessageStore:
        return self._wrapped

    async def save(self, message: Message) -> None:
        """Persist a message, then dispatch if it is new or its status changed.

        Raises:
            StorageError: If reading the previous record or saving fails.
                Nothing is dispatched in that case.
        """
        previous = await self._previous_status(message)

        await self._wrapped.save(message)

        if previous is not None and previous == message.status:
            return

        logger.debug(
            "dispatching webhook event",
            msg_id=message.msg_id,
            status=message.status.value,
            previous_status=previous.value if previous else None,
        )
        try:
            self._dispatcher.dispatch_message_event(
                message.msg_id,
                message.to_email,
                message.from_email,
                message.subject,
                message.status,
                message.reason,
            )
        except Exception:
            logger.exception("event dispatcher raised", msg_id=message.msg_id)

    async def _previous_status(self, message: Message) -> MessageStatus | None:
        if not message.msg_id:
            return None
        try:
            existing = await self._wrapped.get(MessageQuery(id=message.msg_id))
        except NotFoundError:
            return None
        return existing[0].status if existing else None

    async def get(self, query: MessageQuery) -> list[Message]:
        return await self._wrapped.get(query)

    async def close(self) -> None:
        await self._wrapped.close()
