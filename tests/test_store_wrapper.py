"""Tests for the status-transition dispatching wrapper."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import make_message

from mockgrid.exceptions import NotFoundError, StorageError
from mockgrid.models import MessageQuery, MessageStatus
from mockgrid.storage import (
    DispatchingMessageStore,
    EventDispatcher,
    MemoryMessageStore,
    NoOpDispatcher,
)


@pytest.fixture
def dispatcher() -> MagicMock:
    """A dispatcher that records every event."""
    return MagicMock(spec=["dispatch_message_event"])


@pytest.fixture
def store(dispatcher: MagicMock) -> DispatchingMessageStore:
    return DispatchingMessageStore(MemoryMessageStore(), dispatcher)


class TestTransitions:
    """Tests for when an event is and is not dispatched."""

    async def test_new_message_dispatches(
        self, store: DispatchingMessageStore, dispatcher: MagicMock
    ) -> None:
        """The first save of a message is a transition from nothing."""
        await store.save(make_message())

        dispatcher.dispatch_message_event.assert_called_once_with(
            "test-123",
            "recipient@example.com",
            "sender@example.com",
            "Test Subject",
            MessageStatus.PROCESSED,
            None,
        )

    async def test_same_status_does_not_dispatch(
        self, store: DispatchingMessageStore, dispatcher: MagicMock
    ) -> None:
        await store.save(make_message())
        await store.save(make_message(opens_count=9))

        assert dispatcher.dispatch_message_event.call_count == 1

    async def test_status_change_dispatches_new_status(
        self, store: DispatchingMessageStore, dispatcher: MagicMock
    ) -> None:
        """processed -> processed -> delivered should dispatch exactly twice."""
        await store.save(make_message(status=MessageStatus.PROCESSED))
        await store.save(make_message(status=MessageStatus.PROCESSED))
        await store.save(
            make_message(status=MessageStatus.DELIVERED, reason="250 ok")
        )

        assert dispatcher.dispatch_message_event.call_count == 2
        last = dispatcher.dispatch_message_event.call_args
        assert last.args[4] == MessageStatus.DELIVERED
        assert last.args[5] == "250 ok"

    async def test_transition_back_dispatches(
        self, store: DispatchingMessageStore, dispatcher: MagicMock
    ) -> None:
        """Statuses are tags, not a progression; moving back is a change too."""
        await store.save(make_message(status=MessageStatus.DEFERRED))
        await store.save(make_message(status=MessageStatus.DELIVERED))
        await store.save(make_message(status=MessageStatus.DEFERRED))

        assert dispatcher.dispatch_message_event.call_count == 3

    async def test_message_is_persisted_before_dispatch(self) -> None:
        inner = MemoryMessageStore()
        seen: list[int] = []

        class Probe:
            def dispatch_message_event(self, msg_id, *args) -> None:  # type: ignore[no-untyped-def]
                seen.append(len(inner.messages()))

        store = DispatchingMessageStore(inner, Probe())
        await store.save(make_message())

        assert seen == [1]


class TestFailures:
    """Tests for error handling around save and dispatch."""

    async def test_failed_save_does_not_dispatch(self, dispatcher: MagicMock) -> None:
        inner = AsyncMock()
        inner.get.return_value = []
        inner.save.side_effect = StorageError("disk full")
        store = DispatchingMessageStore(inner, dispatcher)

        with pytest.raises(StorageError):
            await store.save(make_message())

        dispatcher.dispatch_message_event.assert_not_called()

    async def test_failed_lookup_propagates_without_save(self, dispatcher: MagicMock) -> None:
        inner = AsyncMock()
        inner.get.side_effect = StorageError("locked")
        store = DispatchingMessageStore(inner, dispatcher)

        with pytest.raises(StorageError):
            await store.save(make_message())

        inner.save.assert_not_called()
        dispatcher.dispatch_message_event.assert_not_called()

    async def test_not_found_lookup_treated_as_new(self, dispatcher: MagicMock) -> None:
        """A backend that signals absence with NotFoundError still dispatches."""
        inner = AsyncMock()
        inner.get.side_effect = NotFoundError("message", "test-123")
        store = DispatchingMessageStore(inner, dispatcher)

        await store.save(make_message())

        inner.save.assert_awaited_once()
        dispatcher.dispatch_message_event.assert_called_once()

    async def test_dispatcher_exception_is_contained(self) -> None:
        """A misbehaving dispatcher must not fail an already-persisted save."""
        inner = MemoryMessageStore()
        broken = MagicMock(spec=["dispatch_message_event"])
        broken.dispatch_message_event.side_effect = RuntimeError("boom")
        store = DispatchingMessageStore(inner, broken)

        await store.save(make_message())

        assert len(inner.messages()) == 1


class TestDelegation:
    """Reads and close go straight to the wrapped store."""

    async def test_get_delegates(self, store: DispatchingMessageStore) -> None:
        await store.save(make_message())

        assert len(await store.get(MessageQuery(id="test-123"))) == 1
        assert await store.get(MessageQuery(id="other")) == []

    async def test_close_delegates(self, dispatcher: MagicMock) -> None:
        inner = AsyncMock()
        store = DispatchingMessageStore(inner, dispatcher)

        await store.close()

        inner.close.assert_awaited_once()

    def test_wrapped_property(self, store: DispatchingMessageStore) -> None:
        assert isinstance(store.wrapped, MemoryMessageStore)


class TestNoOpDispatcher:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(NoOpDispatcher(), EventDispatcher)

    async def test_wrapper_with_noop_dispatcher(self) -> None:
        store = DispatchingMessageStore(MemoryMessageStore(), NoOpDispatcher())

        await store.save(make_message())

        assert len(await store.get(MessageQuery())) == 1
