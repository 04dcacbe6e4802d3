"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import httpx
import pytest

from mockgrid.models import Message, MessageStatus
from mockgrid.storage import (
    FileSystemMessageStore,
    FileSystemWebhookRegistry,
    MemoryMessageStore,
    MemoryWebhookRegistry,
    MessageStore,
    SQLiteMessageStore,
    SQLiteWebhookRegistry,
    WebhookRegistry,
)

# Add tests directory to path so helpers can be imported
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))


def make_message(
    msg_id: str = "test-123",
    status: MessageStatus = MessageStatus.PROCESSED,
    timestamp: int = 1_700_000_000,
    **overrides: object,
) -> Message:
    """Build a fully populated message for store tests."""
    fields: dict[str, object] = {
        "msg_id": msg_id,
        "from_email": "sender@example.com",
        "to_email": "recipient@example.com",
        "subject": "Test Subject",
        "html_body": "<p>Hello</p>",
        "text_body": "Hello",
        "status": status,
        "timestamp": timestamp,
        "last_event_time": timestamp,
        "opens_count": 2,
        "clicks_count": 1,
    }
    fields.update(overrides)
    return Message(**fields)  # type: ignore[arg-type]


class RecordingTransport(httpx.MockTransport):
    """httpx transport that records requests and replies with canned statuses.

    ``statuses`` maps a URL to the status codes returned on successive calls;
    the last code repeats. Unknown URLs get 200. A status of 0 raises a
    connection error instead of responding.
    """

    def __init__(self, statuses: dict[str, list[int]] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.statuses = statuses or {}
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        codes = self.statuses.get(url, [200])
        seen = sum(1 for r in self.requests if str(r.url) == url)
        code = codes[min(seen, len(codes)) - 1]
        if code == 0:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(code, text="ok" if code < 300 else "nope")

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


MESSAGE_BACKENDS = ["memory", "filesystem", "sqlite"]


@pytest.fixture
def message_store_factory(tmp_path: Path) -> Callable[[str], MessageStore]:
    """Constructor for a fresh, empty message store of the given kind."""

    def factory(kind: str) -> MessageStore:
        if kind == "memory":
            return MemoryMessageStore()
        if kind == "filesystem":
            return FileSystemMessageStore(tmp_path / "messages")
        if kind == "sqlite":
            return SQLiteMessageStore(tmp_path / "messages.db")
        raise ValueError(kind)

    return factory


@pytest.fixture(params=MESSAGE_BACKENDS)
async def message_store(
    request: pytest.FixtureRequest,
    message_store_factory: Callable[[str], MessageStore],
) -> AsyncIterator[MessageStore]:
    """Every persisting message store backend, connected and empty."""
    store = message_store_factory(request.param)
    if isinstance(store, SQLiteMessageStore):
        await store.connect()
    yield store
    await store.close()


@pytest.fixture(params=MESSAGE_BACKENDS)
async def webhook_registry(
    request: pytest.FixtureRequest, tmp_path: Path
) -> AsyncIterator[WebhookRegistry]:
    """Every persisting webhook registry backend, connected and empty."""
    registry: WebhookRegistry
    if request.param == "memory":
        registry = MemoryWebhookRegistry()
    elif request.param == "filesystem":
        registry = FileSystemWebhookRegistry(tmp_path / "store")
    else:
        sqlite_registry = SQLiteWebhookRegistry(tmp_path / "webhooks.db")
        await sqlite_registry.connect()
        registry = sqlite_registry
    yield registry
    await registry.close()
