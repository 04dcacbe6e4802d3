"""End-to-end tests: send outcome -> store -> webhook subscriber.

These wire the real backends, dispatcher and classifier together with an
in-process HTTP transport standing in for subscriber endpoints.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import RecordingTransport, make_message

from mockgrid import (
    MessageQuery,
    MessageStatus,
    Settings,
    WebhookConfig,
    open_storage,
    record_send_outcome,
    verify_signature,
)

HOOK_URL = "https://subscriber.example.com/events"


def storage_settings(kind: str, tmp_path: Path) -> Settings:
    if kind == "memory":
        storage = {"type": "memory"}
    elif kind == "sqlite":
        storage = {"type": "sqlite", "path": str(tmp_path / "mail.db")}
    else:
        storage = {"type": "filesystem", "path": str(tmp_path / "store")}
    return Settings(storage=storage, webhooks={"retry_delay_seconds": 0})


@pytest.mark.parametrize("kind", ["memory", "sqlite", "filesystem"])
async def test_bounce_notifies_subscriber(kind: str, tmp_path: Path) -> None:
    """A bounced send is stored and a signed event reaches the subscriber."""
    transport = RecordingTransport()
    bundle = await open_storage(storage_settings(kind, tmp_path), transport=transport)
    try:
        await bundle.webhooks.create(
            WebhookConfig(
                id="whk_bounces",
                url=HOOK_URL,
                events={MessageStatus.BOUNCE},
                secret="shh",
            )
        )

        [message] = await record_send_outcome(
            bundle.messages,
            from_email="app@example.com",
            recipients=["user@example.com"],
            subject="Welcome",
            error="550 mailbox unavailable",
        )
        await bundle.dispatcher.wait_idle()

        stored = await bundle.messages.get(MessageQuery(status=MessageStatus.BOUNCE))
        assert [m.msg_id for m in stored] == [message.msg_id]

        [request] = transport.calls_to(HOOK_URL)
        assert verify_signature(request.content, "shh", request.headers["X-Twilio-Signature"])
        body = json.loads(request.content)
        assert body["sg_message_id"] == message.msg_id
        assert body["event"] == "bounce"
        assert body["reason"] == "550 mailbox unavailable"
    finally:
        await bundle.close()


async def test_delivery_lifecycle(tmp_path: Path) -> None:
    """processed -> processed -> delivered notifies the subscriber twice."""
    transport = RecordingTransport()
    bundle = await open_storage(storage_settings("sqlite", tmp_path), transport=transport)
    try:
        await bundle.webhooks.create(
            WebhookConfig(
                url=HOOK_URL,
                events={MessageStatus.PROCESSED, MessageStatus.DELIVERED},
            )
        )

        await bundle.messages.save(make_message(status=MessageStatus.PROCESSED))
        await bundle.messages.save(make_message(status=MessageStatus.PROCESSED))
        await bundle.messages.save(make_message(status=MessageStatus.DELIVERED))
        await bundle.dispatcher.wait_idle()

        events = [json.loads(r.content)["event"] for r in transport.calls_to(HOOK_URL)]
        assert sorted(events) == ["delivered", "processed"]
    finally:
        await bundle.close()


async def test_failing_subscriber_does_not_affect_save(tmp_path: Path) -> None:
    """A subscriber that always errors gets three attempts; the save stands."""
    transport = RecordingTransport({HOOK_URL: [500]})
    bundle = await open_storage(storage_settings("memory", tmp_path), transport=transport)
    try:
        await bundle.webhooks.create(WebhookConfig(url=HOOK_URL, events={MessageStatus.PROCESSED}))

        await bundle.messages.save(make_message())
        await bundle.dispatcher.wait_idle()

        assert len(await bundle.messages.get(MessageQuery(id="test-123"))) == 1
        assert len(transport.calls_to(HOOK_URL)) == 3
    finally:
        await bundle.close()


async def test_storage_none_discards_everything(tmp_path: Path) -> None:
    transport = RecordingTransport()
    bundle = await open_storage(Settings(storage={"type": "none"}), transport=transport)
    try:
        await bundle.webhooks.create(WebhookConfig(url=HOOK_URL, events={MessageStatus.PROCESSED}))
        await bundle.messages.save(make_message())
        await bundle.dispatcher.wait_idle()

        assert await bundle.messages.get(MessageQuery()) == []
        assert transport.requests == []
    finally:
        await bundle.close()
