"""Tests for delivery outcome classification and recording."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from mockgrid.exceptions import StorageError
from mockgrid.models import MessageQuery, MessageStatus
from mockgrid.outcome import classify, record_send_outcome
from mockgrid.storage import MemoryMessageStore


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            ("550 mailbox unavailable", MessageStatus.BOUNCE),
            ("554 transaction failed", MessageStatus.BOUNCE),
            ("421 too busy", MessageStatus.BLOCKED),
            ("452 insufficient storage", MessageStatus.BLOCKED),
            ("dial tcp: timeout", MessageStatus.DEFERRED),
            ("connection refused", MessageStatus.DEFERRED),
            ("unexpected gremlin", MessageStatus.BOUNCE),
        ],
    )
    def test_failure_text(self, error: str, expected: MessageStatus) -> None:
        status, text = classify(error)
        assert status == expected
        assert text == error

    def test_success_is_delivered(self) -> None:
        assert classify(None) == (MessageStatus.DELIVERED, "")

    def test_permanent_code_wins_over_temporary(self) -> None:
        """Checks run in order; a 5xx anywhere means bounce."""
        assert classify("421 then 550 rejected")[0] == MessageStatus.BOUNCE

    def test_temporary_code_wins_over_connectivity(self) -> None:
        assert classify("451 connection dropped")[0] == MessageStatus.BLOCKED

    def test_keywords_are_case_sensitive(self) -> None:
        assert classify("Connection reset")[0] == MessageStatus.BOUNCE

    def test_accepts_exceptions(self) -> None:
        status, text = classify(TimeoutError("i/o timeout"))
        assert status == MessageStatus.DEFERRED
        assert text == "i/o timeout"


class TestRecordSendOutcome:
    """Tests for record_send_outcome()."""

    async def test_one_message_per_recipient(self) -> None:
        store = MemoryMessageStore()

        saved = await record_send_outcome(
            store,
            from_email="app@example.com",
            recipients=["a@example.com", "b@example.com"],
            subject="Welcome",
            html_body="<p>Hi</p>",
            text_body="Hi",
        )

        assert len(saved) == 2
        assert len({m.msg_id for m in saved}) == 2
        stored = await store.get(MessageQuery())
        assert {m.to_email for m in stored} == {"a@example.com", "b@example.com"}
        assert all(m.status == MessageStatus.DELIVERED for m in stored)
        assert all(m.reason is None and m.smtp_response is None for m in stored)
        assert all(m.timestamp > 0 and m.last_event_time == m.timestamp for m in stored)

    async def test_failure_sets_status_and_reason(self) -> None:
        store = MemoryMessageStore()

        [message] = await record_send_outcome(
            store,
            from_email="app@example.com",
            recipients=["a@example.com"],
            subject="Welcome",
            error="550 mailbox unavailable",
        )

        assert message.status == MessageStatus.BOUNCE
        assert message.reason == "550 mailbox unavailable"
        assert message.smtp_response is None
        assert message.text_body is None

    async def test_transport_reply_stored_as_smtp_response(self) -> None:
        store = MemoryMessageStore()

        [message] = await record_send_outcome(
            store,
            from_email="app@example.com",
            recipients=["a@example.com"],
            subject="Welcome",
            smtp_response="250 2.0.0 OK queued",
        )

        assert message.status == MessageStatus.DELIVERED
        assert message.smtp_response == "250 2.0.0 OK queued"

    async def test_no_recipients_saves_nothing(self) -> None:
        store = MemoryMessageStore()

        saved = await record_send_outcome(
            store, from_email="app@example.com", recipients=[], subject="x"
        )

        assert saved == []
        assert store.messages() == []

    async def test_store_error_raised_after_all_recipients(self) -> None:
        """A failing save does not stop the remaining recipients."""
        store = AsyncMock()
        store.save.side_effect = [StorageError("disk full"), None, None]

        with pytest.raises(StorageError, match="disk full"):
            await record_send_outcome(
                store,
                from_email="app@example.com",
                recipients=["a@example.com", "b@example.com", "c@example.com"],
                subject="Welcome",
            )

        assert store.save.await_count == 3
