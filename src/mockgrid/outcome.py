"""Delivery outcome classification and recording.

Maps the result of a transport attempt to a MessageStatus and persists one
Message per recipient. Classification is pure; recording goes through
whatever MessageStore the caller hands in, typically a
DispatchingMessageStore so that subscribers hear about the new messages.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from mockgrid.exceptions import MockgridError
from mockgrid.logging import get_logger
from mockgrid.models import Message, MessageStatus, generate_message_id, now_unix

if TYPE_CHECKING:
    from mockgrid.storage import MessageStore

logger = get_logger(__name__)

# SMTP reply codes, matched as substrings of the failure text
PERMANENT_FAILURE_CODES = ("550", "551", "552", "553", "554")
TEMPORARY_FAILURE_CODES = ("421", "450", "451", "452")
CONNECTIVITY_KEYWORDS = ("connection", "timeout", "dial")


def classify(error: BaseException | str | None) -> tuple[MessageStatus, str]:
    """Classify a transport outcome into a delivery status.

    Checked in order, first match wins: no error is delivered, permanent
    SMTP codes bounce, temporary SMTP codes are blocked, connectivity
    problems are deferred, anything else bounces.

    Args:
        error: None on success, otherwise the failure or its text.

    Returns:
        (status, detail) where detail is the failure text, empty on success.
    """
    if error is None:
        return MessageStatus.DELIVERED, ""

    text = str(error)

    if any(code in text for code in PERMANENT_FAILURE_CODES):
        return MessageStatus.BOUNCE, text
    if any(code in text for code in TEMPORARY_FAILURE_CODES):
        return MessageStatus.BLOCKED, text
    if any(keyword in text for keyword in CONNECTIVITY_KEYWORDS):
        return MessageStatus.DEFERRED, text
    return MessageStatus.BOUNCE, text


async def record_send_outcome(
    store: MessageStore,
    *,
    from_email: str,
    recipients: Sequence[str],
    subject: str,
    html_body: str = "",
    text_body: str | None = None,
    error: BaseException | str | None = None,
    smtp_response: str | None = None,
) -> list[Message]:
    """Persist one message per recipient for a finished send attempt.

    Every recipient is attempted even if an earlier save fails; the first
    failure is re-raised afterwards so the send pipeline can report an
    internal error.

    Args:
        store: Destination store.
        from_email: Sender address.
        recipients: Recipient addresses of one personalization.
        subject: Rendered subject.
        html_body: Rendered HTML body.
        text_body: Plain-text body, if any.
        error: Transport failure, or None if the send succeeded.
        smtp_response: Raw reply from the transport, if it returned one.

    Returns:
        The messages that were saved.

    Raises:
        MockgridError: The first store error encountered.
    """
    status, reason = classify(error)
    now = now_unix()

    saved: list[Message] = []
    first_error: MockgridError | None = None

    for to_email in recipients:
        message = Message(
            msg_id=generate_message_id(),
            from_email=from_email,
            to_email=to_email,
            subject=subject,
            html_body=html_body,
            text_body=text_body,
            status=status,
            smtp_response=smtp_response,
            reason=reason or None,
            timestamp=now,
            last_event_time=now,
        )
        try:
            await store.save(message)
        except MockgridError as e:
            logger.error("failed to save message", msg_id=message.msg_id, error=str(e))
            first_error = first_error or e
            continue
        saved.append(message)

    if first_error is not None:
        raise first_error
    return saved
