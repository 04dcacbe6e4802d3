"""Webhook delivery with HMAC signatures and exponential backoff retry.

Each status change becomes one detached asyncio task that fans the event out
to every enabled, subscribed webhook. Deliveries to different subscribers are
independent; each gets a fixed number of attempts with exponential backoff,
after which the failure is logged and dropped. Nothing in here ever raises
into the code that saved the message.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mockgrid import __version__
from mockgrid.exceptions import DispatchError
from mockgrid.logging import get_logger, log_context
from mockgrid.models import MessageStatus, WebhookConfig, WebhookEvent

if TYPE_CHECKING:
    from mockgrid.config import WebhookSettings
    from mockgrid.storage import WebhookRegistry

logger = get_logger(__name__)

DEFAULT_SIGNATURE_HEADER = "X-Twilio-Signature"


def compute_signature(payload: bytes | str, secret: str) -> str:
    """Compute the hex HMAC-SHA256 signature of a webhook payload.

    Args:
        payload: Exact body bytes (or text, encoded as UTF-8) being posted.
        secret: Shared secret for HMAC.

    Returns:
        Lowercase hex digest.
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=payload,
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(payload: bytes | str, secret: str, signature: str) -> bool:
    """Verify a webhook payload signature in constant time.

    Args:
        payload: Body that was signed.
        secret: Shared secret for HMAC.
        signature: Hex digest received in the signature header.

    Returns:
        True if signature is valid, False otherwise.
    """
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected, signature)


class WebhookDispatcher:
    """Dispatches status-change events to registered webhooks.

    Handles:
    - Scheduling each event on its own background task
    - Finding enabled webhooks subscribed to the status
    - Signing payloads with HMAC-SHA256
    - Delivering with exponential backoff retry

    Example:
        ```python
        dispatcher = WebhookDispatcher(registry)
        store = DispatchingMessageStore(message_store, dispatcher)

        await store.save(message)  # returns before any webhook is called
        await dispatcher.wait_idle()  # optional: wait for deliveries
        ```
    """

    def __init__(
        self,
        registry: WebhookRegistry,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        max_concurrent: int = 10,
        signature_header: str = DEFAULT_SIGNATURE_HEADER,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the webhook dispatcher.

        Args:
            registry: Source of webhook subscriptions.
            timeout_seconds: HTTP request timeout per attempt.
            max_attempts: Delivery attempts per webhook.
            retry_delay_seconds: Initial backoff delay, doubled per attempt.
            max_concurrent: Maximum concurrent deliveries.
            signature_header: Header carrying the payload signature.
            transport: Optional httpx transport, for tests or proxies.
        """
        self._registry = registry
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay_seconds
        self._max_concurrent = max_concurrent
        self._signature_header = signature_header
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._sleep = asyncio.sleep
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        registry: WebhookRegistry,
        webhook_settings: WebhookSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> WebhookDispatcher:
        """Build a dispatcher from WebhookSettings."""
        return cls(
            registry,
            timeout_seconds=webhook_settings.timeout_seconds,
            max_attempts=webhook_settings.max_attempts,
            retry_delay_seconds=webhook_settings.retry_delay_seconds,
            max_concurrent=webhook_settings.max_concurrent,
            signature_header=webhook_settings.signature_header,
            transport=transport,
        )

    @property
    def pending(self) -> int:
        """Number of dispatch units still running."""
        return len(self._tasks)

    def dispatch_message_event(
        self,
        msg_id: str,
        email: str,
        from_email: str,
        subject: str,
        status: MessageStatus,
        reason: str | None,
    ) -> None:
        """Schedule delivery of a status change and return immediately."""
        if self._closed:
            logger.warning("dispatcher closed, dropping event", msg_id=msg_id, status=status.value)
            return
        self._spawn(self.dispatch(msg_id, email, from_email, subject, status, reason))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.error("no running event loop, dropping webhook event")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until every scheduled dispatch unit has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Stop accepting events and wait for in-flight deliveries."""
        self._closed = True
        await self.wait_idle()

    async def dispatch(
        self,
        msg_id: str,
        email: str,
        from_email: str,
        subject: str,
        status: MessageStatus,
        reason: str | None = None,
    ) -> int:
        """Deliver one status change to every subscribed webhook.

        Runs inline; ``dispatch_message_event`` is the non-blocking entry.
        Never raises. Records logged while it runs carry ``msg_id`` and
        ``event_type``.

        Returns:
            Number of webhooks that acknowledged the event.
        """
        with log_context(msg_id=msg_id, event_type=status.value):
            try:
                webhooks = await self._registry.list_enabled()
            except Exception:
                logger.exception("failed to list webhooks")
                return 0

            if not webhooks:
                logger.debug("no webhooks registered, skipping dispatch")
                return 0

            targets = []
            for webhook in webhooks:
                if not webhook.subscribes_to(status):
                    logger.debug("webhook not subscribed to event", webhook_id=webhook.id)
                    continue
                targets.append(webhook)

            results = await asyncio.gather(
                *(
                    self._deliver_to_webhook(
                        webhook, msg_id, email, from_email, subject, status, reason
                    )
                    for webhook in targets
                ),
                return_exceptions=True,
            )

            delivered = 0
            for webhook, result in zip(targets, results, strict=True):
                if isinstance(result, BaseException):
                    logger.error(
                        "webhook delivery crashed", webhook_id=webhook.id, error=repr(result)
                    )
                elif result:
                    delivered += 1
            return delivered

    async def _deliver_to_webhook(
        self,
        webhook: WebhookConfig,
        msg_id: str,
        email: str,
        from_email: str,
        subject: str,
        status: MessageStatus,
        reason: str | None,
    ) -> bool:
        """Deliver to one webhook with retries.

        A concurrency slot is held for one attempt at a time, never across
        a backoff sleep.

        Returns:
            True once an attempt succeeds, False after exhausting attempts.
        """

        def _log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "webhook delivery failed",
                attempt=retry_state.attempt_number,
                error=str(exc),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._retry_delay, min=0, max=60),
            retry=retry_if_exception_type(DispatchError),
            before_sleep=_log_retry,
            sleep=self._sleep,
        )

        with log_context(webhook_id=webhook.id):
            try:
                async for attempt in retrying:
                    with attempt:
                        event = WebhookEvent.for_status_change(
                            msg_id, email, from_email, subject, status, reason
                        )
                        async with self._semaphore:
                            await self._send(webhook, event)
            except RetryError as e:
                last = e.last_attempt.exception()
                logger.error(
                    "webhook delivery failed after retries",
                    attempts=e.last_attempt.attempt_number,
                    error=str(last),
                )
                return False

            logger.info("webhook delivered")
            return True

    async def _send(self, webhook: WebhookConfig, event: WebhookEvent) -> None:
        """Make one delivery attempt.

        Raises:
            DispatchError: On transport errors, malformed URLs and non-2xx
                responses.
        """
        payload = event.to_payload()
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"mockgrid/{__version__}",
        }
        if webhook.secret:
            headers[self._signature_header] = compute_signature(payload, webhook.secret)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(webhook.url, content=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise DispatchError(webhook.id, "request timeout") from e
        except httpx.InvalidURL as e:
            raise DispatchError(webhook.id, f"invalid webhook url: {e}") from e
        except httpx.HTTPError as e:
            raise DispatchError(webhook.id, f"send request: {e}") from e

        if not 200 <= response.status_code < 300:
            raise DispatchError(
                webhook.id,
                f"webhook returned status {response.status_code}",
                status_code=response.status_code,
            )
