"""Webhook delivery system for Mockgrid.

Provides HMAC-signed webhook delivery with exponential backoff retry.

Example:
    ```python
    from mockgrid.webhooks import WebhookDispatcher, verify_signature

    dispatcher = WebhookDispatcher(registry)
    dispatcher.dispatch_message_event(
        "1700000000.ab12", "to@example.com", "from@example.com",
        "Hello", MessageStatus.DELIVERED, None,
    )

    # Subscriber side
    assert verify_signature(request_body, secret, request.headers["X-Twilio-Signature"])
    ```
"""

from .delivery import (
    DEFAULT_SIGNATURE_HEADER,
    WebhookDispatcher,
    compute_signature,
    verify_signature,
)

__all__ = [
    "DEFAULT_SIGNATURE_HEADER",
    "WebhookDispatcher",
    "compute_signature",
    "verify_signature",
]
