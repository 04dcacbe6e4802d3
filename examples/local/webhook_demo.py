#!/usr/bin/env python3
"""Status-change webhook demonstration.

This example wires an in-memory store to a webhook subscriber and walks a
message through its delivery lifecycle:

1. A send attempt is recorded as "processed"
2. Re-saving with the same status notifies nobody
3. Moving to "delivered" notifies the subscriber, signed with HMAC-SHA256

The subscriber is an in-process httpx transport, so no network is needed.

Usage:
    python examples/local/webhook_demo.py
"""

import asyncio
import json

import httpx

from mockgrid import (
    MessageQuery,
    MessageStatus,
    Settings,
    WebhookConfig,
    open_storage,
    record_send_outcome,
    verify_signature,
)

SECRET = "demo-secret"


def subscriber(request: httpx.Request) -> httpx.Response:
    """Pretend webhook endpoint: verify the signature and print the event."""
    valid = verify_signature(request.content, SECRET, request.headers["X-Twilio-Signature"])
    event = json.loads(request.content)
    print(f"  📨 {event['event']:10} {event['sg_message_id']}  signature ok: {valid}")
    return httpx.Response(200)


async def main() -> None:
    """Run the webhook demo."""
    print("=" * 60)
    print("Mockgrid Webhook Demo")
    print("=" * 60)

    bundle = await open_storage(
        Settings(storage={"type": "memory"}, log_level="WARNING", log_format="text"),
        transport=httpx.MockTransport(subscriber),
    )
    try:
        await bundle.webhooks.create(
            WebhookConfig(
                url="https://subscriber.example.com/events",
                events={MessageStatus.PROCESSED, MessageStatus.DELIVERED},
                secret=SECRET,
            )
        )

        print("\nRecording a send attempt that is still in flight:")
        [message] = await record_send_outcome(
            bundle.messages,
            from_email="app@example.com",
            recipients=["user@example.com"],
            subject="Welcome",
            html_body="<p>Hi!</p>",
            error="dial tcp: timeout",
        )
        await bundle.dispatcher.wait_idle()
        print(f"  stored with status {message.status.value!r} (no subscriber for it)")

        processed = message.model_copy(update={"status": MessageStatus.PROCESSED})
        print("\nMoving to 'processed':")
        await bundle.messages.save(processed)
        await bundle.dispatcher.wait_idle()

        print("\nSaving 'processed' again (no transition, nothing sent):")
        await bundle.messages.save(processed)
        await bundle.dispatcher.wait_idle()

        print("\nMoving to 'delivered':")
        await bundle.messages.save(processed.model_copy(update={"status": MessageStatus.DELIVERED}))
        await bundle.dispatcher.wait_idle()

        [stored] = await bundle.messages.get(MessageQuery(id=message.msg_id))
        print(f"\nFinal stored status: {stored.status.value}")
    finally:
        await bundle.close()


if __name__ == "__main__":
    asyncio.run(main())
