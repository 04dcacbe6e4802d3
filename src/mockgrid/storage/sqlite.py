"""SQLite storage backends.

Messages and webhooks share one database file with a ``messages`` table
keyed by ``msg_id`` and a ``webhooks`` table keyed by ``id``. Filtering and
pagination are pushed into SQL; indexes on ``status`` and ``timestamp``
keep listing off full scans.

Each backend owns one aiosqlite connection. Statements are serialized on an
asyncio lock so multi-statement operations never interleave.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
from typing import Any

import aiosqlite

from mockgrid.exceptions import ConflictError, NotFoundError, StorageError
from mockgrid.models import Message, MessageQuery, MessageStatus, WebhookConfig, now_unix

from .base import MessageStore, WebhookRegistry, require_id

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    msg_id TEXT PRIMARY KEY,
    from_email TEXT NOT NULL,
    to_email TEXT NOT NULL,
    subject TEXT,
    html_body TEXT,
    text_body TEXT,
    status TEXT NOT NULL,
    smtp_response TEXT,
    reason TEXT,
    timestamp INTEGER NOT NULL,
    last_event_time INTEGER,
    opens_count INTEGER DEFAULT 0,
    clicks_count INTEGER DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_messages_status ON messages(status);
CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp);
CREATE TABLE IF NOT EXISTS webhooks (
    id TEXT PRIMARY KEY,
    url TEXT NOT NULL,
    events TEXT NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    secret TEXT,
    created_at INTEGER,
    updated_at INTEGER
);
"""

MESSAGE_COLUMNS = (
    "msg_id, from_email, to_email, subject, html_body, text_body, "
    "status, smtp_response, reason, timestamp, last_event_time, "
    "opens_count, clicks_count"
)

UPSERT_MESSAGE = f"""
INSERT INTO messages ({MESSAGE_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(msg_id) DO UPDATE SET
    from_email = excluded.from_email,
    to_email = excluded.to_email,
    subject = excluded.subject,
    html_body = excluded.html_body,
    text_body = excluded.text_body,
    status = excluded.status,
    smtp_response = excluded.smtp_response,
    reason = excluded.reason,
    timestamp = excluded.timestamp,
    last_event_time = excluded.last_event_time,
    opens_count = excluded.opens_count,
    clicks_count = excluded.clicks_count
"""

WEBHOOK_COLUMNS = "id, url, events, enabled, secret, created_at, updated_at"


class SQLiteBackend:
    """Connection lifecycle shared by the SQLite message store and registry."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """Initialize the backend.

        Args:
            path: Database file, or ":memory:" for a private in-memory database.
        """
        self._path = os.fspath(path)
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the connection, raising if not connected."""
        if self._db is None:
            raise StorageError("SQLite store not connected. Call connect() first.")
        return self._db

    async def connect(self) -> None:
        """Open the database and create tables and indexes if missing."""
        if self._db is not None:
            return
        try:
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.executescript(SCHEMA)
            await self._db.commit()
        except sqlite3.Error as e:
            await self.close()
            raise StorageError(f"open database {self._path}: {e}") from e
        logger.debug("Opened SQLite database %s", self._path)

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._db is not None:
            db, self._db = self._db, None
            await db.close()

    async def __aenter__(self) -> Any:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def _row_to_message(row: aiosqlite.Row) -> Message:
    return Message(
        msg_id=row["msg_id"],
        from_email=row["from_email"],
        to_email=row["to_email"],
        subject=row["subject"] or "",
        html_body=row["html_body"] or "",
        text_body=row["text_body"],
        status=MessageStatus(row["status"]),
        smtp_response=row["smtp_response"],
        reason=row["reason"],
        timestamp=row["timestamp"],
        last_event_time=row["last_event_time"] or 0,
        opens_count=row["opens_count"] or 0,
        clicks_count=row["clicks_count"] or 0,
    )


def _row_to_webhook(row: aiosqlite.Row) -> WebhookConfig:
    return WebhookConfig(
        id=row["id"],
        url=row["url"],
        events=set(json.loads(row["events"])),
        enabled=bool(row["enabled"]),
        secret=row["secret"] or "",
        created_at=row["created_at"] or 0,
        updated_at=row["updated_at"] or 0,
    )


class SQLiteMessageStore(SQLiteBackend, MessageStore):
    """Persists messages in the ``messages`` table."""

    async def save(self, message: Message) -> None:
        require_id(message.msg_id, "msg_id")
        params = (
            message.msg_id,
            message.from_email,
            message.to_email,
            message.subject,
            message.html_body,
            message.text_body,
            message.status.value,
            message.smtp_response,
            message.reason,
            message.timestamp,
            message.last_event_time,
            message.opens_count,
            message.clicks_count,
        )
        async with self._lock:
            try:
                await self.db.execute(UPSERT_MESSAGE, params)
                await self.db.commit()
            except sqlite3.Error as e:
                raise StorageError(f"upsert message {message.msg_id}: {e}") from e

    async def get(self, query: MessageQuery) -> list[Message]:
        if query.id is not None:
            sql = f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE msg_id = ?"
            params: tuple[Any, ...] = (query.id,)
        elif query.status is not None:
            sql = (
                f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE status = ? "
                "ORDER BY timestamp DESC, msg_id DESC LIMIT ? OFFSET ?"
            )
            params = (query.status.value, query.effective_limit, query.offset)
        else:
            sql = (
                f"SELECT {MESSAGE_COLUMNS} FROM messages "
                "ORDER BY timestamp DESC, msg_id DESC LIMIT ? OFFSET ?"
            )
            params = (query.effective_limit, query.offset)

        async with self._lock:
            try:
                async with self.db.execute(sql, params) as cursor:
                    rows = await cursor.fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"query messages: {e}") from e
        try:
            return [_row_to_message(row) for row in rows]
        except ValueError as e:
            raise StorageError(f"decode message row: {e}") from e


class SQLiteWebhookRegistry(SQLiteBackend, WebhookRegistry):
    """Persists webhooks in the ``webhooks`` table, events as a JSON array."""

    async def create(self, hook: WebhookConfig) -> None:
        require_id(hook.id, "id")
        if not hook.created_at:
            hook.created_at = now_unix()
        if not hook.updated_at:
            hook.updated_at = hook.created_at
        async with self._lock:
            try:
                await self.db.execute(
                    f"INSERT INTO webhooks ({WEBHOOK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    self._params(hook),
                )
                await self.db.commit()
            except sqlite3.IntegrityError as e:
                raise ConflictError("webhook", hook.id) from e
            except sqlite3.Error as e:
                raise StorageError(f"insert webhook {hook.id}: {e}") from e

    async def get(self, webhook_id: str) -> WebhookConfig:
        rows = await self._select("WHERE id = ?", (webhook_id,))
        if not rows:
            raise NotFoundError("webhook", webhook_id)
        return rows[0]

    async def list(self) -> list[WebhookConfig]:
        return await self._select("ORDER BY created_at DESC, id DESC", ())

    async def list_enabled(self) -> list[WebhookConfig]:
        return await self._select("WHERE enabled = 1 ORDER BY created_at DESC, id DESC", ())

    async def update(self, hook: WebhookConfig) -> None:
        async with self._lock:
            try:
                async with self.db.execute(
                    "SELECT created_at FROM webhooks WHERE id = ?", (hook.id,)
                ) as cursor:
                    row = await cursor.fetchone()
                if row is None:
                    raise NotFoundError("webhook", hook.id)
                hook.created_at = row["created_at"] or 0
                hook.updated_at = now_unix()
                await self.db.execute(
                    "UPDATE webhooks SET url = ?, events = ?, enabled = ?, secret = ?, "
                    "updated_at = ? WHERE id = ?",
                    (
                        hook.url,
                        self._events_json(hook),
                        int(hook.enabled),
                        hook.secret,
                        hook.updated_at,
                        hook.id,
                    ),
                )
                await self.db.commit()
            except sqlite3.Error as e:
                raise StorageError(f"update webhook {hook.id}: {e}") from e

    async def delete(self, webhook_id: str) -> None:
        async with self._lock:
            try:
                cursor = await self.db.execute("DELETE FROM webhooks WHERE id = ?", (webhook_id,))
                await self.db.commit()
            except sqlite3.Error as e:
                raise StorageError(f"delete webhook {webhook_id}: {e}") from e
        if cursor.rowcount == 0:
            raise NotFoundError("webhook", webhook_id)

    async def _select(self, clause: str, params: tuple[Any, ...]) -> list[WebhookConfig]:
        async with self._lock:
            try:
                async with self.db.execute(
                    f"SELECT {WEBHOOK_COLUMNS} FROM webhooks {clause}", params
                ) as cursor:
                    rows = await cursor.fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"query webhooks: {e}") from e
        try:
            return [_row_to_webhook(row) for row in rows]
        except ValueError as e:
            raise StorageError(f"decode webhook row: {e}") from e

    @staticmethod
    def _events_json(hook: WebhookConfig) -> str:
        return json.dumps(sorted(status.value for status in hook.events))

    def _params(self, hook: WebhookConfig) -> tuple[Any, ...]:
        return (
            hook.id,
            hook.url,
            self._events_json(hook),
            int(hook.enabled),
            hook.secret,
            hook.created_at,
            hook.updated_at,
        )
