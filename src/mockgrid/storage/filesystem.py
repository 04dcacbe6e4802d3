"""File-per-record storage backends.

Each message is one JSON file named ``<safe-id>.json`` directly under the
store root; webhooks live under ``<root>/webhooks/``. File names are the
percent-encoded record ID, so an ID can never address a path outside its
directory and two different IDs never share a file.

Writes go to a temporary file in the same directory and are renamed into
place, so readers see either the old or the new record, never a partial
one. Blocking file I/O runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import quote

from pydantic import ValidationError

from mockgrid.exceptions import ConflictError, NotFoundError, StorageError
from mockgrid.models import Message, MessageQuery, WebhookConfig, now_unix

from .base import (
    MessageStore,
    WebhookRegistry,
    newest_webhooks_first,
    require_id,
    select_messages,
)

logger = logging.getLogger(__name__)

WEBHOOK_DIR = "webhooks"


def safe_filename(record_id: str) -> str:
    """Map a record ID to a file name that stays inside its directory.

    Examples:
        safe_filename("1700000000.abcd") -> "1700000000.abcd.json"
        safe_filename("../etc/passwd") -> "..%2Fetc%2Fpasswd.json"
    """
    return quote(record_id, safe="@+") + ".json"


def _write_atomic(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_if_exists(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def _json_files(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return [p for p in directory.iterdir() if p.is_file() and p.suffix == ".json"]


def _ensure_dir(directory: Path) -> None:
    try:
        directory.mkdir(mode=0o750, parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(f"create store directory {directory}: {e}") from e


class FileSystemMessageStore(MessageStore):
    """Persists each message as an individual JSON file."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        """Create the store, making the root directory if needed.

        Args:
            root: Directory holding one JSON file per message.

        Raises:
            StorageError: If the directory cannot be created.
        """
        self._root = Path(root)
        _ensure_dir(self._root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, msg_id: str) -> Path:
        return self._root / safe_filename(msg_id)

    async def save(self, message: Message) -> None:
        require_id(message.msg_id, "msg_id")
        data = message.model_dump_json(indent=2).encode("utf-8")
        try:
            await asyncio.to_thread(_write_atomic, self._path(message.msg_id), data)
        except OSError as e:
            raise StorageError(f"write message file: {e}") from e

    async def get(self, query: MessageQuery) -> list[Message]:
        if query.id is not None:
            return await asyncio.to_thread(self._get_by_id, query.id)
        return await asyncio.to_thread(self._list, query)

    async def close(self) -> None:
        return None

    def _get_by_id(self, msg_id: str) -> list[Message]:
        try:
            data = _read_if_exists(self._path(msg_id))
        except OSError as e:
            raise StorageError(f"read message file: {e}") from e
        if data is None:
            return []
        try:
            message = Message.model_validate_json(data)
        except ValidationError as e:
            raise StorageError(f"decode message {msg_id}: {e}") from e
        return [message] if message.msg_id == msg_id else []

    def _list(self, query: MessageQuery) -> list[Message]:
        try:
            paths = _json_files(self._root)
        except OSError as e:
            raise StorageError(f"read store directory: {e}") from e

        messages: list[Message] = []
        for path in paths:
            try:
                messages.append(Message.model_validate_json(path.read_bytes()))
            except FileNotFoundError:
                continue
            except (OSError, ValidationError) as e:
                logger.warning("Skipping unreadable message file %s: %s", path.name, e)
        return select_messages(messages, query)


class FileSystemWebhookRegistry(WebhookRegistry):
    """Persists each webhook as a JSON file under ``<root>/webhooks``."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._dir = Path(root) / WEBHOOK_DIR
        _ensure_dir(self._dir)

    def _path(self, webhook_id: str) -> Path:
        return self._dir / safe_filename(webhook_id)

    async def create(self, hook: WebhookConfig) -> None:
        require_id(hook.id, "id")
        if not hook.created_at:
            hook.created_at = now_unix()
        if not hook.updated_at:
            hook.updated_at = hook.created_at
        data = hook.model_dump_json(indent=2).encode("utf-8")
        try:
            await asyncio.to_thread(self._create_exclusive, self._path(hook.id), data)
        except FileExistsError as e:
            raise ConflictError("webhook", hook.id) from e
        except OSError as e:
            raise StorageError(f"write webhook file: {e}") from e

    @staticmethod
    def _create_exclusive(path: Path, data: bytes) -> None:
        # "x" fails if the file exists, so two racing creates cannot both win
        with open(path, "xb") as fh:
            fh.write(data)
        os.chmod(path, 0o600)

    async def get(self, webhook_id: str) -> WebhookConfig:
        hook = await asyncio.to_thread(self._read, webhook_id)
        if hook is None:
            raise NotFoundError("webhook", webhook_id)
        return hook

    def _read(self, webhook_id: str) -> WebhookConfig | None:
        try:
            data = _read_if_exists(self._path(webhook_id))
        except OSError as e:
            raise StorageError(f"read webhook file: {e}") from e
        if data is None:
            return None
        try:
            return WebhookConfig.model_validate_json(data)
        except ValidationError as e:
            raise StorageError(f"decode webhook {webhook_id}: {e}") from e

    async def list(self) -> list[WebhookConfig]:
        return await asyncio.to_thread(self._list)

    def _list(self) -> list[WebhookConfig]:
        try:
            paths = _json_files(self._dir)
        except OSError as e:
            raise StorageError(f"read webhook directory: {e}") from e

        hooks: list[WebhookConfig] = []
        for path in paths:
            try:
                hooks.append(WebhookConfig.model_validate_json(path.read_bytes()))
            except FileNotFoundError:
                continue
            except (OSError, ValidationError) as e:
                logger.warning("Skipping unreadable webhook file %s: %s", path.name, e)
        return newest_webhooks_first(hooks)

    async def update(self, hook: WebhookConfig) -> None:
        existing = await self.get(hook.id)
        hook.created_at = existing.created_at
        hook.updated_at = now_unix()
        data = hook.model_dump_json(indent=2).encode("utf-8")
        try:
            await asyncio.to_thread(_write_atomic, self._path(hook.id), data)
        except OSError as e:
            raise StorageError(f"write webhook file: {e}") from e

    async def delete(self, webhook_id: str) -> None:
        try:
            await asyncio.to_thread(self._path(webhook_id).unlink)
        except FileNotFoundError as e:
            raise NotFoundError("webhook", webhook_id) from e
        except OSError as e:
            raise StorageError(f"delete webhook file: {e}") from e

    async def close(self) -> None:
        return None
