from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

COLLECTIONS = ("threads", "messages", "runs")

_COLLECTIONS_DDL = """
CREATE TABLE IF NOT EXISTS collections (
    name TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def _empty_state() -> dict[str, dict[str, Any]]:
    return {name: {} for name in COLLECTIONS}


class PersistenceAdapter(ABC):
    """Write-through durable copy of threads, messages and runs.

    State is held as three JSON-serialisable collections:
    ``threads`` (thread id -> thread), ``messages`` (thread id -> ordered
    message list) and ``runs`` (thread id -> run id -> run). Every ``save_*``
    and ``delete_*`` rewrites the full state to the durable medium before
    returning.
    """

    def __init__(self) -> None:
        self._data = _empty_state()
        self._write_lock = asyncio.Lock()

    async def init(self) -> None:
        """Read the durable record into memory; absence means empty state."""
        raw = await asyncio.to_thread(self._read_snapshot)
        data = _empty_state()
        if raw:
            for name in COLLECTIONS:
                value = raw.get(name)
                if isinstance(value, dict):
                    data[name] = value
        self._data = data
        logger.info(
            "Persistence loaded %d thread(s) from %s",
            len(self._data["threads"]),
            self.location,
        )

    async def close(self) -> None:  # pragma: no cover - nothing to release
        return None

    @property
    @abstractmethod
    def location(self) -> str: ...

    async def save_thread(self, thread: dict[str, Any]) -> None:
        self._data["threads"][thread["id"]] = thread
        await self._flush()

    async def load_thread(self, thread_id: str) -> Optional[dict[str, Any]]:
        return self._data["threads"].get(thread_id)

    async def list_threads(self) -> list[dict[str, Any]]:
        return list(self._data["threads"].values())

    async def delete_thread(self, thread_id: str) -> None:
        for name in COLLECTIONS:
            self._data[name].pop(thread_id, None)
        await self._flush()

    async def save_message(self, thread_id: str, message: dict[str, Any]) -> None:
        messages = self._data["messages"].setdefault(thread_id, [])
        for index, existing in enumerate(messages):
            if existing.get("id") == message["id"]:
                messages[index] = message
                break
        else:
            messages.append(message)
        await self._flush()

    async def load_messages(self, thread_id: str) -> list[dict[str, Any]]:
        return list(self._data["messages"].get(thread_id, []))

    async def save_run(self, thread_id: str, run: dict[str, Any]) -> None:
        self._data["runs"].setdefault(thread_id, {})[run["id"]] = run
        await self._flush()

    async def load_run(self, thread_id: str, run_id: str) -> Optional[dict[str, Any]]:
        return self._data["runs"].get(thread_id, {}).get(run_id)

    async def list_runs(self, thread_id: str) -> list[dict[str, Any]]:
        return list(self._data["runs"].get(thread_id, {}).values())

    async def _flush(self) -> None:
        payload = {name: json.dumps(self._data[name], ensure_ascii=False) for name in COLLECTIONS}
        async with self._write_lock:
            await asyncio.to_thread(self._write_snapshot, payload)

    @abstractmethod
    def _read_snapshot(self) -> Optional[dict[str, Any]]: ...

    @abstractmethod
    def _write_snapshot(self, payload: dict[str, str]) -> None: ...


def _normalise_path(raw_path: str, suffix: str) -> Path:
    path = Path(raw_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    if path.suffix != suffix:
        path = path.with_suffix(suffix)
    return path


class SQLitePersistence(PersistenceAdapter):
    """Stores each collection as one JSON row of a ``collections`` table."""

    def __init__(self, db_path: str) -> None:
        super().__init__()
        self._db_path = str(_normalise_path(db_path, ".db"))

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def location(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA journal_mode = WAL;")
        connection.execute(_COLLECTIONS_DDL)
        return connection

    def _read_snapshot(self) -> Optional[dict[str, Any]]:
        if not Path(self._db_path).exists():
            return None
        connection = self._connect()
        try:
            rows = connection.execute("SELECT name, payload FROM collections").fetchall()
        finally:
            connection.close()
        return {row["name"]: json.loads(row["payload"]) for row in rows}

    def _write_snapshot(self, payload: dict[str, str]) -> None:
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc).replace(microsecond=0).isoformat()
        connection = self._connect()
        try:
            with connection:
                connection.executemany(
                    "INSERT INTO collections (name, payload, updated_at) VALUES (?, ?, ?)"
                    " ON CONFLICT(name) DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at",
                    [(name, body, now) for name, body in payload.items()],
                )
        finally:
            connection.close()


class JSONFilePersistence(PersistenceAdapter):
    """Stores the whole state as a single JSON document, replaced atomically."""

    def __init__(self, file_path: str) -> None:
        super().__init__()
        self._file_path = _normalise_path(file_path, ".json")

    @property
    def location(self) -> str:
        return str(self._file_path)

    def _read_snapshot(self) -> Optional[dict[str, Any]]:
        if not self._file_path.exists():
            return None
        with self._file_path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def _write_snapshot(self, payload: dict[str, str]) -> None:
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        document = "{" + ", ".join(f"{json.dumps(name)}: {body}" for name, body in payload.items()) + "}"
        fd, tmp_name = tempfile.mkstemp(dir=self._file_path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document)
            os.replace(tmp_name, self._file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def create_persistence(backend: str, path: str) -> PersistenceAdapter:
    if backend == "json":
        return JSONFilePersistence(path)
    if backend == "sqlite":
        return SQLitePersistence(path)
    raise ValueError(f"Unknown storage backend {backend!r}")
