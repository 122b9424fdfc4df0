# src/tasknest/tasks/local_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.errors import RecordDecodeError
from .task_codec import task_from_record, task_to_record
from .task_models import Task, TaskDraft

logger = logging.getLogger(__name__)

DEFAULT_TASKS_KEY = "ai-todo-tasks"


class KeyValueStore:
    """
    SQLite-backed key-value store: the on-device persisted cache.

    The schema is a single table (key TEXT PRIMARY KEY, value TEXT).
    Values are opaque strings; callers decide the encoding.

    Thread-safety:
    - each method opens its own SQLite connection
    - there is no locking across calls: concurrent writers to one key, last write wins
    """

    def __init__(self, db_path: str | Path = "local_store.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get_item(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return None if row is None else str(row[0])
        finally:
            conn.close()

    def set_item(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO kv(key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def remove_item(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()


def new_local_task_id(now: datetime) -> str:
    """Client-side id: task-<epoch ms>-<9 hex chars>."""
    return f"task-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


class LocalTaskStore:
    """
    Tasks kept as one JSON array under a single well-known key.

    Every operation is synchronous and reads/writes the whole array; there is
    no transaction spanning more than one call. Newest tasks are stored first.

    Writes edit the raw record list: records that cannot be decoded and keys
    this module does not know (e.g. `attachments`) are written back untouched.
    Only the target record, matched by id, is replaced or removed.
    """

    def __init__(self, kv: KeyValueStore, *, key: str = DEFAULT_TASKS_KEY) -> None:
        self._kv = kv
        self._key = key
        logger.info("LocalTaskStore ready db=%s key=%s", kv.db_path, key)

    @property
    def key(self) -> str:
        return self._key

    @property
    def corrupt_key(self) -> str:
        return f"{self._key}.corrupt"

    def _load_records(self, *, for_write: bool = False) -> list[Any]:
        raw = self._kv.get_item(self._key)
        if not raw:
            return []
        try:
            records = json.loads(raw)
        except ValueError:
            logger.exception("Local tasks under key=%s are not valid JSON; treating as empty.", self._key)
            records = None
        if not isinstance(records, list):
            if records is not None:
                logger.error("Local tasks under key=%s are not a JSON array; treating as empty.", self._key)
            if for_write:
                # The next write starts a fresh list; keep the unreadable payload aside.
                self._kv.set_item(self.corrupt_key, raw)
                logger.warning("Unreadable local tasks moved to key=%s", self.corrupt_key)
            return []
        return records

    def _save_records(self, records: list[Any]) -> None:
        self._kv.set_item(self._key, json.dumps(records, ensure_ascii=False))

    @staticmethod
    def _record_id(record: Any) -> str | None:
        if not isinstance(record, dict) or record.get("id") is None:
            return None
        return str(record["id"])

    def load_tasks(self) -> list[Task]:
        tasks: list[Task] = []
        for rec in self._load_records():
            try:
                tasks.append(task_from_record(rec))
            except RecordDecodeError as e:
                logger.warning("Skipping malformed local task record: %s", e)
        return tasks

    def add_task(self, draft: TaskDraft, *, now: datetime) -> Task:
        task = Task.from_draft(draft, task_id=new_local_task_id(now), now=now, user_id=None)
        records = self._load_records(for_write=True)
        records.insert(0, task_to_record(task))
        self._save_records(records)
        logger.debug("Local task added id=%s", task.id)
        return task

    def get_task(self, task_id: str) -> Task | None:
        for rec in self._load_records():
            if self._record_id(rec) != task_id:
                continue
            try:
                return task_from_record(rec)
            except RecordDecodeError as e:
                logger.warning("Local task %s cannot be decoded: %s", task_id, e)
                return None
        return None

    def replace_task(self, task: Task) -> bool:
        """Write back a modified task in place, keeping unknown keys. False if it no longer exists."""
        records = self._load_records(for_write=True)
        for i, rec in enumerate(records):
            if self._record_id(rec) == task.id:
                records[i] = {**rec, **task_to_record(task)}
                self._save_records(records)
                return True
        return False

    def delete_task(self, task_id: str) -> bool:
        records = self._load_records(for_write=True)
        kept = [rec for rec in records if self._record_id(rec) != task_id]
        if len(kept) == len(records):
            return False
        self._save_records(kept)
        logger.debug("Local task deleted id=%s", task_id)
        return True

    def count_tasks(self) -> int:
        return len(self.load_tasks())

    def dump_records(self) -> list[Any]:
        """Raw serialized records, as stored."""
        return self._load_records()
