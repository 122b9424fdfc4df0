# src/tasknest/tasks/remote_store.py

"""
Firestore-backed remote task store.

One document per task in a single collection; documents carry `userId` and
all queries filter on it. The google-cloud-firestore client is synchronous,
so every call runs in a worker thread and the coroutine suspends on it.

The client is created lazily. If creation fails (no credentials, no project)
the store reports itself as not ready and tries again on the next call, so a
store that was failing may start working without any reconnect step.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from google.api_core import exceptions as gexc
from google.cloud import firestore
from google.cloud.firestore import FieldFilter

from ..core.errors import RecordDecodeError, StoreUnreachable
from ..core.ports import Disposer, TasksListener
from .task_codec import changes_to_document, task_from_document, task_to_document
from .task_models import Task, TaskDraft, apply_changes

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_COLLECTION = "tasks"


def default_client_factory(project: str | None = None, database: str | None = None) -> Callable[[], Any]:
    def _make() -> firestore.Client:
        kwargs: dict[str, Any] = {}
        if project:
            kwargs["project"] = project
        if database:
            kwargs["database"] = database
        return firestore.Client(**kwargs)

    return _make


class FirestoreTaskStore:
    def __init__(
        self,
        *,
        client_factory: Callable[[], Any] | None = None,
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        self._client_factory = client_factory or default_client_factory()
        self._client: Any | None = None
        self._collection = collection

    @classmethod
    def from_settings(cls, settings: Any) -> FirestoreTaskStore:
        return cls(
            client_factory=default_client_factory(
                getattr(settings, "firestore_project", None),
                getattr(settings, "firestore_database", None),
            ),
            collection=getattr(settings, "firestore_collection", DEFAULT_COLLECTION) or DEFAULT_COLLECTION,
        )

    # ---- client lifecycle ----

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        try:
            self._client = self._client_factory()
        except Exception as e:
            raise StoreUnreachable(f"Firestore client could not be created: {e}") from e
        logger.info("Firestore client ready collection=%s", self._collection)
        return self._client

    def is_ready(self) -> bool:
        try:
            self._get_client()
        except StoreUnreachable as e:
            logger.debug("Remote store not ready: %s", e)
            return False
        return True

    def close(self) -> None:
        client, self._client = self._client, None
        close = getattr(client, "close", None)
        if callable(close):
            close()

    # ---- helpers ----

    def _tasks_query(self, client: Any, caller_id: str) -> Any:
        return (
            client.collection(self._collection)
            .where(filter=FieldFilter("userId", "==", caller_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )

    async def _call(self, what: str, fn: Callable[[Any], R]) -> R:
        client = self._get_client()
        try:
            return await asyncio.to_thread(fn, client)
        except (StoreUnreachable, RecordDecodeError):
            raise
        except Exception as e:
            raise StoreUnreachable(f"Firestore {what} failed: {e}") from e

    # ---- TaskBackend ----

    async def list_tasks(self, caller_id: str | None) -> list[Task]:
        if not caller_id:
            raise StoreUnreachable("remote store requires a caller id")

        def _run(client: Any) -> list[Task]:
            return [task_from_document(snap.id, snap.to_dict()) for snap in self._tasks_query(client, caller_id).stream()]

        tasks = await self._call("query", _run)
        logger.debug("Remote tasks listed user=%s count=%d", caller_id, len(tasks))
        return tasks

    async def add_task(self, caller_id: str | None, draft: TaskDraft, *, now: datetime) -> Task:
        if not caller_id:
            raise StoreUnreachable("remote store requires a caller id")

        def _run(client: Any) -> Task:
            task = Task.from_draft(draft, task_id="", now=now, user_id=caller_id)
            _update_time, ref = client.collection(self._collection).add(task_to_document(task, user_id=caller_id))
            task.id = str(ref.id)
            return task

        task = await self._call("add", _run)
        logger.debug("Remote task added id=%s user=%s", task.id, caller_id)
        return task

    async def update_task(
        self,
        caller_id: str | None,
        task_id: str,
        changes: dict[str, Any],
        *,
        now: datetime,
    ) -> Task | None:
        if not caller_id:
            raise StoreUnreachable("remote store requires a caller id")

        def _run(client: Any) -> Task | None:
            ref = client.collection(self._collection).document(task_id)
            snap = ref.get()
            if not snap.exists:
                return None
            current = task_from_document(snap.id, snap.to_dict())
            if current.user_id != caller_id:
                return None
            merged = apply_changes(current, changes, now=now)
            try:
                ref.update(changes_to_document({**changes, "updated_at": merged.updated_at}))
            except gexc.NotFound:
                # Deleted between the read and the write.
                return None
            return merged

        return await self._call("update", _run)

    async def delete_task(self, caller_id: str | None, task_id: str) -> bool:
        if not caller_id:
            raise StoreUnreachable("remote store requires a caller id")

        def _run(client: Any) -> bool:
            ref = client.collection(self._collection).document(task_id)
            snap = ref.get()
            if not snap.exists:
                return False
            data = snap.to_dict() or {}
            if data.get("userId") != caller_id:
                return False
            ref.delete()
            return True

        return await self._call("delete", _run)

    # ---- push feed ----

    def watch_tasks(self, caller_id: str, on_change: TasksListener) -> Disposer:
        """
        Start a snapshot listener for the caller's tasks.

        on_change runs on the Firestore listener thread with the full, ordered
        task list. A snapshot that cannot be decoded is dropped (the next one
        may succeed). Raises StoreUnreachable if the listener cannot be set up.
        """
        client = self._get_client()

        def _on_snapshot(docs: list[Any], _changes: Any, _read_time: Any) -> None:
            try:
                tasks = [task_from_document(d.id, d.to_dict()) for d in docs]
            except RecordDecodeError as e:
                logger.warning("Dropping undecodable task snapshot user=%s: %s", caller_id, e)
                return
            on_change(tasks)

        try:
            watch = self._tasks_query(client, caller_id).on_snapshot(_on_snapshot)
        except Exception as e:
            raise StoreUnreachable(f"Firestore listener failed: {e}") from e

        logger.info("Remote task listener started user=%s", caller_id)
        return watch.unsubscribe
