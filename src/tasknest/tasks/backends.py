# src/tasknest/tasks/backends.py

"""
Backend selection.

Two TaskBackend variants:
- LocalBackend: the on-device LocalTaskStore behind the async TaskBackend port
  (its methods never actually suspend)
- the remote store (FirestoreTaskStore or any RemoteTaskStore)

BackendStrategy.select() is evaluated on every repository call and is the only
place that decides which one is preferred.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..core.errors import StoreUnreachable
from ..core.ports import RemoteTaskStore, TaskBackend
from .local_store import LocalTaskStore
from .task_models import Backend, Task, TaskDraft, apply_changes

logger = logging.getLogger(__name__)


class LocalBackend:
    """Adapts the synchronous LocalTaskStore to the TaskBackend port. caller_id is ignored."""

    def __init__(self, store: LocalTaskStore) -> None:
        self._store = store

    async def list_tasks(self, caller_id: str | None) -> list[Task]:
        return self._store.load_tasks()

    async def add_task(self, caller_id: str | None, draft: TaskDraft, *, now: datetime) -> Task:
        return self._store.add_task(draft, now=now)

    async def update_task(
        self,
        caller_id: str | None,
        task_id: str,
        changes: dict[str, Any],
        *,
        now: datetime,
    ) -> Task | None:
        current = self._store.get_task(task_id)
        if current is None:
            return None
        merged = apply_changes(current, changes, now=now)
        return merged if self._store.replace_task(merged) else None

    async def delete_task(self, caller_id: str | None, task_id: str) -> bool:
        return self._store.delete_task(task_id)


@dataclass(slots=True, frozen=True)
class Route:
    """
    Where a single call goes.

    preferred:  backend to try first
    kind:       which store `preferred` is
    fallback:   backend to use if `preferred` fails (None when preferred is already local)
    skipped:    set when the remote store was wanted but not ready; the call goes
                straight to local and is reported as a fallback
    """

    preferred: TaskBackend
    kind: Backend
    fallback: TaskBackend | None = None
    skipped: StoreUnreachable | None = None


class BackendStrategy:
    def __init__(self, local: LocalBackend, remote: RemoteTaskStore | None = None) -> None:
        self._local = local
        self._remote = remote

    @property
    def remote(self) -> RemoteTaskStore | None:
        return self._remote

    def select(self, caller_id: str | None) -> Route:
        """Remote when there is a caller and the remote store is ready right now; local otherwise."""
        if not caller_id or self._remote is None:
            return Route(preferred=self._local, kind=Backend.LOCAL)

        if not self._remote.is_ready():
            return Route(
                preferred=self._local,
                kind=Backend.LOCAL,
                skipped=StoreUnreachable("remote store is not initialized"),
            )

        return Route(preferred=self._remote, kind=Backend.REMOTE, fallback=self._local)
