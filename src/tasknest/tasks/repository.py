# src/tasknest/tasks/repository.py

"""
Task repository (sync facade).

The single entry point for reading and writing tasks. For every call it:
- asks BackendStrategy which store to prefer (remote for a signed-in caller
  whose remote store is ready, local otherwise),
- on a remote failure, repeats the call against the local store,
- stamps created_at/updated_at itself,
- returns a StoreResult saying what actually happened (ok / fallback / not_found / failed).

There is no reconciliation between stores: a write that fell back to local
stays local, and readers of the remote store will not see it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime
from typing import Any, TypeVar

from ..core.ports import Disposer, RemoteTaskStore, TaskBackend, TasksListener
from .backends import BackendStrategy, LocalBackend
from .local_store import LocalTaskStore
from .task_codec import as_aware
from .task_models import (
    IMMUTABLE_FIELDS,
    Backend,
    Outcome,
    Priority,
    StoreResult,
    Task,
    TaskDraft,
    clean_changes,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


def local_now() -> datetime:
    return datetime.now().astimezone()


def _noop() -> None:
    return None


class TaskRepository:
    def __init__(
        self,
        local: LocalTaskStore,
        remote: RemoteTaskStore | None = None,
        *,
        clock: Clock = local_now,
    ) -> None:
        self._strategy = BackendStrategy(LocalBackend(local), remote)
        self._clock = clock

    @property
    def has_remote(self) -> bool:
        return self._strategy.remote is not None

    def close(self) -> None:
        """Release the remote store client, if any. The local store holds no open connections."""
        remote = self._strategy.remote
        if remote is not None:
            remote.close()

    def _now(self) -> datetime:
        return as_aware(self._clock())

    async def _run(
        self,
        op: str,
        caller_id: str | None,
        call: Callable[[TaskBackend], Awaitable[T]],
        *,
        empty: T,
        found: Callable[[T], bool] | None = None,
    ) -> StoreResult[T]:
        route = self._strategy.select(caller_id)
        error: Exception | None = route.skipped
        served_by = route.kind

        if route.skipped is not None:
            logger.info("%s: remote store unavailable for user=%s, using local store", op, caller_id)

        try:
            if route.fallback is None:
                value = await call(route.preferred)
            else:
                try:
                    value = await call(route.preferred)
                except Exception as e:
                    logger.warning(
                        "%s: remote store failed for user=%s, falling back to local store: %s", op, caller_id, e
                    )
                    error = e
                    served_by = Backend.LOCAL
                    value = await call(route.fallback)
        except sqlite3.Error as e:
            logger.exception("%s: local store failed", op)
            return StoreResult(value=empty, outcome=Outcome.FAILED, backend=Backend.LOCAL, error=e)

        if found is not None and not found(value):
            outcome = Outcome.NOT_FOUND
        elif error is not None:
            outcome = Outcome.FALLBACK
        else:
            outcome = Outcome.OK
        return StoreResult(value=value, outcome=outcome, backend=served_by, error=error)

    # ---- public API ----
    #
    # None of the four operations raises on a store failure. A remote failure
    # is served locally (fallback); a local sqlite failure is reported as
    # outcome failed with an empty value ([] / None / None / False).

    async def get_tasks(self, caller_id: str | None) -> StoreResult[list[Task]]:
        """All tasks visible to the caller. The worst case is an empty list with outcome failed."""
        return await self._run("get_tasks", caller_id, lambda b: b.list_tasks(caller_id), empty=[])

    async def add_task(self, caller_id: str | None, draft: TaskDraft) -> StoreResult[Task | None]:
        """
        Store a new task and return it with its id and timestamps.

        A blank title raises ValueError. If no store could take the write the
        value is None and the outcome is failed.
        """
        title = (draft.title or "").strip()
        if not title:
            raise ValueError("title is required")

        draft = replace(
            draft,
            title=title,
            priority=Priority.parse(draft.priority),
            deadline=as_aware(draft.deadline) if draft.deadline is not None else None,
            tags=[str(t) for t in draft.tags or []],
        )
        now = self._now()
        result = await self._run(
            "add_task", caller_id, lambda b: b.add_task(caller_id, draft, now=now), empty=None
        )
        if result.value is not None:
            logger.info("Task added id=%s backend=%s outcome=%s", result.value.id, result.backend, result.outcome)
        return result

    async def update_task(
        self,
        caller_id: str | None,
        task_id: str,
        changes: dict[str, Any],
    ) -> StoreResult[Task | None]:
        """
        Merge `changes` onto the stored task.

        id/created_at/updated_at/user_id are owned by the repository and ignored
        if present; unknown keys are ignored with a warning. A missing task is
        reported as outcome not_found with value None; a local store failure as
        outcome failed with value None.
        """
        accepted, ignored = clean_changes(changes)
        unknown = [k for k in ignored if k not in IMMUTABLE_FIELDS]
        if unknown:
            logger.warning("update_task: ignoring unknown fields %s", ", ".join(sorted(unknown)))
        if accepted.get("deadline") is not None:
            accepted["deadline"] = as_aware(accepted["deadline"])

        now = self._now()
        result = await self._run(
            "update_task",
            caller_id,
            lambda b: b.update_task(caller_id, task_id, accepted, now=now),
            empty=None,
            found=lambda t: t is not None,
        )
        if result.not_found:
            logger.info("update_task: task %s not found (backend=%s)", task_id, result.backend)
        return result

    async def delete_task(self, caller_id: str | None, task_id: str) -> StoreResult[bool]:
        """Remove a task. Value False with outcome not_found (missing) or failed (local store error)."""
        result = await self._run(
            "delete_task",
            caller_id,
            lambda b: b.delete_task(caller_id, task_id),
            empty=False,
            found=bool,
        )
        if result.value:
            logger.info("Task deleted id=%s backend=%s", task_id, result.backend)
        return result

    async def subscribe_to_tasks(self, caller_id: str | None, on_change: TasksListener) -> Disposer:
        """
        Push feed of the caller's remote tasks.

        on_change receives the full task list on every backend change and is
        always invoked on the event loop that subscribed. Without a caller or a
        ready remote store this returns a no-op disposer and never calls on_change.
        """
        remote = self._strategy.remote
        if not caller_id or remote is None or not remote.is_ready():
            return _noop

        loop = asyncio.get_running_loop()
        active = True

        def _deliver(tasks: list[Task]) -> None:
            if active:
                on_change(tasks)

        def _from_listener(tasks: list[Task]) -> None:
            if not active:
                return
            # The loop may already be closed during shutdown.
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(_deliver, tasks)

        try:
            stop = remote.watch_tasks(caller_id, _from_listener)
        except Exception as e:
            logger.warning("subscribe_to_tasks: remote listener unavailable for user=%s: %s", caller_id, e)
            return _noop

        def dispose() -> None:
            nonlocal active
            if not active:
                return
            active = False
            try:
                stop()
            except Exception:
                logger.debug("Remote listener stop failed.", exc_info=True)

        return dispose
