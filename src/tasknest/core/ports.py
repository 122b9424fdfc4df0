# src/tasknest/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The repository and the AI gateway depend on Protocols instead of concrete
implementations. This keeps Firestore / OpenRouter swappable and makes
testing with in-memory fakes straightforward.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from ..tasks.task_models import Task, TaskDraft

TasksListener = Callable[[list[Task]], None]
Disposer = Callable[[], None]


class LLMClient(Protocol):
    """Single-shot completion client (OpenAI/OpenRouter-compatible)."""

    async def complete(self, prompt: str, *, system_prompt: str | None = None) -> str: ...


class TaskBackend(Protocol):
    """
    One place tasks can live. The repository picks a backend per call.

    caller_id is used by backends partitioned by identity and ignored otherwise.
    update_task/delete_task report a missing record as None/False.
    """

    async def list_tasks(self, caller_id: str | None) -> list[Task]: ...

    async def add_task(self, caller_id: str | None, draft: TaskDraft, *, now: datetime) -> Task: ...

    async def update_task(
            self,
            caller_id: str | None,
            task_id: str,
            changes: dict[str, Any],
            *,
            now: datetime,
    ) -> Task | None: ...

    async def delete_task(self, caller_id: str | None, task_id: str) -> bool: ...


class RemoteTaskStore(TaskBackend, Protocol):
    """
    Cloud document store partitioned by caller identity.

    is_ready() is checked before every call; it may try to (re)initialize the
    underlying client and must not raise.
    """

    def is_ready(self) -> bool: ...

    def watch_tasks(self, caller_id: str, on_change: TasksListener) -> Disposer: ...

    def close(self) -> None: ...
