# src/tasknest/tasks/task_api.py

from __future__ import annotations

import logging

from ..ai.gateway import AIEnrichmentGateway
from .repository import TaskRepository
from .task_models import Priority, StoreResult, Task, TaskDraft

logger = logging.getLogger(__name__)


async def create_task_from_text(
    repo: TaskRepository,
    gateway: AIEnrichmentGateway | None,
    caller_id: str | None,
    text: str,
    *,
    use_ai: bool = True,
) -> StoreResult[Task | None]:
    """
    Convenience helper: turn one line of user input into a stored task.

    The literal text with medium priority and no tags is the default. When the
    gateway is available its parse (title/priority/tags/deadline) replaces the
    default; a failed or skipped parse never prevents the task from being created.
    """
    literal = (text or "").strip()
    draft = TaskDraft(title=literal, priority=Priority.MEDIUM, tags=[])

    if use_ai and gateway is not None and gateway.is_available():
        parsed = await gateway.parse_task(literal)
        if parsed is not None:
            draft.title = parsed.title
            draft.priority = parsed.priority
            draft.tags = list(parsed.tags or [])
            if parsed.deadline is not None:
                draft.deadline = parsed.deadline
        else:
            logger.debug("AI parse unavailable for input, using literal text.")

    return await repo.add_task(caller_id, draft)


async def rank_open_tasks(gateway: AIEnrichmentGateway | None, tasks: list[Task]) -> list[Task]:
    """
    Rank only the pending tasks; completed ones follow in their original order.
    """
    pending = [t for t in tasks if not t.completed]
    done = [t for t in tasks if t.completed]
    if gateway is None:
        return pending + done
    ranked = await gateway.rank_tasks(pending)
    return ranked + done
