# tests/test_task_api.py

from __future__ import annotations

from datetime import datetime

import pytest

from tasknest.ai.gateway import AIEnrichmentGateway
from tasknest.tasks.repository import TaskRepository
from tasknest.tasks.task_api import create_task_from_text, rank_open_tasks
from tasknest.tasks.task_models import Outcome, Priority, Task

from .conftest import USER
from .fakes import FakeLLMClient

NOW = datetime(2024, 3, 13, 12, 0).astimezone()


@pytest.mark.asyncio
async def test_unavailable_ai_still_creates_literal_task(repo: TaskRepository) -> None:
    gw = AIEnrichmentGateway(None)
    result = await create_task_from_text(repo, gw, USER, "Buy milk")

    assert result.outcome is Outcome.OK
    task = result.value
    assert task.title == "Buy milk"
    assert task.priority is Priority.MEDIUM
    assert task.tags == []
    assert task.deadline is None


@pytest.mark.asyncio
async def test_failed_parse_still_creates_literal_task(repo: TaskRepository, clock) -> None:
    gw = AIEnrichmentGateway(lambda: FakeLLMClient(error=RuntimeError("boom")), clock=clock)
    task = (await create_task_from_text(repo, gw, None, "  Buy milk ")).value
    assert (task.title, task.priority, task.tags) == ("Buy milk", Priority.MEDIUM, [])


@pytest.mark.asyncio
async def test_parsed_fields_are_used(repo: TaskRepository, gateway, llm) -> None:
    llm.next_text = '{"title": "Fix auth bug", "priority": "high", "tags": ["bug"], "deadline": null}'
    task = (await create_task_from_text(repo, gateway, USER, "URGENT: fix auth bug")).value
    assert task.title == "Fix auth bug"
    assert task.priority is Priority.HIGH
    assert task.tags == ["bug"]


@pytest.mark.asyncio
async def test_ai_can_be_switched_off_per_call(repo: TaskRepository, gateway, llm) -> None:
    task = (await create_task_from_text(repo, gateway, USER, "URGENT: x", use_ai=False)).value
    assert task.title == "URGENT: x"
    assert llm.calls == []


@pytest.mark.asyncio
async def test_rank_open_tasks_keeps_completed_at_the_end(gateway, llm) -> None:
    tasks = [
        Task(id="a", title="a", created_at=NOW, updated_at=NOW),
        Task(id="done", title="done", created_at=NOW, updated_at=NOW, completed=True),
        Task(id="b", title="b", created_at=NOW, updated_at=NOW),
        Task(id="c", title="c", created_at=NOW, updated_at=NOW),
    ]
    llm.next_text = "[2, 1, 0]"
    ranked = await rank_open_tasks(gateway, tasks)
    assert [t.id for t in ranked] == ["c", "b", "a", "done"]

    llm.next_text = "[5]"
    assert [t.id for t in await rank_open_tasks(gateway, tasks)] == ["a", "b", "c", "done"]
    assert [t.id for t in await rank_open_tasks(None, tasks)] == ["a", "b", "c", "done"]
