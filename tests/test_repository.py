# tests/test_repository.py

from __future__ import annotations

import asyncio
import sqlite3

import pytest

from tasknest.core.errors import StoreUnreachable
from tasknest.tasks.repository import TaskRepository
from tasknest.tasks.task_models import Backend, Outcome, Priority, TaskDraft

from .conftest import USER


@pytest.mark.asyncio
async def test_no_caller_uses_local_store(repo: TaskRepository, remote, local_store) -> None:
    added = await repo.add_task(None, TaskDraft(title="offline"))
    assert added.outcome is Outcome.OK
    assert added.backend is Backend.LOCAL
    assert added.value.id.startswith("task-")
    assert added.value.user_id is None

    listed = await repo.get_tasks("")
    assert [t.title for t in listed.value] == ["offline"]
    assert remote.calls == []


@pytest.mark.asyncio
async def test_signed_in_caller_uses_remote_store(repo: TaskRepository, remote, local_store) -> None:
    added = await repo.add_task(USER, TaskDraft(title="  synced  ", priority="high"))
    assert added.ok
    assert added.backend is Backend.REMOTE
    assert added.value.title == "synced"
    assert added.value.priority is Priority.HIGH
    assert added.value.user_id == USER

    listed = await repo.get_tasks(USER)
    assert [t.id for t in listed.value] == [added.value.id]
    assert local_store.count_tasks() == 0


@pytest.mark.asyncio
async def test_remote_failure_falls_back_to_local(repo: TaskRepository, remote, local_store) -> None:
    remote.fail = True

    added = await repo.add_task(USER, TaskDraft(title="kept locally"))
    assert added.outcome is Outcome.FALLBACK
    assert added.backend is Backend.LOCAL
    assert isinstance(added.error, StoreUnreachable)
    assert local_store.get_task(added.value.id) is not None

    listed = await repo.get_tasks(USER)
    assert listed.degraded
    assert [t.title for t in listed.value] == ["kept locally"]

    updated = await repo.update_task(USER, added.value.id, {"completed": True})
    assert updated.degraded
    assert updated.value.completed is True

    deleted = await repo.delete_task(USER, added.value.id)
    assert deleted.degraded
    assert deleted.value is True
    assert remote.calls == ["add", "list", "update", "delete"]


@pytest.mark.asyncio
async def test_fallback_writes_are_not_reconciled(repo: TaskRepository, remote) -> None:
    remote.fail = True
    await repo.add_task(USER, TaskDraft(title="stays local"))

    remote.fail = False
    listed = await repo.get_tasks(USER)
    assert listed.ok
    assert listed.value == []


@pytest.mark.asyncio
async def test_remote_not_ready_is_reported_as_fallback(repo: TaskRepository, remote) -> None:
    remote.ready = False

    result = await repo.get_tasks(USER)
    assert result.outcome is Outcome.FALLBACK
    assert result.backend is Backend.LOCAL
    assert isinstance(result.error, StoreUnreachable)
    assert remote.calls == []


@pytest.mark.asyncio
async def test_without_remote_store_everything_is_local(local_store, clock) -> None:
    repo = TaskRepository(local_store, clock=clock)
    assert repo.has_remote is False

    result = await repo.add_task(USER, TaskDraft(title="solo"))
    assert result.ok
    assert result.backend is Backend.LOCAL


@pytest.mark.asyncio
async def test_add_requires_a_title(repo: TaskRepository) -> None:
    with pytest.raises(ValueError):
        await repo.add_task(USER, TaskDraft(title="   "))


@pytest.mark.asyncio
@pytest.mark.parametrize("caller", [None, USER])
async def test_update_keeps_identity_and_advances_updated_at(repo: TaskRepository, clock, caller) -> None:
    added = (await repo.add_task(caller, TaskDraft(title="draft"))).value
    clock.advance(hours=1)

    result = await repo.update_task(
        caller,
        added.id,
        {"title": "final", "completed": True, "id": "other", "created_at": clock.now, "nonsense": 1},
    )
    assert result.ok
    task = result.value
    assert task.id == added.id
    assert task.created_at == added.created_at
    assert task.updated_at == clock.now
    assert task.updated_at > added.updated_at
    assert task.title == "final"
    assert task.completed is True

    [stored] = (await repo.get_tasks(caller)).value
    assert stored.title == "final"
    assert stored.created_at == added.created_at


@pytest.mark.asyncio
@pytest.mark.parametrize("caller", [None, USER])
async def test_update_missing_task_is_not_found(repo: TaskRepository, caller) -> None:
    result = await repo.update_task(caller, "nope", {"completed": True})
    assert result.not_found
    assert result.value is None


@pytest.mark.asyncio
async def test_not_found_after_fallback_keeps_the_error(repo: TaskRepository, remote) -> None:
    remote.fail = True
    result = await repo.update_task(USER, "nope", {"completed": True})
    assert result.outcome is Outcome.NOT_FOUND
    assert result.backend is Backend.LOCAL
    assert result.error is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("caller", [None, USER])
async def test_second_delete_reports_not_found(repo: TaskRepository, caller) -> None:
    added = (await repo.add_task(caller, TaskDraft(title="temp"))).value

    first = await repo.delete_task(caller, added.id)
    assert first.ok and first.value is True

    second = await repo.delete_task(caller, added.id)
    assert second.not_found
    assert second.value is False


@pytest.mark.asyncio
async def test_other_users_tasks_are_invisible(repo: TaskRepository) -> None:
    added = (await repo.add_task("someone-else", TaskDraft(title="private"))).value

    assert (await repo.get_tasks(USER)).value == []
    assert (await repo.update_task(USER, added.id, {"completed": True})).not_found
    assert (await repo.delete_task(USER, added.id)).not_found


@pytest.mark.asyncio
async def test_unreadable_local_store_yields_empty_list(repo: TaskRepository, local_store, monkeypatch) -> None:
    def _boom():
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(local_store, "load_tasks", _boom)
    result = await repo.get_tasks(None)
    assert result.value == []
    assert result.failed
    assert isinstance(result.error, sqlite3.Error)


@pytest.mark.asyncio
@pytest.mark.parametrize("remote_fails", [False, True])
async def test_local_write_failures_are_reported_not_raised(
    repo: TaskRepository, local_store, remote, monkeypatch, remote_fails
) -> None:
    caller = USER if remote_fails else None
    remote.fail = remote_fails

    def _boom(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    for name in ("add_task", "get_task", "delete_task"):
        monkeypatch.setattr(local_store, name, _boom)

    added = await repo.add_task(caller, TaskDraft(title="x"))
    assert added.outcome is Outcome.FAILED
    assert added.value is None

    updated = await repo.update_task(caller, "task-1", {"completed": True})
    assert updated.failed and updated.value is None

    deleted = await repo.delete_task(caller, "task-1")
    assert deleted.failed and deleted.value is False
    assert isinstance(deleted.error, sqlite3.Error)


def test_close_releases_the_remote_store(repo: TaskRepository, remote) -> None:
    repo.close()
    assert remote.closed is True


# ---- subscriptions ----


@pytest.mark.asyncio
async def test_subscribe_without_caller_is_noop(repo: TaskRepository, remote) -> None:
    seen: list = []
    dispose = await repo.subscribe_to_tasks(None, seen.append)
    await repo.add_task(None, TaskDraft(title="x"))
    await asyncio.sleep(0)

    assert seen == []
    assert remote.listeners == {}
    dispose()
    dispose()


@pytest.mark.asyncio
async def test_subscribe_when_remote_not_ready_is_noop(repo: TaskRepository, remote) -> None:
    remote.ready = False
    seen: list = []
    dispose = await repo.subscribe_to_tasks(USER, seen.append)
    await asyncio.sleep(0)
    assert seen == []
    dispose()


@pytest.mark.asyncio
async def test_subscribe_listener_failure_is_noop(repo: TaskRepository, remote) -> None:
    remote.fail = True
    dispose = await repo.subscribe_to_tasks(USER, lambda tasks: None)
    assert remote.listeners == {}
    dispose()


@pytest.mark.asyncio
async def test_subscribe_delivers_until_disposed(repo: TaskRepository, remote) -> None:
    seen: list[list[str]] = []
    dispose = await repo.subscribe_to_tasks(USER, lambda tasks: seen.append([t.title for t in tasks]))
    await asyncio.sleep(0)
    assert seen == [[]]

    await repo.add_task(USER, TaskDraft(title="pushed"))
    await asyncio.sleep(0)
    assert seen[-1] == ["pushed"]

    dispose()
    dispose()
    assert remote.listeners == {}

    await repo.add_task(USER, TaskDraft(title="after"))
    await asyncio.sleep(0)
    assert seen[-1] == ["pushed"]
