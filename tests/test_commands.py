# tests/test_commands.py

from __future__ import annotations

import sqlite3

import pytest

from tasknest.cli.commands import CommandRegistry, registry
from tasknest.cli.main import _shutdown
from tasknest.core.state import AppState


@pytest.mark.asyncio
async def test_command_registry_routes_and_aliases(state: AppState) -> None:
    reg = CommandRegistry()
    called: list[list[str]] = []

    async def handler(state, args):
        called.append(args)
        return "ok"

    reg.register("a", handler, "a", aliases=["alpha"])

    assert await reg.handle(state, "/a x y") == "ok"
    assert await reg.handle(state, "/ALPHA") == "ok"
    assert called == [["x", "y"], []]
    assert "/a - a" in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state: AppState) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_add_list_done_rm_flow(state: AppState) -> None:
    reply = await registry.handle(state, "/add Buy milk")
    assert reply.startswith("Added: [ ] Buy milk (medium)")

    listing = await registry.handle(state, "/list")
    assert "Tasks (1):" in listing
    assert "1. [ ] Buy milk" in listing

    assert (await registry.handle(state, "/done 1")).startswith("Completed: Buy milk")
    assert "[x] Buy milk" in await registry.handle(state, "/ls")

    assert (await registry.handle(state, "/undo 1")).startswith("Reopened: Buy milk")
    assert (await registry.handle(state, "/rm 1")).startswith("Deleted.")
    assert await registry.handle(state, "/rm 1") == "Task no longer exists."
    assert await registry.handle(state, "/done nope") == "Task no longer exists."


@pytest.mark.asyncio
async def test_degraded_results_are_marked(state: AppState, remote) -> None:
    remote.fail = True
    reply = await registry.handle(state, "/add offline task")
    assert reply.endswith("[offline: local copy]")


@pytest.mark.asyncio
async def test_usage_messages(state: AppState) -> None:
    assert await registry.handle(state, "/add") == "Usage: /add <task text>"
    assert await registry.handle(state, "/done") == "Usage: /done <n|id>"
    assert await registry.handle(state, "/rm") == "Usage: /rm <n|id>"


@pytest.mark.asyncio
async def test_stats_and_analytics(state: AppState) -> None:
    await registry.handle(state, "/add one")
    await registry.handle(state, "/add two")
    await registry.handle(state, "/list")
    await registry.handle(state, "/done 1")

    stats = await registry.handle(state, "/stats")
    assert "total: 2" in stats
    assert "completed: 1" in stats
    assert "pending: 1" in stats

    analytics = await registry.handle(state, "/analytics")
    assert "completion rate: 50%" in analytics


@pytest.mark.asyncio
async def test_ai_toggle_and_unavailable_features(state: AppState) -> None:
    assert "AI: OFF" in await registry.handle(state, "/ai off")
    assert await registry.handle(state, "/insights") == "AI insights unavailable."
    assert "AI ranking unavailable" in await registry.handle(state, "/rank")
    assert "AI: ON (gateway available)" in await registry.handle(state, "/ai on")


@pytest.mark.asyncio
async def test_rank_and_insights_use_the_gateway(state: AppState, llm, clock) -> None:
    state.ai_enabled = False
    await registry.handle(state, "/add first")
    clock.advance(minutes=1)
    await registry.handle(state, "/add second")
    state.ai_enabled = True

    # Stored newest first: [second, first]; the model swaps them.
    llm.next_text = "[1, 0]"
    ranked = await registry.handle(state, "/rank")
    assert ranked.splitlines()[1:] == ["  1. [ ] first (medium)", "  2. [ ] second (medium)"]

    llm.next_text = '{"insights": [{"type": "summary", "content": "Two tasks open."}]}'
    assert await registry.handle(state, "/insights") == "  [summary] Two tasks open."


@pytest.mark.asyncio
async def test_ai_probe_replaces_the_client(state: AppState, llm) -> None:
    reply = await registry.handle(state, "/ai probe")
    assert "gateway available" in reply
    assert llm.closed is True


@pytest.mark.asyncio
async def test_local_store_failure_is_reported(state: AppState, local_store, monkeypatch) -> None:
    def _boom(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(local_store, "add_task", _boom)
    state.user_id = ""
    assert await registry.handle(state, "/add offline task") == "Task not saved. [local store unavailable]"


@pytest.mark.asyncio
async def test_shutdown_releases_clients(state: AppState, llm, remote) -> None:
    state.subscriptions.append(await state.repository.subscribe_to_tasks(state.user_id, lambda tasks: None))
    assert remote.listeners

    await _shutdown(state)
    assert state.subscriptions == []
    assert remote.listeners == {}
    assert llm.closed is True
    assert remote.closed is True
