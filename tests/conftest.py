# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasknest.ai.gateway import AIEnrichmentGateway
from tasknest.core.state import AppState
from tasknest.tasks.local_store import KeyValueStore, LocalTaskStore
from tasknest.tasks.repository import TaskRepository

from .fakes import FakeClock, FakeLLMClient, FakeRemoteStore

USER = "user-1"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap helpers.

    A SimpleNamespace rather than the real config keeps tests independent of
    the process environment.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        local_db_path=tmp_path / "local_store.sqlite3",
        local_tasks_key="ai-todo-tasks",
        user_id=USER,
        remote_enabled=False,
        firestore_project=None,
        firestore_database=None,
        firestore_collection="tasks",
        ai_enabled=True,
        ai_timeout_seconds=1.0,
        openrouter_api_key=None,
        openrouter_base_url="https://openrouter.ai/api/v1",
        llm_models=["test/model"],
        extra_headers={},
        llm_connect_timeout_seconds=1.0,
        llm_read_timeout_seconds=1.0,
    )


@pytest.fixture()
def clock() -> FakeClock:
    # Midday keeps day/week boundaries away from DST edges.
    return FakeClock(datetime(2024, 3, 13, 12, 0).astimezone())


@pytest.fixture()
def local_store(settings: SimpleNamespace) -> LocalTaskStore:
    return LocalTaskStore(KeyValueStore(settings.local_db_path), key=settings.local_tasks_key)


@pytest.fixture()
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture()
def repo(local_store: LocalTaskStore, remote: FakeRemoteStore, clock: FakeClock) -> TaskRepository:
    return TaskRepository(local_store, remote, clock=clock)


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def gateway(llm: FakeLLMClient, clock: FakeClock) -> AIEnrichmentGateway:
    return AIEnrichmentGateway(lambda: llm, timeout_seconds=1.0, clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace, repo: TaskRepository, gateway: AIEnrichmentGateway) -> AppState:
    """AppState wired with a real local store and deterministic fakes for the rest."""
    return AppState(settings=settings, repository=repo, gateway=gateway, user_id=USER)
