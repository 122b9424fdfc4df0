# src/tasknest/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the local store, the optional Firestore store and the AI gateway
  into a TaskRepository / AppState.
"""

from __future__ import annotations

import logging

from ..ai.gateway import AIEnrichmentGateway, ClientFactory
from ..config import get_settings
from ..core.ports import RemoteTaskStore
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..tasks.local_store import KeyValueStore, LocalTaskStore
from ..tasks.repository import TaskRepository

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.local_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_remote_store(settings) -> RemoteTaskStore | None:
    if not getattr(settings, "remote_enabled", False):
        logger.info("Remote store disabled; tasks stay on this device.")
        return None

    # Imported lazily so a local-only install never touches the Google client libraries.
    from ..tasks.remote_store import FirestoreTaskStore

    return FirestoreTaskStore.from_settings(settings)


def build_gateway(settings) -> AIEnrichmentGateway:
    factory: ClientFactory | None = None
    if getattr(settings, "ai_enabled", True):

        def _make_client() -> OpenRouterLLMClient:
            return OpenRouterLLMClient(settings)

        factory = _make_client
    return AIEnrichmentGateway(factory, timeout_seconds=getattr(settings, "ai_timeout_seconds", 30.0))


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    local = LocalTaskStore(KeyValueStore(settings.local_db_path), key=settings.local_tasks_key)
    repository = TaskRepository(local, build_remote_store(settings))

    return AppState(
        settings=settings,
        repository=repository,
        gateway=build_gateway(settings),
        user_id=(getattr(settings, "user_id", "") or "").strip(),
        ai_enabled=bool(getattr(settings, "ai_enabled", True)),
    )
