# src/tasknest/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app, built by the entry point and passed down.
- No secrets required at import time.
- Remote store and AI gateway are both optional: missing credentials only
  disable them, they never stop the app from starting.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

ENV_PREFIX = "TASKNEST"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Caller identity (supplied by an external identity provider in real deployments) ----
    user_id: str

    # ---- Local store ----
    data_dir: Path
    local_db_path: Path
    local_tasks_key: str

    # ---- Remote store (Firestore) ----
    remote_enabled: bool
    firestore_project: Optional[str]
    firestore_database: Optional[str]
    firestore_collection: str

    # ---- LLM / OpenRouter ----
    ai_enabled: bool
    openrouter_api_key: Optional[str]
    openrouter_base_url: str
    llm_models: List[str]
    extra_headers: Dict[str, str]
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float
    ai_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasknest") or "tasknest"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        user_id = (_env(_k("USER_ID"), "") or "").strip()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasknest"))
        local_db_path = _env_path(_k("LOCAL_DB_PATH"), data_dir / "local_store.sqlite3")
        local_tasks_key = _env(_k("LOCAL_TASKS_KEY"), "ai-todo-tasks") or "ai-todo-tasks"

        firestore_project = _first_env(_k("FIRESTORE_PROJECT"), "GOOGLE_CLOUD_PROJECT", default=None)
        firestore_database = _first_env(_k("FIRESTORE_DATABASE"), default=None)
        firestore_collection = _env(_k("FIRESTORE_COLLECTION"), "tasks") or "tasks"
        # Remote is on by default only when there is a project to talk to.
        remote_enabled = _env_bool(_k("REMOTE_ENABLED"), firestore_project is not None)

        ai_enabled = _env_bool(_k("AI_ENABLED"), True)
        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        extra_headers = {
            "HTTP-Referer": _env(_k("HTTP_REFERER"), "https://example.com"),
            "X-Title": _env(_k("APP_TITLE"), app_name),
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "google/gemini-2.0-flash-exp:free",
                "qwen/qwen-2.5-72b-instruct:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )

        connect_timeout = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout = _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 25.0)
        ai_timeout = _env_float(_k("AI_TIMEOUT_SECONDS"), 30.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            user_id=user_id,
            data_dir=data_dir,
            local_db_path=local_db_path,
            local_tasks_key=local_tasks_key,
            remote_enabled=remote_enabled,
            firestore_project=firestore_project,
            firestore_database=firestore_database,
            firestore_collection=firestore_collection,
            ai_enabled=ai_enabled,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
            llm_connect_timeout_seconds=connect_timeout,
            # keep read >= connect as a sane baseline
            llm_read_timeout_seconds=max(read_timeout, connect_timeout),
            ai_timeout_seconds=ai_timeout,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Settings for the running process, read from the environment on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
