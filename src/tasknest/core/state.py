# src/tasknest/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..ai.gateway import AIEnrichmentGateway
from ..tasks.repository import TaskRepository
from ..tasks.task_models import Task
from .ports import Disposer


@dataclass
class AppState:
    """
    Everything a front end needs, built once by the composition root and passed down.

    user_id is the caller identity supplied by the identity provider; an empty
    value means "not signed in" and routes every task call to the local store.
    """

    settings: Any
    repository: TaskRepository
    gateway: AIEnrichmentGateway
    user_id: str = ""
    ai_enabled: bool = True

    subscriptions: list[Disposer] = field(default_factory=list)
    # Last list shown to the user, so commands can refer to tasks by position.
    last_listing: list[Task] = field(default_factory=list)

    def close_subscriptions(self) -> None:
        while self.subscriptions:
            self.subscriptions.pop()()
