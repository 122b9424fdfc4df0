# src/tasknest/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, raw: object) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.MEDIUM


class SubNoteKind(StrEnum):
    TEXT = "text"
    CHECKLIST = "checklist"
    NUMBERED = "numbered"

    @classmethod
    def parse(cls, raw: object) -> SubNoteKind:
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.TEXT


class InsightType(StrEnum):
    SUGGESTION = "suggestion"
    PRIORITY = "priority"
    SUMMARY = "summary"

    @classmethod
    def parse(cls, raw: object) -> InsightType:
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.SUMMARY


@dataclass(slots=True)
class SubNote:
    """A note nested under a task. Its completion is independent of the parent."""

    id: str
    content: str
    completed: bool = False
    kind: SubNoteKind = SubNoteKind.TEXT
    order: int = 0


@dataclass(slots=True)
class TaskDraft:
    """What a caller supplies when creating a task."""

    title: str
    description: str | None = None
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    deadline: datetime | None = None
    tags: list[str] = field(default_factory=list)
    sub_notes: list[SubNote] = field(default_factory=list)
    category: str | None = None
    color: str | None = None
    folder_id: str | None = None


@dataclass(slots=True)
class Task:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime

    completed: bool = False
    priority: Priority = Priority.MEDIUM
    deadline: datetime | None = None

    description: str | None = None
    tags: list[str] = field(default_factory=list)
    sub_notes: list[SubNote] = field(default_factory=list)
    category: str | None = None
    color: str | None = None
    folder_id: str | None = None

    # Remote records only.
    user_id: str | None = None

    @classmethod
    def from_draft(
        cls,
        draft: TaskDraft,
        *,
        task_id: str,
        now: datetime,
        user_id: str | None = None,
    ) -> Task:
        return cls(
            id=task_id,
            title=draft.title,
            created_at=now,
            updated_at=now,
            completed=draft.completed,
            priority=draft.priority,
            deadline=draft.deadline,
            description=draft.description,
            tags=list(draft.tags),
            sub_notes=list(draft.sub_notes),
            category=draft.category,
            color=draft.color,
            folder_id=draft.folder_id,
            user_id=user_id,
        )


# Fields a caller may change through update_task. id/created_at/updated_at/user_id are owned by the repository.
MUTABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "completed",
        "priority",
        "deadline",
        "tags",
        "sub_notes",
        "category",
        "color",
        "folder_id",
    }
)
IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at", "user_id"})


@dataclass(slots=True, frozen=True)
class TaskStats:
    total: int
    completed: int
    pending: int
    overdue: int
    completed_today: int
    completed_this_week: int


@dataclass(slots=True, frozen=True)
class AnalyticsSummary:
    completed_today: int
    completed_this_week: int
    completed_this_month: int
    average_completion_days: int
    completion_rate: int
    streak: int


@dataclass(slots=True)
class AIInsight:
    id: str
    type: InsightType
    content: str
    created_at: datetime
    is_read: bool = False


@dataclass(slots=True, frozen=True)
class ParsedTaskInput:
    title: str
    priority: Priority = Priority.MEDIUM
    deadline: datetime | None = None
    tags: list[str] | None = None


class Backend(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"


class Outcome(StrEnum):
    """
    How a repository call was served.

    - ok:        the preferred store answered
    - fallback:  the remote store failed and the local store answered instead
    - not_found: the target record does not exist in the selected store
    - failed:    the local store itself could not be read or written; the value is empty
    """

    OK = "ok"
    FALLBACK = "fallback"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class StoreResult(Generic[T]):
    value: T
    outcome: Outcome
    backend: Backend
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def degraded(self) -> bool:
        return self.outcome is Outcome.FALLBACK

    @property
    def not_found(self) -> bool:
        return self.outcome is Outcome.NOT_FOUND

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED


def clean_changes(changes: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """
    Split a caller change set into (accepted, ignored keys).

    Repository-owned fields and unknown keys are dropped.
    """
    accepted: dict[str, Any] = {}
    ignored: list[str] = []
    for key, value in changes.items():
        if key in MUTABLE_FIELDS:
            if key == "title":
                value = str(value or "").strip()
                if not value:
                    raise ValueError("title must not be empty")
            elif key == "priority":
                value = Priority.parse(value)
            elif key in ("tags", "sub_notes"):
                value = list(value or [])
            accepted[key] = value
        else:
            ignored.append(key)
    return accepted, ignored


def apply_changes(task: Task, changes: dict[str, Any], *, now: datetime) -> Task:
    """Merge accepted changes onto a copy of `task`; updated_at never moves backwards."""
    merged = replace(task, **changes)
    merged.updated_at = max(now, task.updated_at)
    return merged
