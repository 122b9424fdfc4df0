# src/tasknest/tasks/task_codec.py

"""
Shape conversion between Task objects and the two storage formats.

- Local records: camelCase JSON objects, dates as ISO-8601 strings.
- Remote documents: camelCase Firestore fields plus userId, dates as native
  timestamps (the client hands back DatetimeWithNanoseconds, a datetime subclass).

Both directions always produce timezone-aware datetimes so callers can compare
values regardless of where a task came from.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from ..core.errors import RecordDecodeError
from .task_models import Priority, SubNote, SubNoteKind, Task


def as_aware(value: datetime) -> datetime:
    """Naive datetimes are taken as local time."""
    return value if value.tzinfo is not None else value.astimezone()


def _coerce_datetime(value: Any, *, field_name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        # Drop backend subclasses (nanosecond timestamps) and keep a plain datetime.
        aware = as_aware(value)
        return datetime.fromtimestamp(aware.timestamp(), tz=aware.tzinfo)
    if isinstance(value, str):
        try:
            return as_aware(datetime.fromisoformat(value))
        except ValueError as e:
            raise RecordDecodeError(f"{field_name}: not an ISO-8601 string: {value!r}") from e
    to_datetime = getattr(value, "to_datetime", None)
    if callable(to_datetime):
        return as_aware(to_datetime())
    raise RecordDecodeError(f"{field_name}: unsupported timestamp value {type(value).__name__}")


def _iso(value: datetime | None) -> str | None:
    return as_aware(value).isoformat() if value is not None else None


def _str_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(x) for x in raw if x is not None and str(x).strip()]


def _opt_str(raw: Any) -> str | None:
    return None if raw is None else str(raw)


def sub_note_to_dict(note: SubNote) -> dict[str, Any]:
    return {
        "id": note.id,
        "content": note.content,
        "completed": note.completed,
        "type": note.kind.value,
        "order": note.order,
    }


def sub_note_from_dict(raw: Any, index: int) -> SubNote:
    if not isinstance(raw, dict):
        raise RecordDecodeError(f"subNotes[{index}]: expected an object")
    try:
        order = int(raw.get("order", index))
    except (TypeError, ValueError):
        order = index
    return SubNote(
        id=str(raw.get("id") or f"note-{index}"),
        content=str(raw.get("content") or ""),
        completed=bool(raw.get("completed", False)),
        kind=SubNoteKind.parse(raw.get("type") or raw.get("kind")),
        order=order,
    )


def _common_fields(task: Task) -> dict[str, Any]:
    return {
        "title": task.title,
        "description": task.description,
        "completed": task.completed,
        "priority": task.priority.value,
        "tags": list(task.tags),
        "subNotes": [sub_note_to_dict(n) for n in task.sub_notes],
        "category": task.category,
        "color": task.color,
        "folderId": task.folder_id,
    }


def _task_from_fields(task_id: str, data: dict[str, Any], *, user_id: str | None) -> Task:
    title = str(data.get("title") or "").strip()
    if not title:
        raise RecordDecodeError(f"task {task_id}: missing title")

    created_at = _coerce_datetime(data.get("createdAt"), field_name="createdAt")
    updated_at = _coerce_datetime(data.get("updatedAt"), field_name="updatedAt")
    if created_at is None:
        raise RecordDecodeError(f"task {task_id}: missing createdAt")
    if updated_at is None or updated_at < created_at:
        updated_at = created_at

    raw_notes = data.get("subNotes") or []
    if not isinstance(raw_notes, list):
        raise RecordDecodeError(f"task {task_id}: subNotes is not a list")

    return Task(
        id=task_id,
        title=title,
        created_at=created_at,
        updated_at=updated_at,
        completed=bool(data.get("completed", False)),
        priority=Priority.parse(data.get("priority")),
        deadline=_coerce_datetime(data.get("deadline"), field_name="deadline"),
        description=_opt_str(data.get("description")),
        tags=_str_list(data.get("tags")),
        sub_notes=[sub_note_from_dict(n, i) for i, n in enumerate(raw_notes)],
        category=_opt_str(data.get("category")),
        color=_opt_str(data.get("color")),
        folder_id=_opt_str(data.get("folderId")),
        user_id=user_id,
    )


# ---- local records (JSON) ----


def task_to_record(task: Task) -> dict[str, Any]:
    record = {"id": task.id, **_common_fields(task)}
    record["createdAt"] = _iso(task.created_at)
    record["updatedAt"] = _iso(task.updated_at)
    record["deadline"] = _iso(task.deadline)
    return record


def task_from_record(record: Any) -> Task:
    if not isinstance(record, dict):
        raise RecordDecodeError("local record is not an object")
    task_id = str(record.get("id") or "").strip()
    if not task_id:
        raise RecordDecodeError("local record has no id")
    # Local records never carry an owner.
    return _task_from_fields(task_id, record, user_id=None)


# ---- remote documents (Firestore) ----


def task_to_document(task: Task, *, user_id: str) -> dict[str, Any]:
    doc = _common_fields(task)
    doc["userId"] = user_id
    doc["createdAt"] = as_aware(task.created_at).astimezone(UTC)
    doc["updatedAt"] = as_aware(task.updated_at).astimezone(UTC)
    doc["deadline"] = as_aware(task.deadline).astimezone(UTC) if task.deadline else None
    return doc


def changes_to_document(changes: dict[str, Any]) -> dict[str, Any]:
    """Convert a snake_case change set (already validated) to Firestore field updates."""
    out: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "priority":
            out["priority"] = Priority.parse(value).value
        elif key == "sub_notes":
            out["subNotes"] = [sub_note_to_dict(n) for n in value or []]
        elif key == "folder_id":
            out["folderId"] = value
        elif key in ("deadline", "updated_at"):
            name = "deadline" if key == "deadline" else "updatedAt"
            out[name] = as_aware(value).astimezone(UTC) if value is not None else None
        elif key == "tags":
            out["tags"] = list(value or [])
        else:
            out[key] = value
    return out


def task_from_document(doc_id: str, data: Any) -> Task:
    if not isinstance(data, dict):
        raise RecordDecodeError(f"document {doc_id}: no data")
    user_id = data.get("userId")
    return _task_from_fields(str(doc_id), data, user_id=str(user_id) if user_id else None)
