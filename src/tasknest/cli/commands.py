# src/tasknest/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..core.state import AppState
from ..tasks.stats import compute_analytics, compute_stats, compute_streak
from ..tasks.task_api import create_task_from_text, rank_open_tasks
from ..tasks.task_codec import as_aware
from ..tasks.task_models import StoreResult, Task

CommandHandler = Callable[[AppState, list[str]], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_dt(value: datetime | None) -> str:
    if value is None:
        return "-"
    return as_aware(value).astimezone().strftime("%Y-%m-%d %H:%M")


def describe_task(task: Task) -> str:
    mark = "x" if task.completed else " "
    line = f"[{mark}] {task.title} ({task.priority.value})"
    if task.deadline is not None:
        line += f" due {_fmt_dt(task.deadline)}"
    if task.tags:
        line += " #" + " #".join(task.tags)
    return line


def format_task(index: int, task: Task) -> str:
    return f"{index:>3}. {describe_task(task)}"


def _source_note(result: StoreResult) -> str:
    if result.failed:
        return " [local store unavailable]"
    if result.degraded:
        return " [offline: local copy]"
    return ""


def _resolve_task_id(state: AppState, args: list[str]) -> str | None:
    """Accept either a position from the last /list or a raw task id."""
    if not args:
        return None
    ref = args[0].strip()
    if ref.isdigit():
        pos = int(ref)
        if 1 <= pos <= len(state.last_listing):
            return state.last_listing[pos - 1].id
    return ref or None


def _render_listing(state: AppState, tasks: list[Task], header: str) -> str:
    state.last_listing = list(tasks)
    if not tasks:
        return f"{header}\n  (no tasks)"
    return "\n".join([header, *(format_task(i, t) for i, t in enumerate(tasks, start=1))])


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_list(state: AppState, args: list[str]) -> str:
    result = await state.repository.get_tasks(state.user_id)
    return _render_listing(state, result.value, f"Tasks ({len(result.value)}){_source_note(result)}:")


async def cmd_add(state: AppState, args: list[str]) -> str:
    text = " ".join(args).strip()
    if not text:
        return "Usage: /add <task text>"
    result = await create_task_from_text(
        state.repository, state.gateway, state.user_id, text, use_ai=state.ai_enabled
    )
    if result.value is None:
        return f"Task not saved.{_source_note(result)}"
    return f"Added: {describe_task(result.value)}{_source_note(result)}"


async def _set_completed(state: AppState, args: list[str], completed: bool) -> str:
    task_id = _resolve_task_id(state, args)
    if task_id is None:
        return "Usage: /done <n|id>" if completed else "Usage: /undo <n|id>"
    result = await state.repository.update_task(state.user_id, task_id, {"completed": completed})
    if result.failed:
        return f"Task not updated.{_source_note(result)}"
    if result.not_found or result.value is None:
        return "Task no longer exists."
    verb = "Completed" if completed else "Reopened"
    return f"{verb}: {result.value.title}{_source_note(result)}"


async def cmd_done(state: AppState, args: list[str]) -> str:
    return await _set_completed(state, args, True)


async def cmd_undo(state: AppState, args: list[str]) -> str:
    return await _set_completed(state, args, False)


async def cmd_rm(state: AppState, args: list[str]) -> str:
    task_id = _resolve_task_id(state, args)
    if task_id is None:
        return "Usage: /rm <n|id>"
    result = await state.repository.delete_task(state.user_id, task_id)
    if result.failed:
        return f"Task not deleted.{_source_note(result)}"
    if not result.value:
        return "Task no longer exists."
    return f"Deleted.{_source_note(result)}"


async def cmd_stats(state: AppState, args: list[str]) -> str:
    tasks = (await state.repository.get_tasks(state.user_id)).value
    s = compute_stats(tasks)
    return (
        "Stats:\n"
        f"  total: {s.total}\n"
        f"  completed: {s.completed}\n"
        f"  pending: {s.pending}\n"
        f"  overdue: {s.overdue}\n"
        f"  completed today: {s.completed_today}\n"
        f"  completed this week: {s.completed_this_week}\n"
        f"  streak: {compute_streak(tasks)} day(s)"
    )


async def cmd_analytics(state: AppState, args: list[str]) -> str:
    tasks = (await state.repository.get_tasks(state.user_id)).value
    a = compute_analytics(tasks)
    return (
        "Analytics:\n"
        f"  completed today: {a.completed_today}\n"
        f"  completed this week: {a.completed_this_week}\n"
        f"  completed this month: {a.completed_this_month}\n"
        f"  average days to complete: {a.average_completion_days}\n"
        f"  completion rate: {a.completion_rate}%\n"
        f"  streak: {a.streak} day(s)"
    )


async def cmd_rank(state: AppState, args: list[str]) -> str:
    tasks = (await state.repository.get_tasks(state.user_id)).value
    if not state.ai_enabled or not state.gateway.is_available():
        return _render_listing(state, tasks, "AI ranking unavailable; showing stored order:")
    ranked = await rank_open_tasks(state.gateway, tasks)
    return _render_listing(state, ranked, "Ranked tasks:")


async def cmd_insights(state: AppState, args: list[str]) -> str:
    if not state.ai_enabled or not state.gateway.is_available():
        return "AI insights unavailable."
    tasks = (await state.repository.get_tasks(state.user_id)).value
    insights = await state.gateway.generate_daily_insights(tasks)
    if not insights:
        return "No insights right now."
    return "\n".join(f"  [{i.type.value}] {i.content}" for i in insights)


async def cmd_ai(state: AppState, args: list[str]) -> str:
    arg = (args[0].lower() if args else "").strip()
    if arg in ("on", "off"):
        state.ai_enabled = arg == "on"
    elif arg == "probe":
        await state.gateway.probe()

    status = state.gateway.availability.value
    reason = state.gateway.unavailable_reason
    lines = [f"AI: {'ON' if state.ai_enabled else 'OFF'} (gateway {status})"]
    if reason:
        lines.append(f"  {reason}")
    return "\n".join(lines)


registry.register("help", cmd_help, "Show this help", aliases=["h", "?"])
registry.register("list", cmd_list, "List tasks", aliases=["ls"])
registry.register("add", cmd_add, "Add a task from free text (AI-parsed when available)")
registry.register("done", cmd_done, "Mark task <n|id> completed")
registry.register("undo", cmd_undo, "Mark task <n|id> not completed")
registry.register("rm", cmd_rm, "Delete task <n|id>", aliases=["del"])
registry.register("stats", cmd_stats, "Show task counters and streak")
registry.register("analytics", cmd_analytics, "Show completion analytics")
registry.register("rank", cmd_rank, "Show pending tasks ranked by AI")
registry.register("insights", cmd_insights, "Generate today's AI insights")
registry.register("ai", cmd_ai, "AI status; /ai on|off|probe")
