# src/tasknest/ai/gateway.py

"""
AI enrichment gateway.

Three independent, best-effort capabilities on top of an LLM client:
- parse_task:               free text -> ParsedTaskInput, or None
- rank_tasks:               reorder tasks by urgency, or return the input unchanged
- generate_daily_insights:  2-3 short advisory notes, or []

Nothing here is load-bearing: every failure (no client, transport error,
timeout, unusable model output) is logged and turned into the fallback value.
The repository and the stats engine never depend on this module.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from enum import StrEnum

from ..core.errors import EnrichmentMalformed, EnrichmentUnavailable
from ..core.ports import LLMClient
from ..llm.client import friendly_llm_error_message
from ..tasks.task_codec import as_aware
from ..tasks.task_models import AIInsight, InsightType, ParsedTaskInput, Priority, Task
from .extract import extract_json

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], LLMClient]

MIN_INSIGHTS = 2
MAX_INSIGHTS = 3
SAMPLE_TITLES = 3

PARSE_SYSTEM_PROMPT = """
You are a task parsing module for a personal to-do list.

You do NOT chat with the user. You turn one line of free text into a task.

Extract:
- title (required): the task itself, without dates or urgency words
- deadline (optional): ISO-8601 date-time, resolve relative dates against the current time given
- priority: "low", "medium" or "high" based on urgency indicators
- tags (optional): a few short lowercase keywords

Return STRICT JSON only. No extra text. No Markdown.
{"title": "string", "deadline": "ISO date string or null", "priority": "low|medium|high", "tags": ["..."]}

Examples:
Input: "Buy groceries tomorrow"
Output: {"title": "Buy groceries", "deadline": "2024-01-02T00:00:00", "priority": "medium", "tags": ["shopping", "groceries"]}

Input: "URGENT: Fix the bug in auth system"
Output: {"title": "Fix the bug in auth system", "deadline": null, "priority": "high", "tags": ["urgent", "bug", "auth"]}
""".strip()

RANK_SYSTEM_PROMPT = """
You are a task ranking module.

Order the given tasks from most to least urgent, considering:
- deadline proximity (overdue and soon-due first)
- priority level (high > medium > low)
- creation date (older tasks get a slight boost)

Respond with just the reordered task indices as a JSON array, e.g. [2, 0, 1].
Every index must appear exactly once.
""".strip()

INSIGHTS_SYSTEM_PROMPT = """
You are a productivity coach module.

Given today's task numbers, write 2-3 brief insights.
Each insight has a type: "summary", "suggestion" or "priority".
Keep each insight under 50 words. No emojis.

Respond with STRICT JSON only:
{"insights": [{"type": "summary", "content": "..."}, {"type": "suggestion", "content": "..."}]}
""".strip()


class Availability(StrEnum):
    UNKNOWN = "unknown"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


def _now() -> datetime:
    return datetime.now().astimezone()


def _parse_deadline(raw: object) -> datetime | None:
    if not raw or not isinstance(raw, str):
        return None
    try:
        return as_aware(datetime.fromisoformat(raw.strip()))
    except ValueError:
        logger.debug("Ignoring unparseable deadline from model: %r", raw)
        return None


def _parsed_from_payload(payload: object, original: str) -> ParsedTaskInput:
    if not isinstance(payload, dict):
        raise EnrichmentMalformed("parse payload is not an object")

    title = str(payload.get("title") or "").strip() or original
    tags_raw = payload.get("tags")
    tags = [str(t).strip() for t in tags_raw if str(t).strip()] if isinstance(tags_raw, list) else None

    return ParsedTaskInput(
        title=title,
        priority=Priority.parse(payload.get("priority")),
        deadline=_parse_deadline(payload.get("deadline")),
        tags=tags,
    )


def _permutation_from_payload(payload: object, size: int) -> list[int]:
    if not isinstance(payload, list):
        raise EnrichmentMalformed("rank payload is not an array")
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in payload):
        raise EnrichmentMalformed("rank payload contains non-integers")
    if sorted(payload) != list(range(size)):
        raise EnrichmentMalformed(f"rank payload is not a permutation of 0..{size - 1}")
    return list(payload)


def _insight_items(payload: object) -> list[object]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        items = payload.get("insights")
        if isinstance(items, list):
            return items
        if "content" in payload:
            return [payload]
    raise EnrichmentMalformed("insights payload has no insights")


def _format_task_line(index: int, task: Task) -> str:
    deadline = as_aware(task.deadline).isoformat() if task.deadline else "none"
    return (
        f"{index}: {task.title}\n"
        f"   - Priority: {task.priority.value}\n"
        f"   - Deadline: {deadline}\n"
        f"   - Created: {as_aware(task.created_at).isoformat()}"
    )


class AIEnrichmentGateway:
    """
    Best-effort adapter around an LLM client.

    Availability is probed once at construction (by building the client) and
    can be re-probed with probe(); there is no background retry. Every model
    call is bounded by `timeout_seconds` (None disables the bound).
    """

    def __init__(
        self,
        client_factory: ClientFactory | None,
        *,
        timeout_seconds: float | None = 30.0,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._client_factory = client_factory
        self._client: LLMClient | None = None
        self._availability = Availability.UNKNOWN
        self._reason: str | None = None
        self._timeout = timeout_seconds if timeout_seconds and timeout_seconds > 0 else None
        self._clock = clock
        self._build_client()

    # ---- availability ----

    @property
    def availability(self) -> Availability:
        return self._availability

    @property
    def unavailable_reason(self) -> str | None:
        return self._reason

    def _build_client(self) -> Availability:
        if self._client_factory is None:
            self._client = None
            self._availability = Availability.UNAVAILABLE
            self._reason = "AI enrichment is disabled."
            logger.info("AI gateway disabled.")
            return self._availability

        try:
            self._client = self._client_factory()
        except Exception as e:
            self._client = None
            self._availability = Availability.UNAVAILABLE
            self._reason = friendly_llm_error_message(e)
            logger.info("AI gateway unavailable: %s", self._reason)
            return self._availability

        self._availability = Availability.AVAILABLE
        self._reason = None
        logger.info("AI gateway available.")
        return self._availability

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        aclose = getattr(client, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception:
            logger.debug("Closing the previous LLM client failed.", exc_info=True)

    async def probe(self) -> Availability:
        """Close the current model client (if any), rebuild it and record whether that worked."""
        await self._close_client()
        return self._build_client()

    async def aclose(self) -> None:
        await self._close_client()
        self._availability = Availability.UNAVAILABLE
        self._reason = "AI gateway is closed."

    def is_available(self) -> bool:
        return self._availability is Availability.AVAILABLE and self._client is not None

    async def _ask(self, prompt: str, system_prompt: str) -> str:
        client = self._client
        if not self.is_available() or client is None:
            raise EnrichmentUnavailable(self._reason or "AI gateway is not available")
        call = client.complete(prompt, system_prompt=system_prompt)
        if self._timeout is None:
            return await call
        return await asyncio.wait_for(call, self._timeout)

    def _log_failure(self, op: str, err: Exception) -> None:
        if isinstance(err, TimeoutError):
            logger.warning("%s: model call timed out after %.1fs", op, self._timeout or 0.0)
        elif isinstance(err, EnrichmentMalformed):
            logger.warning("%s: unusable model output: %s", op, err)
        else:
            logger.warning("%s failed: %s", op, err, exc_info=logger.isEnabledFor(logging.DEBUG))

    # ---- capabilities ----

    async def parse_task(self, text: str) -> ParsedTaskInput | None:
        original = (text or "").strip()
        if not original or not self.is_available():
            return None

        prompt = f'Current time: {self._clock().isoformat()}\nInput: "{original}"'
        try:
            reply = await self._ask(prompt, PARSE_SYSTEM_PROMPT)
            parsed = _parsed_from_payload(extract_json(reply, "{"), original)
        except Exception as e:
            self._log_failure("parse_task", e)
            return None

        logger.debug("parse_task: title=%r priority=%s", parsed.title, parsed.priority)
        return parsed

    async def rank_tasks(self, tasks: list[Task]) -> list[Task]:
        """
        Reorder tasks by urgency. Any failure returns `tasks` itself, untouched;
        a successful ranking is always a permutation of the input.
        """
        if len(tasks) < 2 or not self.is_available():
            return tasks

        lines = "\n".join(_format_task_line(i, t) for i, t in enumerate(tasks))
        prompt = f"Current time: {self._clock().isoformat()}\nTasks:\n{lines}"
        try:
            reply = await self._ask(prompt, RANK_SYSTEM_PROMPT)
            order = _permutation_from_payload(extract_json(reply, "["), len(tasks))
        except Exception as e:
            self._log_failure("rank_tasks", e)
            return tasks

        return [tasks[i] for i in order]

    async def generate_daily_insights(self, tasks: Sequence[Task]) -> list[AIInsight]:
        """
        Ask for 2-3 short insights and keep at most MAX_INSIGHTS of them.

        A reply with fewer usable insights is accepted as is (and logged);
        any failure returns [].
        """
        if not tasks or not self.is_available():
            return []

        now = self._clock()
        today = as_aware(now).astimezone().date()
        completed_today = [
            t for t in tasks if t.completed and as_aware(t.updated_at).astimezone().date() == today
        ]
        overdue = [
            t for t in tasks if not t.completed and t.deadline is not None and as_aware(t.deadline) < as_aware(now)
        ]
        high_pending = sum(1 for t in tasks if not t.completed and t.priority is Priority.HIGH)

        prompt = (
            f"Total tasks: {len(tasks)}\n"
            f"Completed today: {len(completed_today)}\n"
            f"Overdue tasks: {len(overdue)}\n"
            f"High priority pending: {high_pending}\n\n"
            f"Sample completed tasks: {', '.join(t.title for t in completed_today[:SAMPLE_TITLES])}\n"
            f"Sample overdue tasks: {', '.join(t.title for t in overdue[:SAMPLE_TITLES])}"
        )

        try:
            reply = await self._ask(prompt, INSIGHTS_SYSTEM_PROMPT)
            items = _insight_items(extract_json(reply, "{["))
        except Exception as e:
            self._log_failure("generate_daily_insights", e)
            return []

        stamp = int(now.timestamp() * 1000)
        insights: list[AIInsight] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            content = str(item.get("content") or "").strip()
            if not content:
                continue
            insights.append(
                AIInsight(
                    id=f"insight-{stamp}-{len(insights)}",
                    type=InsightType.parse(item.get("type")),
                    content=content,
                    created_at=now,
                    is_read=False,
                )
            )
            if len(insights) >= MAX_INSIGHTS:
                break

        if not insights:
            logger.warning("generate_daily_insights: model returned no usable insights")
        elif len(insights) < MIN_INSIGHTS:
            logger.info("generate_daily_insights: model returned %d insight(s), fewer than asked for", len(insights))
        return insights
