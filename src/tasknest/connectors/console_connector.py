# src/tasknest/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def _start_live_updates(state: AppState) -> None:
    if not state.user_id:
        return

    def _on_change(tasks: list[Task]) -> None:
        pending = sum(1 for t in tasks if not t.completed)
        _print_ts(f"[SYNC] {len(tasks)} task(s), {pending} pending")

    dispose = await state.repository.subscribe_to_tasks(state.user_id, _on_change)
    state.subscriptions.append(dispose)


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (user=%s).", state.user_id or "<local>")
    who = state.user_id or "local only"
    _print_ts(f"[CONSOLE] Signed in as: {who}. Type a task to add it, /help for commands, /exit to quit.\n")

    await _start_live_updates(state)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Plain text is a new task.
        line = user_input if user_input.startswith("/") else f"/add {user_input}"

        try:
            reply = await command_registry.handle(state, line)
        except ValueError as e:
            reply = f"Error: {e}"
        except Exception:
            logger.exception("Command failed: %s", line)
            reply = "Command failed (see log)."

        if reply:
            print(reply, flush=True)
