# src/tasknest/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState (local store, optional Firestore store,
AI gateway), then runs the console REPL until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.close_subscriptions()
    except Exception:
        logger.debug("Closing subscriptions failed.", exc_info=True)

    try:
        await state.gateway.aclose()
    except Exception:
        logger.debug("Closing the AI gateway failed.", exc_info=True)

    try:
        state.repository.close()
    except Exception:
        logger.debug("Closing the remote store failed.", exc_info=True)


async def _run(state: AppState) -> None:
    try:
        await run_console_loop(state)
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=getattr(settings, "data_dir", ".local/tasknest"), console_level=console_level)

    logger.info("Starting %s (log file: %s)...", getattr(settings, "app_name", "tasknest"), log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
