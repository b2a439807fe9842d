#!/usr/bin/env python3
"""Run boardbot with Socket Mode.

Usage:
    python scripts/run.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from boardbot.app import build_bolt_app, build_router, configure_logging
from boardbot.config import settings

logger = structlog.get_logger()


def run_socket_mode() -> None:
    """Run boardbot with Socket Mode (WebSocket to Slack)."""
    from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler

    from boardbot.core.llm import close_llm_client
    from boardbot.db.session import close_db

    logger.info("starting_boardbot", mode="socket_mode")

    async def _run() -> None:
        bolt = build_bolt_app(build_router())
        handler = AsyncSocketModeHandler(bolt, settings.slack_app_token)
        try:
            await handler.start_async()
        finally:
            await close_llm_client()
            await close_db()

    asyncio.run(_run())


def main() -> int:
    configure_logging()
    try:
        run_socket_mode()
        return 0
    except KeyboardInterrupt:
        logger.info("shutting_down", reason="keyboard_interrupt")
        return 0
    except Exception as e:
        logger.error("fatal_error", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
