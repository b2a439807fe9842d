"""Boardbot application wiring: Slack Bolt + the task agent.

Architecture:
- Slack Bolt for Slack events via Socket Mode
- ActionRouter with SQL-backed collaborators
- Optional OpenRouter completion client for intent parsing
"""

from __future__ import annotations

import logging
import ssl

import certifi
import structlog
from slack_bolt.async_app import AsyncApp
from slack_sdk.web.async_client import AsyncWebClient

from boardbot.agent.context import ConversationStore
from boardbot.agent.intent import IntentParser
from boardbot.agent.router import ActionRouter
from boardbot.config import settings
from boardbot.core.llm import get_llm_client
from boardbot.slack.handlers import register_handlers

logger = structlog.get_logger()


def configure_logging() -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
            if settings.env == "production"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


def build_router() -> ActionRouter:
    """Router backed by Postgres; AI parsing only when an API key is set."""
    from boardbot.db.stores import SqlContextBackend, SqlTaskStore, SqlWorkspaceDirectory

    llm = get_llm_client()
    logger.info("router_configured", intent_strategy="ai" if llm else "rules")
    return ActionRouter(
        directory=SqlWorkspaceDirectory(),
        tasks=SqlTaskStore(),
        parser=IntentParser(provider=llm),
        store=ConversationStore(SqlContextBackend()),
    )


def build_bolt_app(router: ActionRouter) -> AsyncApp:
    ssl_ctx = ssl.create_default_context(cafile=certifi.where())
    bolt = AsyncApp(
        client=AsyncWebClient(token=settings.slack_bot_token, ssl=ssl_ctx),
        signing_secret=settings.slack_signing_secret,
        process_before_response=False,
    )
    register_handlers(bolt, router)
    return bolt
