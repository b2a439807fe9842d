"""Conversational task agent: intent parsing, conversation memory, action routing."""

from boardbot.agent.context import ConversationStore, InMemoryContextBackend
from boardbot.agent.intent import IntentParser, RuleBasedStrategy, normalize_text
from boardbot.agent.resolver import ReferenceResolver
from boardbot.agent.router import ActionOutcome, ActionRouter
from boardbot.agent.types import (
    ContextUpdate,
    ConversationContext,
    Intent,
    IntentAction,
    IntentEntities,
    TaskSnapshot,
)

__all__ = [
    "ActionOutcome",
    "ActionRouter",
    "ContextUpdate",
    "ConversationContext",
    "ConversationStore",
    "InMemoryContextBackend",
    "Intent",
    "IntentAction",
    "IntentEntities",
    "IntentParser",
    "ReferenceResolver",
    "RuleBasedStrategy",
    "TaskSnapshot",
    "normalize_text",
]
