"""Boardbot core: LLM client and shared errors."""

from boardbot.core.errors import BoardbotError, LLMError, TaskNotFound
from boardbot.core.llm import ChatConfig, LLMClient, get_llm_client

__all__ = [
    "BoardbotError",
    "ChatConfig",
    "LLMClient",
    "LLMError",
    "TaskNotFound",
    "get_llm_client",
]
