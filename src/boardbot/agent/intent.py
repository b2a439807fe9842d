"""Intent parsing for chat messages.

Two strategies turn a message into an ``Intent``:

1. AI strategy: one completion request to the configured provider, whose
   JSON reply is validated into an ``Intent``. Used when a provider exists.
2. Rule-based strategy: an ordered list of named regex rules, first match
   wins. Pure regex, zero network calls.

The AI strategy reports its outcome as ``ParseSuccess | ParseFailure``
rather than raising. Any failure (provider error, timeout, empty or
malformed reply) sends the same cleaned text through the rules, so
``IntentParser.parse_intent`` never raises.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from boardbot.agent.ports import CompletionProvider
from boardbot.agent.types import Intent, IntentAction, IntentEntities
from boardbot.config import settings

logger = structlog.get_logger()

UNKNOWN_CONFIDENCE = 0.1

# ═══════════════════════════════════════════════════════════════════════════
# NORMALIZATION
# ═══════════════════════════════════════════════════════════════════════════

# <@U123>, <@W123|name>, <#C123|general>: any angle-bracket token opened by a
# user or channel sigil, whatever the transport's id format.
_MENTION_RE = re.compile(r"<[@#][^<>]*>")
_WHITESPACE_RE = re.compile(r"\s{2,}")


def normalize_text(text: str | None) -> str:
    """Strip user/channel mention tokens and surrounding whitespace."""
    if not text:
        return ""
    cleaned = _MENTION_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


_LEADING_VERB_RE = re.compile(
    r"^(?:add|create|make|do|finish|complete|update|change|edit|remove|delete)\s+",
    re.IGNORECASE,
)
_LEADING_ARTICLE_RE = re.compile(r"^(?:a|an|the)\s+", re.IGNORECASE)
_TRAILING_NOUN_RE = re.compile(r"\s+(?:task|todo|item)$", re.IGNORECASE)


def extract_task_text(text: str) -> str | None:
    """Reduce a phrase like "delete the meeting task" to "meeting"."""
    cleaned = text.strip()
    cleaned = _LEADING_VERB_RE.sub("", cleaned)
    cleaned = _LEADING_ARTICLE_RE.sub("", cleaned)
    cleaned = _TRAILING_NOUN_RE.sub("", cleaned)
    return cleaned.strip() or None


# ═══════════════════════════════════════════════════════════════════════════
# RULE-BASED STRATEGY
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class IntentRule:
    """One named pattern check. ``build`` may reject the match by returning None."""

    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str], str], Intent | None]


def _fixed(action: IntentAction, confidence: float) -> Callable[[re.Match[str], str], Intent]:
    def build(match: re.Match[str], text: str) -> Intent:
        return Intent(action=action, confidence=confidence, original_text=text)
    return build


def _build_add(match: re.Match[str], text: str) -> Intent | None:
    task_text = match.group(1).strip()
    if not task_text.strip(":").strip():
        return None
    return Intent(
        action=IntentAction.ADD,
        confidence=0.85,
        entities=IntentEntities(task_text=task_text),
        original_text=text,
    )


def _build_by_number(action: IntentAction) -> Callable[[re.Match[str], str], Intent]:
    def build(match: re.Match[str], text: str) -> Intent:
        return Intent(
            action=action,
            confidence=0.9,
            entities=IntentEntities(task_index=int(match.group(1))),
            original_text=text,
        )
    return build


def _build_complete_by_text(match: re.Match[str], text: str) -> Intent | None:
    task_text = match.group(1).strip()
    if not task_text:
        return None
    return Intent(
        action=IntentAction.COMPLETE,
        confidence=0.7,
        entities=IntentEntities(task_text=task_text),
        original_text=text,
    )


def _build_remove_by_text(match: re.Match[str], text: str) -> Intent | None:
    remainder = match.group(1).strip()
    if not remainder:
        return None
    return Intent(
        action=IntentAction.REMOVE,
        confidence=0.7,
        entities=IntentEntities(task_text=extract_task_text(remainder) or remainder),
        original_text=text,
    )


def _build_edit(match: re.Match[str], text: str) -> Intent | None:
    new_text = match.group(2).strip()
    if not new_text:
        return None
    return Intent(
        action=IntentAction.EDIT,
        confidence=0.85,
        entities=IntentEntities(task_index=int(match.group(1)), new_text=new_text),
        original_text=text,
    )


def _rule(name: str, pattern: str, build: Callable[[re.Match[str], str], Intent | None]) -> IntentRule:
    return IntentRule(name=name, pattern=re.compile(pattern, re.IGNORECASE), build=build)


# Order matters: first match wins.
DEFAULT_RULES: tuple[IntentRule, ...] = (
    _rule(
        "list",
        r"\b(?:list|show|what['’]s|display|my tasks|my todos)\b",
        _fixed(IntentAction.LIST, 0.8),
    ),
    _rule("add", r"\b(?:add|create|remind|new task)\b\s*:?\s*(.+)", _build_add),
    _rule(
        "complete_by_number",
        r"\b(?:complete|done|finished?)\s+(?:task\s+)?(\d+)\b",
        _build_by_number(IntentAction.COMPLETE),
    ),
    # Known-loose: spans arbitrary middle text up to the last done/complete.
    _rule("complete_by_text", r"\b(?:mark|complete|finish)\b(.+)\b(?:done|complete)\b", _build_complete_by_text),
    _rule(
        "remove_by_number",
        r"\b(?:remove|delete)\s+(?:task\s+)?(\d+)\b",
        _build_by_number(IntentAction.REMOVE),
    ),
    _rule("edit", r"\b(?:change|edit|update)\s+(?:task\s+)?(\d+)\s+(?:to\s+)?(.+)", _build_edit),
    # After edit, so "change task 1 to delete old files" stays an edit.
    _rule("remove_by_text", r"\b(?:remove|delete)\s+(?:task\s+)?(.+)", _build_remove_by_text),
    _rule("help", r"\b(?:help|how|what can)\b", _fixed(IntentAction.HELP, 0.9)),
)


class RuleBasedStrategy:
    """Deterministic pattern-matching parser; the availability floor."""

    def __init__(self, rules: tuple[IntentRule, ...] = DEFAULT_RULES) -> None:
        self.rules = rules

    def match(self, text: str) -> tuple[str, Intent] | None:
        """Return (rule name, intent) for the first rule that accepts *text*."""
        for rule in self.rules:
            found = rule.pattern.search(text)
            if found is None:
                continue
            intent = rule.build(found, text)
            if intent is not None:
                return rule.name, intent
        return None

    def parse(self, text: str) -> Intent:
        matched = self.match(text)
        if matched is None:
            return Intent(
                action=IntentAction.UNKNOWN,
                confidence=UNKNOWN_CONFIDENCE,
                original_text=text,
            )
        return matched[1]


# ═══════════════════════════════════════════════════════════════════════════
# AI STRATEGY
# ═══════════════════════════════════════════════════════════════════════════

INTENT_SYSTEM_PROMPT = """You are a todo management assistant. Parse user messages and return JSON with:
- action: "list" | "add" | "complete" | "remove" | "edit" | "help" | "unknown"
- confidence: 0-1
- entities: {taskText?, taskIndex?, boardName?, newText?}

Return only the JSON object, no explanations.

Examples:
"What's on my list?" -> {"action": "list", "confidence": 0.9, "entities": {}}
"Add call John" -> {"action": "add", "confidence": 0.9, "entities": {"taskText": "call John"}}
"Complete task 2" -> {"action": "complete", "confidence": 0.9, "entities": {"taskIndex": 2}}
"Mark the meeting as done" -> {"action": "complete", "confidence": 0.8, "entities": {"taskText": "meeting"}}
"Delete that" -> {"action": "remove", "confidence": 0.8, "entities": {"taskText": "that"}}
"Change task 1 to call Sarah" -> {"action": "edit", "confidence": 0.9, "entities": {"taskIndex": 1, "newText": "call Sarah"}}"""


@dataclass(frozen=True)
class ParseSuccess:
    intent: Intent


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ParseResult = ParseSuccess | ParseFailure

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

_ENTITY_KEYS = {
    "task_text": ("taskText", "task_text"),
    "task_index": ("taskIndex", "task_index"),
    "board_name": ("boardName", "board_name"),
    "new_text": ("newText", "new_text"),
}


def _entity_value(raw: dict[str, Any], field_name: str) -> Any:
    for key in _ENTITY_KEYS[field_name]:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_index(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        index = int(str(value).strip())
    except ValueError:
        return None
    return index if index > 0 else None


def parse_ai_reply(raw: str, original_text: str) -> ParseResult:
    """Validate a model reply into an Intent, tolerating markdown fences."""
    body = _FENCE_RE.sub("", raw or "").strip()
    if not body:
        return ParseFailure("empty_reply")

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return ParseFailure("invalid_json")
    if not isinstance(data, dict):
        return ParseFailure("not_an_object")

    try:
        action = IntentAction(str(data.get("action", "")).strip().lower())
    except ValueError:
        return ParseFailure(f"unknown_action:{data.get('action')!r}")

    try:
        confidence = float(data.get("confidence", 0.5))
    except (TypeError, ValueError):
        return ParseFailure("invalid_confidence")
    confidence = min(max(confidence, 0.0), 1.0)

    raw_entities = data.get("entities") or {}
    if not isinstance(raw_entities, dict):
        return ParseFailure("invalid_entities")

    entities = IntentEntities(
        task_text=_clean_str(_entity_value(raw_entities, "task_text")),
        task_index=_clean_index(_entity_value(raw_entities, "task_index")),
        board_name=_clean_str(_entity_value(raw_entities, "board_name")),
        new_text=_clean_str(_entity_value(raw_entities, "new_text")),
    )
    return ParseSuccess(
        Intent(
            action=action,
            confidence=confidence,
            entities=entities,
            original_text=original_text,
        )
    )


class AIStrategy:
    """Single completion call with a bounded timeout; never raises."""

    def __init__(self, provider: CompletionProvider, timeout_s: float) -> None:
        self._provider = provider
        self._timeout_s = timeout_s

    async def parse(self, text: str) -> ParseResult:
        try:
            raw = await asyncio.wait_for(
                self._provider.complete(INTENT_SYSTEM_PROMPT, text),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            return ParseFailure(f"timeout_after_{self._timeout_s:.0f}s")
        except Exception as e:
            return ParseFailure(f"provider_error: {e}")

        if not isinstance(raw, str):
            return ParseFailure("non_text_reply")
        return parse_ai_reply(raw, text)


# ═══════════════════════════════════════════════════════════════════════════
# PARSER
# ═══════════════════════════════════════════════════════════════════════════

class IntentParser:
    """Turns raw message text into an Intent, degrading to rules on any AI failure."""

    def __init__(
        self,
        provider: CompletionProvider | None = None,
        timeout_s: float | None = None,
        rules: RuleBasedStrategy | None = None,
    ) -> None:
        self.rules = rules if rules is not None else RuleBasedStrategy()
        self.ai: AIStrategy | None = None
        if provider is not None:
            self.ai = AIStrategy(
                provider,
                timeout_s if timeout_s is not None else settings.intent_timeout_s,
            )

    async def parse_intent(self, text: str) -> Intent:
        clean_text = normalize_text(text)

        if self.ai is not None:
            result = await self.ai.parse(clean_text)
            if isinstance(result, ParseSuccess):
                logger.info(
                    "intent_parsed",
                    strategy="ai",
                    action=result.intent.action.value,
                    confidence=result.intent.confidence,
                )
                return result.intent
            logger.warning("ai_intent_fallback", reason=result.reason, text=clean_text[:100])

        try:
            intent = self.rules.parse(clean_text)
        except Exception as e:
            logger.error("rule_intent_error", error=str(e), text=clean_text[:100])
            return Intent(
                action=IntentAction.UNKNOWN,
                confidence=UNKNOWN_CONFIDENCE,
                original_text=clean_text,
            )

        logger.info(
            "intent_parsed",
            strategy="rules",
            action=intent.action.value,
            confidence=intent.confidence,
        )
        return intent
