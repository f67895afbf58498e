from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from decision_layer.logging import get_logger

from .types import Intent, ThreadContext

logger = get_logger(__name__)


@dataclass(frozen=True)
class FollowUpSignal:
    inferred_intent: Intent
    reason: str
    previous_bot_snippet: str
    confidence: float = 0.85


@dataclass(frozen=True)
class RefinementRule:
    pattern: re.Pattern[str]
    description: str


@dataclass(frozen=True)
class IntentMarkerRule:
    markers: tuple[str, ...]
    intent: Intent
    description: str


class FollowUpDetector(Protocol):
    def detect(self, message: str, thread: ThreadContext | None) -> FollowUpSignal | None: ...


def _rule(pattern: str, description: str) -> RefinementRule:
    return RefinementRule(re.compile(pattern, re.IGNORECASE), description)


DEFAULT_REFINEMENT_RULES: tuple[RefinementRule, ...] = (
    _rule(r"^(make\s+it|can\s+you\s+make\s+it)\s+(shorter|longer|more\s+concise|simpler|clearer)", "make it X"),
    _rule(r"^(too\s+)?(long|short|verbose|wordy|brief)\b", "too X"),
    _rule(r"^(better|good|nice),?\s+but\s+(too|a\s+bit|still)", "good but X"),
    _rule(r"^try\s+(again|once\s+more)", "try again"),
    _rule(r"^(more|less)\s+(concise|detailed|verbose|brief)", "more/less X"),
    _rule(r"^(shorten|expand|simplify|clarify)\s+(it|this|that)", "action it"),
    _rule(r"^(that'?s?|this\s+is)\s+(too|not)", "that's too X"),
    _rule(r"^not\s+quite", "not quite"),
    _rule(r"^(tweak|adjust|refine|revise)\s+(it|this|that)", "tweak it"),
    _rule(r"^can\s+you\s+(redo|rewrite|revise)", "can you redo"),
    _rule(r"^can\s+you\s+(include|add|also\s+show|also\s+include|put\s+in)", "can you include X"),
    _rule(r"^(include|add)\s+(the|their|customer|company)", "include the X"),
    _rule(r"^(also|and)\s+(include|add|show)", "also include X"),
    _rule(r"^(what\s+about|how\s+about)\s+(adding|including)", "what about adding X"),
    _rule(r"^(could\s+you|would\s+you)\s+(add|include)", "could you add X"),
)

DEFAULT_MARKER_RULES: tuple[IntentMarkerRule, ...] = (
    IntentMarkerRule(
        ("feature description", "description:", "research report", "researching"),
        Intent.EXTERNAL_RESEARCH,
        "external research",
    ),
    IntentMarkerRule(
        ("meeting", "they said", "action items", "next steps", "discussed", "mentioned"),
        Intent.SINGLE_MEETING,
        "meeting task",
    ),
    IntentMarkerRule(
        ("pricing", "feature", "integration", "product knowledge", "our approach"),
        Intent.PRODUCT_KNOWLEDGE,
        "product knowledge task",
    ),
    IntentMarkerRule(
        ("across", "meetings", "companies", "calls", "themes", "pattern analysis"),
        Intent.MULTI_MEETING,
        "multi-meeting analysis",
    ),
    IntentMarkerRule(
        ("document", "contract", "pdf", "file", "attachment", "deck", "presentation"),
        Intent.DOCUMENT_SEARCH,
        "document search",
    ),
    IntentMarkerRule(
        ("draft", "email", "write", "compose", "help you", "assist"),
        Intent.GENERAL_HELP,
        "general assistance",
    ),
)


class PatternFollowUpDetector:
    """Spot refinements like "make it shorter" and reuse the previous task's intent."""

    def __init__(
        self,
        refinement_rules: tuple[RefinementRule, ...] = DEFAULT_REFINEMENT_RULES,
        marker_rules: tuple[IntentMarkerRule, ...] = DEFAULT_MARKER_RULES,
    ) -> None:
        self.refinement_rules = list(refinement_rules)
        self.marker_rules = list(marker_rules)

    def register(
        self,
        refinement_rules: tuple[RefinementRule, ...] = (),
        marker_rules: tuple[IntentMarkerRule, ...] = (),
    ) -> None:
        self.refinement_rules.extend(refinement_rules)
        self.marker_rules.extend(marker_rules)

    def detect(self, message: str, thread: ThreadContext | None) -> FollowUpSignal | None:
        if thread is None or len(thread.messages) < 2:
            return None

        text = (message or "").strip().lower()
        rule = next((r for r in self.refinement_rules if r.pattern.search(text)), None)
        if rule is None:
            return None

        bot_message = thread.last_bot_message()
        if bot_message is None:
            return None

        bot_text = bot_message.text.lower()
        intent, description = Intent.GENERAL_HELP, "general follow-up"
        for marker_rule in self.marker_rules:
            if any(marker in bot_text for marker in marker_rule.markers):
                intent, description = marker_rule.intent, marker_rule.description
                break

        logger.info(f"Follow-up detected: '{rule.description}' -> {intent.value}")
        return FollowUpSignal(
            inferred_intent=intent,
            reason=f"Follow-up ({rule.description}) to {description}",
            previous_bot_snippet=bot_text[:100],
        )
