"""Deterministic fast path: refusal, split, greeting, product and entity rules.

Matchers run in the fixed order of ``PatternMatcher.matchers`` and the first
one that returns a result wins. Each matcher can be called on its own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from decision_layer.config import settings
from decision_layer.logging import get_logger

from .types import DecisionMetadata, DetectionMethod, Intent, IntentClassificationResult

logger = get_logger(__name__)

_REFUSE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bweather\s+(in|like|forecast)\b",
        r"\bstock\s+(price|market|ticker)\b",
        r"\bhome\s+address\b",
        r"\bpersonal\s+(address|phone|email)\b",
        r"\bhow\s+much\s+(revenue|money|profit)\s+will\b",
        r"\bwhat('s|\s+is)\s+the\s+time\b",
        r"\b(tell\s+me\s+a\s+)?joke\b",
        r"\bwrite\s+(me\s+)?a?\s*(poem|story|song)\b",
    )
)

_MULTI_INTENT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(summarize|summary)\b.*\b(and|then)\b.*\b(pricing|check|email|compare)\b",
        r"\b(answer|respond)\b.*\b(and|then)\b.*\b(email|summarize|pricing)\b",
        r"\bcompare\b.*\b(and|then)\b.*\b(email|summarize)\b",
    )
)

_SIMPLE_GREETINGS = frozenset(
    {
        "hello",
        "hi",
        "hi there",
        "hey",
        "hey there",
        "good morning",
        "good afternoon",
        "good evening",
        "thanks",
        "thank you",
        "thanks!",
        "thank you!",
    }
)

_APOS = "['’]"

_SITUATION_RE = re.compile(
    rf"\b(pattern\s+we{_APOS}?re\s+seeing|emerging\s+pattern|customers?\s+want|they\s+want)\b",
    re.IGNORECASE,
)
_ADVICE_RE = re.compile(
    r"\b(how\s+(can|should|do)\s+we|help\s+me|what\s+should|approach\s+this)\b",
    re.IGNORECASE,
)
_BROADENING_RE = re.compile(r"\b(all|every|across|find|which|any)\b", re.IGNORECASE)
# "across all our customers", "every account", "all the calls"
_COLLECTIVE_RE = re.compile(
    r"\b(all|every|across)\b(?:\s+\w+){0,3}?\s+(customers?|accounts?|clients?|meetings?|calls?)\b",
    re.IGNORECASE,
)
_ACRONYM_RE = re.compile(r"^[A-Z]{2,5}$")
_POSSESSIVE_RE = re.compile(rf"^[A-Z][A-Za-z]*{_APOS}s?$")

SPLIT_OPTIONS = ("meeting content", "other request")
SPLIT_MESSAGE = (
    "It sounds like you're asking for a couple of things at once. "
    "Which should I start with?\n\n"
    "1. The meeting content\n"
    "2. The other request\n\n"
    "Reply with a number, or send them one at a time!"
)


def _build_product_signal_re(product_name: str) -> re.Pattern[str]:
    product = r"\s+".join(re.escape(part) for part in product_name.lower().split())
    alternatives = (
        rf"based\s+on\s+{product}",
        rf"{product}{_APOS}?s?\s+value",
        r"our\s+value\s+prop",
        r"how\s+(should\s+we|can\s+we|do\s+we)\s+(approach|help|handle)",
        r"help\s+me\s+think\s+through",
        r"think\s+through\s+how",
        r"our\s+(q[1-4]\s+)?roadmap",
        rf"what{_APOS}?s\s+on\s+our\s+roadmap",
        r"features?\s+coming\s+next",
        r"our\s+recommended\s+approach",
        rf"what{_APOS}?s\s+our\s+(recommended\s+)?approach",
    )
    return re.compile(r"\b(" + "|".join(alternatives) + r")\b", re.IGNORECASE)


def _phrase_re(phrase: str) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(part) for part in phrase.split())
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)


@dataclass(frozen=True)
class EntityMatch:
    name: str
    kind: str  # "company"|"contact"
    match_type: str  # "full"|"acronym"
    token: str


def is_acronym_token(word: str) -> bool:
    return bool(_ACRONYM_RE.match(word) or _POSSESSIVE_RE.match(word))


def find_entity(
    question: str, companies: Iterable[str], contacts: Iterable[str] = ()
) -> EntityMatch | None:
    """Find the first known company or contact mentioned in ``question``.

    Full names win over acronym-style first words; longer names are tried
    first so "Discount Tire" beats a shorter overlapping name.
    """
    names = sorted({c.strip() for c in companies if c and c.strip()}, key=lambda n: (-len(n), n))
    for name in names:
        m = _phrase_re(name).search(question)
        if m:
            return EntityMatch(name=name, kind="company", match_type="full", token=m.group(0))

    for contact in sorted({c.strip() for c in contacts if c and c.strip()}, key=lambda n: (-len(n), n)):
        m = _phrase_re(contact).search(question)
        if m:
            return EntityMatch(name=contact, kind="contact", match_type="full", token=m.group(0))

    for name in names:
        parts = name.split()
        if len(parts) < 2 or not is_acronym_token(parts[0]):
            continue
        m = _phrase_re(parts[0]).search(question)
        if m:
            return EntityMatch(name=name, kind="company", match_type="acronym", token=m.group(0))
    return None


@dataclass(frozen=True)
class _Query:
    text: str
    normalized: str
    companies: tuple[str, ...]
    contacts: tuple[str, ...]


Matcher = Callable[[_Query], "IntentClassificationResult | None"]


class PatternMatcher:
    """Ordered keyword/regex/entity classifier with no I/O."""

    def __init__(self, product_name: str | None = None) -> None:
        self.product_name = product_name or settings.PRODUCT_NAME
        self._product_signal_re = _build_product_signal_re(self.product_name)
        self.matchers: tuple[Matcher, ...] = (
            self.match_refusal,
            self.match_multi_intent,
            self.match_greeting,
            self.match_product_signal,
            self.match_entity,
        )

    def match(
        self,
        question: str,
        companies: Sequence[str] = (),
        contacts: Sequence[str] = (),
    ) -> IntentClassificationResult | None:
        query = _Query(
            text=question or "",
            normalized=(question or "").strip().lower(),
            companies=tuple(companies),
            contacts=tuple(contacts),
        )
        for matcher in self.matchers:
            result = matcher(query)
            if result is not None:
                logger.info(
                    f"Pattern match: {result.intent.value} via {result.detection_method.value} "
                    f"({result.confidence:.2f}) - {result.reason}"
                )
                return result
        return None

    def match_refusal(self, query: _Query) -> IntentClassificationResult | None:
        for pattern in _REFUSE_PATTERNS:
            m = pattern.search(query.text)
            if m:
                return IntentClassificationResult(
                    intent=Intent.REFUSE,
                    detection_method=DetectionMethod.PATTERN,
                    confidence=0.95,
                    reason=f"Out-of-scope request ('{m.group(0)}')",
                    metadata=DecisionMetadata(matched_signals=(m.group(0),)),
                )
        return None

    def match_multi_intent(self, query: _Query) -> IntentClassificationResult | None:
        for pattern in _MULTI_INTENT_PATTERNS:
            m = pattern.search(query.text)
            if not m:
                continue
            entity = find_entity(query.text, query.companies, query.contacts)
            signals = (m.group(0),) + ((entity.token,) if entity else ())
            return IntentClassificationResult(
                intent=Intent.CLARIFY,
                detection_method=DetectionMethod.PATTERN,
                confidence=0.9,
                reason="Multiple requests in one message",
                metadata=DecisionMetadata(
                    matched_signals=signals,
                    single_intent_violation=entity is not None,
                ),
                clarify_message=SPLIT_MESSAGE,
                needs_split=True,
                split_options=SPLIT_OPTIONS,
            )
        return None

    def match_greeting(self, query: _Query) -> IntentClassificationResult | None:
        if query.normalized not in _SIMPLE_GREETINGS:
            return None
        return IntentClassificationResult(
            intent=Intent.GENERAL_HELP,
            detection_method=DetectionMethod.KEYWORD,
            confidence=1.0,
            reason="Simple greeting",
            metadata=DecisionMetadata(matched_signals=(query.normalized,)),
        )

    def match_product_signal(self, query: _Query) -> IntentClassificationResult | None:
        m = self._product_signal_re.search(query.text)
        if not m:
            return None
        return IntentClassificationResult(
            intent=Intent.PRODUCT_KNOWLEDGE,
            detection_method=DetectionMethod.PRODUCT_SIGNAL,
            confidence=0.92,
            reason=f"Strategic {self.product_name} question ('{m.group(0)}')",
            metadata=DecisionMetadata(matched_signals=(m.group(0),)),
        )

    def match_entity(self, query: _Query) -> IntentClassificationResult | None:
        entity = find_entity(query.text, query.companies, query.contacts)
        if entity is None:
            return self._match_collective(query)

        acronym = entity.match_type == "acronym"
        method = DetectionMethod.ENTITY_ACRONYM if acronym else DetectionMethod.ENTITY
        confidence = 0.70 if acronym else 0.85
        label = f"'{entity.token}' (acronym of {entity.name})" if acronym else f"'{entity.name}'"

        situation = _SITUATION_RE.search(query.text)
        advice = _ADVICE_RE.search(query.text)
        if situation and advice:
            return IntentClassificationResult(
                intent=Intent.PRODUCT_KNOWLEDGE,
                detection_method=DetectionMethod.SITUATION_ADVICE,
                confidence=0.90,
                reason=f"Advice requested about a situation involving {label}",
                metadata=DecisionMetadata(
                    matched_signals=(entity.token, situation.group(0), advice.group(0)),
                    rejected_intents=(Intent.SINGLE_MEETING.value, Intent.MULTI_MEETING.value),
                ),
            )

        broadening = _BROADENING_RE.search(query.text)
        if broadening:
            return IntentClassificationResult(
                intent=Intent.MULTI_MEETING,
                detection_method=method,
                confidence=confidence,
                reason=f"{entity.kind.capitalize()} {label} with '{broadening.group(0)}'",
                metadata=DecisionMetadata(
                    matched_signals=(entity.token, broadening.group(0)),
                    rejected_intents=(Intent.SINGLE_MEETING.value,),
                ),
            )
        return IntentClassificationResult(
            intent=Intent.SINGLE_MEETING,
            detection_method=method,
            confidence=confidence,
            reason=f"{entity.kind.capitalize()} {label} mentioned",
            metadata=DecisionMetadata(matched_signals=(entity.token,)),
        )

    def _match_collective(self, query: _Query) -> IntentClassificationResult | None:
        m = _COLLECTIVE_RE.search(query.text)
        if not m:
            return None
        return IntentClassificationResult(
            intent=Intent.MULTI_MEETING,
            detection_method=DetectionMethod.PATTERN,
            confidence=0.80,
            reason=f"Question spans the customer base ('{m.group(0)}')",
            metadata=DecisionMetadata(matched_signals=(m.group(0),)),
        )


_default_matcher: PatternMatcher | None = None


def match_keyword(
    question: str,
    companies: Sequence[str] = (),
    contacts: Sequence[str] = (),
) -> IntentClassificationResult | None:
    global _default_matcher
    if _default_matcher is None:
        _default_matcher = PatternMatcher()
    return _default_matcher.match(question, companies, contacts)
