from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from decision_layer.contracts.types import AnswerContract
from decision_layer.errors import ClassificationError


class Intent(str, Enum):
    SINGLE_MEETING = "SINGLE_MEETING"
    MULTI_MEETING = "MULTI_MEETING"
    PRODUCT_KNOWLEDGE = "PRODUCT_KNOWLEDGE"
    DOCUMENT_SEARCH = "DOCUMENT_SEARCH"
    EXTERNAL_RESEARCH = "EXTERNAL_RESEARCH"
    GENERAL_HELP = "GENERAL_HELP"
    REFUSE = "REFUSE"
    CLARIFY = "CLARIFY"


class DetectionMethod(str, Enum):
    KEYWORD = "keyword"
    PATTERN = "pattern"
    ENTITY = "entity"
    ENTITY_ACRONYM = "entity_acronym"
    LLM = "llm"
    LLM_VALIDATED = "llm_validated"
    DEFAULT = "default"
    FOLLOW_UP_DETECTION = "follow_up_detection"
    PRODUCT_SIGNAL = "product_signal"
    SITUATION_ADVICE = "situation_advice"


def parse_intent(value: Any) -> Intent:
    """Map an LLM-provided intent name onto :class:`Intent`.

    Unknown names are rejected instead of defaulted.
    """
    name = str(value or "").strip().upper()
    try:
        return Intent(name)
    except ValueError:
        raise ClassificationError(
            ClassificationError.INVALID_INTENT, f"unknown intent {value!r}"
        ) from None


def parse_contracts(values: Any) -> tuple[AnswerContract, ...]:
    """Keep the known contract names from an LLM list, preserving order."""
    if not isinstance(values, list):
        return ()
    out: list[AnswerContract] = []
    for item in values:
        try:
            contract = AnswerContract(str(item).strip().upper())
        except ValueError:
            continue
        if contract not in out:
            out.append(contract)
    return tuple(out)


@dataclass(frozen=True)
class ThreadMessage:
    text: str
    is_bot: bool = False


@dataclass(frozen=True)
class ThreadContext:
    """Conversation so far; the last message is the current question."""

    messages: tuple[ThreadMessage, ...] = ()

    @classmethod
    def from_dicts(cls, items: Iterable[Mapping[str, Any]]) -> ThreadContext:
        messages = []
        for item in items:
            is_bot = item.get("is_bot", item.get("isBot", False))
            messages.append(ThreadMessage(text=str(item.get("text", "")), is_bot=bool(is_bot)))
        return cls(messages=tuple(messages))

    def history(self) -> tuple[ThreadMessage, ...]:
        if len(self.messages) <= 1:
            return ()
        return self.messages[:-1]

    def last_bot_message(self) -> ThreadMessage | None:
        for message in reversed(self.messages):
            if message.is_bot:
                return message
        return None


@dataclass(frozen=True)
class ProposedInterpretation:
    intent: Intent
    contracts: tuple[AnswerContract, ...] = ()
    summary: str = ""


@dataclass(frozen=True)
class Alternative:
    intent: Intent
    description: str
    contracts: tuple[AnswerContract, ...] = ()
    hint: str | None = None


@dataclass(frozen=True)
class DecisionMetadata:
    matched_signals: tuple[str, ...] = ()
    rejected_intents: tuple[str, ...] = ()
    classification_error: str | None = None
    single_intent_violation: bool = False
    # Validation audit trail
    llm_validation: dict[str, Any] | None = None
    original_intent: Intent | None = None
    original_reason: str | None = None
    llm_interpretation: dict[str, Any] | None = None
    # Follow-up detection
    is_follow_up: bool = False
    previous_bot_snippet: str | None = None


@dataclass(frozen=True)
class IntentClassificationResult:
    intent: Intent
    detection_method: DetectionMethod
    confidence: float  # 0..1
    reason: str = ""
    metadata: DecisionMetadata = field(default_factory=DecisionMetadata)
    proposed_interpretation: ProposedInterpretation | None = None
    alternatives: tuple[Alternative, ...] = ()
    clarify_message: str | None = None
    needs_split: bool = False
    split_options: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
