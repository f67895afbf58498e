"""Confidence gate: decide when a deterministic result needs an LLM second opinion."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from decision_layer.config import Settings, settings as default_settings
from decision_layer.contracts.types import AnswerContract
from decision_layer.errors import ClassificationError
from decision_layer.logging import get_logger
from decision_layer.models.adapter import ChatMessage, ChatModel, parse_json_object
from decision_layer.prompting import intent_validation_prompt

from .types import DetectionMethod, Intent, IntentClassificationResult, parse_intent

logger = get_logger(__name__)

_WEAK_METHODS = frozenset({DetectionMethod.KEYWORD, DetectionMethod.ENTITY_ACRONYM})
_TRUSTED_FAST_PATHS = frozenset({DetectionMethod.PRODUCT_SIGNAL, DetectionMethod.SITUATION_ADVICE})


def needs_validation(result: IntentClassificationResult, settings: Settings | None = None) -> bool:
    cfg = settings or default_settings
    method = result.detection_method

    if method == DetectionMethod.PATTERN and result.confidence >= cfg.PATTERN_TRUST_TAU:
        return False
    if method == DetectionMethod.ENTITY:
        return False
    if method in _TRUSTED_FAST_PATHS:
        return False
    if result.intent in (Intent.CLARIFY, Intent.REFUSE):
        return False
    if method in _WEAK_METHODS:
        return True
    return result.confidence < cfg.LOW_CONFIDENCE_TAU


@dataclass(frozen=True)
class ValidationVerdict:
    confirmed: bool
    confidence: float
    reason: str
    suggested_intent: Intent | None = None
    suggested_contract: AnswerContract | None = None

    def as_metadata(self) -> dict[str, Any]:
        return {
            "confirmed": self.confirmed,
            "confidence": self.confidence,
            "reason": self.reason,
            "suggested_intent": self.suggested_intent.value if self.suggested_intent else None,
            "suggested_contract": self.suggested_contract.value if self.suggested_contract else None,
        }


def _clamp(value: Any, default: float = 0.5) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default


def _parse_verdict(payload: dict[str, Any]) -> ValidationVerdict:
    confirmed = bool(payload.get("confirmed", False))
    suggested_intent = None
    suggested_contract = None
    if not confirmed and payload.get("suggestedIntent"):
        suggested_intent = parse_intent(payload["suggestedIntent"])
    if payload.get("suggestedContract"):
        try:
            suggested_contract = AnswerContract(str(payload["suggestedContract"]).strip().upper())
        except ValueError:
            suggested_contract = None
    return ValidationVerdict(
        confirmed=confirmed,
        confidence=_clamp(payload.get("confidence")),
        reason=str(payload.get("reason", "") or ""),
        suggested_intent=suggested_intent,
        suggested_contract=suggested_contract,
    )


async def validate_intent(
    llm: ChatModel,
    question: str,
    result: IntentClassificationResult,
    settings: Settings | None = None,
) -> ValidationVerdict:
    """Ask the LLM whether ``result`` fits ``question``.

    Raises:
        ClassificationError: transport failure, empty or malformed response,
            or an unknown suggested intent.
    """
    cfg = settings or default_settings
    messages = [
        ChatMessage(
            role="system",
            content=intent_validation_prompt(
                cfg.PRODUCT_NAME, result.intent, result.reason, result.metadata.matched_signals
            ),
        ),
        ChatMessage(role="user", content=question),
    ]
    raw, _ = await llm.chat(
        messages=messages,
        model=cfg.model_for("intent_validation"),
        max_tokens=200,
        temperature=cfg.TEMPERATURE,
    )
    return _parse_verdict(parse_json_object(raw))


def apply_verdict(
    result: IntentClassificationResult, verdict: ValidationVerdict
) -> IntentClassificationResult:
    """Fold a validation verdict into the deterministic result."""
    trace = verdict.as_metadata()
    suggested = verdict.suggested_intent
    if verdict.confirmed or suggested is None or suggested == result.intent:
        logger.info(f"Validation kept {result.intent.value}: {verdict.reason}")
        return replace(result, metadata=replace(result.metadata, llm_validation=trace))

    logger.info(
        f"Validation override {result.intent.value} -> {suggested.value}: "
        f"{verdict.reason}"
    )
    return replace(
        result,
        intent=suggested,
        detection_method=DetectionMethod.LLM_VALIDATED,
        confidence=verdict.confidence,
        reason=f"LLM validation: {verdict.reason}",
        metadata=replace(
            result.metadata,
            llm_validation=trace,
            original_intent=result.intent,
            original_reason=result.reason,
            rejected_intents=result.metadata.rejected_intents + (result.intent.value,),
        ),
    )


def fail_open(
    result: IntentClassificationResult, error: ClassificationError
) -> IntentClassificationResult:
    """Keep the deterministic result when validation could not run."""
    logger.warning(f"Validation failed, keeping {result.intent.value}: {error}")
    trace = {"confirmed": True, "confidence": 0.5, "reason": "validation unavailable", "error": error.kind}
    return replace(
        result,
        metadata=replace(result.metadata, llm_validation=trace, classification_error=str(error)),
    )
