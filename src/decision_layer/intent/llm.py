from __future__ import annotations

from typing import Any

from decision_layer.config import Settings, settings as default_settings
from decision_layer.models.adapter import (
    ChatMessage,
    ChatModel,
    history_messages,
    parse_json_object,
)
from decision_layer.prompting import intent_classification_prompt

from .types import (
    DecisionMetadata,
    DetectionMethod,
    Intent,
    IntentClassificationResult,
    ThreadContext,
    parse_intent,
)


def _clamp(value: Any) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


async def classify_with_llm(
    llm: ChatModel,
    question: str,
    thread: ThreadContext | None = None,
    settings: Settings | None = None,
) -> IntentClassificationResult:
    """Single-shot semantic classification; raises ``ClassificationError`` on failure."""
    cfg = settings or default_settings
    messages = [ChatMessage(role="system", content=intent_classification_prompt(cfg.PRODUCT_NAME))]
    messages.extend(history_messages(thread))
    messages.append(ChatMessage(role="user", content=question))

    raw, _ = await llm.chat(
        messages=messages,
        model=cfg.model_for("intent_classification"),
        max_tokens=200,
        temperature=cfg.TEMPERATURE,
    )
    payload = parse_json_object(raw)
    intent = parse_intent(payload.get("intent"))
    return IntentClassificationResult(
        intent=intent,
        detection_method=DetectionMethod.LLM,
        confidence=_clamp(payload.get("confidence")),
        reason=str(payload.get("reason", "") or "LLM classification"),
        metadata=DecisionMetadata(),
    )


def classification_failed(error: Exception) -> IntentClassificationResult:
    return IntentClassificationResult(
        intent=Intent.CLARIFY,
        detection_method=DetectionMethod.DEFAULT,
        confidence=0.0,
        reason=f"Classification failed: {error}",
        metadata=DecisionMetadata(classification_error=str(error)),
    )
