"""LLM interpretation of questions the deterministic rules could not route.

The interpreter only proposes: it returns an :class:`Interpretation` and the
classifier decides whether the proposal is confident enough to use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from decision_layer.config import Settings, settings as default_settings
from decision_layer.contracts.selector import DEFAULT_CONTRACTS
from decision_layer.contracts.types import AnswerContract
from decision_layer.errors import ClassificationError
from decision_layer.logging import get_logger
from decision_layer.models.adapter import (
    ChatMessage,
    ChatModel,
    history_messages,
    parse_json_object,
)
from decision_layer.prompting import interpretation_prompt

from .types import (
    Alternative,
    Intent,
    ProposedInterpretation,
    ThreadContext,
    parse_contracts,
    parse_intent,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Interpretation:
    proposed_intent: Intent
    proposed_contracts: tuple[AnswerContract, ...]
    confidence: float
    summary: str
    question_form: str
    failure_reason: str
    can_partial_answer: bool = False
    partial_answer: str | None = None
    alternatives: tuple[Alternative, ...] = ()
    message: str = ""

    def proposal(self) -> ProposedInterpretation:
        return ProposedInterpretation(
            intent=self.proposed_intent,
            contracts=self.proposed_contracts,
            summary=self.summary,
        )

    def as_metadata(self) -> dict[str, Any]:
        return {
            "proposed_intent": self.proposed_intent.value,
            "proposed_contracts": [c.value for c in self.proposed_contracts],
            "confidence": self.confidence,
            "failure_reason": self.failure_reason,
            "alternatives": [a.intent.value for a in self.alternatives],
        }


def build_clarify_message(
    question_form: str,
    confidence: float,
    alternatives: tuple[Alternative, ...] = (),
    partial_answer: str | None = None,
    can_partial_answer: bool = False,
    settings: Settings | None = None,
) -> str:
    """Render the disambiguation message shown to the user."""
    cfg = settings or default_settings
    lines = [question_form, ""]

    if can_partial_answer and partial_answer and confidence > cfg.PARTIAL_ANSWER_TAU:
        lines.append(f"If so: {partial_answer}")
        lines.append("")

    if alternatives:
        lines.append("Or did you mean:")
        for idx, alt in enumerate(alternatives, start=1):
            hint = f" ({alt.hint})" if alt.hint else ""
            lines.append(f"{idx}. {alt.description}{hint}")
        lines.append("")
        lines.append("Reply with a number or describe what you need!")
    elif confidence < cfg.CLARIFY_CONFIDENT_TAU:
        lines.append("Let me know if that's right, or tell me more!")
    else:
        lines.append("Let me know!")

    return "\n".join(lines).strip()


def _clamp(value: Any) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


def _parse_alternatives(
    values: Any, proposed: Intent, limit: int
) -> tuple[Alternative, ...]:
    if not isinstance(values, list):
        return ()
    out: list[Alternative] = []
    for item in values:
        if not isinstance(item, dict):
            continue
        try:
            intent = parse_intent(item.get("intent"))
        except ClassificationError:
            logger.debug(f"Dropping alternative with unknown intent: {item.get('intent')!r}")
            continue
        description = str(item.get("description", "") or "").strip()
        if intent == proposed or not description:
            continue
        hint = str(item.get("hint") or "").strip() or None
        out.append(
            Alternative(
                intent=intent,
                description=description,
                contracts=parse_contracts(item.get("contracts")),
                hint=hint,
            )
        )
        if len(out) >= limit:
            break
    return tuple(out)


def _parse_interpretation(
    payload: dict[str, Any], failure_reason: str, cfg: Settings
) -> Interpretation:
    proposed_intent = parse_intent(payload.get("proposedIntent"))
    contracts = parse_contracts(payload.get("proposedContracts"))
    if not contracts:
        contracts = (DEFAULT_CONTRACTS[proposed_intent],)

    confidence = _clamp(payload.get("confidence"))
    summary = str(payload.get("interpretation", "") or "").strip()
    question_form = str(payload.get("questionForm", "") or "").strip()
    if not question_form:
        question_form = f"Are you asking about: {summary}?" if summary else "Could you tell me a bit more?"
    partial = str(payload.get("partialAnswer") or "").strip() or None
    can_partial = bool(payload.get("canPartialAnswer", False))
    alternatives = _parse_alternatives(payload.get("alternatives"), proposed_intent, cfg.MAX_ALTERNATIVES)

    return Interpretation(
        proposed_intent=proposed_intent,
        proposed_contracts=contracts,
        confidence=confidence,
        summary=summary,
        question_form=question_form,
        failure_reason=failure_reason,
        can_partial_answer=can_partial,
        partial_answer=partial,
        alternatives=alternatives,
        message=build_clarify_message(
            question_form,
            confidence,
            alternatives=alternatives,
            partial_answer=partial,
            can_partial_answer=can_partial,
            settings=cfg,
        ),
    )


async def interpret_ambiguous_query(
    llm: ChatModel,
    question: str,
    failure_reason: str,
    thread: ThreadContext | None = None,
    settings: Settings | None = None,
) -> Interpretation:
    """Propose an interpretation for an unrouted question.

    Raises:
        ClassificationError: the LLM call failed or its answer was unusable.
    """
    cfg = settings or default_settings
    messages = [ChatMessage(role="system", content=interpretation_prompt(cfg.PRODUCT_NAME, failure_reason))]
    messages.extend(history_messages(thread))
    messages.append(ChatMessage(role="user", content=question))

    raw, _ = await llm.chat(
        messages=messages,
        model=cfg.model_for("interpretation"),
        max_tokens=cfg.MAX_OUTPUT_TOKENS,
        temperature=cfg.INTERPRETATION_TEMPERATURE,
    )
    interpretation = _parse_interpretation(parse_json_object(raw), failure_reason, cfg)
    logger.info(
        f"Interpretation: {interpretation.proposed_intent.value} "
        f"({interpretation.confidence:.2f}) with {len(interpretation.alternatives)} alternatives"
    )
    return interpretation
