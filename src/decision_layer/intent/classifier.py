from __future__ import annotations

from dataclasses import replace

from decision_layer.config import Settings, settings as default_settings
from decision_layer.errors import ClassificationError
from decision_layer.logging import get_logger
from decision_layer.models.adapter import ChatModel
from decision_layer.prompting import fallback_clarify_message

from .entities import EntityCache
from .follow_up import FollowUpDetector
from .interpreter import Interpretation, interpret_ambiguous_query
from .llm import classification_failed, classify_with_llm
from .rules import PatternMatcher
from .types import (
    DecisionMetadata,
    DetectionMethod,
    Intent,
    IntentClassificationResult,
    ThreadContext,
)
from .validation import apply_verdict, fail_open, needs_validation, validate_intent

logger = get_logger(__name__)


class IntentClassifier:
    """Resolve a question to exactly one intent.

    Order: pattern fast path, optional follow-up detection, then LLM
    interpretation (or direct LLM classification). Low-confidence
    deterministic results are sent through LLM validation, which fails
    open. Every LLM failure is handled here and nowhere else.
    """

    def __init__(
        self,
        llm: ChatModel,
        entity_cache: EntityCache,
        settings: Settings | None = None,
        matcher: PatternMatcher | None = None,
        follow_up_detector: FollowUpDetector | None = None,
    ) -> None:
        self.llm = llm
        self.entity_cache = entity_cache
        self.settings = settings or default_settings
        self.matcher = matcher or PatternMatcher(self.settings.PRODUCT_NAME)
        self.follow_up_detector = follow_up_detector

    async def classify(
        self, question: str, thread: ThreadContext | None = None
    ) -> IntentClassificationResult:
        companies = await self.entity_cache.get()
        result = self.matcher.match(question, companies, self.settings.KNOWN_CONTACTS)

        if result is not None:
            if result.intent == Intent.CLARIFY and result.metadata.single_intent_violation:
                return await self._interpret(
                    question, "multi_intent_ambiguity", thread, base=result.metadata
                )
            if needs_validation(result, self.settings):
                return await self._validate(question, result)
            return result

        follow_up = self._detect_follow_up(question, thread)
        if follow_up is not None:
            if needs_validation(follow_up, self.settings):
                return await self._validate(question, follow_up)
            return follow_up

        if self.settings.FALLBACK_MODE == "classify":
            return await self._classify_direct(question, thread)
        return await self._interpret(question, "no_intent_match", thread)

    def _detect_follow_up(
        self, question: str, thread: ThreadContext | None
    ) -> IntentClassificationResult | None:
        if not self.settings.FOLLOW_UP_FAST_PATH or self.follow_up_detector is None:
            return None
        signal = self.follow_up_detector.detect(question, thread)
        if signal is None:
            return None
        return IntentClassificationResult(
            intent=signal.inferred_intent,
            detection_method=DetectionMethod.FOLLOW_UP_DETECTION,
            confidence=signal.confidence,
            reason=signal.reason,
            metadata=DecisionMetadata(
                is_follow_up=True,
                previous_bot_snippet=signal.previous_bot_snippet,
            ),
        )

    async def _validate(
        self, question: str, result: IntentClassificationResult
    ) -> IntentClassificationResult:
        try:
            verdict = await validate_intent(self.llm, question, result, self.settings)
        except Exception as e:
            return fail_open(result, _as_classification_error(e))
        return apply_verdict(result, verdict)

    async def _classify_direct(
        self, question: str, thread: ThreadContext | None
    ) -> IntentClassificationResult:
        try:
            result = await classify_with_llm(self.llm, question, thread, self.settings)
        except Exception as e:
            error = _as_classification_error(e)
            logger.warning(f"LLM classification failed: {error}")
            return replace(
                classification_failed(error),
                clarify_message=fallback_clarify_message(self.settings.PRODUCT_NAME),
            )

        if result.intent == Intent.CLARIFY:
            return replace(
                result, clarify_message=fallback_clarify_message(self.settings.PRODUCT_NAME)
            )
        if result.intent == Intent.REFUSE or result.confidence >= self.settings.INTERPRETATION_TAU:
            return result

        logger.info(
            f"LLM classification below threshold ({result.confidence:.2f}), asking to clarify"
        )
        return replace(
            result,
            intent=Intent.CLARIFY,
            reason=f"Low-confidence classification ({result.intent.value}): {result.reason}",
            metadata=replace(result.metadata, rejected_intents=(result.intent.value,)),
            clarify_message=fallback_clarify_message(self.settings.PRODUCT_NAME),
        )

    async def _interpret(
        self,
        question: str,
        failure_reason: str,
        thread: ThreadContext | None,
        base: DecisionMetadata | None = None,
    ) -> IntentClassificationResult:
        base = base or DecisionMetadata()
        try:
            interpretation = await interpret_ambiguous_query(
                self.llm, question, failure_reason, thread, self.settings
            )
        except Exception as e:
            error = _as_classification_error(e)
            logger.warning(f"Interpretation failed ({failure_reason}): {error}")
            return IntentClassificationResult(
                intent=Intent.CLARIFY,
                detection_method=DetectionMethod.DEFAULT,
                confidence=0.0,
                reason=f"Interpretation failed: {error}",
                metadata=replace(
                    base,
                    classification_error=str(error),
                    single_intent_violation=failure_reason == "multi_intent_ambiguity",
                ),
                clarify_message=fallback_clarify_message(self.settings.PRODUCT_NAME),
            )
        return self._resolve_interpretation(interpretation, base)

    def _resolve_interpretation(
        self, interpretation: Interpretation, base: DecisionMetadata
    ) -> IntentClassificationResult:
        metadata = replace(
            base,
            llm_interpretation=interpretation.as_metadata(),
            single_intent_violation=interpretation.failure_reason == "multi_intent_ambiguity",
        )
        executable = (
            interpretation.confidence >= self.settings.INTERPRETATION_TAU
            and interpretation.proposed_intent != Intent.CLARIFY
        )
        if executable:
            return IntentClassificationResult(
                intent=interpretation.proposed_intent,
                detection_method=DetectionMethod.LLM,
                confidence=interpretation.confidence,
                reason=f"LLM interpretation: {interpretation.summary}",
                metadata=metadata,
                proposed_interpretation=interpretation.proposal(),
            )

        logger.info(
            f"Interpretation below threshold ({interpretation.confidence:.2f}), asking to clarify"
        )
        if interpretation.proposed_intent != Intent.CLARIFY:
            metadata = replace(
                metadata,
                rejected_intents=metadata.rejected_intents + (interpretation.proposed_intent.value,),
            )
        return IntentClassificationResult(
            intent=Intent.CLARIFY,
            detection_method=DetectionMethod.LLM,
            confidence=interpretation.confidence,
            reason=f"Ambiguous ({interpretation.failure_reason}): {interpretation.summary}",
            metadata=metadata,
            proposed_interpretation=interpretation.proposal(),
            alternatives=interpretation.alternatives,
            clarify_message=interpretation.message,
        )


def _as_classification_error(error: Exception) -> ClassificationError:
    if isinstance(error, ClassificationError):
        return error
    return ClassificationError(ClassificationError.TRANSPORT, f"{type(error).__name__}: {error}")
