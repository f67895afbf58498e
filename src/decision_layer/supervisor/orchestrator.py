"""Decision layer orchestration.

CLASSIFYING -> LAYERING -> CONTRACT_SELECTING -> (SCOPE_CHECKING) -> DONE, with
an early exit to CLARIFY_TERMINAL for REFUSE/CLARIFY classifications, a
failed scope check, or a blocking time-range clarification.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from functools import lru_cache
from typing import Any

from decision_layer.config import Settings, settings as default_settings
from decision_layer.contracts.selector import is_aggregate_contract, select_answer_contract
from decision_layer.contracts.types import AnswerContract
from decision_layer.errors import ClassificationError
from decision_layer.intent.classifier import IntentClassifier
from decision_layer.intent.entities import EntityCache
from decision_layer.intent.follow_up import FollowUpDetector, PatternFollowUpDetector
from decision_layer.intent.types import (
    Alternative,
    DecisionMetadata,
    Intent,
    IntentClassificationResult,
    ProposedInterpretation,
    ThreadContext,
)
from decision_layer.layers import ContextLayers, compute_context_layers, enabled_layer_names
from decision_layer.logging import get_logger
from decision_layer.models.adapter import ChatModel, get_openai
from decision_layer.prompting import fallback_clarify_message
from decision_layer.scope import (
    SCOPE_FAILURE_MESSAGE,
    ScopeInfo,
    check_specificity,
    generate_scope_note,
    should_ask_for_time_range,
    to_scope_info,
)
from decision_layer.stores import (
    EntityStore,
    MeetingCountStore,
    StaticEntityStore,
    StaticMeetingCountStore,
)
from decision_layer.telemetry.recorder import log_decision
from decision_layer.utils.timing import StageTimer

logger = get_logger(__name__)

AGGREGATE_SCOPE_CHECK = "aggregate_scope_check"


class DecisionState(str, Enum):
    CLASSIFYING = "CLASSIFYING"
    LAYERING = "LAYERING"
    CONTRACT_SELECTING = "CONTRACT_SELECTING"
    SCOPE_CHECKING = "SCOPE_CHECKING"
    CLARIFY_TERMINAL = "CLARIFY_TERMINAL"
    DONE = "DONE"


@dataclass(frozen=True)
class DecisionLayerResult:
    intent: Intent
    intent_detection_method: str
    confidence: float
    reason: str
    context_layers: ContextLayers
    answer_contract: AnswerContract
    contract_selection_method: str
    contract_chain: tuple[AnswerContract, ...] | None = None
    clarify_message: str | None = None
    proposed_interpretation: ProposedInterpretation | None = None
    alternatives: tuple[Alternative, ...] = ()
    needs_split: bool = False
    split_options: tuple[str, ...] = ()
    scope: ScopeInfo | None = None
    scope_note: str | None = None
    metadata: DecisionMetadata = field(default_factory=DecisionMetadata)
    trace: tuple[DecisionState, ...] = ()
    timings_ms: dict[str, float] = field(default_factory=dict)


class DecisionLayer:
    """Routes one question to an intent, context layers and an answer contract."""

    def __init__(
        self,
        llm: ChatModel | None = None,
        entity_store: EntityStore | None = None,
        meeting_store: MeetingCountStore | None = None,
        settings: Settings | None = None,
        entity_cache: EntityCache | None = None,
        follow_up_detector: FollowUpDetector | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.llm = llm or get_openai()
        if entity_cache is None:
            store = entity_store or StaticEntityStore(self.settings.FALLBACK_COMPANIES)
            entity_cache = EntityCache.from_store(store, self.settings)
        self.entity_cache = entity_cache
        self.meeting_store = meeting_store or StaticMeetingCountStore(0)
        self.classifier = IntentClassifier(
            llm=self.llm,
            entity_cache=self.entity_cache,
            settings=self.settings,
            follow_up_detector=follow_up_detector or PatternFollowUpDetector(),
        )

    async def run(
        self, question: str, thread: ThreadContext | None = None
    ) -> DecisionLayerResult:
        request_id = uuid.uuid4().hex[:12]
        timer = StageTimer()
        logger.info(
            f"[{request_id}] Decision layer input: {question!r} "
            f"({len(thread.messages) if thread else 0} thread messages)"
        )
        try:
            result = await self._run(question, thread, timer)
        except Exception as e:
            logger.exception(f"[{request_id}] Decision layer failed: {e}")
            result = self._failure_result(e)
        result = _with_timings(result, timer)

        logger.info(
            f"[{request_id}] Decision: {result.intent.value} via {result.intent_detection_method}, "
            f"contract={result.answer_contract.value}, "
            f"layers={enabled_layer_names(result.context_layers)}"
        )
        if self.settings.TELEMETRY_ENABLED:
            try:
                log_decision(request_id, {"question": question, **_telemetry_payload(result)})
            except Exception as e:
                logger.warning(f"[{request_id}] Telemetry write failed: {e}")
        return result

    async def _run(
        self, question: str, thread: ThreadContext | None, timer: StageTimer
    ) -> DecisionLayerResult:
        trace = [DecisionState.CLASSIFYING]
        with timer.stage(DecisionState.CLASSIFYING.value):
            classified = await self.classifier.classify(question, thread)

        if classified.intent in (Intent.CLARIFY, Intent.REFUSE):
            trace.append(DecisionState.CLARIFY_TERMINAL)
            return await self._terminal(question, classified, trace)

        trace.append(DecisionState.LAYERING)
        layers = compute_context_layers(classified.intent).layers

        trace.append(DecisionState.CONTRACT_SELECTING)
        proposed = classified.proposed_interpretation
        with timer.stage(DecisionState.CONTRACT_SELECTING.value):
            contract = await select_answer_contract(
                question,
                classified.intent,
                proposed.contracts if proposed else (),
                llm=self.llm,
                settings=self.settings,
            )

        scope: ScopeInfo | None = None
        scope_note: str | None = None
        if classified.intent == Intent.MULTI_MEETING:
            trace.append(DecisionState.SCOPE_CHECKING)
            with timer.stage(DecisionState.SCOPE_CHECKING.value):
                try:
                    check = await check_specificity(self.llm, question, thread, self.settings)
                except ClassificationError as e:
                    logger.warning(f"Scope check failed: {e}")
                    trace.append(DecisionState.CLARIFY_TERMINAL)
                    return self._scope_failure(classified, contract.contract, e, trace)

                scope = to_scope_info(check)
                if is_aggregate_contract(contract.contract):
                    meeting_count = await self._count_meetings()
                    message = should_ask_for_time_range(
                        check.has_time_range,
                        meeting_count,
                        self.settings.AGGREGATE_MEETING_THRESHOLD,
                    )
                    if message:
                        logger.info(
                            f"Blocking clarification: {meeting_count} meetings without a time range"
                        )
                        trace.append(DecisionState.CLARIFY_TERMINAL)
                        return DecisionLayerResult(
                            intent=Intent.CLARIFY,
                            intent_detection_method=AGGREGATE_SCOPE_CHECK,
                            confidence=classified.confidence,
                            reason=f"{meeting_count} meetings on record and no time range",
                            context_layers=compute_context_layers(Intent.CLARIFY).layers,
                            answer_contract=AnswerContract.CLARIFY,
                            contract_selection_method="default",
                            clarify_message=message,
                            proposed_interpretation=ProposedInterpretation(
                                intent=classified.intent,
                                contracts=(contract.contract,),
                                summary="Aggregate analysis - awaiting scope",
                            ),
                            scope=scope,
                            metadata=classified.metadata,
                            trace=tuple(trace),
                        )
                scope_note = generate_scope_note(check.has_time_range, check.has_customer_scope) or None

        trace.append(DecisionState.DONE)
        return DecisionLayerResult(
            intent=classified.intent,
            intent_detection_method=classified.detection_method.value,
            confidence=classified.confidence,
            reason=classified.reason,
            context_layers=layers,
            answer_contract=contract.contract,
            contract_selection_method=contract.selection_method,
            contract_chain=_contract_chain(proposed),
            proposed_interpretation=proposed,
            scope=scope,
            scope_note=scope_note,
            metadata=classified.metadata,
            trace=tuple(trace),
        )

    async def _terminal(
        self,
        question: str,
        classified: IntentClassificationResult,
        trace: list[DecisionState],
    ) -> DecisionLayerResult:
        contract = await select_answer_contract(question, classified.intent, settings=self.settings)
        clarify_message = classified.clarify_message
        if classified.intent == Intent.CLARIFY and not clarify_message:
            clarify_message = fallback_clarify_message(self.settings.PRODUCT_NAME)
        return DecisionLayerResult(
            intent=classified.intent,
            intent_detection_method=classified.detection_method.value,
            confidence=classified.confidence,
            reason=classified.reason,
            context_layers=compute_context_layers(classified.intent).layers,
            answer_contract=contract.contract,
            contract_selection_method=contract.selection_method,
            clarify_message=clarify_message,
            proposed_interpretation=classified.proposed_interpretation,
            alternatives=classified.alternatives,
            needs_split=classified.needs_split,
            split_options=classified.split_options,
            metadata=classified.metadata,
            trace=tuple(trace),
        )

    def _scope_failure(
        self,
        classified: IntentClassificationResult,
        contract: AnswerContract,
        error: ClassificationError,
        trace: list[DecisionState],
    ) -> DecisionLayerResult:
        return DecisionLayerResult(
            intent=Intent.CLARIFY,
            intent_detection_method=AGGREGATE_SCOPE_CHECK,
            confidence=0.0,
            reason=f"Scope check failed: {error}",
            context_layers=compute_context_layers(Intent.CLARIFY).layers,
            answer_contract=AnswerContract.CLARIFY,
            contract_selection_method="default",
            clarify_message=SCOPE_FAILURE_MESSAGE,
            proposed_interpretation=ProposedInterpretation(
                intent=classified.intent,
                contracts=(contract,),
                summary="Aggregate analysis - awaiting scope",
            ),
            metadata=_with_error(classified.metadata, error),
            trace=tuple(trace),
        )

    def _failure_result(self, error: Exception) -> DecisionLayerResult:
        return DecisionLayerResult(
            intent=Intent.CLARIFY,
            intent_detection_method="default",
            confidence=0.0,
            reason=f"Decision layer failed: {type(error).__name__}",
            context_layers=compute_context_layers(Intent.CLARIFY).layers,
            answer_contract=AnswerContract.CLARIFY,
            contract_selection_method="default",
            clarify_message=fallback_clarify_message(self.settings.PRODUCT_NAME),
            metadata=DecisionMetadata(classification_error=str(error)),
            trace=(DecisionState.CLARIFY_TERMINAL,),
        )

    async def _count_meetings(self) -> int:
        try:
            return int(await self.meeting_store.count_meetings())
        except Exception as e:
            logger.warning(f"Meeting count unavailable, not blocking on time range: {e}")
            return 0


def _contract_chain(proposed: ProposedInterpretation | None) -> tuple[AnswerContract, ...] | None:
    if proposed is None or len(proposed.contracts) <= 1:
        return None
    return proposed.contracts


def _with_error(metadata: DecisionMetadata, error: ClassificationError) -> DecisionMetadata:
    return replace(metadata, classification_error=str(error))


def _with_timings(result: DecisionLayerResult, timer: StageTimer) -> DecisionLayerResult:
    return replace(result, timings_ms=timer.as_dict())


def _telemetry_payload(result: DecisionLayerResult) -> dict[str, Any]:
    return asdict(result)


@lru_cache(maxsize=1)
def get_decision_layer() -> DecisionLayer:
    return DecisionLayer()


async def run_decision_layer(
    question: str,
    thread: ThreadContext | None = None,
    *,
    layer: DecisionLayer | None = None,
) -> DecisionLayerResult:
    """Module-level entry point; uses a shared default layer unless one is given."""
    return await (layer or get_decision_layer()).run(question, thread)
