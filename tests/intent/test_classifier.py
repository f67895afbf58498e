import asyncio
from typing import Any, Callable

from decision_layer.config import Settings
from decision_layer.contracts.types import AnswerContract
from decision_layer.errors import ClassificationError
from decision_layer.intent.classifier import IntentClassifier
from decision_layer.intent.entities import EntityCache
from decision_layer.intent.follow_up import PatternFollowUpDetector
from decision_layer.intent.types import (
    DetectionMethod,
    Intent,
    IntentClassificationResult,
    ThreadContext,
    ThreadMessage,
)
from decision_layer.prompting import fallback_clarify_message
from decision_layer.stores import StaticEntityStore

COMPANIES = ["Les Schwab", "ACE Hardware", "Walmart", "Valvoline"]

REFINEMENT_THREAD = ThreadContext(
    messages=(
        ThreadMessage("what were the next steps from the Walmart meeting"),
        ThreadMessage("From the meeting: send pricing, book a demo.", is_bot=True),
        ThreadMessage("make it shorter"),
    )
)


def _classify(
    llm: Any,
    question: str,
    thread: ThreadContext | None = None,
    **overrides: Any,
) -> IntentClassificationResult:
    settings = Settings(**overrides)
    classifier = IntentClassifier(
        llm=llm,
        entity_cache=EntityCache.from_store(StaticEntityStore(COMPANIES), settings),
        settings=settings,
        follow_up_detector=PatternFollowUpDetector(),
    )
    return asyncio.run(classifier.classify(question, thread))


def _interpretation(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "proposedIntent": "SINGLE_MEETING",
        "proposedContracts": ["MEETING_SUMMARY", "DRAFT_EMAIL"],
        "confidence": 0.8,
        "interpretation": "summary of the Walmart call, then an email",
        "questionForm": "Want a summary of the Walmart call and then a follow-up email?",
        "alternatives": [],
    }
    payload.update(overrides)
    return payload


def test_full_entity_needs_no_llm(scripted_llm: Callable) -> None:
    llm = scripted_llm()
    result = _classify(llm, "what did Les Schwab say about pricing")

    assert result.intent == Intent.SINGLE_MEETING
    assert result.detection_method == DetectionMethod.ENTITY
    assert llm.calls == []


def test_acronym_match_is_validated(scripted_llm: Callable) -> None:
    llm = scripted_llm({"confirmed": True, "confidence": 0.9, "reason": "ACE Hardware call"})
    result = _classify(llm, "what did ACE say about the rollout")

    assert result.intent == Intent.SINGLE_MEETING
    assert result.detection_method == DetectionMethod.ENTITY_ACRONYM
    assert result.metadata.llm_validation is not None
    assert len(llm.calls) == 1


def test_validation_can_override(scripted_llm: Callable) -> None:
    llm = scripted_llm(
        {"confirmed": False, "suggestedIntent": "GENERAL_HELP", "confidence": 0.7, "reason": "idiom"}
    )
    result = _classify(llm, "we need to ace this demo")

    assert result.intent == Intent.GENERAL_HELP
    assert result.detection_method == DetectionMethod.LLM_VALIDATED
    assert result.metadata.original_intent == Intent.SINGLE_MEETING


def test_validation_failure_fails_open(scripted_llm: Callable) -> None:
    llm = scripted_llm("not json")
    result = _classify(llm, "hello")

    assert result.intent == Intent.GENERAL_HELP
    assert result.detection_method == DetectionMethod.KEYWORD
    assert result.confidence == 1.0
    assert result.metadata.classification_error is not None


def test_validation_transport_errors_fail_open(scripted_llm: Callable) -> None:
    llm = scripted_llm(ConnectionError("network down"))
    result = _classify(llm, "what did ACE say")

    assert result.intent == Intent.SINGLE_MEETING
    assert result.detection_method == DetectionMethod.ENTITY_ACRONYM
    assert result.metadata.classification_error == "transport: ConnectionError: network down"


def test_plain_split_needs_no_llm(scripted_llm: Callable) -> None:
    llm = scripted_llm()
    result = _classify(llm, "summarize the last call and then check pricing")

    assert result.intent == Intent.CLARIFY
    assert result.needs_split is True
    assert llm.calls == []


def test_split_with_entity_goes_to_interpreter(scripted_llm: Callable) -> None:
    llm = scripted_llm(_interpretation())
    result = _classify(llm, "summarize the Walmart call and then email them pricing")

    assert "multi_intent_ambiguity" in llm.calls[0]["messages"][0].content
    assert result.intent == Intent.SINGLE_MEETING
    assert result.detection_method == DetectionMethod.LLM
    assert result.metadata.single_intent_violation is True
    assert result.proposed_interpretation is not None
    assert result.proposed_interpretation.contracts == (
        AnswerContract.MEETING_SUMMARY,
        AnswerContract.DRAFT_EMAIL,
    )
    assert "Walmart" in result.metadata.matched_signals


def test_unmatched_question_is_interpreted(scripted_llm: Callable) -> None:
    llm = scripted_llm(_interpretation(proposedIntent="PRODUCT_KNOWLEDGE", proposedContracts=[], confidence=0.75))
    result = _classify(llm, "what's new")

    assert result.intent == Intent.PRODUCT_KNOWLEDGE
    assert result.detection_method == DetectionMethod.LLM
    assert result.confidence == 0.75
    assert result.metadata.llm_interpretation is not None


def test_low_confidence_interpretation_clarifies(scripted_llm: Callable) -> None:
    llm = scripted_llm(
        _interpretation(
            confidence=0.4,
            alternatives=[{"intent": "MULTI_MEETING", "description": "Across all calls"}],
        )
    )
    result = _classify(llm, "what's new")

    assert result.intent == Intent.CLARIFY
    assert result.detection_method == DetectionMethod.LLM
    assert result.clarify_message is not None
    assert "1. Across all calls" in result.clarify_message
    assert result.metadata.rejected_intents == (Intent.SINGLE_MEETING.value,)
    assert result.proposed_interpretation is not None


def test_confident_clarify_proposal_still_clarifies(scripted_llm: Callable) -> None:
    llm = scripted_llm(_interpretation(proposedIntent="CLARIFY", confidence=0.95))
    result = _classify(llm, "what's new")

    assert result.intent == Intent.CLARIFY
    assert result.metadata.rejected_intents == ()


def test_interpretation_threshold_is_configurable(scripted_llm: Callable) -> None:
    llm = scripted_llm(_interpretation(confidence=0.5))
    result = _classify(llm, "what's new", INTERPRETATION_TAU=0.45)
    assert result.intent == Intent.SINGLE_MEETING


def test_interpreter_failure_returns_fallback_clarify(scripted_llm: Callable) -> None:
    llm = scripted_llm(ClassificationError(ClassificationError.TRANSPORT, "timeout"))
    result = _classify(llm, "what's new")

    assert result.intent == Intent.CLARIFY
    assert result.detection_method == DetectionMethod.DEFAULT
    assert result.confidence == 0.0
    assert result.clarify_message == fallback_clarify_message("PitCrew")
    assert result.metadata.classification_error == "transport: timeout"


def test_classify_fallback_mode(scripted_llm: Callable) -> None:
    llm = scripted_llm({"intent": "document_search", "confidence": 0.82, "reason": "asks for a file"})
    result = _classify(llm, "what's new", FALLBACK_MODE="classify")

    assert result.intent == Intent.DOCUMENT_SEARCH
    assert result.detection_method == DetectionMethod.LLM
    assert "intent" in llm.calls[0]["messages"][0].content.lower()


def test_classify_fallback_mode_failure(scripted_llm: Callable) -> None:
    llm = scripted_llm({"intent": "SMALL_TALK", "confidence": 0.9})
    result = _classify(llm, "what's new", FALLBACK_MODE="classify")

    assert result.intent == Intent.CLARIFY
    assert result.detection_method == DetectionMethod.DEFAULT
    assert result.confidence == 0.0
    assert result.reason.startswith("Classification failed:")


def test_follow_up_fast_path(scripted_llm: Callable) -> None:
    llm = scripted_llm({"confirmed": True, "confidence": 0.9, "reason": "refining the meeting answer"})
    result = _classify(llm, "make it shorter", REFINEMENT_THREAD, FOLLOW_UP_FAST_PATH=True)

    assert result.intent == Intent.SINGLE_MEETING
    assert result.detection_method == DetectionMethod.FOLLOW_UP_DETECTION
    assert result.confidence == 0.85
    assert result.metadata.is_follow_up is True
    assert result.metadata.llm_validation is not None


def test_follow_up_is_skipped_when_disabled(scripted_llm: Callable) -> None:
    llm = scripted_llm(_interpretation(confidence=0.9))
    result = _classify(llm, "make it shorter", REFINEMENT_THREAD)

    assert result.detection_method == DetectionMethod.LLM
    assert result.metadata.is_follow_up is False


def test_low_confidence_direct_classification_clarifies(scripted_llm: Callable) -> None:
    llm = scripted_llm({"intent": "SINGLE_MEETING", "confidence": 0.1, "reason": "a guess"})
    result = _classify(llm, "what's new", FALLBACK_MODE="classify")

    assert result.intent == Intent.CLARIFY
    assert result.detection_method == DetectionMethod.LLM
    assert result.confidence == 0.1
    assert result.metadata.rejected_intents == (Intent.SINGLE_MEETING.value,)
    assert result.clarify_message == fallback_clarify_message("PitCrew")


def test_direct_classification_clarify_has_message(scripted_llm: Callable) -> None:
    llm = scripted_llm({"intent": "CLARIFY", "confidence": 0.9, "reason": "too vague"})
    result = _classify(llm, "what's new", FALLBACK_MODE="classify")

    assert result.intent == Intent.CLARIFY
    assert result.clarify_message == fallback_clarify_message("PitCrew")
