import asyncio
from typing import Callable

import pytest
from decision_layer.contracts.selector import (
    AGGREGATE_CONTRACTS,
    CONTRACT_CONSTRAINTS,
    get_contract_constraints,
    is_aggregate_contract,
    select_answer_contract,
    select_by_keyword,
)
from decision_layer.contracts.types import AnswerContract
from decision_layer.errors import ClassificationError
from decision_layer.intent.types import Intent


def test_every_contract_has_constraints() -> None:
    assert set(CONTRACT_CONSTRAINTS) == set(AnswerContract)


def test_aggregate_contracts() -> None:
    assert AGGREGATE_CONTRACTS == {
        AnswerContract.CROSS_MEETING_QUESTIONS,
        AnswerContract.PATTERN_ANALYSIS,
        AnswerContract.TREND_SUMMARY,
    }
    assert is_aggregate_contract(AnswerContract.TREND_SUMMARY)
    assert not is_aggregate_contract(AnswerContract.COMPARISON)


def test_constraints_lookup() -> None:
    feature = get_contract_constraints(AnswerContract.FEATURE_VERIFICATION)
    assert feature.ssot_mode == "authoritative"
    assert feature.empty_result_behavior == "refuse"
    assert get_contract_constraints(AnswerContract.NEXT_STEPS).response_format == "list"


@pytest.mark.parametrize(
    "question,intent,expected,method",
    [
        ("what were the action items from the Walmart call", Intent.SINGLE_MEETING, AnswerContract.NEXT_STEPS, "keyword"),
        ("draft a follow-up email to Les Schwab", Intent.SINGLE_MEETING, AnswerContract.DRAFT_EMAIL, "keyword"),
        ("who attended the Valvoline meeting", Intent.SINGLE_MEETING, AnswerContract.ATTENDEES, "keyword"),
        ("what did Les Schwab say about pricing", Intent.SINGLE_MEETING, AnswerContract.EXTRACTIVE_FACT, "default"),
        ("compare Walmart and Valvoline", Intent.MULTI_MEETING, AnswerContract.COMPARISON, "keyword"),
        ("what objections did customers raise", Intent.MULTI_MEETING, AnswerContract.CROSS_MEETING_QUESTIONS, "keyword"),
        ("any trend in renewals", Intent.MULTI_MEETING, AnswerContract.TREND_SUMMARY, "keyword"),
        ("does PitCrew support SSO", Intent.PRODUCT_KNOWLEDGE, AnswerContract.FEATURE_VERIFICATION, "keyword"),
        ("how much is the pro tier", Intent.PRODUCT_KNOWLEDGE, AnswerContract.FAQ_ANSWER, "keyword"),
        ("build me a pitch deck for tire shops", Intent.EXTERNAL_RESEARCH, AnswerContract.SALES_DOCS_PREP, "keyword"),
        ("research Canadian Tire's expansion", Intent.EXTERNAL_RESEARCH, AnswerContract.EXTERNAL_RESEARCH, "default"),
        ("help me write a note to the team", Intent.GENERAL_HELP, AnswerContract.DRAFT_EMAIL, "keyword"),
        ("what can you do", Intent.GENERAL_HELP, AnswerContract.GENERAL_RESPONSE, "default"),
    ],
)
def test_select_by_keyword(
    question: str, intent: Intent, expected: AnswerContract, method: str
) -> None:
    result = select_by_keyword(question, intent)
    assert result is not None
    assert result.contract == expected
    assert result.selection_method == method
    assert result.constraints == CONTRACT_CONSTRAINTS[expected]


def test_document_search_has_no_keyword_table() -> None:
    assert select_by_keyword("find the MSA pdf", Intent.DOCUMENT_SEARCH) is None


@pytest.mark.parametrize(
    "intent,expected",
    [(Intent.CLARIFY, AnswerContract.CLARIFY), (Intent.REFUSE, AnswerContract.REFUSE)],
)
def test_terminal_intents_get_terminal_contract(intent: Intent, expected: AnswerContract) -> None:
    result = asyncio.run(
        select_answer_contract(
            "summarize the call", intent, proposed_contracts=(AnswerContract.MEETING_SUMMARY,)
        )
    )
    assert result.contract == expected
    assert result.selection_method == "default"


def test_proposed_contract_wins() -> None:
    result = asyncio.run(
        select_answer_contract(
            "summarize the call",
            Intent.SINGLE_MEETING,
            proposed_contracts=(AnswerContract.NEXT_STEPS, AnswerContract.DRAFT_EMAIL),
        )
    )
    assert result.contract == AnswerContract.NEXT_STEPS
    assert result.selection_method == "llm_proposed"


def test_document_search_uses_llm(scripted_llm: Callable) -> None:
    llm = scripted_llm({"contract": "extractive_fact", "reason": "single clause"})
    result = asyncio.run(
        select_answer_contract("what does clause 4 of the MSA say", Intent.DOCUMENT_SEARCH, llm=llm)
    )
    assert result.contract == AnswerContract.EXTRACTIVE_FACT
    assert result.selection_method == "llm"
    assert len(llm.calls) == 1


def test_document_search_llm_failure_defaults(scripted_llm: Callable) -> None:
    llm = scripted_llm(ClassificationError(ClassificationError.TRANSPORT, "timeout"))
    result = asyncio.run(
        select_answer_contract("find the MSA", Intent.DOCUMENT_SEARCH, llm=llm)
    )
    assert result.contract == AnswerContract.GENERAL_RESPONSE
    assert result.selection_method == "default"
    assert result.error is not None and "transport" in result.error


def test_document_search_unknown_contract_defaults(scripted_llm: Callable) -> None:
    llm = scripted_llm({"contract": "HAIKU"})
    result = asyncio.run(
        select_answer_contract("find the MSA", Intent.DOCUMENT_SEARCH, llm=llm)
    )
    assert result.contract == AnswerContract.GENERAL_RESPONSE
    assert result.selection_method == "default"


def test_document_search_without_llm_defaults() -> None:
    result = asyncio.run(select_answer_contract("find the MSA", Intent.DOCUMENT_SEARCH))
    assert result.contract == AnswerContract.GENERAL_RESPONSE
    assert result.selection_method == "default"
