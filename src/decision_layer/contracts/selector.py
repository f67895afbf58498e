"""Answer contract selection: LLM proposal first, then keyword tables, then defaults."""

from __future__ import annotations

from typing import Sequence

from decision_layer.config import Settings, settings as default_settings
from decision_layer.errors import ClassificationError
from decision_layer.intent.types import Intent
from decision_layer.logging import get_logger
from decision_layer.models.adapter import ChatMessage, ChatModel, parse_json_object
from decision_layer.prompting import contract_selection_prompt

from .types import AnswerContract, AnswerContractResult, ContractConstraints

logger = get_logger(__name__)

C = AnswerContract

CONTRACT_CONSTRAINTS: dict[AnswerContract, ContractConstraints] = {
    C.MEETING_SUMMARY: ContractConstraints(empty_result_behavior="clarify"),
    C.NEXT_STEPS: ContractConstraints(
        requires_evidence=True, allows_summary=False, requires_citation=True, response_format="list"
    ),
    C.ATTENDEES: ContractConstraints(allows_summary=False, response_format="list"),
    C.CUSTOMER_QUESTIONS: ContractConstraints(
        requires_evidence=True, allows_summary=False, requires_citation=True, response_format="list"
    ),
    C.EXTRACTIVE_FACT: ContractConstraints(
        requires_evidence=True,
        allows_summary=False,
        requires_citation=True,
        empty_result_behavior="clarify",
        min_evidence_threshold=1,
    ),
    C.AGGREGATIVE_LIST: ContractConstraints(
        requires_evidence=True, allows_summary=False, response_format="list"
    ),
    C.PATTERN_ANALYSIS: ContractConstraints(
        requires_evidence=True,
        requires_citation=True,
        empty_result_behavior="clarify",
        min_evidence_threshold=2,
    ),
    C.COMPARISON: ContractConstraints(
        requires_evidence=True,
        allows_summary=False,
        requires_citation=True,
        response_format="structured",
        empty_result_behavior="clarify",
        min_evidence_threshold=2,
    ),
    C.TREND_SUMMARY: ContractConstraints(
        requires_evidence=True,
        requires_citation=True,
        empty_result_behavior="clarify",
        min_evidence_threshold=3,
    ),
    C.CROSS_MEETING_QUESTIONS: ContractConstraints(
        requires_evidence=True, allows_summary=False, requires_citation=True, response_format="list"
    ),
    C.PRODUCT_EXPLANATION: ContractConstraints(ssot_mode="descriptive"),
    C.VALUE_PROPOSITION: ContractConstraints(ssot_mode="descriptive"),
    C.DRAFT_RESPONSE: ContractConstraints(ssot_mode="descriptive"),
    C.DRAFT_EMAIL: ContractConstraints(ssot_mode="descriptive"),
    C.PRODUCT_KNOWLEDGE: ContractConstraints(ssot_mode="authoritative", requires_citation=True),
    C.FEATURE_VERIFICATION: ContractConstraints(
        ssot_mode="authoritative",
        requires_evidence=True,
        allows_summary=False,
        requires_citation=True,
        empty_result_behavior="refuse",
        min_evidence_threshold=1,
    ),
    C.FAQ_ANSWER: ContractConstraints(
        ssot_mode="authoritative",
        requires_evidence=True,
        allows_summary=False,
        empty_result_behavior="clarify",
    ),
    C.EXTERNAL_RESEARCH: ContractConstraints(ssot_mode="descriptive", empty_result_behavior="clarify"),
    C.SALES_DOCS_PREP: ContractConstraints(
        ssot_mode="descriptive", response_format="structured", empty_result_behavior="clarify"
    ),
    C.SLACK_MESSAGE_SEARCH: ContractConstraints(
        requires_evidence=True, requires_citation=True, response_format="list"
    ),
    C.SLACK_CHANNEL_INFO: ContractConstraints(allows_summary=False, response_format="structured"),
    C.GENERAL_RESPONSE: ContractConstraints(),
    C.NOT_FOUND: ContractConstraints(allows_summary=False),
    C.REFUSE: ContractConstraints(allows_summary=False),
    C.CLARIFY: ContractConstraints(allows_summary=False),
}

AGGREGATE_CONTRACTS = frozenset({C.CROSS_MEETING_QUESTIONS, C.PATTERN_ANALYSIS, C.TREND_SUMMARY})

DEFAULT_CONTRACTS: dict[Intent, AnswerContract] = {
    Intent.SINGLE_MEETING: C.EXTRACTIVE_FACT,
    Intent.MULTI_MEETING: C.PATTERN_ANALYSIS,
    Intent.PRODUCT_KNOWLEDGE: C.PRODUCT_EXPLANATION,
    Intent.DOCUMENT_SEARCH: C.GENERAL_RESPONSE,
    Intent.EXTERNAL_RESEARCH: C.EXTERNAL_RESEARCH,
    Intent.GENERAL_HELP: C.GENERAL_RESPONSE,
    Intent.REFUSE: C.REFUSE,
    Intent.CLARIFY: C.CLARIFY,
}

# Ordered: drafting phrases come before the generic "follow up"
_SINGLE_MEETING_KEYWORDS: tuple[tuple[str, AnswerContract], ...] = (
    ("follow up email", C.DRAFT_EMAIL),
    ("follow-up email", C.DRAFT_EMAIL),
    ("prepare a follow up", C.DRAFT_EMAIL),
    ("prepare a follow-up", C.DRAFT_EMAIL),
    ("draft an email", C.DRAFT_EMAIL),
    ("write an email", C.DRAFT_EMAIL),
    ("prepare an email", C.DRAFT_EMAIL),
    ("thank you email", C.DRAFT_EMAIL),
    ("thank-you email", C.DRAFT_EMAIL),
    ("write a thank you", C.DRAFT_EMAIL),
    ("help me answer", C.DRAFT_RESPONSE),
    ("draft a response", C.DRAFT_RESPONSE),
    ("respond to", C.DRAFT_RESPONSE),
    ("summary", C.MEETING_SUMMARY),
    ("summarize", C.MEETING_SUMMARY),
    ("overview", C.MEETING_SUMMARY),
    ("action items", C.NEXT_STEPS),
    ("action item", C.NEXT_STEPS),
    ("next steps", C.NEXT_STEPS),
    ("next step", C.NEXT_STEPS),
    ("commitments", C.NEXT_STEPS),
    ("follow up", C.NEXT_STEPS),
    ("follow-up", C.NEXT_STEPS),
    ("followup", C.NEXT_STEPS),
    ("to-do", C.NEXT_STEPS),
    ("todo", C.NEXT_STEPS),
    ("attendees", C.ATTENDEES),
    ("who was on", C.ATTENDEES),
    ("who attended", C.ATTENDEES),
    ("participants", C.ATTENDEES),
    ("customer questions", C.CUSTOMER_QUESTIONS),
    ("what did they ask", C.CUSTOMER_QUESTIONS),
    ("questions asked", C.CUSTOMER_QUESTIONS),
    ("what questions", C.CUSTOMER_QUESTIONS),
)

_MULTI_MEETING_KEYWORDS: tuple[tuple[str, AnswerContract], ...] = (
    ("questions across", C.CROSS_MEETING_QUESTIONS),
    ("common questions", C.CROSS_MEETING_QUESTIONS),
    ("what are customers asking", C.CROSS_MEETING_QUESTIONS),
    ("frequently asked", C.CROSS_MEETING_QUESTIONS),
    ("most asked", C.CROSS_MEETING_QUESTIONS),
    ("pattern", C.PATTERN_ANALYSIS),
    ("recurring", C.PATTERN_ANALYSIS),
    ("common theme", C.PATTERN_ANALYSIS),
    ("frequently", C.PATTERN_ANALYSIS),
    ("keeps coming up", C.PATTERN_ANALYSIS),
    ("compare", C.COMPARISON),
    ("difference", C.COMPARISON),
    ("differ", C.COMPARISON),
    ("contrast", C.COMPARISON),
    ("versus", C.COMPARISON),
    (" vs ", C.COMPARISON),
    ("trend", C.TREND_SUMMARY),
    ("over time", C.TREND_SUMMARY),
    ("changing", C.TREND_SUMMARY),
    ("evolving", C.TREND_SUMMARY),
    ("objections", C.CROSS_MEETING_QUESTIONS),
    ("concerns", C.CROSS_MEETING_QUESTIONS),
    ("issues", C.CROSS_MEETING_QUESTIONS),
    ("problems", C.CROSS_MEETING_QUESTIONS),
    ("feedback", C.CROSS_MEETING_QUESTIONS),
    ("pain points", C.CROSS_MEETING_QUESTIONS),
    ("challenges", C.CROSS_MEETING_QUESTIONS),
)

_GENERAL_KEYWORDS: tuple[tuple[str, AnswerContract], ...] = (
    ("draft an email", C.DRAFT_EMAIL),
    ("write an email", C.DRAFT_EMAIL),
    ("compose an email", C.DRAFT_EMAIL),
    ("email template", C.DRAFT_EMAIL),
    ("help me write", C.DRAFT_EMAIL),
    ("follow up email", C.DRAFT_EMAIL),
    ("follow-up email", C.DRAFT_EMAIL),
    ("thank you email", C.DRAFT_EMAIL),
)


def _product_keywords(product: str) -> tuple[tuple[str, AnswerContract], ...]:
    p = product.lower()
    return (
        (f"how does {p} work", C.PRODUCT_EXPLANATION),
        (f"what is {p}", C.PRODUCT_EXPLANATION),
        (f"explain {p}", C.PRODUCT_EXPLANATION),
        (f"tell me about {p}", C.PRODUCT_EXPLANATION),
        ("does it support", C.FEATURE_VERIFICATION),
        (f"does {p} support", C.FEATURE_VERIFICATION),
        (f"can {p}", C.FEATURE_VERIFICATION),
        ("integrate with", C.FEATURE_VERIFICATION),
        ("how much", C.FAQ_ANSWER),
        ("pricing", C.FAQ_ANSWER),
        ("cost", C.FAQ_ANSWER),
        ("what tier", C.FAQ_ANSWER),
        ("value prop", C.VALUE_PROPOSITION),
        (f"why {p}", C.VALUE_PROPOSITION),
        ("benefits of", C.VALUE_PROPOSITION),
    )


_EXTERNAL_RESEARCH_KEYWORDS: tuple[tuple[str, AnswerContract], ...] = (
    ("slide", C.SALES_DOCS_PREP),
    ("deck", C.SALES_DOCS_PREP),
    ("pitch", C.SALES_DOCS_PREP),
    ("value prop", C.VALUE_PROPOSITION),
)


def get_contract_constraints(contract: AnswerContract) -> ContractConstraints:
    return CONTRACT_CONSTRAINTS[contract]


def is_aggregate_contract(contract: AnswerContract) -> bool:
    return contract in AGGREGATE_CONTRACTS


def _result(contract: AnswerContract, method: str, error: str | None = None) -> AnswerContractResult:
    return AnswerContractResult(
        contract=contract,
        selection_method=method,
        constraints=CONTRACT_CONSTRAINTS[contract],
        error=error,
    )


def select_by_keyword(
    question: str, intent: Intent, product: str = "PitCrew"
) -> AnswerContractResult | None:
    """Keyword table lookup for ``intent``; ``None`` when the intent has no table."""
    tables: dict[Intent, tuple[tuple[str, AnswerContract], ...]] = {
        Intent.SINGLE_MEETING: _SINGLE_MEETING_KEYWORDS,
        Intent.MULTI_MEETING: _MULTI_MEETING_KEYWORDS,
        Intent.PRODUCT_KNOWLEDGE: _product_keywords(product),
        Intent.EXTERNAL_RESEARCH: _EXTERNAL_RESEARCH_KEYWORDS,
        Intent.GENERAL_HELP: _GENERAL_KEYWORDS,
    }
    table = tables.get(intent)
    if table is None:
        return None

    lower = f" {question.lower()} "
    for keyword, contract in table:
        if keyword in lower:
            return _result(contract, "keyword")
    return _result(DEFAULT_CONTRACTS[intent], "default")


async def select_by_llm(
    llm: ChatModel,
    question: str,
    intent: Intent,
    settings: Settings | None = None,
) -> AnswerContractResult:
    cfg = settings or default_settings
    allowed = [c for c in AnswerContract if c not in (C.REFUSE, C.CLARIFY)]
    messages = [
        ChatMessage(role="system", content=contract_selection_prompt(intent, allowed)),
        ChatMessage(role="user", content=question),
    ]
    try:
        raw, _ = await llm.chat(
            messages=messages,
            model=cfg.model_for("contract_selection"),
            max_tokens=100,
            temperature=cfg.TEMPERATURE,
        )
        payload = parse_json_object(raw)
        contract = AnswerContract(str(payload.get("contract", "")).strip().upper())
    except ClassificationError as e:
        logger.warning(f"Contract selection failed for {intent.value}: {e}")
        return _result(DEFAULT_CONTRACTS[intent], "default", error=str(e))
    except ValueError as e:
        logger.warning(f"Contract selection returned unknown contract: {e}")
        return _result(DEFAULT_CONTRACTS[intent], "default", error=str(e))

    if contract not in allowed:
        return _result(DEFAULT_CONTRACTS[intent], "default")
    return _result(contract, "llm")


async def select_answer_contract(
    question: str,
    intent: Intent,
    proposed_contracts: Sequence[AnswerContract] = (),
    llm: ChatModel | None = None,
    settings: Settings | None = None,
) -> AnswerContractResult:
    cfg = settings or default_settings

    if intent in (Intent.CLARIFY, Intent.REFUSE):
        return _result(DEFAULT_CONTRACTS[intent], "default")

    if proposed_contracts:
        contract = proposed_contracts[0]
        logger.info(
            f"Contract {contract.value} (llm_proposed), chain: "
            f"{' -> '.join(c.value for c in proposed_contracts)}"
        )
        return _result(contract, "llm_proposed")

    keyword_result = select_by_keyword(question, intent, cfg.PRODUCT_NAME)
    if keyword_result is not None:
        logger.info(f"Contract {keyword_result.contract.value} ({keyword_result.selection_method})")
        return keyword_result

    if llm is None:
        return _result(DEFAULT_CONTRACTS[intent], "default")
    return await select_by_llm(llm, question, intent, cfg)
