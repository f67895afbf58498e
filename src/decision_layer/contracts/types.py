from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AnswerContract(str, Enum):
    # Single meeting, extractive
    MEETING_SUMMARY = "MEETING_SUMMARY"
    NEXT_STEPS = "NEXT_STEPS"
    ATTENDEES = "ATTENDEES"
    CUSTOMER_QUESTIONS = "CUSTOMER_QUESTIONS"
    EXTRACTIVE_FACT = "EXTRACTIVE_FACT"
    AGGREGATIVE_LIST = "AGGREGATIVE_LIST"
    # Cross-meeting analysis
    PATTERN_ANALYSIS = "PATTERN_ANALYSIS"
    COMPARISON = "COMPARISON"
    TREND_SUMMARY = "TREND_SUMMARY"
    CROSS_MEETING_QUESTIONS = "CROSS_MEETING_QUESTIONS"
    # Descriptive product / drafting
    PRODUCT_EXPLANATION = "PRODUCT_EXPLANATION"
    VALUE_PROPOSITION = "VALUE_PROPOSITION"
    DRAFT_RESPONSE = "DRAFT_RESPONSE"
    DRAFT_EMAIL = "DRAFT_EMAIL"
    PRODUCT_KNOWLEDGE = "PRODUCT_KNOWLEDGE"
    # Authoritative product
    FEATURE_VERIFICATION = "FEATURE_VERIFICATION"
    FAQ_ANSWER = "FAQ_ANSWER"
    # External research
    EXTERNAL_RESEARCH = "EXTERNAL_RESEARCH"
    SALES_DOCS_PREP = "SALES_DOCS_PREP"
    # Slack
    SLACK_MESSAGE_SEARCH = "SLACK_MESSAGE_SEARCH"
    SLACK_CHANNEL_INFO = "SLACK_CHANNEL_INFO"
    # General / terminal
    GENERAL_RESPONSE = "GENERAL_RESPONSE"
    NOT_FOUND = "NOT_FOUND"
    REFUSE = "REFUSE"
    CLARIFY = "CLARIFY"


@dataclass(frozen=True)
class ContractConstraints:
    ssot_mode: str = "none"  # "none"|"descriptive"|"authoritative"
    requires_evidence: bool = False
    allows_summary: bool = True
    requires_citation: bool = False
    response_format: str = "text"  # "text"|"list"|"structured"
    empty_result_behavior: str = "return_empty"  # "return_empty"|"clarify"|"refuse"
    min_evidence_threshold: int | None = None


@dataclass(frozen=True)
class AnswerContractResult:
    contract: AnswerContract
    selection_method: str  # "keyword"|"llm"|"llm_proposed"|"default"
    constraints: ContractConstraints
    error: str | None = None
