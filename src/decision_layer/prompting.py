"""Prompt texts for the four LLM call sites plus contract selection."""

from __future__ import annotations

import json

from decision_layer.contracts.types import AnswerContract
from decision_layer.intent.types import Intent

_INTENT_GUIDE = (
    "- SINGLE_MEETING: what happened in one specific customer meeting\n"
    "- MULTI_MEETING: analysis across several meetings or customers\n"
    "- PRODUCT_KNOWLEDGE: {product} features, pricing, integrations, roadmap, strategy\n"
    "- DOCUMENT_SEARCH: finding content in uploaded documents\n"
    "- EXTERNAL_RESEARCH: research on outside companies or topics, sales prep\n"
    "- GENERAL_HELP: drafting, greetings, general assistance\n"
    "- REFUSE: out of scope (weather, stocks, personal data, jokes)\n"
    "- CLARIFY: too ambiguous to route"
)


def _intent_names() -> str:
    return ", ".join(i.value for i in Intent)


def _contract_names() -> str:
    return ", ".join(c.value for c in AnswerContract)


def intent_classification_prompt(product: str) -> str:
    return (
        f"You classify questions sent to {product}'s meeting-intelligence assistant. "
        "Pick exactly one intent.\n\n"
        f"{_INTENT_GUIDE.format(product=product)}\n\n"
        "Use earlier conversation turns to resolve references like 'that call' or 'those questions'.\n"
        'Respond with JSON: {"intent": "INTENT_NAME", "confidence": 0.0-1.0, '
        '"reason": "brief explanation"}'
    )


def intent_validation_prompt(
    product: str,
    intent: Intent,
    reason: str,
    matched_signals: tuple[str, ...],
) -> str:
    signals = ", ".join(matched_signals) if matched_signals else "none"
    return (
        f"A fast rule-based router for {product}'s assistant classified a question.\n"
        f"Detected intent: {intent.value}\n"
        f"Reason: {reason}\n"
        f"Matched signals: {signals}\n\n"
        f"Intents:\n{_INTENT_GUIDE.format(product=product)}\n\n"
        "Confirm the intent if it fits the question. If it clearly does not, suggest a better one.\n"
        "Respond with JSON:\n"
        "{\n"
        '  "confirmed": true/false,\n'
        f'  "suggestedIntent": "one of {_intent_names()}" (only if confirmed=false),\n'
        '  "suggestedContract": "CONTRACT_NAME" (optional),\n'
        '  "confidence": 0.0-1.0,\n'
        '  "reason": "brief explanation"\n'
        "}"
    )


def interpretation_prompt(product: str, failure_reason: str) -> str:
    return (
        f"A question to {product}'s assistant could not be routed ({failure_reason}). "
        "Work out what the user most likely wants. You only propose; the user confirms.\n\n"
        f"Intents:\n{_INTENT_GUIDE.format(product=product)}\n\n"
        f"Contracts (ordered, first runs first): {_contract_names()}\n\n"
        "Respond with JSON:\n"
        "{\n"
        '  "proposedIntent": "INTENT_NAME",\n'
        '  "proposedContracts": ["CONTRACT_NAME", ...],\n'
        '  "confidence": 0.0-1.0,\n'
        '  "interpretation": "brief summary of what the user likely wants",\n'
        '  "questionForm": "a natural question confirming the best guess",\n'
        '  "canPartialAnswer": true/false,\n'
        '  "partialAnswer": "1-2 sentence answer if canPartialAnswer",\n'
        '  "alternatives": [\n'
        '    {"intent": "INTENT_NAME", "contracts": ["CONTRACT_NAME"], '
        '"description": "plain-language alternative", "hint": "examples, optional"}\n'
        "  ]\n"
        "}\n"
        "Give at most 3 alternatives, each different from the proposed intent."
    )


AGGREGATE_SPECIFICITY_PROMPT = (
    "You check whether a question about multiple meetings is specific enough to answer.\n\n"
    "We need:\n"
    "1. TIME RANGE, e.g. 'last month', 'past quarter', 'all time', '3 most recent', 'since January'. "
    "'recent' alone is not a time range; 'last 5 meetings' is.\n"
    "2. CUSTOMER SCOPE, e.g. 'all customers', 'across all', 'our meetings' (scope all) "
    "or named companies (scope specific). Earlier turns in the conversation count.\n\n"
    "If the user gives an explicit count ('3 most recent', 'top 10') set meetingLimit to it, "
    "otherwise null.\n\n"
    "Respond with JSON:\n"
    "{\n"
    '  "hasTimeRange": boolean,\n'
    '  "hasCustomerScope": boolean,\n'
    '  "scopeType": "all" | "specific" | "none",\n'
    '  "specificCompanies": ["..."] | null,\n'
    '  "timeRangeExplanation": "brief explanation",\n'
    '  "customerScopeExplanation": "brief explanation",\n'
    '  "meetingLimit": number | null\n'
    "}"
)


def contract_selection_prompt(intent: Intent, allowed: list[AnswerContract]) -> str:
    return (
        f"The question has intent {intent.value}. Pick the answer contract that best "
        "describes the shape of the response.\n"
        f"Valid contracts: {json.dumps([c.value for c in allowed])}\n"
        'Respond with JSON: {"contract": "CONTRACT_NAME", "reason": "brief explanation"}'
    )


def fallback_clarify_message(product: str) -> str:
    return (
        "I want to help but I'm not sure what you're looking for. Are you asking about:\n\n"
        "• A customer meeting (which company?)\n"
        f"• {product} product info (which feature?)\n"
        "• Help with a task (what kind?)\n\n"
        "Give me a hint and I'll get you sorted!"
    )
