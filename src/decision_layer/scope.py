"""Time-range and customer-scope checks for multi-meeting questions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from decision_layer.config import Settings, settings as default_settings
from decision_layer.intent.types import ThreadContext
from decision_layer.logging import get_logger
from decision_layer.models.adapter import (
    ChatMessage,
    ChatModel,
    history_messages,
    parse_json_object,
)
from decision_layer.prompting import AGGREGATE_SPECIFICITY_PROMPT

logger = get_logger(__name__)

_SCOPE_TYPES = ("all", "specific", "none")

SCOPE_FAILURE_MESSAGE = (
    "I couldn't tell which meetings to look at. Could you let me know:\n\n"
    "- Which customers (or all of them)?\n"
    "- What time range (last month, last quarter, all time)?"
)


@dataclass(frozen=True)
class SpecificityCheck:
    has_time_range: bool = False
    has_customer_scope: bool = False
    scope_type: str = "none"  # "all"|"specific"|"none"
    specific_companies: tuple[str, ...] | None = None
    time_range_explanation: str = ""
    customer_scope_explanation: str = ""
    meeting_limit: int | None = None


@dataclass(frozen=True)
class ScopeInfo:
    all_customers: bool
    scope_type: str  # "all"|"specific" after normalization
    specific_companies: tuple[str, ...] | None
    has_time_range: bool
    meeting_limit: int | None = None
    has_customer_scope: bool = False
    time_range_explanation: str = ""
    customer_scope_explanation: str = ""


def _as_limit(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return None
    return limit if limit > 0 else None


def _parse_specificity(payload: dict[str, Any]) -> SpecificityCheck:
    scope_type = str(payload.get("scopeType", "none") or "none").strip().lower()
    if scope_type not in _SCOPE_TYPES:
        scope_type = "none"

    companies_raw = payload.get("specificCompanies")
    companies: tuple[str, ...] | None = None
    if isinstance(companies_raw, list):
        companies = tuple(str(c).strip() for c in companies_raw if str(c).strip()) or None

    has_customer_scope = bool(payload.get("hasCustomerScope", False))
    if scope_type == "none" and has_customer_scope:
        scope_type = "specific" if companies else "all"

    return SpecificityCheck(
        has_time_range=bool(payload.get("hasTimeRange", False)),
        has_customer_scope=has_customer_scope,
        scope_type=scope_type,
        specific_companies=companies,
        time_range_explanation=str(payload.get("timeRangeExplanation", "") or ""),
        customer_scope_explanation=str(payload.get("customerScopeExplanation", "") or ""),
        meeting_limit=_as_limit(payload.get("meetingLimit")),
    )


async def check_specificity(
    llm: ChatModel,
    question: str,
    thread: ThreadContext | None = None,
    settings: Settings | None = None,
) -> SpecificityCheck:
    """Ask the LLM what time range and customer scope the question implies.

    Earlier thread turns are included so scope stated before (e.g. a company
    name) still counts. Raises ``ClassificationError`` on failure.
    """
    cfg = settings or default_settings
    messages = [ChatMessage(role="system", content=AGGREGATE_SPECIFICITY_PROMPT)]
    messages.extend(history_messages(thread))
    messages.append(ChatMessage(role="user", content=question))

    raw, _ = await llm.chat(
        messages=messages,
        model=cfg.model_for("specificity_check"),
        max_tokens=200,
        temperature=cfg.TEMPERATURE,
    )
    check = _parse_specificity(parse_json_object(raw))
    logger.info(
        f"Specificity: time_range={check.has_time_range} ({check.time_range_explanation}), "
        f"scope={check.scope_type} companies={check.specific_companies} limit={check.meeting_limit}"
    )
    return check


def to_scope_info(check: SpecificityCheck) -> ScopeInfo:
    scope_type = "all" if check.scope_type == "none" else check.scope_type
    return ScopeInfo(
        all_customers=scope_type == "all",
        scope_type=scope_type,
        specific_companies=check.specific_companies,
        has_time_range=check.has_time_range,
        meeting_limit=check.meeting_limit,
        has_customer_scope=check.has_customer_scope,
        time_range_explanation=check.time_range_explanation,
        customer_scope_explanation=check.customer_scope_explanation,
    )


def generate_scope_note(has_time_range: bool, has_customer_scope: bool) -> str:
    parts = []
    if not has_customer_scope:
        parts.append("all customers")
    if not has_time_range:
        parts.append("all time")
    if not parts:
        return ""
    return f"_Searching across {', '.join(parts)}._"


def should_ask_for_time_range(
    has_time_range: bool, meeting_count: int, threshold: int = 100
) -> str:
    """Blocking clarification text, or "" when the query may proceed."""
    if has_time_range or meeting_count <= threshold:
        return ""
    return (
        f"You have {meeting_count} meetings on record. To keep the analysis focused, "
        "could you narrow the time range?\n\n"
        "- Last month\n"
        "- Last quarter\n"
        "- All time\n\n"
        'For example: "...from the last quarter"'
    )
