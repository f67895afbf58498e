import asyncio
from typing import Callable

import pytest
from decision_layer.errors import ClassificationError
from decision_layer.intent.types import ThreadContext, ThreadMessage
from decision_layer.scope import (
    SpecificityCheck,
    check_specificity,
    generate_scope_note,
    should_ask_for_time_range,
    to_scope_info,
)


def test_check_specificity_parses_response(scripted_llm: Callable) -> None:
    llm = scripted_llm(
        {
            "hasTimeRange": True,
            "timeRangeExplanation": "last quarter",
            "hasCustomerScope": True,
            "customerScopeExplanation": "two named customers",
            "scopeType": "specific",
            "specificCompanies": ["Walmart", "Valvoline"],
            "meetingLimit": 5,
        }
    )
    check = asyncio.run(check_specificity(llm, "compare Walmart and Valvoline last quarter"))

    assert check.has_time_range is True
    assert check.scope_type == "specific"
    assert check.specific_companies == ("Walmart", "Valvoline")
    assert check.meeting_limit == 5


def test_check_specificity_sends_thread_history(scripted_llm: Callable) -> None:
    llm = scripted_llm({"hasTimeRange": False, "hasCustomerScope": False, "scopeType": "none"})
    thread = ThreadContext(
        messages=(
            ThreadMessage("let's talk about Walmart"),
            ThreadMessage("Sure, what about Walmart?", is_bot=True),
            ThreadMessage("what patterns do you see"),
        )
    )
    asyncio.run(check_specificity(llm, "what patterns do you see", thread))

    messages = llm.calls[0]["messages"]
    assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[1].content == "let's talk about Walmart"
    assert messages[-1].content == "what patterns do you see"


def test_customer_scope_without_type_is_inferred(scripted_llm: Callable) -> None:
    llm = scripted_llm({"hasCustomerScope": True, "scopeType": "none"})
    check = asyncio.run(check_specificity(llm, "across all our customers"))
    assert check.scope_type == "all"


@pytest.mark.parametrize(
    "response",
    ["", "not json at all", "[1, 2]", ClassificationError(ClassificationError.TRANSPORT, "boom")],
)
def test_check_specificity_raises_on_bad_response(scripted_llm: Callable, response: object) -> None:
    llm = scripted_llm(response)
    with pytest.raises(ClassificationError):
        asyncio.run(check_specificity(llm, "find patterns across all customers"))


def test_to_scope_info_normalises_none_to_all() -> None:
    info = to_scope_info(SpecificityCheck(scope_type="none"))
    assert info.scope_type == "all"
    assert info.all_customers is True

    specific = to_scope_info(
        SpecificityCheck(scope_type="specific", specific_companies=("Walmart",), has_customer_scope=True)
    )
    assert specific.all_customers is False
    assert specific.specific_companies == ("Walmart",)


def test_generate_scope_note() -> None:
    assert generate_scope_note(False, False) == "_Searching across all customers, all time._"
    assert generate_scope_note(True, False) == "_Searching across all customers._"
    assert generate_scope_note(False, True) == "_Searching across all time._"
    assert generate_scope_note(True, True) == ""


def test_should_ask_for_time_range() -> None:
    message = should_ask_for_time_range(False, 150)
    assert "150 meetings" in message
    for option in ("Last month", "Last quarter", "All time"):
        assert option in message

    assert should_ask_for_time_range(True, 150) == ""
    assert should_ask_for_time_range(False, 100) == ""
    assert should_ask_for_time_range(False, 60, threshold=50) != ""
