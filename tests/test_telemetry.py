import json
from pathlib import Path

import pytest
from decision_layer.contracts.types import AnswerContract
from decision_layer.intent.types import Intent, ProposedInterpretation
from decision_layer.telemetry import recorder
from decision_layer.telemetry.recorder import log_decision, to_jsonable
from decision_layer.utils.timing import StageTimer, timer


def test_to_jsonable_flattens_enums_and_dataclasses() -> None:
    proposal = ProposedInterpretation(
        intent=Intent.SINGLE_MEETING,
        contracts=(AnswerContract.NEXT_STEPS, AnswerContract.DRAFT_EMAIL),
        summary="next steps then email",
    )
    assert to_jsonable({"proposal": proposal, Intent.REFUSE: (1, 2)}) == {
        "proposal": {
            "intent": "SINGLE_MEETING",
            "contracts": ["NEXT_STEPS", "DRAFT_EMAIL"],
            "summary": "next steps then email",
        },
        "REFUSE": [1, 2],
    }


def test_log_decision_appends(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(recorder.settings, "log_dir", str(tmp_path / "logs"))

    path = log_decision("abc123", {"intent": Intent.CLARIFY})
    log_decision("def456", {"intent": Intent.REFUSE})

    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert records == [
        {"intent": "CLARIFY", "request_id": "abc123"},
        {"intent": "REFUSE", "request_id": "def456"},
    ]


def test_stage_timer_accumulates() -> None:
    stages = StageTimer()
    with stages.stage("CLASSIFYING"):
        pass
    with stages.stage("CLASSIFYING"):
        pass
    with stages.stage("SCOPE_CHECKING"):
        pass

    assert set(stages.as_dict()) == {"CLASSIFYING", "SCOPE_CHECKING"}
    assert stages.total_ms >= 0


def test_timer_reports_elapsed_ms() -> None:
    with timer() as elapsed:
        first = elapsed()
    assert elapsed() >= first >= 0
