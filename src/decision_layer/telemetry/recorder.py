from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from decision_layer.config import settings


def _ensure_log_dir() -> Path:
    d = Path(settings.log_dir or "logs")
    d.mkdir(parents=True, exist_ok=True)
    return d


def to_jsonable(obj: Any) -> Any:
    """Convert dataclasses, enums and tuples into plain JSON types."""
    if is_dataclass(obj) and not isinstance(obj, type):
        obj = asdict(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in obj]
    return obj


def log_decision(request_id: str, payload: dict[str, Any]) -> Path:
    """Append one routing decision to ``decisions.jsonl`` under ``log_dir``."""
    path = _ensure_log_dir() / "decisions.jsonl"
    data = to_jsonable(payload)
    data.setdefault("request_id", request_id)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(data, ensure_ascii=False) + "\n")
    return path
