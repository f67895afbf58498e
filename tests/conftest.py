"""Pytest configuration file."""

import json
from typing import Any, Callable, Optional, Sequence

import pytest
from decision_layer.api.app import create_app
from decision_layer.config import Settings
from decision_layer.models.adapter import ChatMessage
from decision_layer.stores import StaticEntityStore, StaticMeetingCountStore
from decision_layer.supervisor.orchestrator import DecisionLayer
from fastapi import FastAPI
from fastapi.testclient import TestClient


class ScriptedLLM:
    """Chat model double that replays scripted responses in call order.

    Dict responses are serialised to JSON, strings are returned verbatim and
    exceptions are raised.
    """

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
        json_mode: bool = True,
    ) -> tuple[str, dict[str, int]]:
        self.calls.append(
            {
                "messages": list(messages),
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if not self.responses:
            raise AssertionError(f"Unexpected LLM call #{len(self.calls)}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            item = json.dumps(item)
        return item, {"total_tokens": 0}


@pytest.fixture
def scripted_llm() -> Callable[..., ScriptedLLM]:
    """Factory for scripted chat models."""
    return ScriptedLLM


@pytest.fixture
def make_layer() -> Callable[..., DecisionLayer]:
    """Factory for decision layers wired to static stores."""

    def _make(
        llm: Optional[ScriptedLLM] = None,
        companies: Optional[Sequence[str]] = None,
        meetings: int = 0,
        **overrides: Any,
    ) -> DecisionLayer:
        cfg = Settings(**{"OPENAI_API_KEY": None, "TELEMETRY_ENABLED": False, **overrides})
        return DecisionLayer(
            llm=llm or ScriptedLLM(),
            entity_store=StaticEntityStore(
                companies if companies is not None else cfg.FALLBACK_COMPANIES
            ),
            meeting_store=StaticMeetingCountStore(meetings),
            settings=cfg,
        )

    return _make


@pytest.fixture
def app(make_layer: Callable[..., DecisionLayer]) -> FastAPI:
    """Create a test FastAPI application."""
    return create_app(layer=make_layer())


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create a test client."""
    return TestClient(app)
