"""Async chat-completion adapter shared by every LLM call site."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol, Sequence

from openai import AsyncOpenAI, OpenAIError

from decision_layer.config import Settings, settings as default_settings
from decision_layer.errors import ClassificationError
from decision_layer.logging import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system"|"user"|"assistant"
    content: str


class ChatModel(Protocol):
    async def chat(
        self,
        messages: Sequence[ChatMessage],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float = 0.0,
        json_mode: bool = True,
    ) -> tuple[str, dict[str, int]]: ...


class OpenAIAdapter:
    """Thin wrapper around ``AsyncOpenAI``.

    Timeout and retry limits are delegated to the client itself; every
    failure is re-raised as :class:`ClassificationError` so callers only
    have one exception type to handle.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.OPENAI_API_KEY:
                raise ClassificationError(
                    ClassificationError.CONFIGURATION, "OPENAI_API_KEY is not set"
                )
            self._client = AsyncOpenAI(
                api_key=self.settings.OPENAI_API_KEY,
                base_url=self.settings.OPENAI_BASE_URL,
                organization=self.settings.OPENAI_ORG,
                timeout=self.settings.LLM_TIMEOUT_SECONDS,
                max_retries=self.settings.LLM_MAX_RETRIES,
            )
        return self._client

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float = 0.0,
        json_mode: bool = True,
    ) -> tuple[str, dict[str, int]]:
        kwargs: dict[str, Any] = {
            "model": model or self.settings.LLM_MODEL,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            logger.warning(f"LLM call failed ({kwargs['model']}): {e}")
            raise ClassificationError(ClassificationError.TRANSPORT, str(e)) from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        usage: dict[str, int] = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return content, usage


def parse_json_object(raw: str | None) -> dict[str, Any]:
    """Parse an LLM response into a JSON object or raise ``ClassificationError``."""
    text = (raw or "").strip()
    if not text:
        raise ClassificationError(ClassificationError.EMPTY_RESPONSE)

    text = _FENCE_RE.sub("", text).strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(text)
        if match is None:
            raise ClassificationError(
                ClassificationError.INVALID_JSON, text[:80]
            ) from None
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ClassificationError(ClassificationError.INVALID_JSON, str(e)) from e

    if not isinstance(payload, dict):
        raise ClassificationError(
            ClassificationError.INVALID_JSON, f"expected object, got {type(payload).__name__}"
        )
    return payload


def history_messages(thread: Any) -> list[ChatMessage]:
    """Prior thread turns (current message excluded) as chat messages."""
    if thread is None:
        return []
    return [
        ChatMessage(role="assistant" if m.is_bot else "user", content=m.text)
        for m in thread.history()
    ]


@lru_cache(maxsize=1)
def get_openai() -> OpenAIAdapter:
    return OpenAIAdapter()
