"""Error taxonomy for the decision layer.

LLM call sites raise :class:`ClassificationError`; the classifier and the
orchestrator are the only places that catch it and choose the outcome
(fail open for validation, CLARIFY for everything else).
"""

from __future__ import annotations


class DecisionLayerError(Exception):
    """Base class for decision layer errors."""


class ClassificationError(DecisionLayerError):
    """An LLM-backed step produced no usable answer."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    EMPTY_RESPONSE = "empty_response"
    INVALID_JSON = "invalid_json"
    INVALID_INTENT = "invalid_intent"

    def __init__(self, kind: str, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind}: {detail}" if detail else kind)


class EntityStoreError(DecisionLayerError):
    """The entity store could not return the company list."""
