"""HTTP routes for the decision layer."""

from typing import Any, Dict, List, Optional

from decision_layer.intent.types import ThreadContext, ThreadMessage
from decision_layer.logging import get_logger
from decision_layer.supervisor.orchestrator import DecisionLayer, get_decision_layer
from decision_layer.telemetry.recorder import to_jsonable
from decision_layer.utils.timing import timer
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

logger = get_logger(__name__)

router = APIRouter()


class ThreadMessageIn(BaseModel):
    text: str
    is_bot: bool = False


class DecideRequest(BaseModel):
    question: str = Field(..., min_length=1)
    thread: List[ThreadMessageIn] = Field(default_factory=list)


class DecideResponse(BaseModel):
    intent: str
    intent_detection_method: str
    confidence: float
    reason: str
    context_layers: Dict[str, bool]
    answer_contract: str
    contract_selection_method: str
    contract_chain: Optional[List[str]] = None
    clarify_message: Optional[str] = None
    proposed_interpretation: Optional[Dict[str, Any]] = None
    alternatives: List[Dict[str, Any]] = Field(default_factory=list)
    needs_split: bool = False
    split_options: List[str] = Field(default_factory=list)
    scope: Optional[Dict[str, Any]] = None
    scope_note: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    trace: List[str] = Field(default_factory=list)
    timings_ms: Dict[str, float] = Field(default_factory=dict)
    processing_time_ms: float


class HealthResponse(BaseModel):
    status: str
    product: str
    fallback_mode: str


def get_layer(request: Request) -> DecisionLayer:
    layer = getattr(request.app.state, "decision_layer", None)
    return layer if layer is not None else get_decision_layer()


def _thread_from_request(req: DecideRequest) -> Optional[ThreadContext]:
    if not req.thread:
        return None
    return ThreadContext(
        messages=tuple(ThreadMessage(text=m.text, is_bot=m.is_bot) for m in req.thread)
    )


@router.get("/health", response_model=HealthResponse)
async def health(layer: DecisionLayer = Depends(get_layer)) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        product=layer.settings.PRODUCT_NAME,
        fallback_mode=layer.settings.FALLBACK_MODE,
    )


@router.post("/decide", response_model=DecideResponse)
async def decide(
    req: DecideRequest, layer: DecisionLayer = Depends(get_layer)
) -> DecideResponse:
    """Route one question and return the full decision."""
    try:
        with timer() as elapsed:
            result = await layer.run(req.question, _thread_from_request(req))
        payload = to_jsonable(result)
        return DecideResponse(**payload, processing_time_ms=round(elapsed(), 3))
    except Exception as e:
        logger.error(f"Error processing decision: {e}")
        raise HTTPException(status_code=500, detail=f"Error processing decision: {e}") from e
