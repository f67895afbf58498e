"""FastAPI application factory."""

from typing import Optional

from decision_layer.api.routes import router
from decision_layer.supervisor.orchestrator import DecisionLayer
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


def create_app(layer: Optional[DecisionLayer] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        layer: Decision layer to serve. The shared default is built on first
            request when omitted.
    """
    app = FastAPI(
        title="Decision Layer",
        description="Intent routing, context layers and answer contracts "
        "for meeting-intelligence questions",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.decision_layer = layer
    app.include_router(router)

    return app
