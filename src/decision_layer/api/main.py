"""Entry point for serving the decision layer with uvicorn."""

from decision_layer.api.app import create_app
from decision_layer.config import settings
from decision_layer.logging import get_logger

logger = get_logger(__name__)

app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting decision layer API on {settings.API_HOST}:{settings.API_PORT}")
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
