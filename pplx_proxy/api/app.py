"""Route registration shared by the server and the test harness."""

import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..auth import require_api_key
from .routes import chat_completions, health_check, list_models

logger = logging.getLogger("pplx-proxy")

API_PREFIXES = ("/v1", "/hf/v1")


def register_routes(app: FastAPI) -> None:
    """Attach CORS, the health check and the guarded /v1 and /hf/v1 routes."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.get("/health")(health_check)

    guarded = [Depends(require_api_key)]
    for prefix in API_PREFIXES:
        app.post(f"{prefix}/chat/completions", dependencies=guarded)(chat_completions)
        app.get(f"{prefix}/models", dependencies=guarded)(list_models)
        logger.debug("Registered routes under %s", prefix)
