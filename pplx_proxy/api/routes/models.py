"""Models listing endpoint - OpenAI compatible."""

import logging

from ...core.registry import get_controller

logger = logging.getLogger("pplx-proxy")


async def list_models() -> dict:
    """List available models in OpenAI API format.

    GET /v1/models

    Every public model is listed twice: as is, and with the ``-search``
    suffix that turns on web search.
    """
    logger.info("Received models list request")
    controller = get_controller()
    return {
        "object": "list",
        "data": controller.models.listing(),
    }
