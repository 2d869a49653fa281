"""OpenAI-compatible chat completions endpoint."""

import json
import logging
from typing import Any, Mapping

from fastapi import HTTPException, Request, Response

from ...core import (
    DEFAULT_MODEL,
    ConfigurationError,
    InvalidRequestError,
    RetriesExhaustedError,
    build_prompt,
    split_search_suffix,
)
from ...core.failover import CompletionJob
from ...core.registry import get_controller
from ...types import ChatCompletionRequest

logger = logging.getLogger("pplx-proxy")


def _error_detail(message: str, error_type: str, code: str) -> dict[str, Any]:
    return {"error": {"message": message, "type": error_type, "code": code}}


def parse_chat_request(body: bytes) -> ChatCompletionRequest:
    """Decode and validate an inbound chat completion body.

    Raises:
        InvalidRequestError: If the body is not a JSON object or has no
            messages.
    """
    try:
        payload = json.loads((body or b"{}").decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRequestError("Invalid JSON payload", code="invalid_json") from exc

    if not isinstance(payload, Mapping):
        raise InvalidRequestError("Request body must be a JSON object", code="invalid_json_shape")

    messages = payload.get("messages")
    if not isinstance(messages, list) or not messages:
        raise InvalidRequestError("No messages provided", code="missing_parameter")

    model = payload.get("model")
    if model is not None and not isinstance(model, str):
        raise InvalidRequestError("model must be a string", code="invalid_parameter")

    for flag in ("stream", "incognito"):
        value = payload.get(flag)
        if value is not None and not isinstance(value, bool):
            raise InvalidRequestError(f"{flag} must be a boolean", code="invalid_parameter")
    return payload  # type: ignore[return-value]


async def handle_chat_request(request: Request) -> Response:
    """Turn an inbound chat request into a completion job and run it.

    Args:
        request: The FastAPI request object.

    Returns:
        A JSONResponse for buffered requests, a StreamingResponse otherwise.
    """
    logger.info(f"Handling {request.method} request to {request.url.path}")
    controller = get_controller()
    settings = controller.settings

    body = await request.body()
    try:
        payload = parse_chat_request(body)
    except InvalidRequestError as exc:
        logger.error(f"Invalid chat request: {exc.message}")
        raise HTTPException(
            status_code=400,
            detail=_error_detail(exc.message, "invalid_request_error", exc.code),
        ) from exc

    public_model = payload.get("model") or DEFAULT_MODEL
    base_model, search = split_search_suffix(public_model)
    upstream_model = controller.models.to_upstream(base_model)

    stream = payload.get("stream")
    is_stream = True if stream is None else stream
    incognito = payload.get("incognito")
    is_incognito = settings.is_incognito if incognito is None else incognito

    prompt = build_prompt(payload["messages"], no_role_prefix=settings.no_role_prefix)
    logger.info(
        f"Processing request for model {public_model} -> {upstream_model}, "
        f"stream={is_stream}, prompt_len={len(prompt.text)}, images={len(prompt.images)}"
    )

    job = CompletionJob(
        prompt=prompt,
        upstream_model=upstream_model,
        public_model=public_model,
        search=search,
        stream=is_stream,
        is_incognito=is_incognito,
    )

    try:
        return await controller.send(job, disconnect_checker=request.is_disconnected)
    except ConfigurationError as exc:
        logger.error(f"Configuration error for model {public_model}: {exc.message}")
        raise HTTPException(
            status_code=500,
            detail=_error_detail(exc.message, "server_error", "no_sessions"),
        ) from exc
    except RetriesExhaustedError as exc:
        logger.error(f"Request for model {public_model} failed: {exc.last_error}")
        raise HTTPException(
            status_code=500,
            detail=_error_detail(exc.message, "server_error", "retries_exhausted"),
        ) from exc


async def chat_completions(request: Request) -> Response:
    """Chat completions endpoint - OpenAI compatible.

    POST /v1/chat/completions
    """
    logger.info("Received chat completions request")
    return await handle_chat_request(request)
