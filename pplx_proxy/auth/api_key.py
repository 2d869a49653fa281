"""API key check for the proxy's /v1 endpoints."""

from __future__ import annotations

import hmac
import logging
from typing import Any, Optional

from fastapi import HTTPException, Request

logger = logging.getLogger("pplx-proxy")

ALT_HEADER_NAME = "x-api-key"


def _auth_error(message: str, code: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={
            "error": {
                "message": message,
                "type": "authentication_error",
                "code": code,
            }
        },
    )


def extract_api_key(request: Request) -> Optional[str]:
    """Read the caller's key from ``Authorization: Bearer`` or ``x-api-key``."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        key = auth_header[7:].strip()
        if key:
            return key
    key = request.headers.get(ALT_HEADER_NAME, "").strip()
    return key or None


class ApiKeyValidator:
    """Validates the configured proxy API key.

    An empty configured key disables the check.
    """

    def __init__(self, api_key: Optional[str] = None) -> None:
        self._api_key = api_key

    def _configured_key(self) -> str:
        if self._api_key is not None:
            return self._api_key
        # Lazy lookup so the validator follows the active controller
        from ..core.registry import get_controller

        settings: Any = get_controller().settings
        return settings.api_key

    def is_enabled(self) -> bool:
        return bool(self._configured_key())

    def validate_request(self, request: Request) -> None:
        """Raise 401 unless the request carries the configured key."""
        expected = self._configured_key()
        if not expected:
            return

        provided = extract_api_key(request)
        if not provided:
            logger.warning("Request rejected: missing API key")
            raise _auth_error("Missing or invalid Authorization header", "missing_api_key")

        if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Request rejected: invalid API key")
            raise _auth_error("Invalid API key", "invalid_api_key")


_VALIDATOR = ApiKeyValidator()


def get_api_key_validator() -> ApiKeyValidator:
    return _VALIDATOR


async def require_api_key(request: Request) -> None:
    """FastAPI dependency guarding the /v1 routes."""
    get_api_key_validator().validate_request(request)
