"""API routes for the proxy."""

from .chat import chat_completions, handle_chat_request, parse_chat_request
from .health import health_check
from .models import list_models

__all__ = [
    "chat_completions",
    "handle_chat_request",
    "health_check",
    "list_models",
    "parse_chat_request",
]
