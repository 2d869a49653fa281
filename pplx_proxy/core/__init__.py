"""Core module initialization."""

from .exceptions import (
    ConfigurationError,
    InvalidRequestError,
    ProxyError,
    RetriesExhaustedError,
    SessionIndexError,
    SessionRetryableError,
    UploadError,
    UpstreamStatusError,
)
from .models import DEFAULT_MODEL, ModelTable, split_search_suffix
from .prompt import ImageAttachment, Prompt, build_prompt
from .registry import get_controller, set_controller
from .session_pool import Session, SessionPool
from .upstream import PerplexityClient

__all__ = [
    "ConfigurationError",
    "DEFAULT_MODEL",
    "ImageAttachment",
    "InvalidRequestError",
    "ModelTable",
    "PerplexityClient",
    "Prompt",
    "ProxyError",
    "RetriesExhaustedError",
    "Session",
    "SessionIndexError",
    "SessionPool",
    "SessionRetryableError",
    "UploadError",
    "UpstreamStatusError",
    "build_prompt",
    "get_controller",
    "set_controller",
    "split_search_suffix",
]
