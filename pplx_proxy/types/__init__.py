"""Type definitions for the proxy."""

from .chat import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
)
from .upstream import AskRequest, UploadFields, UploadSlot

__all__ = [
    "AskRequest",
    "ChatCompletionChunk",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "UploadFields",
    "UploadSlot",
]
