"""Build OpenAI chat completion payloads from translated text."""

from __future__ import annotations

import json
import time
import uuid

from ..types import ChatCompletionChunk, ChatCompletionResponse

SSE_DONE = b"data: [DONE]\n\n"


def _completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


def build_stream_chunk(text: str, model: str) -> ChatCompletionChunk:
    return {
        "id": _completion_id(),
        "object": "chat.completion.chunk",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "delta": {"content": text},
                "logprobs": None,
                "finish_reason": None,
            }
        ],
    }


def encode_sse(payload: ChatCompletionChunk) -> bytes:
    """Encode one chunk as an SSE ``data:`` event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def build_completion(text: str, model: str) -> ChatCompletionResponse:
    """Build a buffered reply.

    Usage is estimated as one token per four characters of output and the
    same estimate is reported for prompt, completion and total.
    """
    tokens = len(text) // 4
    return {
        "id": _completion_id(),
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": text,
                    "refusal": None,
                    "annotations": [],
                },
                "logprobs": None,
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": tokens,
            "completion_tokens": tokens,
            "total_tokens": tokens,
        },
    }
