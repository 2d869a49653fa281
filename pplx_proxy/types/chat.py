"""OpenAI-compatible chat types accepted and produced by the proxy.

Inbound requests are parsed from raw JSON, so these types describe the
shape we read rather than a schema we validate against.
"""

from typing import Any
from typing_extensions import TypedDict


class ImageURL(TypedDict, total=False):
    """Image reference inside an ``image_url`` content part.

    Attributes:
        url: Either a remote URL or a ``data:image/...;base64,`` URL.
        detail: Optional detail hint; ignored upstream.
    """
    url: str
    detail: str | None


class ContentPart(TypedDict, total=False):
    """A content part for multi-modal messages.

    Attributes:
        type: "text" or "image_url". Other part types are ignored.
        text: Text content (for "text" type).
        image_url: Image reference (for "image_url" type).
    """
    type: str
    text: str | None
    image_url: ImageURL | None


class ChatMessage(TypedDict, total=False):
    """A message in a chat conversation.

    Attributes:
        role: "system", "user", "assistant" or anything else (rendered as
            "Unknown").
        content: A string, or a list of ContentPart for multi-modal input.
    """
    role: str
    content: str | list[ContentPart] | None


class ChatCompletionRequest(TypedDict, total=False):
    """Inbound chat completion request.

    Attributes:
        model: Public model name, optionally suffixed with "-search".
        messages: Conversation so far.
        stream: Stream the reply as SSE. Defaults to True.
        incognito: Ask the upstream not to keep the thread. Defaults to
            the configured ``is_incognito``.
    """
    model: str
    messages: list[ChatMessage]
    stream: bool
    incognito: bool
    tools: list[dict[str, Any]] | None


class Delta(TypedDict, total=False):
    role: str | None
    content: str | None


class ResponseMessage(TypedDict, total=False):
    role: str
    content: str
    refusal: str | None
    annotations: list[Any]


class Choice(TypedDict, total=False):
    """A choice in a chat completion response.

    Streaming chunks carry ``delta``; buffered replies carry ``message``.
    """
    index: int
    delta: Delta | None
    message: ResponseMessage | None
    logprobs: dict[str, Any] | None
    finish_reason: str | None


class Usage(TypedDict, total=False):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionChunk(TypedDict, total=False):
    id: str
    object: str
    created: int
    model: str
    choices: list[Choice]


class ChatCompletionResponse(TypedDict, total=False):
    id: str
    object: str
    created: int
    model: str
    choices: list[Choice]
    usage: Usage
