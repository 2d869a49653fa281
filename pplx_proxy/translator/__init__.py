"""Upstream event decoding and translation into output text."""

from .blocks import (
    EmptyBlock,
    ImageResultBlock,
    MarkdownBlock,
    MediaItem,
    ReasoningBlock,
    UpstreamEvent,
    WebResult,
    WebResultBlock,
    parse_block,
    parse_event_line,
)
from .formatting import search_show, truncate_snippet
from .stream_translator import StreamTranslator, TranslationState

__all__ = [
    "EmptyBlock",
    "ImageResultBlock",
    "MarkdownBlock",
    "MediaItem",
    "ReasoningBlock",
    "StreamTranslator",
    "TranslationState",
    "UpstreamEvent",
    "WebResult",
    "WebResultBlock",
    "parse_block",
    "parse_event_line",
    "search_show",
    "truncate_snippet",
]
