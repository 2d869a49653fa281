"""Testing utilities for in-process proxy simulations."""

from .event_builders import (
    build_answer_events,
    completed_event,
    image_block,
    markdown_block,
    reasoning_block,
    upstream_event,
    web_result_block,
)
from .fake_perplexity import AskResponse, FakePerplexity
from .proxy_harness import ProxyHarness

__all__ = [
    # Core simulation classes
    "AskResponse",
    "FakePerplexity",
    "ProxyHarness",
    # Event builders
    "build_answer_events",
    "completed_event",
    "image_block",
    "markdown_block",
    "reasoning_block",
    "upstream_event",
    "web_result_block",
]
