"""Decode upstream SSE event lines into typed blocks.

Upstream events look like::

    data: {"status": "PENDING", "display_model": "claude37sonnet",
           "blocks": [{"markdown_block": {"chunks": ["Hel", "lo"]}}]}

Each entry of ``blocks`` carries exactly one of the known payload keys.
Unknown payloads decode to :class:`EmptyBlock` and are ignored downstream.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

logger = logging.getLogger("pplx-proxy")

DATA_PREFIX = "data: "
STATUS_COMPLETED = "COMPLETED"
PROGRESS_DONE = "DONE"


@dataclass(frozen=True)
class ReasoningBlock:
    goals: tuple[str, ...]


@dataclass(frozen=True)
class MarkdownBlock:
    chunks: tuple[str, ...]


@dataclass(frozen=True)
class WebResult:
    name: str
    snippet: str
    url: str


@dataclass(frozen=True)
class WebResultBlock:
    results: tuple[WebResult, ...]


@dataclass(frozen=True)
class MediaItem:
    name: str
    image: str
    url: str = ""
    source: str = ""


@dataclass(frozen=True)
class ImageResultBlock:
    progress: str
    media_items: tuple[MediaItem, ...]


@dataclass(frozen=True)
class EmptyBlock:
    pass


Block = Union[ReasoningBlock, MarkdownBlock, WebResultBlock, ImageResultBlock, EmptyBlock]


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_block(payload: Mapping[str, Any]) -> Block:
    """Classify one entry of an event's ``blocks`` array."""
    if not isinstance(payload, Mapping):
        return EmptyBlock()

    if "reasoning_plan_block" in payload:
        raw = _dict(payload["reasoning_plan_block"])
        goals = tuple(_str(_dict(goal).get("description")) for goal in _list(raw.get("goals")))
        return ReasoningBlock(goals=goals)

    if "markdown_block" in payload:
        raw = _dict(payload["markdown_block"])
        return MarkdownBlock(chunks=tuple(_str(chunk) for chunk in _list(raw.get("chunks"))))

    if "web_result_block" in payload:
        raw = _dict(payload["web_result_block"])
        results = tuple(
            WebResult(
                name=_str(item.get("name")),
                snippet=_str(item.get("snippet")),
                url=_str(item.get("url")),
            )
            for item in map(_dict, _list(raw.get("web_results")))
        )
        return WebResultBlock(results=results)

    if "image_mode_block" in payload:
        raw = _dict(payload["image_mode_block"])
        items = tuple(
            MediaItem(
                name=_str(item.get("name")),
                image=_str(item.get("image")),
                url=_str(item.get("url")),
                source=_str(item.get("source")),
            )
            for item in map(_dict, _list(raw.get("media_items")))
        )
        return ImageResultBlock(progress=_str(raw.get("progress")), media_items=items)

    return EmptyBlock()


@dataclass(frozen=True)
class UpstreamEvent:
    status: str
    display_model: str
    blocks: tuple[Block, ...]

    @property
    def is_terminal(self) -> bool:
        return self.status == STATUS_COMPLETED


def parse_event(payload: Mapping[str, Any]) -> UpstreamEvent:
    return UpstreamEvent(
        status=_str(payload.get("status")),
        display_model=_str(payload.get("display_model")),
        blocks=tuple(parse_block(block) for block in _list(payload.get("blocks"))),
    )


def parse_event_line(line: str) -> Optional[UpstreamEvent]:
    """Decode one line of the upstream body.

    Returns None for lines that carry no event: blank keep-alives, lines
    without the ``data: `` prefix, undecodable JSON and non-object payloads.
    """
    if not line or not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        logger.error("Error parsing upstream event JSON: %s", exc)
        return None
    if not isinstance(payload, dict):
        logger.debug("Skipping non-object upstream event: %s", data[:100])
        return None
    return parse_event(payload)
