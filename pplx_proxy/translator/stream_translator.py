"""State machine turning upstream events into ordered output text deltas."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional

from ..core.models import ModelTable
from ..settings import Settings
from .blocks import (
    PROGRESS_DONE,
    ImageResultBlock,
    MarkdownBlock,
    ReasoningBlock,
    UpstreamEvent,
    WebResultBlock,
    parse_event_line,
)
from .formatting import format_display_model, format_image_results, format_web_results

logger = logging.getLogger("pplx-proxy")

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>\n"
FILTERED_GOALS = frozenset({"Beginning analysis", "Wrapping up analysis"})

DisconnectChecker = Callable[[], Awaitable[bool]]


@dataclass
class TranslationState:
    """Per-response record; never shared between upstream responses."""

    full_text: str = ""
    in_thinking: bool = False
    thinking_shown: bool = False
    final: bool = False
    cancelled: bool = False


class StreamTranslator:
    """Consumes one upstream event body and yields text deltas.

    Deltas are produced in this order for every event:

    - terminal event: image results, then web results, then the display
      model note; reading stops afterwards.
    - other events: reasoning goals (inside a single ``<think>`` region),
      then markdown chunks.

    ``state.full_text`` always equals the concatenation of every delta
    yielded so far, which is what buffered replies are built from.
    """

    def __init__(
        self,
        upstream_model: str,
        models: ModelTable,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or Settings()
        self.upstream_model = upstream_model
        self.models = models
        self.ignore_search_result = settings.ignore_search_result
        self.ignore_model_monitoring = settings.ignore_model_monitoring
        self.search_result_compatible = settings.search_result_compatible
        self.state = TranslationState()

    def process_event(self, event: UpstreamEvent) -> list[str]:
        """Translate one event and append the result to ``full_text``."""
        if event.is_terminal:
            deltas = self._terminal_deltas(event)
            self.state.final = True
        else:
            deltas = self._reasoning_deltas(event) + self._markdown_deltas(event)
        for delta in deltas:
            self.state.full_text += delta
        return deltas

    def process_line(self, line: str) -> list[str]:
        event = parse_event_line(line)
        if event is None:
            return []
        return self.process_event(event)

    async def iter_deltas(
        self,
        lines: AsyncIterator[str],
        is_disconnected: Optional[DisconnectChecker] = None,
    ) -> AsyncIterator[str]:
        """Yield non-empty deltas until the terminal event or end of body.

        The disconnect checker runs before every line. When it reports a
        closed client the translator marks the state cancelled and stops
        without yielding anything further.
        """
        async for line in lines:
            if is_disconnected is not None and await is_disconnected():
                logger.info("Client connection closed")
                self.state.cancelled = True
                return
            for delta in self.process_line(line):
                if delta:
                    yield delta
            if self.state.final:
                return

    def _terminal_deltas(self, event: UpstreamEvent) -> list[str]:
        deltas: list[str] = []
        for block in event.blocks:
            if (
                isinstance(block, ImageResultBlock)
                and block.progress == PROGRESS_DONE
                and block.media_items
            ):
                deltas.append(format_image_results(block.media_items))

        if not self.ignore_search_result:
            for block in event.blocks:
                if isinstance(block, WebResultBlock) and block.results:
                    deltas.append(
                        format_web_results(block.results, compatible=self.search_result_compatible)
                    )

        if not self.ignore_model_monitoring and event.display_model != self.upstream_model:
            deltas.append(format_display_model(self.models.to_public(event.display_model)))
        return deltas

    def _reasoning_deltas(self, event: UpstreamEvent) -> list[str]:
        deltas: list[str] = []
        for block in event.blocks:
            if not isinstance(block, ReasoningBlock) or not any(block.goals):
                continue
            text = ""
            if not self.state.in_thinking and not self.state.thinking_shown:
                text += THINK_OPEN
                self.state.in_thinking = True
            for goal in block.goals:
                if goal and goal not in FILTERED_GOALS:
                    text += goal
            deltas.append(text)
        return deltas

    def _markdown_deltas(self, event: UpstreamEvent) -> list[str]:
        deltas: list[str] = []
        for block in event.blocks:
            if not isinstance(block, MarkdownBlock) or not any(block.chunks):
                continue
            text = ""
            if self.state.in_thinking:
                text += THINK_CLOSE
                self.state.in_thinking = False
                self.state.thinking_shown = True
            text += "".join(block.chunks)
            deltas.append(text)
        return deltas
