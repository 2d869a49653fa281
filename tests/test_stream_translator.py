"""Tests for the stream translator state machine."""

import json
import sys
from pathlib import Path
from typing import AsyncIterator

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from pplx_proxy.core.models import ModelTable
from pplx_proxy.settings import Settings
from pplx_proxy.testing import (
    completed_event,
    image_block,
    markdown_block,
    reasoning_block,
    upstream_event,
    web_result_block,
)
from pplx_proxy.translator.blocks import parse_event
from pplx_proxy.translator.stream_translator import StreamTranslator


def _translator(**settings) -> StreamTranslator:
    return StreamTranslator("claude2", ModelTable(), Settings(**settings))


def _line(payload) -> str:
    return "data: " + json.dumps(payload)


async def _lines(items) -> AsyncIterator[str]:
    for item in items:
        yield item


async def _collect(translator: StreamTranslator, lines, checker=None) -> list[str]:
    return [delta async for delta in translator.iter_deltas(_lines(lines), checker)]


class TestThinkingRegion:
    """Tests for the <think> delimiters."""

    def test_reasoning_then_markdown(self):
        translator = _translator()
        first = translator.process_event(parse_event(upstream_event(reasoning_block("Plan"))))
        second = translator.process_event(parse_event(upstream_event(markdown_block("Answer"))))
        assert first == ["<think>Plan"]
        assert second == ["</think>\nAnswer"]
        assert translator.state.full_text == "<think>Plan</think>\nAnswer"
        assert translator.state.thinking_shown
        assert not translator.state.in_thinking

    def test_delimiters_appear_at_most_once(self):
        """Reasoning after markdown never reopens the region."""
        translator = _translator()
        events = [
            upstream_event(reasoning_block("one")),
            upstream_event(reasoning_block("two")),
            upstream_event(markdown_block("text")),
            upstream_event(reasoning_block("three")),
            upstream_event(markdown_block(" more")),
            upstream_event(reasoning_block("four")),
        ]
        for event in events:
            translator.process_event(parse_event(event))
        text = translator.state.full_text
        assert text.count("<think>") == 1
        assert text.count("</think>") == 1
        assert text.index("<think>") < text.index("</think>")
        assert text == "<think>onetwo</think>\ntextthree morefour"

    def test_markdown_without_reasoning_has_no_delimiters(self):
        translator = _translator()
        translator.process_event(parse_event(upstream_event(markdown_block("plain"))))
        assert translator.state.full_text == "plain"

    def test_boilerplate_goals_are_filtered(self):
        translator = _translator()
        deltas = translator.process_event(
            parse_event(
                upstream_event(
                    reasoning_block("Beginning analysis", "Look up facts", "", "Wrapping up analysis")
                )
            )
        )
        assert deltas == ["<think>Look up facts"]

    def test_filter_is_exact_match(self):
        translator = _translator()
        deltas = translator.process_event(
            parse_event(upstream_event(reasoning_block("Beginning analysis now")))
        )
        assert deltas == ["<think>Beginning analysis now"]

    def test_empty_goals_do_not_open_region(self):
        translator = _translator()
        assert translator.process_event(parse_event(upstream_event(reasoning_block("", "")))) == []
        assert not translator.state.in_thinking

    def test_empty_chunks_do_not_close_region(self):
        translator = _translator()
        translator.process_event(parse_event(upstream_event(reasoning_block("Plan"))))
        assert translator.process_event(parse_event(upstream_event(markdown_block("")))) == []
        assert translator.state.in_thinking

    def test_reasoning_emitted_before_markdown_in_one_event(self):
        translator = _translator()
        deltas = translator.process_event(
            parse_event(upstream_event(markdown_block("Answer"), reasoning_block("Plan")))
        )
        assert deltas == ["<think>Plan", "</think>\nAnswer"]


class TestTerminalEvent:
    """Tests for terminal event emission order."""

    def test_plain_terminal_event_adds_nothing(self):
        """Without results or model change, the text equals prior deltas."""
        translator = _translator()
        deltas = []
        for event in [
            upstream_event(markdown_block("Hello ")),
            upstream_event(markdown_block("world")),
            completed_event(),
        ]:
            deltas.extend(translator.process_event(parse_event(event)))
        assert translator.state.final
        assert translator.state.full_text == "Hello world"
        assert "".join(deltas) == "Hello world"

    def test_images_then_web_results_then_model(self):
        translator = _translator()
        deltas = translator.process_event(
            parse_event(
                completed_event(
                    web_result_block([("Site", "https://s.test", "snip")]),
                    image_block([("cat", "https://img.test/cat.png")]),
                    display_model="gpt45",
                )
            )
        )
        assert len(deltas) == 3
        assert deltas[0] == "![cat](https://img.test/cat.png)\n\n\n---\ncat"
        assert deltas[1].startswith("\n\n---\n\n\n<details>\n<summary>[1] Site</summary>")
        assert deltas[2] == "\n\n---\nDisplay Model: gpt-4.5\n"

    def test_unfinished_images_are_ignored(self):
        translator = _translator()
        deltas = translator.process_event(
            parse_event(completed_event(image_block([("cat", "u")], progress="IN_PROGRESS")))
        )
        assert deltas == []

    def test_display_model_uses_public_name(self):
        translator = StreamTranslator("claude2", ModelTable({"my-alias": "pplx_pro"}), Settings())
        deltas = translator.process_event(parse_event(completed_event(display_model="pplx_pro")))
        assert deltas == ["\n\n---\nDisplay Model: my-alias\n"]

    def test_unknown_display_model_passes_through(self):
        translator = _translator()
        deltas = translator.process_event(parse_event(completed_event(display_model="mystery")))
        assert deltas == ["\n\n---\nDisplay Model: mystery\n"]

    def test_ignore_model_monitoring(self):
        translator = _translator(ignore_model_monitoring=True)
        assert translator.process_event(parse_event(completed_event(display_model="gpt45"))) == []

    def test_ignore_search_result(self):
        translator = _translator(ignore_search_result=True)
        deltas = translator.process_event(
            parse_event(completed_event(web_result_block([("Site", "https://s.test", "snip")])))
        )
        assert deltas == []

    def test_compatible_search_format(self):
        translator = _translator(search_result_compatible=True)
        deltas = translator.process_event(
            parse_event(
                completed_event(
                    web_result_block(
                        [("One", "https://1.test", "first"), ("Two", "https://2.test", "second")]
                    )
                )
            )
        )
        assert deltas == [
            "\n\n---\n\n\n[1] [One](https://1.test):\nfirst\n\n\n[2] [Two](https://2.test):\nsecond\n"
        ]

    def test_blocks_in_terminal_event_are_not_processed_as_content(self):
        """Markdown inside the terminal event is not appended."""
        translator = _translator()
        deltas = translator.process_event(parse_event(completed_event(markdown_block("full text"))))
        assert deltas == []


class TestIterDeltas:
    """Tests for consuming a line stream."""

    @pytest.mark.asyncio
    async def test_skips_noise_and_malformed_lines(self):
        translator = _translator()
        lines = [
            "",
            ": keep-alive",
            "event: message",
            _line(upstream_event(markdown_block("A"))),
            "data: {not json",
            "",
            _line(upstream_event(markdown_block("B"))),
            _line(completed_event()),
        ]
        assert await _collect(translator, lines) == ["A", "B"]
        assert translator.state.final

    @pytest.mark.asyncio
    async def test_stops_after_terminal_event(self):
        translator = _translator()
        lines = [
            _line(upstream_event(markdown_block("A"))),
            _line(completed_event()),
            _line(upstream_event(markdown_block("late"))),
        ]
        assert await _collect(translator, lines) == ["A"]
        assert translator.state.full_text == "A"

    @pytest.mark.asyncio
    async def test_body_end_without_terminal_event(self):
        translator = _translator()
        lines = [_line(upstream_event(markdown_block("partial")))]
        assert await _collect(translator, lines) == ["partial"]
        assert not translator.state.final
        assert not translator.state.cancelled

    @pytest.mark.asyncio
    async def test_disconnect_stops_consumption(self):
        """Once the client is gone nothing further is produced."""
        translator = _translator()
        calls = 0

        async def checker() -> bool:
            nonlocal calls
            calls += 1
            return calls > 2

        lines = [_line(upstream_event(markdown_block(c))) for c in "abcdef"]
        assert await _collect(translator, lines, checker) == ["a", "b"]
        assert translator.state.cancelled
        assert translator.state.full_text == "ab"
