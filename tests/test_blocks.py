"""Tests for upstream event line decoding and block classification."""

import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from pplx_proxy.testing import (
    completed_event,
    image_block,
    markdown_block,
    reasoning_block,
    upstream_event,
    web_result_block,
)
from pplx_proxy.translator.blocks import (
    EmptyBlock,
    ImageResultBlock,
    MarkdownBlock,
    MediaItem,
    ReasoningBlock,
    WebResult,
    WebResultBlock,
    parse_block,
    parse_event_line,
)


def _line(payload) -> str:
    return "data: " + json.dumps(payload)


class TestParseBlock:
    """Tests for parse_block."""

    def test_reasoning_block(self):
        block = parse_block(reasoning_block("Search", "Read"))
        assert block == ReasoningBlock(goals=("Search", "Read"))

    def test_markdown_block(self):
        assert parse_block(markdown_block("a", "b")) == MarkdownBlock(chunks=("a", "b"))

    def test_web_result_block(self):
        block = parse_block(web_result_block([("Title", "https://x.test", "Snippet")]))
        assert block == WebResultBlock(
            results=(WebResult(name="Title", snippet="Snippet", url="https://x.test"),)
        )

    def test_image_block(self):
        block = parse_block(image_block([("cat", "https://img.test/cat.png")]))
        assert isinstance(block, ImageResultBlock)
        assert block.progress == "DONE"
        assert block.media_items == (
            MediaItem(name="cat", image="https://img.test/cat.png", url="https://img.test/cat.png"),
        )

    def test_unknown_payload_is_empty(self):
        assert parse_block({"sources_answer_mode_block": {}}) == EmptyBlock()

    def test_missing_fields_default_to_empty(self):
        assert parse_block({"markdown_block": {}}) == MarkdownBlock(chunks=())
        assert parse_block({"reasoning_plan_block": None}) == ReasoningBlock(goals=())

    def test_non_string_values_are_blanked(self):
        block = parse_block({"markdown_block": {"chunks": ["ok", 3, None]}})
        assert block == MarkdownBlock(chunks=("ok", "", ""))


class TestParseEventLine:
    """Tests for parse_event_line."""

    def test_decodes_event(self):
        event = parse_event_line(_line(upstream_event(markdown_block("Hi"), display_model="gpt45")))
        assert event is not None
        assert event.status == "PENDING"
        assert event.display_model == "gpt45"
        assert event.blocks == (MarkdownBlock(chunks=("Hi",)),)
        assert not event.is_terminal

    def test_completed_is_terminal(self):
        event = parse_event_line(_line(completed_event()))
        assert event is not None
        assert event.is_terminal

    def test_skips_blank_and_unprefixed_lines(self):
        assert parse_event_line("") is None
        assert parse_event_line(": ping") is None
        assert parse_event_line("event: message") is None
        assert parse_event_line('{"status": "COMPLETED"}') is None

    def test_malformed_json_is_logged_and_skipped(self, caplog):
        with caplog.at_level(logging.ERROR, logger="pplx-proxy"):
            assert parse_event_line("data: {broken") is None
        assert "Error parsing upstream event JSON" in caplog.text

    def test_non_object_payload_is_skipped(self):
        assert parse_event_line("data: [1, 2]") is None
        assert parse_event_line('data: "text"') is None
