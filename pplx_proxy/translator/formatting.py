"""Text rendering for search results, generated images and model notes."""

from __future__ import annotations

from typing import Sequence

from .blocks import MediaItem, WebResult

SECTION_SEPARATOR = "\n\n---\n"
SNIPPET_LIMIT = 150
SNIPPET_ELLIPSIS = " ……"


def truncate_snippet(snippet: str, limit: int = SNIPPET_LIMIT) -> str:
    """Cut a snippet to ``limit`` code points and mark the cut."""
    if len(snippet) > limit:
        return snippet[:limit] + SNIPPET_ELLIPSIS
    return snippet


def search_show_details(index: int, title: str, url: str, snippet: str) -> str:
    return (
        f"<details>\n<summary>[{index}] {title}</summary>\n\n"
        f"{snippet}\n\n[Link]({url})\n\n</details>"
    )


def search_show_compatible(index: int, title: str, url: str, snippet: str) -> str:
    return f"[{index}] [{title}]({url}):\n{snippet}\n"


def search_show(position: int, result: WebResult, *, compatible: bool = False) -> str:
    """Render one web result; ``position`` is zero-based, output is one-based."""
    snippet = truncate_snippet(result.snippet)
    if compatible:
        return search_show_compatible(position + 1, result.name, result.url, snippet)
    return search_show_details(position + 1, result.name, result.url, snippet)


def format_web_results(results: Sequence[WebResult], *, compatible: bool = False) -> str:
    text = SECTION_SEPARATOR
    for position, result in enumerate(results):
        text += "\n\n" + search_show(position, result, compatible=compatible)
    return text


def image_show(position: int, item: MediaItem) -> str:
    return f"![{item.name or position + 1}]({item.image})\n"


def format_image_results(items: Sequence[MediaItem]) -> str:
    """Render generated images followed by the list of image sources."""
    text = "".join(image_show(position, item) for position, item in enumerate(items))
    names = [item.name for item in items]
    if names:
        text += SECTION_SEPARATOR + ", ".join(names)
    return text


def format_display_model(public_name: str) -> str:
    return f"{SECTION_SEPARATOR}Display Model: {public_name}\n"
