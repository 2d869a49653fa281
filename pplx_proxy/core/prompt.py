"""Flatten OpenAI-style messages into a single upstream query."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from ..types import ChatMessage

logger = logging.getLogger("pplx-proxy")

ROLE_PREFIXES = {
    "system": "System: ",
    "user": "Human: ",
    "assistant": "Assistant: ",
}
UNKNOWN_ROLE_PREFIX = "Unknown: "
DATA_IMAGE_PREFIX = "data:image/"


@dataclass(frozen=True)
class ImageAttachment:
    """An image to upload before asking.

    Exactly one of ``data`` (base64 payload) or ``url`` (remote image) is set.
    """

    data: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_url(cls, url: str) -> "ImageAttachment":
        if url.startswith(DATA_IMAGE_PREFIX):
            _, _, payload = url.partition(",")
            return cls(data=payload)
        return cls(url=url)


@dataclass
class Prompt:
    text: str
    images: list[ImageAttachment] = field(default_factory=list)


def role_prefix(role: str, no_role_prefix: bool = False) -> str:
    if no_role_prefix:
        return ""
    return ROLE_PREFIXES.get(role, UNKNOWN_ROLE_PREFIX)


def build_prompt(
    messages: Iterable[ChatMessage], *, no_role_prefix: bool = False
) -> Prompt:
    """Render messages into prompt text and collect image attachments.

    Messages without a string role or without content are skipped. Each
    text item is followed by a blank line.
    """
    parts: list[str] = []
    images: list[ImageAttachment] = []

    for msg in messages:
        if not isinstance(msg, Mapping):
            continue
        role = msg.get("role")
        if not isinstance(role, str):
            continue
        if "content" not in msg:
            continue
        content = msg.get("content")

        parts.append(role_prefix(role, no_role_prefix))
        if isinstance(content, str):
            parts.append(content + "\n\n")
        elif isinstance(content, list):
            for item in content:
                if not isinstance(item, Mapping):
                    continue
                item_type = item.get("type")
                if item_type == "text":
                    text = item.get("text")
                    if isinstance(text, str):
                        parts.append(text + "\n\n")
                elif item_type == "image_url":
                    image_url = item.get("image_url")
                    url = image_url.get("url") if isinstance(image_url, Mapping) else None
                    if isinstance(url, str) and url:
                        logger.info("Image URL: %s", url[:50] + (" ..." if len(url) > 50 else ""))
                        images.append(ImageAttachment.from_url(url))

    return Prompt(text="".join(parts), images=images)
