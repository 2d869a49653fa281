"""Public model names and their upstream model-preference identifiers."""

from __future__ import annotations

from typing import Mapping, Optional

SEARCH_SUFFIX = "-search"
DEFAULT_MODEL = "claude-3.7-sonnet"

DEFAULT_MODEL_MAP: dict[str, str] = {
    "claude-3.7-sonnet": "claude2",
    "claude-3.7-sonnet-think": "claude37sonnetthinking",
    "deepseek-r1": "r1",
    "gpt-4.5": "gpt45",
    "o3-mini": "o3mini",
    "gpt-4o": "gpt4o",
    "gemini-2.0-flash": "gemini2flash",
    "grok-2": "grok",
}


class ModelTable:
    """Bidirectional lookup between public and upstream model names."""

    def __init__(self, extra: Optional[Mapping[str, str]] = None) -> None:
        self._forward = dict(DEFAULT_MODEL_MAP)
        if extra:
            self._forward.update(extra)
        self._reverse = {upstream: public for public, upstream in self._forward.items()}

    def to_upstream(self, name: str) -> str:
        return self._forward.get(name, name)

    def to_public(self, upstream_name: str) -> str:
        return self._reverse.get(upstream_name, upstream_name)

    def listing(self) -> list[dict[str, str]]:
        """Model listing entries: every public name with and without search."""
        data: list[dict[str, str]] = []
        for name in self._forward:
            for model_id in (name, f"{name}{SEARCH_SUFFIX}"):
                data.append({"id": model_id, "object": "model", "owned_by": "pplx-proxy"})
        return data


def split_search_suffix(model: str) -> tuple[str, bool]:
    """Strip the search marker from a model name.

    Returns:
        Tuple of (model name without suffix, search enabled).
    """
    if model.endswith(SEARCH_SUFFIX):
        return model[: -len(SEARCH_SUFFIX)], True
    return model, False
