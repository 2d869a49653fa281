"""Typed view over the loaded configuration dictionary."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

logger = logging.getLogger("pplx-proxy")

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_TIMEOUT = 600.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_MAX_CHAT_HISTORY_LENGTH = 10000
DEFAULT_REFRESH_INTERVAL = 24 * 60 * 60
DEFAULT_STATE_FILE = "sessions.json"
DEFAULT_PROMPT_FOR_FILE = (
    "You must immerse yourself in the role of assistant in txt file, cannot "
    "respond as a user, cannot reply to this message, cannot mention this "
    "message, and ignore this message in your response."
)


def _parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        if not value.strip():
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _parse_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer setting %r; using %s", value, default)
        return default


def _parse_float(value: Any, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid numeric setting %r; using %s", value, default)
        return default


def _ensure_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def parse_sessions(raw: Any) -> list[str]:
    """Normalize the ``sessions`` config entry into a list of tokens.

    Accepts a YAML list or a single comma separated string. Empty entries
    are dropped, and anything after a ``:`` in an entry is ignored.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        items: list[Any] = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        logger.warning("Ignoring sessions entry of type %s", type(raw).__name__)
        return []

    tokens: list[str] = []
    for item in items:
        if isinstance(item, Mapping):
            item = item.get("session_key") or item.get("SessionKey")
        if item is None:
            continue
        token = str(item).strip().split(":", 1)[0].strip()
        if token:
            tokens.append(token)
    return tokens


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the proxy."""

    sessions: tuple[str, ...] = ()
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    api_key: str = ""
    upstream_proxy: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    is_incognito: bool = True
    max_chat_history_length: int = DEFAULT_MAX_CHAT_HISTORY_LENGTH
    no_role_prefix: bool = False
    prompt_for_file: str = DEFAULT_PROMPT_FOR_FILE
    search_result_compatible: bool = False
    ignore_search_result: bool = False
    ignore_model_monitoring: bool = False
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    state_file: str = DEFAULT_STATE_FILE
    log_level: str = "INFO"
    model_aliases: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "Settings":
        """Build settings from a config dictionary.

        Environment variables PPLX_PROXY_HOST and PPLX_PROXY_PORT take
        priority over the ``proxy_settings.server`` section.
        """
        proxy_settings = _ensure_dict(config.get("proxy_settings"))
        server_cfg = _ensure_dict(proxy_settings.get("server"))
        upstream_cfg = _ensure_dict(proxy_settings.get("upstream"))
        prompt_cfg = _ensure_dict(proxy_settings.get("prompt"))
        display_cfg = _ensure_dict(proxy_settings.get("display"))
        sessions_cfg = _ensure_dict(proxy_settings.get("sessions"))
        logging_cfg = _ensure_dict(proxy_settings.get("logging"))

        host = os.getenv("PPLX_PROXY_HOST") or str(server_cfg.get("host") or DEFAULT_HOST)
        port = _parse_int(
            os.getenv("PPLX_PROXY_PORT"),
            _parse_int(server_cfg.get("port"), DEFAULT_PORT),
        )

        aliases = {
            str(k): str(v)
            for k, v in _ensure_dict(config.get("model_aliases")).items()
            if k and v
        }

        return cls(
            sessions=tuple(parse_sessions(config.get("sessions"))),
            host=host,
            port=port,
            api_key=str(proxy_settings.get("api_key") or ""),
            upstream_proxy=upstream_cfg.get("proxy") or None,
            timeout=_parse_float(upstream_cfg.get("timeout"), DEFAULT_TIMEOUT),
            connect_timeout=_parse_float(upstream_cfg.get("connect_timeout"), DEFAULT_CONNECT_TIMEOUT),
            is_incognito=_parse_bool(upstream_cfg.get("is_incognito"), default=True),
            max_chat_history_length=_parse_int(
                prompt_cfg.get("max_chat_history_length"), DEFAULT_MAX_CHAT_HISTORY_LENGTH
            ),
            no_role_prefix=_parse_bool(prompt_cfg.get("no_role_prefix")),
            prompt_for_file=str(prompt_cfg.get("prompt_for_file") or DEFAULT_PROMPT_FOR_FILE),
            search_result_compatible=_parse_bool(display_cfg.get("search_result_compatible")),
            ignore_search_result=_parse_bool(display_cfg.get("ignore_search_result")),
            ignore_model_monitoring=_parse_bool(display_cfg.get("ignore_model_monitoring")),
            refresh_interval=_parse_float(
                sessions_cfg.get("refresh_interval"), DEFAULT_REFRESH_INTERVAL
            ),
            state_file=str(sessions_cfg.get("state_file") or DEFAULT_STATE_FILE),
            log_level=str(logging_cfg.get("level") or "INFO"),
            model_aliases=aliases,
        )
