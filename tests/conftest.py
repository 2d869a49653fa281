"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Generator

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


# =============================================================================
# Transport Registry Fixtures
# =============================================================================


@pytest.fixture
def clear_transport_registry() -> Generator[None, None, None]:
    """Clear upstream transport registry after test.

    Use this fixture in tests that register fake transports.
    """
    from pplx_proxy.core.upstream_transport import clear_upstream_transports

    yield
    clear_upstream_transports()


@pytest.fixture
def reset_controller() -> Generator[None, None, None]:
    """Restore the global controller registry after test."""
    from pplx_proxy.core.registry import set_controller

    yield
    set_controller(None)


# =============================================================================
# Harness Configuration Builders
# =============================================================================


def build_proxy_config(
    sessions: list[str],
    *,
    api_key: str = "",
    max_chat_history_length: int = 10000,
    display: dict[str, Any] | None = None,
    state_file: str | None = None,
    model_aliases: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build a config dict shaped like configs/config_default.yaml.

    Args:
        sessions: Session tokens for the pool
        api_key: Proxy API key (empty disables the check)
        max_chat_history_length: Prompt length above which it is uploaded
        display: Overrides for the display section
        state_file: Session snapshot path
        model_aliases: Extra model aliases

    Returns:
        Config dict for ProxyHarness
    """
    config: dict[str, Any] = {
        "sessions": list(sessions),
        "proxy_settings": {
            "api_key": api_key,
            "upstream": {"timeout": 30, "connect_timeout": 5},
            "prompt": {"max_chat_history_length": max_chat_history_length},
            "display": dict(display or {}),
        },
    }
    if state_file is not None:
        config["proxy_settings"]["sessions"] = {"state_file": state_file}
    if model_aliases:
        config["model_aliases"] = dict(model_aliases)
    return config


# =============================================================================
# Harness Fixtures
# =============================================================================


@pytest.fixture
def fake_upstream(clear_transport_registry: None) -> Generator[Any, None, None]:
    """A FakePerplexity installed for every upstream host.

    Usage:
        def test_something(fake_upstream):
            fake_upstream.enqueue_events([...])
    """
    from pplx_proxy.testing import FakePerplexity

    upstream = FakePerplexity()
    upstream.install()
    yield upstream


@pytest.fixture
def proxy_harness(
    fake_upstream: Any, reset_controller: None
) -> Generator[tuple[Any, Any], None, None]:
    """A ProxyHarness with two sessions talking to the fake upstream.

    Returns:
        Tuple of (FakePerplexity, ProxyHarness)
    """
    from pplx_proxy.testing import ProxyHarness

    with ProxyHarness(build_proxy_config(["session-a", "session-b"])) as harness:
        yield fake_upstream, harness
