"""Proxy harness for in-process simulation tests."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx
from fastapi import FastAPI

from ..api.app import register_routes
from ..core.failover import ClientFactory, FailoverController
from ..core.models import ModelTable
from ..core.registry import get_controller, set_controller
from ..core.session_pool import SessionPool
from ..settings import Settings


class ProxyHarness:
    """Build a minimal proxy app wired to a provided config.

    Features:
    - Creates an in-process proxy app with the real routes
    - Manages the global controller registry
    - Exposes the session pool for assertions

    Usage:
        with ProxyHarness(config) as proxy:
            async with proxy.make_async_client() as client:
                response = await client.post("/v1/chat/completions", json={...})
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        *,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        """Initialize the proxy harness.

        Args:
            config: Proxy configuration dict (same shape as the YAML file)
            client_factory: Optional replacement for the upstream client
        """
        self.settings = Settings.from_config(dict(config))
        self.pool = SessionPool(self.settings.sessions)
        self.models = ModelTable(self.settings.model_aliases)
        self.controller = FailoverController(
            self.pool, self.settings, self.models, client_factory=client_factory
        )
        self._previous_controller: Optional[Any] = None

        try:
            self._previous_controller = get_controller()
        except RuntimeError:
            self._previous_controller = None
        set_controller(self.controller)

        self.app = FastAPI(title="ProxyHarness")
        register_routes(self.app)

    def close(self) -> None:
        """Clean up harness state."""
        set_controller(self._previous_controller)

    def __enter__(self) -> "ProxyHarness":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "ProxyHarness":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def make_async_client(
        self,
        base_url: str = "http://proxy.local",
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.AsyncClient:
        """Create an async HTTP client for the proxy.

        Args:
            base_url: Base URL for requests
            headers: Default headers, e.g. the Authorization header

        Returns:
            AsyncClient configured to talk to this proxy
        """
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app),
            base_url=base_url,
            headers=dict(headers or {}),
        )
