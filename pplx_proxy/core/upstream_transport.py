"""In-process transports for the upstream hosts, keyed by host name.

One upstream client talks to several hosts (the ask endpoint, the image
store, the text store), so registered transports are handed to httpx as
mounts. With nothing registered clients use the network.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger("pplx-proxy")

_TRANSPORTS: dict[str, httpx.AsyncBaseTransport] = {}


def register_upstream_transport(host: str, transport: httpx.AsyncBaseTransport) -> None:
    """Route requests for ``host`` (e.g. 'www.perplexity.ai') to ``transport``."""
    if not host:
        raise ValueError("host is required")
    host = host.strip().lower()
    _TRANSPORTS[host] = transport
    logger.debug("Registered upstream transport for host '%s'", host)


def clear_upstream_transports() -> None:
    _TRANSPORTS.clear()


def upstream_mounts() -> dict[str, httpx.AsyncBaseTransport]:
    """Registered transports as httpx mount patterns, one per host."""
    return {f"all://{host}": transport for host, transport in _TRANSPORTS.items()}
