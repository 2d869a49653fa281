"""Holds the active failover controller.

Routes look the controller up here at request time, so neither they nor the
auth dependency import ``main`` (which would build the whole app).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .failover import FailoverController

_controller: Optional["FailoverController"] = None


def set_controller(controller: Optional["FailoverController"]) -> None:
    """Install the controller used by the routes; ``None`` clears it."""
    global _controller
    _controller = controller


def get_controller() -> "FailoverController":
    if _controller is None:
        raise RuntimeError("Controller not initialized. Did you call set_controller?")
    return _controller
