"""
Exception types for the VAudio engine.

Recoverable failures (content loads, bad navigation targets) are caught at
the navigator boundary and reported as bus events. ExitRequested is the
only exception allowed to unwind the run loop.
"""
from __future__ import annotations

from typing import Optional


class VaudioError(Exception):
    """Base class for all engine errors."""


class ContentLoadError(VaudioError):
    """
    A program, game graph, scene or extra frame could not be loaded.

    Attributes:
        path: Content path relative to the content root
        reason: Short description of what went wrong
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load {path}: {reason}")


class NavigationError(VaudioError):
    """A navigation target could not be resolved."""

    def __init__(self, target: str, reason: Optional[str] = None):
        self.target = target
        self.reason = reason or "unknown target"
        super().__init__(f"Navigation to {target!r} failed: {self.reason}")


class ExitRequested(VaudioError):
    """Raised by the `*` navigation target to stop the run loop."""


class InvariantViolation(VaudioError):
    """Internal consistency check failed. Indicates a bug, never content."""
