"""Exception types raised by the call-handling core.

Runtime failures (weight downloads, inference errors) are deliberately absent:
they reach callers as the runtime raised them.
"""

from __future__ import annotations

from typing import Any, Optional

__all__ = [
    "DisposedResource",
    "FriendlyMLError",
    "InvalidMedia",
    "MissingArgument",
    "RuntimeUnavailable",
]


class FriendlyMLError(Exception):
    """Base class for errors raised by friendlyml itself."""


class MissingArgument(FriendlyMLError, ValueError):
    """A required call-time value could not be resolved from the arguments."""

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"An argument for {field} must be provided.")
        self.field = field


class InvalidMedia(FriendlyMLError, TypeError):
    """The media argument is of an unsupported type or not in a usable state."""

    def __init__(self, message: str, media: Any = None) -> None:
        super().__init__(message)
        self.media = media


class DisposedResource(FriendlyMLError, RuntimeError):
    """A transient tensor was read after its scope released it."""


class RuntimeUnavailable(FriendlyMLError, RuntimeError):
    """No model runtime is configured, or an optional backend is not installed."""
