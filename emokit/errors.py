"""Exception hierarchy shared by the decode and dispatch layers."""
from __future__ import annotations

from typing import Optional


class EmokitError(Exception):
    """Base class for errors raised by the emokit package."""


class UsageError(EmokitError, RuntimeError):
    """Raised when an API is called in a state that does not allow it."""


class DecryptionError(EmokitError):
    """Raised when a frame cannot be decrypted with the session key."""


class DecodeError(EmokitError, ValueError):
    """Raised when a plaintext buffer does not have the protocol size."""


class SequenceAnomaly(EmokitError):
    """Non-fatal report of a gap in the frame counter sequence."""

    def __init__(self, expected: int, observed: int) -> None:
        super().__init__(f"expected counter {expected}, observed {observed}")
        self.expected = expected
        self.observed = observed


class ListenerFailure(EmokitError):
    """Wraps an exception raised by a listener callback."""

    def __init__(self, listener: object, callback: str, original: BaseException) -> None:
        super().__init__(f"{type(listener).__name__}.{callback} failed: {original!r}")
        self.listener = listener
        self.callback = callback
        self.original = original


class DispatchRejected(EmokitError, RuntimeError):
    """Raised by the abort overload policy when a worker lane is saturated."""

    def __init__(self, message: str, rejected: int = 1, key: Optional[object] = None) -> None:
        super().__init__(message)
        self.rejected = rejected
        self.key = key


FATAL_ERRORS = (DecryptionError, DecodeError, OSError, TimeoutError)

__all__ = [
    "DecodeError",
    "DecryptionError",
    "DispatchRejected",
    "EmokitError",
    "FATAL_ERRORS",
    "ListenerFailure",
    "SequenceAnomaly",
    "UsageError",
]
