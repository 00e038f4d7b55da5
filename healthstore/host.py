"""
Host capabilities consumed by the store
Clock and caller-identity resolvers with reference implementations
"""

import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Protocol

from .identity import IdentityLike, to_identity


class Clock(Protocol):
    """Monotonically non-decreasing source of unsigned integer timestamps"""

    def now(self) -> int:
        ...


class IdentityResolver(Protocol):
    """Resolves the opaque byte identity of the current caller"""

    def current(self) -> bytes:
        ...


class SystemClock:
    """Wall clock in whole seconds, never going backwards within a process"""

    def __init__(self) -> None:
        self._last = 0

    def now(self) -> int:
        self._last = max(self._last, int(time.time()))
        return self._last


class ManualClock:
    """Settable clock for tests and replay"""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("clock start must be non-negative")
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError("clock cannot move backwards")
        self._now = timestamp

    def advance(self, seconds: int) -> int:
        self.set(self._now + seconds)
        return self._now


class StaticIdentityResolver:
    """Always resolves to the same identity"""

    def __init__(self, identity: IdentityLike = b""):
        self.identity = to_identity(identity)

    def current(self) -> bytes:
        return self.identity


_caller_identity: ContextVar[Optional[bytes]] = ContextVar("healthstore_caller_identity", default=None)


class ContextIdentityResolver:
    """Resolves the identity bound with caller_identity() in the current context"""

    def __init__(self, default: IdentityLike = b""):
        self.default = to_identity(default)

    def current(self) -> bytes:
        identity = _caller_identity.get()
        return self.default if identity is None else identity


@contextmanager
def caller_identity(identity: IdentityLike) -> Iterator[bytes]:
    """Bind the caller identity for the duration of the block"""
    value = to_identity(identity)
    token = _caller_identity.set(value)
    try:
        yield value
    finally:
        _caller_identity.reset(token)
