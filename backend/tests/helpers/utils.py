"""Tiny helpers shared across test modules."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta


@contextmanager
def not_raises(exception: type[BaseException]):
    """Context manager asserting that an exception is *not* raised.

    Parameters
    ----------
    exception: type[BaseException]
        Exception type that should not be raised within the context.

    Yields
    ------
    None
        Control enters the managed block when the exception is absent.
    """
    try:
        yield
    except exception as exc:  # pragma: no cover
        raise AssertionError(f"Did raise {exception}: {exc}") from exc


class FakeClock:
    """Callable clock that only moves when told to.

    Parameters
    ----------
    start: datetime
        Initial timezone-aware instant.
    """

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        """Move forward by ``timedelta(**delta)`` and return the new instant."""
        self.now = self.now + timedelta(**delta)
        return self.now
