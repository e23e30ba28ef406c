"""Cooperative cancellation for long-running analysis."""
from __future__ import annotations

import threading
from typing import Optional

from .exceptions import AnalysisCancelled


class CancellationToken:
    """Thread-safe abort flag polled by fetch, filter and block loops."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis cancelled")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """No-op when no token was supplied."""
    if token is not None:
        token.raise_if_cancelled()
