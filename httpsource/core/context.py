"""Cancellation context handed down a reconciliation call chain.

A ``ReconcileContext`` combines an explicit cancel signal with an optional
deadline.  Blocking steps poll it between units of work, or register an
``on_cancel`` hook to be woken the moment ``cancel()`` is called.  The
fetcher also derives the per-request timeout from the remaining time.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from httpsource.core.errors import FetchCancelledError


class ReconcileContext:
    """Cooperative cancellation signal with an optional deadline.

    Parameters
    ----------
    timeout:
        Seconds from construction until the context expires.  ``None`` means
        no deadline; only ``cancel()`` ends the context.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._lock = threading.Lock()
        self._hooks: list[Callable[[], None]] = []

    def cancel(self) -> None:
        with self._lock:
            self._cancelled.set()
            hooks, self._hooks = self._hooks, []
        for hook in hooks:
            hook()

    def on_cancel(self, hook: Callable[[], None]) -> Callable[[], None]:
        """Run *hook* once when the context is cancelled.

        Runs immediately if already cancelled.  Returns a function that
        unregisters the hook.
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._hooks.append(hook)
                return lambda: self._discard_hook(hook)
        hook()
        return lambda: None

    def _discard_hook(self, hook: Callable[[], None]) -> None:
        with self._lock:
            if hook in self._hooks:
                self._hooks.remove(hook)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_done(self) -> None:
        """Raise ``FetchCancelledError`` if cancelled or past the deadline."""
        if self.cancelled:
            raise FetchCancelledError("context cancelled")
        if self.expired:
            raise FetchCancelledError("context deadline exceeded")


def background() -> ReconcileContext:
    """A context that is never cancelled and has no deadline."""
    return ReconcileContext()
