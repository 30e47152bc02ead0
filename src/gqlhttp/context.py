"""Per-call cancellation and deadline carrier.

A :class:`CallContext` is handed to :meth:`gqlhttp.Client.run` to bound a
single exchange. It is cheap to create, safe to share with another thread that
may call :meth:`CallContext.cancel`, and never reused by the client itself.

Typical usage::

    ctx = CallContext.with_timeout(5)
    result = client.run(request, ctx)

    # from another thread
    ctx.cancel()
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .exceptions import CancelledError, DeadlineExceededError


@dataclass(frozen=True)
class CallContext:
    """Cancellation flag plus an optional absolute deadline.

    Fields
    ------
    deadline:
        Absolute deadline on the ``time.monotonic()`` clock, or None for an
        unbounded call.

    parents:
        Contexts this one was derived from. Cancelling any of them cancels
        this context too.
    """

    deadline: Optional[float] = None
    parents: Tuple["CallContext", ...] = ()
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    _callbacks: List[Callable[[], None]] = field(default_factory=list, repr=False, compare=False)

    @classmethod
    def background(cls) -> "CallContext":
        """Return a context that never expires and is never cancelled."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "CallContext":
        """Return a context whose deadline is ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def child(self, timeout: Optional[float] = None) -> "CallContext":
        """Derive a context bound by this one; the earliest deadline wins."""
        deadline = self.deadline
        if timeout is not None:
            candidate = time.monotonic() + timeout
            deadline = candidate if deadline is None else min(deadline, candidate)
        return CallContext(deadline=deadline, parents=(self,))

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        with self._lock:
            self._cancelled.set()
            callbacks = list(self._callbacks)
            del self._callbacks[:]
        for callback in callbacks:
            callback()

    def add_done_callback(self, fn: Callable[[], None]) -> Callable[[], None]:
        """Call ``fn`` once, when this context is cancelled or its deadline passes.

        ``fn`` runs on the thread that cancels (or on a timer thread for the
        deadline), or immediately when the context is already done. Returns a
        function that unregisters ``fn``; after it returns ``fn`` is not called.
        """
        guard = threading.Lock()
        state = {"settled": False}

        def once() -> None:
            with guard:
                if state["settled"]:
                    return
                state["settled"] = True
            fn()

        if self.done():
            once()
            return lambda: None

        with self._lock:
            already = self._cancelled.is_set()
            if not already:
                self._callbacks.append(once)
        if already:
            once()
            return lambda: None
        removers: List[Callable[[], None]] = [lambda: self._discard(once)]
        for parent in self.parents:
            removers.append(parent.add_done_callback(once))
        remaining = self.remaining()
        if remaining is not None:
            timer = threading.Timer(max(remaining, 0.0), once)
            timer.daemon = True
            timer.start()
            removers.append(timer.cancel)

        def remove() -> None:
            with guard:
                state["settled"] = True
            for remover in removers:
                remover()

        return remove

    def _discard(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or any(parent.cancelled for parent in self.parents)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when unbounded."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def done(self) -> bool:
        return self.cancelled or self.expired

    def check(self) -> None:
        """Raise if the context has been cancelled or its deadline passed.

        Cancellation wins over expiry when both hold.

        Raises:
            CancelledError: If :meth:`cancel` was called on this context or a parent.
            DeadlineExceededError: If the deadline has passed.
        """
        if self.cancelled:
            raise CancelledError()
        if self.expired:
            raise DeadlineExceededError()
