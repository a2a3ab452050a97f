"""Cancellation and deadline scopes for a single request."""

import itertools
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import httpx

from reqflow.constants import REQUEST_TIMEOUT_NO_LIMIT
from reqflow.errors import ContextCancelledError, ContextDeadlineExceededError


if TYPE_CHECKING:
    from reqflow.resolver import OptionResolver


ReleaseFunc = Callable[[], None]
AbortFunc = Callable[[], None]


def _noop() -> None:
    """Release function for contexts owned by the caller."""


class RequestContext:
    """Thread-safe cancellation scope with an optional deadline.

    A context is either cancelled explicitly with ``cancel()`` (from any
    thread) or expires once its monotonic deadline passes. The pipeline
    checks it before and after every transport hop, bounds each httpx
    operation by the remaining time, and aborts in-flight I/O through
    ``watch()`` when the context becomes done mid-hop.
    """

    def __init__(self, deadline: float | None = None) -> None:
        """Initialize the context.

        Args:
            deadline: Absolute ``time.monotonic()`` deadline, or None.
        """
        self._deadline = deadline
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, AbortFunc] = {}
        self._ids = itertools.count(1)

    @classmethod
    def background(cls) -> "RequestContext":
        """Return a context that never expires on its own."""
        return cls()

    @classmethod
    def with_timeout(cls, timeout_ms: int) -> tuple["RequestContext", ReleaseFunc]:
        """Return a context expiring after ``timeout_ms`` and its release function.

        Args:
            timeout_ms: Timeout in milliseconds.

        Returns:
            Tuple of the context and a function cancelling it.
        """
        ctx = cls(deadline=time.monotonic() + timeout_ms / 1000.0)
        return ctx, ctx.cancel

    @property
    def deadline(self) -> float | None:
        """Monotonic deadline, or None when unbounded."""
        return self._deadline

    def cancel(self) -> None:
        """Cancel the context and run registered abort callbacks. Idempotent."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def add_abort_callback(self, callback: AbortFunc) -> ReleaseFunc:
        """Register a callback run once if the context is cancelled.

        A context that is already cancelled runs the callback immediately.

        Args:
            callback: Function aborting in-flight work.

        Returns:
            Function unregistering the callback.
        """
        with self._lock:
            if not self._cancelled.is_set():
                callback_id = next(self._ids)
                self._callbacks[callback_id] = callback
                return lambda: self._remove_callback(callback_id)
        callback()
        return _noop

    def _remove_callback(self, callback_id: int) -> None:
        with self._lock:
            self._callbacks.pop(callback_id, None)

    @contextmanager
    def watch(self, abort: AbortFunc) -> Iterator[None]:
        """Run ``abort`` if the context becomes done inside the block.

        Cancellation triggers it through the abort callbacks; the deadline
        through a timer armed on the remaining time. Both are disarmed when
        the block exits.

        Args:
            abort: Function interrupting the I/O running in the block.
        """
        remove = self.add_abort_callback(abort)
        timer: threading.Timer | None = None
        remaining = self.remaining()
        if remaining is not None:
            timer = threading.Timer(remaining, abort)
            timer.daemon = True
            timer.start()
        try:
            yield
        finally:
            if timer is not None:
                timer.cancel()
            remove()

    def remaining(self) -> float | None:
        """Seconds until the deadline (never negative), or None if unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def error(self) -> ContextCancelledError | None:
        """Return the reason the context is done, or None while it is live."""
        if self._cancelled.is_set():
            return ContextCancelledError()
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return ContextDeadlineExceededError()
        return None

    def done(self) -> bool:
        """Check whether the context is cancelled or expired."""
        return self.error() is not None

    def raise_if_done(self, request: httpx.Request | None = None) -> None:
        """Raise the context error, if any, attaching the request.

        Args:
            request: Outgoing request to attach to the error.

        Raises:
            ContextCancelledError: If the context is cancelled or expired.
        """
        err = self.error()
        if err is not None:
            err.request = request
            raise err

    def transport_timeout(self) -> httpx.Timeout:
        """httpx timeout bounded by the remaining time."""
        return httpx.Timeout(self.remaining())


def derive_context(
    resolver: "OptionResolver",
    context: RequestContext | None = None,
) -> tuple[RequestContext, ReleaseFunc]:
    """Derive the execution context for one call.

    A caller-supplied context is used unmodified and the caller owns its
    cancellation. Otherwise the timeout is resolved with call > client >
    default precedence; the no-limit sentinel yields a context without a
    deadline.

    Args:
        resolver: Option resolver for the call.
        context: Context supplied with the call options, if any.

    Returns:
        Tuple of the context and its release function. The release function
        must run on every exit path.
    """
    if context is not None:
        return context, _noop

    timeout = resolver.timeout()
    if timeout == REQUEST_TIMEOUT_NO_LIMIT:
        ctx = RequestContext.background()
        return ctx, ctx.cancel
    return RequestContext.with_timeout(timeout)
