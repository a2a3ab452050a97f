"""Ordered, lockable registries of request and response interceptors."""

import itertools
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import httpx
import structlog

from reqflow.errors import InterceptorAbortedError


if TYPE_CHECKING:
    from reqflow.response import Response


logger = structlog.get_logger()

T = TypeVar("T")

RequestInterceptor = Callable[[httpx.Request], Any]
ResponseInterceptor = Callable[["Response"], Any]

# Handle returned for a None interceptor; never issued to a real one.
INTERCEPTOR_NOT_FOUND = 0

_id_lock = threading.Lock()
_id_counter = itertools.count(1)


def _next_interceptor_id() -> int:
    with _id_lock:
        return next(_id_counter)


class ReadWriteLock:
    """Writer-preferring reader-writer lock.

    Any number of readers may hold the lock together. A writer waits for
    in-flight readers to drain, and new readers wait while a writer is
    waiting or active.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writers_waiting = 0
        self._writer_active = False

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Hold the lock in shared mode."""
        with self._cond:
            while self._writer_active or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the lock in exclusive mode."""
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer_active or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer_active = True
        try:
            yield
        finally:
            with self._cond:
                self._writer_active = False
                self._cond.notify_all()


@dataclass(frozen=True)
class Interceptor(Generic[T]):
    """A registered interceptor and its handle."""

    id: int
    function: Callable[[T], Any]


class InterceptorRegistry(Generic[T]):
    """Ordered registry of interceptors for one direction.

    Interceptors run in registration order. An interceptor aborts the chain
    by raising; the remaining interceptors are skipped.
    """

    def __init__(self, phase: str) -> None:
        """Initialize an empty registry.

        Args:
            phase: Direction name used in errors and logs.
        """
        self.phase = phase
        self._lock = ReadWriteLock()
        self._interceptors: list[Interceptor[T]] = []
        self._log = logger.bind(component="interceptors", phase=phase)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._interceptors)

    def ids(self) -> list[int]:
        """Return the registered handles in execution order."""
        with self._lock.read_locked():
            return [i.id for i in self._interceptors]

    def use(self, *functions: Callable[[T], Any] | None) -> list[int]:
        """Register interceptors.

        Args:
            functions: Interceptors to append. None entries are skipped.

        Returns:
            One handle per argument; 0 for None entries.
        """
        ids: list[int] = []
        with self._lock.write_locked():
            for function in functions:
                if function is None:
                    ids.append(INTERCEPTOR_NOT_FOUND)
                    continue
                interceptor = Interceptor(id=_next_interceptor_id(), function=function)
                self._interceptors.append(interceptor)
                ids.append(interceptor.id)
        self._log.debug("interceptors_registered", ids=ids)
        return ids

    def remove(self, interceptor_id: int) -> bool:
        """Remove an interceptor by handle.

        Args:
            interceptor_id: Handle returned by ``use``.

        Returns:
            True if an interceptor was removed, False for unknown handles.
        """
        if interceptor_id == INTERCEPTOR_NOT_FOUND:
            return False
        with self._lock.write_locked():
            for index, interceptor in enumerate(self._interceptors):
                if interceptor.id == interceptor_id:
                    del self._interceptors[index]
                    return True
        return False

    def run(self, target: T) -> None:
        """Run every interceptor against ``target``.

        The shared lock is held for the whole iteration, so interceptors
        must not register or remove interceptors of the same registry.

        Args:
            target: The request or response to intercept.

        Raises:
            InterceptorAbortedError: If an interceptor raises.
        """
        with self._lock.read_locked():
            for interceptor in self._interceptors:
                try:
                    interceptor.function(target)
                except Exception as exc:
                    self._log.info(
                        "interceptor_aborted",
                        interceptor_id=interceptor.id,
                        error=str(exc),
                    )
                    raise InterceptorAbortedError(
                        self.phase, interceptor.id, exc
                    ) from exc


class InterceptorChain:
    """Outbound and inbound interceptor registries of a client."""

    def __init__(self) -> None:
        self.request: InterceptorRegistry[httpx.Request] = InterceptorRegistry(
            "request"
        )
        self.response: "InterceptorRegistry[Response]" = InterceptorRegistry(
            "response"
        )
