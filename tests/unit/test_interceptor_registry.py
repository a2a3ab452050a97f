"""Unit tests for interceptor registries and the reader-writer lock."""

import threading

import httpx
import pytest

from reqflow.errors import InterceptorAbortedError
from reqflow.interceptors import (
    INTERCEPTOR_NOT_FOUND,
    InterceptorChain,
    InterceptorRegistry,
    ReadWriteLock,
)


def make_request() -> httpx.Request:
    return httpx.Request("GET", "https://example.com")


class TestInterceptorRegistry:
    """Tests for InterceptorRegistry."""

    @pytest.mark.unit
    def test_runs_in_registration_order(self) -> None:
        """Test that interceptors run in the order they were added."""
        calls: list[str] = []
        registry: InterceptorRegistry[httpx.Request] = InterceptorRegistry("request")
        registry.use(lambda r: calls.append("a"), lambda r: calls.append("b"))
        registry.use(lambda r: calls.append("c"))

        registry.run(make_request())

        assert calls == ["a", "b", "c"]

    @pytest.mark.unit
    def test_ids_are_monotonic_and_positive(self) -> None:
        """Test that handles increase across registries and never repeat."""
        first = InterceptorRegistry("request").use(lambda r: None, lambda r: None)
        second = InterceptorRegistry("response").use(lambda r: None)
        ids = first + second
        assert all(i > INTERCEPTOR_NOT_FOUND for i in ids)
        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    @pytest.mark.unit
    def test_none_interceptor_gets_zero(self) -> None:
        """Test that None is skipped and reported with handle 0."""
        registry: InterceptorRegistry[httpx.Request] = InterceptorRegistry("request")
        ids = registry.use(None, lambda r: None)
        assert ids[0] == INTERCEPTOR_NOT_FOUND
        assert ids[1] > 0
        assert len(registry) == 1

    @pytest.mark.unit
    def test_remove(self) -> None:
        """Test removal by handle and unknown handles."""
        registry: InterceptorRegistry[httpx.Request] = InterceptorRegistry("request")
        (handle,) = registry.use(lambda r: None)
        assert registry.remove(handle)
        assert not registry.remove(handle)
        assert not registry.remove(INTERCEPTOR_NOT_FOUND)
        assert not registry.remove(10**9)
        assert len(registry) == 0

    @pytest.mark.unit
    def test_abort_skips_remaining(self) -> None:
        """Test that a raising interceptor stops the chain."""
        calls: list[str] = []

        def reject(request: httpx.Request) -> None:
            raise PermissionError("blocked")

        registry: InterceptorRegistry[httpx.Request] = InterceptorRegistry("request")
        _, reject_id, _ = registry.use(
            lambda r: calls.append("first"), reject, lambda r: calls.append("last")
        )

        with pytest.raises(InterceptorAbortedError) as exc_info:
            registry.run(make_request())

        assert calls == ["first"]
        assert exc_info.value.interceptor_id == reject_id
        assert exc_info.value.phase == "request"
        assert isinstance(exc_info.value.__cause__, PermissionError)

    @pytest.mark.unit
    def test_interceptor_can_mutate_request(self) -> None:
        """Test that interceptors see and modify the request in place."""
        registry: InterceptorRegistry[httpx.Request] = InterceptorRegistry("request")
        registry.use(lambda r: r.headers.__setitem__("X-Trace", "t-1"))
        request = make_request()
        registry.run(request)
        assert request.headers["X-Trace"] == "t-1"

    @pytest.mark.unit
    def test_chain_has_both_directions(self) -> None:
        """Test that a chain holds separate registries."""
        chain = InterceptorChain()
        chain.request.use(lambda r: None)
        assert len(chain.request) == 1
        assert len(chain.response) == 0
        assert chain.response.phase == "response"


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    @pytest.mark.unit
    def test_readers_share(self) -> None:
        """Test that two readers can hold the lock together."""
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader() -> None:
            with lock.read_locked():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert not inside.broken

    @pytest.mark.unit
    def test_writer_waits_for_reader(self) -> None:
        """Test that a writer blocks while a reader holds the lock."""
        lock = ReadWriteLock()
        order: list[str] = []
        reader_in = threading.Event()
        release_reader = threading.Event()

        def reader() -> None:
            with lock.read_locked():
                reader_in.set()
                release_reader.wait(timeout=5)
                order.append("reader-done")

        def writer() -> None:
            reader_in.wait(timeout=5)
            with lock.write_locked():
                order.append("writer")

        threads = [threading.Thread(target=reader), threading.Thread(target=writer)]
        for t in threads:
            t.start()
        reader_in.wait(timeout=5)
        release_reader.set()
        for t in threads:
            t.join(timeout=5)

        assert order == ["reader-done", "writer"]

    @pytest.mark.unit
    def test_concurrent_use_and_run(self) -> None:
        """Test registration from many threads while the chain runs."""
        registry: InterceptorRegistry[httpx.Request] = InterceptorRegistry("request")
        request = make_request()

        def register() -> None:
            for _ in range(50):
                registry.use(lambda r: None)
                registry.run(request)

        threads = [threading.Thread(target=register) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(registry) == 200
        assert len(set(registry.ids())) == 200
