"""Pool of reusable transport objects wrapping httpx clients."""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import httpx
import structlog

from reqflow.constants import REQUEST_DEFAULT_MAX_REDIRECTS
from reqflow.context import RequestContext
from reqflow.metrics import ClientMetrics
from reqflow.redact import redact_url_credentials
from reqflow.redirect import RedirectPolicy


logger = structlog.get_logger()


class ClosingStream(httpx.SyncByteStream):
    """Response stream that runs a callback after the stream is closed."""

    def __init__(
        self, stream: httpx.SyncByteStream, on_close: Callable[[], None]
    ) -> None:
        self._stream = stream
        self._on_close = on_close

    def __iter__(self) -> Iterator[bytes]:
        yield from self._stream

    def close(self) -> None:
        try:
            self._stream.close()
        finally:
            self._on_close()


class PooledTransport:
    """A reusable transport object.

    Holds a long-lived ``httpx.Client`` (plus one per proxy URL used) and the
    per-call fields installed by the pipeline: the redirect policy and the
    proxy URL. Both fields are reset on every checkout.

    A transport whose in-flight I/O was aborted by its context is never
    reused.
    """

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        """Initialize the transport.

        Args:
            transport: Optional httpx transport shared by all clients (used
                for testing with ``httpx.MockTransport``).
        """
        self._transport = transport
        self._client = self._build_client(None)
        self._proxy_clients: dict[str, httpx.Client] = {}
        self.check_redirect: RedirectPolicy | None = None
        self.proxy_url: str | None = None
        self.last_response: httpx.Response | None = None
        self.aborted = False

    def _build_client(self, proxy_url: str | None) -> httpx.Client:
        if self._transport is not None:
            return httpx.Client(transport=self._transport, follow_redirects=False)
        if proxy_url is None:
            # Environment proxies (HTTP_PROXY, HTTPS_PROXY, NO_PROXY) apply.
            return httpx.Client(follow_redirects=False, trust_env=True)
        return httpx.Client(proxy=proxy_url, follow_redirects=False, trust_env=False)

    def reset(self) -> None:
        """Clear per-call state left by the previous holder."""
        self.check_redirect = None
        self.proxy_url = None
        self.last_response = None
        self._client.cookies.clear()
        for client in self._proxy_clients.values():
            client.cookies.clear()

    def _client_for_call(self) -> httpx.Client:
        if self.proxy_url is None:
            return self._client
        client = self._proxy_clients.get(self.proxy_url)
        if client is None:
            client = self._build_client(self.proxy_url)
            self._proxy_clients[self.proxy_url] = client
            logger.debug(
                "proxy_client_created",
                component="pool",
                proxy=redact_url_credentials(self.proxy_url),
            )
        return client

    def _abort(self, client: httpx.Client) -> None:
        """Close the client of the current call, failing its in-flight I/O."""
        self.aborted = True
        logger.debug("transport_aborted", component="pool")
        if self._transport is None:
            client.close()

    def send(self, request: httpx.Request, context: RequestContext) -> httpx.Response:
        """Send a request, following redirects allowed by the policy.

        Every hop runs under ``context.watch``: cancelling the context, or
        reaching its deadline, closes the client and fails the hop.

        Args:
            request: Request to send.
            context: Execution context; checked before and after every hop.

        Returns:
            The final streamed response. Its body has not been read.

        Raises:
            ContextCancelledError: If the context is done before, during or
                after a hop.
            httpx.HTTPError: On transport failures.
        """
        client = self._client_for_call()
        policy = self.check_redirect or RedirectPolicy(REQUEST_DEFAULT_MAX_REDIRECTS)
        history: list[httpx.Response] = []

        while True:
            context.raise_if_done(request)
            request.extensions["timeout"] = context.transport_timeout().as_dict()
            with context.watch(lambda: self._abort(client)):
                try:
                    response = client.send(
                        request, stream=True, follow_redirects=False
                    )
                except Exception as exc:
                    err = context.error()
                    if err is None:
                        raise
                    err.request = request
                    raise err from exc
            if context.done():
                response.close()
                context.raise_if_done(request)
            response.history = list(history)

            next_request = response.next_request
            if next_request is None or not policy(len(history) + 1):
                self.last_response = response
                return response

            response.close()
            history.append(response)
            request = next_request

    def close(self) -> None:
        """Close the httpx clients built by this transport.

        An injected transport is shared by the whole pool and owned by the
        caller, so it is left open.
        """
        if self._transport is not None:
            return
        self._client.close()
        for client in list(self._proxy_clients.values()):
            client.close()
        self._proxy_clients.clear()


class TransportPool:
    """Concurrent checkout/return pool of PooledTransport objects.

    A checked-out transport is owned exclusively by its holder until
    returned. Transports are reset on checkout, not on return.
    """

    def __init__(
        self,
        transport: httpx.BaseTransport | None = None,
        max_idle: int | None = None,
    ) -> None:
        """Initialize the pool.

        Args:
            transport: Optional httpx transport passed to new transports.
            max_idle: Maximum idle transports kept; None for unbounded.
        """
        self._transport = transport
        self._max_idle = max_idle
        self._lock = threading.Lock()
        self._idle: list[PooledTransport] = []
        self._closed = False
        self._metrics = ClientMetrics.get_instance()

    @property
    def idle_count(self) -> int:
        """Number of transports waiting in the pool."""
        with self._lock:
            return len(self._idle)

    def checkout(self) -> PooledTransport:
        """Take a transport out of the pool, creating one if none is idle.

        Returns:
            A reset transport owned by the caller.
        """
        with self._lock:
            pooled = self._idle.pop() if self._idle else None
        if pooled is None:
            pooled = PooledTransport(self._transport)
            self._metrics.record_transport_created()
        else:
            self._metrics.record_transport_reused()
        pooled.reset()
        return pooled

    def give_back(self, pooled: PooledTransport) -> bool:
        """Return a transport to the pool.

        A transport that is not kept (pool full or closed, or aborted) is
        closed. If the response it produced is still open, closing waits
        until that response is closed.

        Args:
            pooled: Transport obtained from ``checkout``.

        Returns:
            True if the transport was kept for reuse.
        """
        response, pooled.last_response = pooled.last_response, None
        with self._lock:
            keep = (
                not self._closed
                and not pooled.aborted
                and (self._max_idle is None or len(self._idle) < self._max_idle)
            )
            if keep:
                self._idle.append(pooled)
        if keep:
            return True

        logger.debug(
            "transport_dropped",
            component="pool",
            max_idle=self._max_idle,
            aborted=pooled.aborted,
        )
        if response is None or response.is_closed:
            pooled.close()
        else:
            response.stream = ClosingStream(response.stream, pooled.close)
        return False

    @contextmanager
    def lease(self) -> Iterator[PooledTransport]:
        """Yield a transport and return it to the pool on exit."""
        pooled = self.checkout()
        try:
            yield pooled
        finally:
            self.give_back(pooled)

    def close(self) -> None:
        """Close idle transports; transports returned later are closed too."""
        with self._lock:
            idle, self._idle = self._idle, []
            self._closed = True
        for pooled in idle:
            pooled.close()
