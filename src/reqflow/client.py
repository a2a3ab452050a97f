"""HTTP client facade."""

import httpx
import structlog

from reqflow.builder import RequestBuilder
from reqflow.codec import CodecRegistry
from reqflow.interceptors import (
    InterceptorChain,
    RequestInterceptor,
    ResponseInterceptor,
)
from reqflow.models import ClientConfig, RequestOptions
from reqflow.observability import configure_logging
from reqflow.pipeline import RequestPipeline
from reqflow.pool import TransportPool
from reqflow.response import Response
from reqflow.settings import ClientSettings, get_settings


logger = structlog.get_logger()


class Client:
    """Configurable HTTP client.

    Holds client-wide defaults, a pool of reusable transports and the
    interceptor registries. Safe to share between threads.

    Example:
        >>> with Client(ClientConfig(base_url="https://api.example.com")) as c:
        ...     resp = c.get("/users", RequestOptions(parameters={"page": "2"}))
        ...     users = to_object(resp)
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        max_idle_transports: int | None = None,
        codecs: CodecRegistry | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client-wide defaults. A bare client uses hard defaults.
            transport: Optional httpx transport used by every pooled client
                (for testing with ``httpx.MockTransport``).
            max_idle_transports: Bound on idle pooled transports; None for
                unbounded.
            codecs: Content codec registry; defaults to JSON and form.
        """
        self.config = config or ClientConfig()
        self.codecs = codecs or CodecRegistry()
        self.interceptors = InterceptorChain()
        self._pool = TransportPool(transport=transport, max_idle=max_idle_transports)
        self._pipeline = RequestPipeline(
            self.config, self._pool, self.interceptors, self.codecs
        )

    @classmethod
    def from_env(
        cls,
        settings: ClientSettings | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> "Client":
        """Build a client from ``REQFLOW_*`` environment settings.

        When ``REQFLOW_LOG_LEVEL`` is set, structured logging is configured
        first at that level (JSON lines unless ``REQFLOW_LOG_JSON=false``).

        Args:
            settings: Preloaded settings; loaded from the environment if None.
            transport: Optional httpx transport.

        Returns:
            Configured client.
        """
        settings = settings or get_settings()
        if settings.log_level is not None:
            configure_logging(
                level=settings.log_level,
                json_format=settings.log_json,
            )
        logger.debug(
            "client_from_env",
            component="client",
            base_url=settings.base_url,
            proxy_configured=settings.proxy_url is not None,
        )
        return cls(
            ClientConfig.from_settings(settings),
            transport=transport,
            max_idle_transports=settings.max_idle_transports,
        )

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close pooled transports."""
        self._pool.close()

    @property
    def pool(self) -> TransportPool:
        """Transport pool of this client."""
        return self._pool

    def request(self, url: str, options: RequestOptions | None = None) -> Response:
        """Send a request using the method from ``options`` (default GET).

        Args:
            url: Absolute URL or a path relative to the base URL.
            options: Per-call overrides.

        Returns:
            The validated response. The caller owns its body stream.
        """
        return self._pipeline.run(None, url, options)

    def get(self, url: str, options: RequestOptions | None = None) -> Response:
        return self._pipeline.run("GET", url, options)

    def post(self, url: str, options: RequestOptions | None = None) -> Response:
        return self._pipeline.run("POST", url, options)

    def put(self, url: str, options: RequestOptions | None = None) -> Response:
        return self._pipeline.run("PUT", url, options)

    def patch(self, url: str, options: RequestOptions | None = None) -> Response:
        return self._pipeline.run("PATCH", url, options)

    def delete(self, url: str, options: RequestOptions | None = None) -> Response:
        return self._pipeline.run("DELETE", url, options)

    def head(self, url: str, options: RequestOptions | None = None) -> Response:
        return self._pipeline.run("HEAD", url, options)

    def options(self, url: str, options: RequestOptions | None = None) -> Response:
        return self._pipeline.run("OPTIONS", url, options)

    def req(self, url: str = "") -> RequestBuilder:
        """Start a fluent request bound to this client.

        Args:
            url: Target URL; can also be set later with ``set_url``.

        Returns:
            A new request builder.
        """
        return RequestBuilder(self, url)

    def use_request_interceptor(
        self, *interceptors: RequestInterceptor | None
    ) -> list[int]:
        """Register request interceptors; returns one handle per argument."""
        return self.interceptors.request.use(*interceptors)

    def use_response_interceptor(
        self, *interceptors: ResponseInterceptor | None
    ) -> list[int]:
        """Register response interceptors; returns one handle per argument."""
        return self.interceptors.response.use(*interceptors)

    def remove_request_interceptor(self, interceptor_id: int) -> bool:
        """Remove a request interceptor by handle."""
        return self.interceptors.request.remove(interceptor_id)

    def remove_response_interceptor(self, interceptor_id: int) -> bool:
        """Remove a response interceptor by handle."""
        return self.interceptors.response.remove(interceptor_id)
