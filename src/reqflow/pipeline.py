"""Request pipeline: build, intercept, execute, decompress, validate."""

import base64
import time
import uuid

import httpx
import structlog

from reqflow.codec import CodecRegistry
from reqflow.context import RequestContext, derive_context
from reqflow.errors import RequestError, StatusValidationError
from reqflow.interceptors import InterceptorChain
from reqflow.metrics import ClientMetrics
from reqflow.models import ClientConfig, RequestOptions
from reqflow.pool import TransportPool
from reqflow.redact import redact_headers, redact_url_credentials
from reqflow.redirect import RedirectPolicy
from reqflow.resolver import OptionResolver
from reqflow.response import Response, decompress_response
from reqflow.state_machine import PipelineState, PipelineStateMachine
from reqflow.urls import build_url


logger = structlog.get_logger()


class RequestPipeline:
    """Runs one HTTP call through every pipeline step.

    Steps run in a fixed order and any failure aborts the rest:

    - Build the request from the resolved options
    - Run request interceptors
    - Execute on a pooled transport with a per-call redirect policy
    - Decode gzip/deflate bodies through httpx
    - Validate the status code
    - Run response interceptors

    Errors raised by a step carry the request and response built so far.
    """

    def __init__(
        self,
        config: ClientConfig,
        pool: TransportPool,
        interceptors: InterceptorChain,
        codecs: CodecRegistry,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Client-wide configuration.
            pool: Transport pool shared by the client.
            interceptors: Interceptor registries shared by the client.
            codecs: Content codec registry.
        """
        self._config = config
        self._pool = pool
        self._interceptors = interceptors
        self._codecs = codecs
        self._metrics = ClientMetrics.get_instance()
        self._log = logger.bind(component="pipeline")

    def run(
        self,
        method: str | None,
        url: str,
        options: RequestOptions | None = None,
    ) -> Response:
        """Execute one HTTP call.

        Args:
            method: Verb fixed by the entry point, or None to use the
                options method (default GET).
            url: Absolute URL, or a path joined onto the base URL.
            options: Per-call overrides.

        Returns:
            The validated response with an unread body stream.

        Raises:
            RequestError: If a pipeline step fails; ``request`` and
                ``response`` hold the partial result.
            httpx.HTTPError: On transport failures.
        """
        options = options or RequestOptions()
        resolver = OptionResolver(self._config, options)
        machine = PipelineStateMachine()
        start_time_ns = time.perf_counter_ns()

        log = self._log.bind(
            request_id=uuid.uuid4().hex[:12],
            url=redact_url_credentials(url),
        )

        request: httpx.Request | None = None
        response: Response | None = None
        context, release = derive_context(resolver, options.context)

        try:
            request = self._build_request(method, url, resolver, context)
            log = log.bind(
                method=request.method,
                url=redact_url_credentials(str(request.url)),
            )
            log.debug("request_built", headers=redact_headers(request.headers))

            machine.transition(PipelineState.INTERCEPT_OUTBOUND)
            self._interceptors.request.run(request)

            machine.transition(PipelineState.EXECUTE)
            response = self._execute(request, resolver, context)

            machine.transition(PipelineState.DECODE_COMPRESSION)
            if not options.disable_decompress:
                decompress_response(response)

            machine.transition(PipelineState.VALIDATE_STATUS)
            if not resolver.validate_status()(response.status_code):
                raise StatusValidationError(response.status_code, response)

            machine.transition(PipelineState.INTERCEPT_INBOUND)
            self._interceptors.response.run(response)

            machine.transition(PipelineState.DONE)
        except RequestError as exc:
            machine.fail()
            if exc.request is None:
                exc.request = request
            if exc.response is None:
                exc.response = response
            self._record_failure(log, machine, exc, response, start_time_ns)
            raise
        except httpx.HTTPError as exc:
            machine.fail()
            self._record_failure(log, machine, exc, response, start_time_ns)
            raise
        finally:
            release()

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_request(response.status_code, duration_ms)
        log.info(
            "request_complete",
            status_code=response.status_code,
            redirects=len(response.history),
            duration_ms=round(duration_ms, 2),
        )
        return response

    def _build_request(
        self,
        method: str | None,
        url: str,
        resolver: OptionResolver,
        context: RequestContext,
    ) -> httpx.Request:
        """Build the outgoing request.

        Args:
            method: Verb fixed by the entry point.
            url: URL passed to the call.
            resolver: Option resolver of the call.
            context: Execution context of the call.

        Returns:
            The request, ready for interceptors.
        """
        options = resolver.options
        resolved_method = resolver.method(method)
        target = build_url(url, resolver)
        body = self._codecs.encode_body(options.body, options.content_type)
        headers = self._build_headers(resolver)

        request = httpx.Request(resolved_method, target, headers=headers, content=body)
        request.extensions["timeout"] = context.transport_timeout().as_dict()
        return request

    def _build_headers(self, resolver: OptionResolver) -> httpx.Headers:
        """Merge call and client headers.

        Call headers are always added. Client headers are added only for
        names the call did not set; values are never merged across layers.

        Args:
            resolver: Option resolver of the call.

        Returns:
            Request headers.
        """
        options = resolver.options
        items: list[tuple[str, str]] = []

        for name, values in (options.headers or {}).items():
            items.extend((name, value) for value in values)

        present = {name.lower() for name, _ in items}
        for name, values in resolver.config.headers.items():
            if name.lower() in present:
                continue
            items.extend((name, value) for value in values)

        headers = httpx.Headers(items)

        if "content-type" not in headers:
            codec = self._codecs.for_tag(options.content_type)
            headers["Content-Type"] = codec.media_type

        headers["User-Agent"] = resolver.user_agent()

        if options.auth is not None:
            token = base64.b64encode(
                f"{options.auth.username}:{options.auth.password}".encode()
            ).decode("ascii")
            headers["Authorization"] = f"Basic {token}"

        return headers

    def _execute(
        self,
        request: httpx.Request,
        resolver: OptionResolver,
        context: RequestContext,
    ) -> Response:
        """Send the request on a pooled transport.

        The transport is always returned to the pool, even on failure.

        Args:
            request: Request to send.
            resolver: Option resolver of the call.
            context: Execution context of the call.

        Returns:
            Response wrapping the streamed httpx response.
        """
        policy = RedirectPolicy(resolver.max_redirects())
        proxy_url = resolver.proxy()

        with self._pool.lease() as transport:
            transport.check_redirect = policy
            transport.proxy_url = proxy_url
            raw = transport.send(request, context)

        return Response(raw)

    def _record_failure(
        self,
        log: structlog.stdlib.BoundLogger,
        machine: PipelineStateMachine,
        exc: Exception,
        response: Response | None,
        start_time_ns: int,
    ) -> None:
        """Log and count a failed run.

        Args:
            log: Bound logger of the run.
            machine: State machine of the run.
            exc: The failure.
            response: Response received before the failure, if any.
            start_time_ns: Start of the run.
        """
        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_failure(type(exc).__name__)
        if response is not None:
            self._metrics.record_request(response.status_code, duration_ms)
        failed_at = machine.failed_at
        log.warning(
            "request_failed",
            error_class=type(exc).__name__,
            error=str(exc),
            state=failed_at.name if failed_at else None,
            status_code=response.status_code if response is not None else None,
            duration_ms=round(duration_ms, 2),
        )
