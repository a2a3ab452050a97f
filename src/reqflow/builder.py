"""Fluent request builder."""

from typing import TYPE_CHECKING, Any

from reqflow.context import RequestContext
from reqflow.models import (
    BasicAuth,
    ParametersSerializer,
    ProxyConfig,
    RequestOptions,
    StatusValidator,
)


if TYPE_CHECKING:
    from reqflow.client import Client
    from reqflow.response import Response


class RequestBuilder:
    """Chained construction of a single request.

    Every setter returns the builder. ``do()`` sends the request through the
    owning client; the builder can be sent again after further changes.

    Example:
        >>> resp = (
        ...     client.req("/items")
        ...     .post()
        ...     .set_body({"name": "widget"})
        ...     .set_header("X-Trace", "abc")
        ...     .set_timeout(5000)
        ...     .do()
        ... )
    """

    def __init__(self, client: "Client", url: str = "") -> None:
        """Initialize the builder.

        Args:
            client: Client that sends the request.
            url: Target URL.
        """
        self._client = client
        self._url = url
        self._options = RequestOptions()

    @property
    def url(self) -> str:
        return self._url

    @property
    def request_options(self) -> RequestOptions:
        """Options accumulated so far."""
        return self._options

    def set_url(self, url: str) -> "RequestBuilder":
        self._url = url
        return self

    def set_method(self, method: str) -> "RequestBuilder":
        """Set the HTTP method; validated when the request is sent."""
        self._options.method = method
        return self

    def get(self) -> "RequestBuilder":
        return self.set_method("GET")

    def post(self) -> "RequestBuilder":
        return self.set_method("POST")

    def put(self) -> "RequestBuilder":
        return self.set_method("PUT")

    def patch(self) -> "RequestBuilder":
        return self.set_method("PATCH")

    def delete(self) -> "RequestBuilder":
        return self.set_method("DELETE")

    def head(self) -> "RequestBuilder":
        return self.set_method("HEAD")

    def options(self) -> "RequestBuilder":
        return self.set_method("OPTIONS")

    def set_body(self, body: Any) -> "RequestBuilder":
        """Set the body: raw bytes/str are sent verbatim, other values encoded."""
        self._options.body = body
        return self

    def set_content_type(self, content_type: str) -> "RequestBuilder":
        """Set the codec tag used to encode the body (``json``, ``form``)."""
        self._options.content_type = content_type
        return self

    def add_header(self, name: str, value: str) -> "RequestBuilder":
        """Append a value to a header."""
        headers = self._options.headers if self._options.headers is not None else {}
        headers.setdefault(name, []).append(value)
        self._options.headers = headers
        return self

    def set_header(self, name: str, value: str) -> "RequestBuilder":
        """Replace all values of a header."""
        headers = self._options.headers if self._options.headers is not None else {}
        headers[name] = [value]
        self._options.headers = headers
        return self

    def set_headers(self, headers: dict[str, str | list[str]]) -> "RequestBuilder":
        """Replace all call headers."""
        self._options.headers = RequestOptions(headers=headers).headers
        return self

    def add_parameter(self, name: str, value: str) -> "RequestBuilder":
        """Append a value to a query parameter."""
        parameters = (
            self._options.parameters if self._options.parameters is not None else {}
        )
        parameters.setdefault(name, []).append(value)
        self._options.parameters = parameters
        return self

    def set_parameter(self, name: str, value: str) -> "RequestBuilder":
        """Replace all values of a query parameter."""
        parameters = (
            self._options.parameters if self._options.parameters is not None else {}
        )
        parameters[name] = [value]
        self._options.parameters = parameters
        return self

    def set_parameters(
        self, parameters: dict[str, str | list[str]]
    ) -> "RequestBuilder":
        """Replace all call query parameters."""
        self._options.parameters = RequestOptions(parameters=parameters).parameters
        return self

    def set_parameters_serializer(
        self, serializer: ParametersSerializer
    ) -> "RequestBuilder":
        self._options.parameters_serializer = serializer
        return self

    def set_timeout(self, timeout_ms: int) -> "RequestBuilder":
        """Set the timeout in milliseconds; -1 disables it."""
        self._options.timeout = timeout_ms
        return self

    def set_max_redirects(self, max_redirects: int) -> "RequestBuilder":
        """Set the redirect bound; -1 disables redirects."""
        self._options.max_redirects = max_redirects
        return self

    def set_basic_auth(self, username: str, password: str) -> "RequestBuilder":
        self._options.auth = BasicAuth(username=username, password=password)
        return self

    def set_base_url(self, base_url: str) -> "RequestBuilder":
        self._options.base_url = base_url
        return self

    def set_context(self, context: RequestContext) -> "RequestBuilder":
        """Run the request under a caller-supplied context."""
        self._options.context = context
        return self

    def set_disable_decompress(self, disable: bool = True) -> "RequestBuilder":
        self._options.disable_decompress = disable
        return self

    def set_user_agent(self, user_agent: str) -> "RequestBuilder":
        self._options.user_agent = user_agent
        return self

    def set_validate_status(self, validator: StatusValidator) -> "RequestBuilder":
        self._options.validate_status = validator
        return self

    def set_proxy(self, proxy: ProxyConfig) -> "RequestBuilder":
        self._options.proxy = proxy
        return self

    def do(self) -> "Response":
        """Send the request.

        Returns:
            The validated response.
        """
        return self._client.request(self._url, self._options.model_copy(deep=False))
