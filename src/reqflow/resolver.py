"""Resolution of effective options from call and client layers.

Every option follows the same precedence: the call value wins if set, then
the client value, then the hard default from ``reqflow.constants``.
"""

from reqflow.constants import (
    ALLOWED_METHODS,
    DEFAULT_METHOD,
    DEFAULT_USER_AGENT,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK,
    REQUEST_DEFAULT_MAX_REDIRECTS,
    REQUEST_NO_REDIRECTS,
    REQUEST_TIMEOUT_DEFAULT,
    REQUEST_TIMEOUT_NO_LIMIT,
)
from reqflow.errors import InvalidMethodError
from reqflow.models import (
    ClientConfig,
    ParametersSerializer,
    RequestOptions,
    StatusValidator,
)
from reqflow.urls import encode_parameters


def default_validate_status(status: int) -> bool:
    """Accept status codes in [200, 400)."""
    return HTTP_STATUS_OK <= status < HTTP_STATUS_BAD_REQUEST


def _is_set_timeout(value: int | None) -> bool:
    return value is not None and (value > 0 or value == REQUEST_TIMEOUT_NO_LIMIT)


class OptionResolver:
    """Merges per-call options with client defaults."""

    def __init__(self, config: ClientConfig, options: RequestOptions) -> None:
        """Initialize the resolver.

        Args:
            config: Client-wide configuration.
            options: Options of the current call.
        """
        self.config = config
        self.options = options

    def method(self, method: str | None = None) -> str:
        """Resolve and validate the HTTP method.

        Args:
            method: Verb fixed by the entry point (e.g. ``Client.post``).
                Falls back to the options method, then GET.

        Returns:
            Upper-cased HTTP method.

        Raises:
            InvalidMethodError: If the method is not an allowed verb.
        """
        method = method or self.options.method
        if not method:
            return DEFAULT_METHOD
        upper = method.upper()
        if upper not in ALLOWED_METHODS:
            raise InvalidMethodError(method)
        return upper

    def max_redirects(self) -> int:
        """Resolve the maximum number of redirects.

        An explicit 0 at either layer counts as unset.
        """
        value = self.options.max_redirects or self.config.max_redirects
        if not value or value < REQUEST_NO_REDIRECTS:
            return REQUEST_DEFAULT_MAX_REDIRECTS
        return value

    def timeout(self) -> int:
        """Resolve the timeout in milliseconds (-1 for no limit)."""
        if _is_set_timeout(self.options.timeout):
            return self.options.timeout  # type: ignore[return-value]
        if _is_set_timeout(self.config.timeout):
            return self.config.timeout  # type: ignore[return-value]
        return REQUEST_TIMEOUT_DEFAULT

    def user_agent(self) -> str:
        """Resolve the User-Agent header value."""
        return self.options.user_agent or self.config.user_agent or DEFAULT_USER_AGENT

    def validate_status(self) -> StatusValidator:
        """Resolve the status validation predicate."""
        return (
            self.options.validate_status
            or self.config.validate_status
            or default_validate_status
        )

    def parameters_serializer(self) -> ParametersSerializer:
        """Resolve the query parameter serializer."""
        return (
            self.options.parameters_serializer
            or self.config.parameters_serializer
            or encode_parameters
        )

    def proxy(self) -> str | None:
        """Resolve the proxy URL.

        Returns:
            Proxy URL, or None to defer to the environment.
        """
        proxy = self.options.proxy or self.config.proxy
        if proxy is None:
            return None
        return proxy.url()

    def base_url(self) -> str:
        """Resolve the base URL."""
        return self.options.base_url or self.config.base_url
