"""Exceptions raised by the request pipeline.

Every pipeline failure derives from RequestError. Errors carry the best
partial result available at the point of failure: the outgoing request once
it has been built, and the response once one has been received. Transport
level failures from httpx are not wrapped and propagate as httpx.HTTPError,
unless the request context was already done: the context error is raised
then, with the httpx error as its cause.
"""

from typing import TYPE_CHECKING

import httpx


if TYPE_CHECKING:
    from reqflow.response import Response


class RequestError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        request: The outgoing request, if one was built.
        response: The received response, if one exists.
    """

    def __init__(
        self,
        message: str,
        *,
        request: httpx.Request | None = None,
        response: "Response | None" = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            request: The outgoing request, if available.
            response: The received response, if available.
        """
        super().__init__(message)
        self.request = request
        self.response = response


class InvalidMethodError(RequestError):
    """Raised when the HTTP method is not in the allowed verb list."""

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"invalid method: {method}")


class NoURLError(RequestError):
    """Raised when neither the call nor the client supplies a target URL."""

    def __init__(self) -> None:
        super().__init__("no url")


class URLParseError(RequestError, ValueError):
    """Raised when the target URL cannot be parsed."""

    def __init__(self, url: str, reason: str) -> None:
        """Initialize the parse error.

        Args:
            url: The URL that failed to parse.
            reason: Parser message.
        """
        self.url = url
        super().__init__(f"invalid url {url!r}: {reason}")


class UnsupportedContentTypeError(RequestError):
    """Raised when no codec is registered for a content type tag."""

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(f"unsupported content type: {content_type}")


class BodyEncodeError(RequestError):
    """Raised when a codec cannot encode the request body.

    The codec's own exception is chained as ``__cause__``.
    """

    def __init__(self, content_type: str, cause: Exception) -> None:
        self.content_type = content_type
        super().__init__(f"cannot encode body as {content_type}: {cause}")


class InvalidResponseError(RequestError):
    """Raised when a response helper is given no response or no body."""

    def __init__(self, message: str = "invalid response") -> None:
        super().__init__(message)


class StatusValidationError(RequestError):
    """Raised when the status predicate rejects a received response.

    The response is attached and left open for the caller to inspect.
    """

    def __init__(self, status_code: int, response: "Response") -> None:
        """Initialize the validation error.

        Args:
            status_code: The rejected status code.
            response: The response that failed validation.
        """
        self.status_code = status_code
        super().__init__(
            f"request failed with status code {status_code}",
            request=response.request,
            response=response,
        )


class InterceptorAbortedError(RequestError):
    """Raised when an interceptor raises and aborts the pipeline.

    The interceptor's own exception is chained as ``__cause__``.
    """

    def __init__(self, phase: str, interceptor_id: int, cause: BaseException) -> None:
        """Initialize the abort error.

        Args:
            phase: Either "request" or "response".
            interceptor_id: Handle of the failing interceptor.
            cause: The exception raised by the interceptor.
        """
        self.phase = phase
        self.interceptor_id = interceptor_id
        self.cause = cause
        super().__init__(f"{phase} interceptor {interceptor_id} aborted: {cause}")


class DecompressionError(RequestError):
    """Raised when a compressed response body cannot be decoded."""


class ContextCancelledError(RequestError):
    """Raised when the request context was cancelled before completion."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


class ContextDeadlineExceededError(ContextCancelledError):
    """Raised when the request context deadline has passed."""

    def __init__(self) -> None:
        super().__init__("context deadline exceeded")
