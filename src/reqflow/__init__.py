"""reqflow: configurable HTTP request client.

Layered client/call configuration, content negotiation, redirect and
timeout control, and request/response interceptors on top of httpx.
"""

from reqflow.builder import RequestBuilder
from reqflow.client import Client
from reqflow.codec import CodecRegistry, ContentCodec
from reqflow.context import RequestContext
from reqflow.default import (
    delete,
    get,
    get_default_client,
    head,
    options,
    patch,
    post,
    put,
    remove_request_interceptor,
    remove_response_interceptor,
    req,
    request,
    set_default_client,
    use_request_interceptor,
    use_response_interceptor,
)
from reqflow.errors import (
    BodyEncodeError,
    ContextCancelledError,
    ContextDeadlineExceededError,
    DecompressionError,
    InterceptorAbortedError,
    InvalidMethodError,
    InvalidResponseError,
    NoURLError,
    RequestError,
    StatusValidationError,
    UnsupportedContentTypeError,
    URLParseError,
)
from reqflow.models import BasicAuth, ClientConfig, ProxyConfig, RequestOptions
from reqflow.response import Response, to_object, to_text
from reqflow.settings import ClientSettings, get_settings
from reqflow.version import __version__


__all__ = [
    # Client
    "Client",
    "RequestBuilder",
    "Response",
    "to_object",
    "to_text",
    # Configuration
    "BasicAuth",
    "ClientConfig",
    "ClientSettings",
    "ProxyConfig",
    "RequestContext",
    "RequestOptions",
    "get_settings",
    # Content negotiation
    "CodecRegistry",
    "ContentCodec",
    # Default client
    "delete",
    "get",
    "get_default_client",
    "head",
    "options",
    "patch",
    "post",
    "put",
    "remove_request_interceptor",
    "remove_response_interceptor",
    "req",
    "request",
    "set_default_client",
    "use_request_interceptor",
    "use_response_interceptor",
    # Errors
    "BodyEncodeError",
    "ContextCancelledError",
    "ContextDeadlineExceededError",
    "DecompressionError",
    "InterceptorAbortedError",
    "InvalidMethodError",
    "InvalidResponseError",
    "NoURLError",
    "RequestError",
    "StatusValidationError",
    "URLParseError",
    "UnsupportedContentTypeError",
    "__version__",
]
