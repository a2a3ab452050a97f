"""Process-wide default client and module-level request functions."""

import threading

from reqflow.builder import RequestBuilder
from reqflow.client import Client
from reqflow.interceptors import RequestInterceptor, ResponseInterceptor
from reqflow.models import RequestOptions
from reqflow.response import Response


_lock = threading.Lock()
_default_client: Client | None = None


def get_default_client() -> Client:
    """Return the default client, building a bare one on first use."""
    global _default_client
    with _lock:
        if _default_client is None:
            _default_client = Client()
        return _default_client


def set_default_client(client: Client | None) -> None:
    """Replace the default client.

    The previous client is not closed. Passing None makes the next call
    build a fresh bare client.

    Args:
        client: New default client.
    """
    global _default_client
    with _lock:
        _default_client = client


def request(url: str, options: RequestOptions | None = None) -> Response:
    return get_default_client().request(url, options)


def get(url: str, options: RequestOptions | None = None) -> Response:
    return get_default_client().get(url, options)


def post(url: str, options: RequestOptions | None = None) -> Response:
    return get_default_client().post(url, options)


def put(url: str, options: RequestOptions | None = None) -> Response:
    return get_default_client().put(url, options)


def patch(url: str, options: RequestOptions | None = None) -> Response:
    return get_default_client().patch(url, options)


def delete(url: str, options: RequestOptions | None = None) -> Response:
    return get_default_client().delete(url, options)


def head(url: str, options: RequestOptions | None = None) -> Response:
    return get_default_client().head(url, options)


def options(url: str, options: RequestOptions | None = None) -> Response:
    return get_default_client().options(url, options)


def req(url: str = "") -> RequestBuilder:
    return get_default_client().req(url)


def use_request_interceptor(*interceptors: RequestInterceptor | None) -> list[int]:
    return get_default_client().use_request_interceptor(*interceptors)


def use_response_interceptor(*interceptors: ResponseInterceptor | None) -> list[int]:
    return get_default_client().use_response_interceptor(*interceptors)


def remove_request_interceptor(interceptor_id: int) -> bool:
    return get_default_client().remove_request_interceptor(interceptor_id)


def remove_response_interceptor(interceptor_id: int) -> bool:
    return get_default_client().remove_response_interceptor(interceptor_id)
