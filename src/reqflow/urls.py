"""Target URL resolution and query parameter serialization."""

import posixpath
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, quote_plus, urlsplit, urlunsplit

from reqflow.errors import NoURLError, URLParseError


if TYPE_CHECKING:
    from reqflow.resolver import OptionResolver


# Matches URLs that start with an HTTP or HTTPS scheme
URL_PATTERN = re.compile(r"^https?://.+")

DEFAULT_SCHEME_PREFIX = "https://"


def is_absolute_url(url: str) -> bool:
    """Check whether a URL carries an http(s) scheme."""
    return bool(url) and URL_PATTERN.match(url) is not None


def encode_parameters(params: Mapping[str, list[str]]) -> str:
    """Serialize query parameters.

    Keys are sorted; a key with several values is repeated once per value.

    Args:
        params: Multi-valued parameters.

    Returns:
        Encoded query string without a leading ``?``.
    """
    parts: list[str] = []
    for key in sorted(params):
        escaped = quote_plus(key)
        for value in params[key]:
            parts.append(f"{escaped}={quote_plus(value)}")
    return "&".join(parts)


def resolve_target(url: str, base_url: str) -> tuple[str, str]:
    """Split the call URL into a base URL and a path to join onto it.

    Args:
        url: URL or path passed to the call.
        base_url: Resolved base URL (call override or client default).

    Returns:
        Tuple of (base URL, leftover path).

    Raises:
        NoURLError: If no URL can be resolved.
    """
    if is_absolute_url(url):
        return url, ""

    base = base_url
    if not base:
        base, url = url, ""
    if not base:
        raise NoURLError

    if not is_absolute_url(base):
        base = DEFAULT_SCHEME_PREFIX + base

    return base, url


def _join_path(base_path: str, extra: str) -> str:
    joined = posixpath.normpath(f"{base_path}/{extra}")
    return "/" + joined.lstrip("/") if joined != "." else "/"


def _merge_query(
    query: str,
    call_params: Mapping[str, list[str]] | None,
    client_params: Mapping[str, list[str]] | None,
) -> dict[str, list[str]]:
    merged: dict[str, list[str]] = parse_qs(query, keep_blank_values=True)

    for key, values in (call_params or {}).items():
        merged.setdefault(key, []).extend(values)

    for key, values in (client_params or {}).items():
        if key in merged:
            continue
        merged[key] = list(values)

    return merged


def build_url(url: str, resolver: "OptionResolver") -> str:
    """Resolve the final request URL.

    Existing query parameters are kept, call parameters are appended, and
    client parameters fill in only keys that are still absent.

    Args:
        url: URL or path passed to the call.
        resolver: Option resolver of the call.

    Returns:
        Absolute URL including the serialized query.

    Raises:
        NoURLError: If no URL can be resolved.
        URLParseError: If the resolved URL is malformed.
    """
    base, extra_path = resolve_target(url, resolver.base_url())

    try:
        parts = urlsplit(base)
        # Accessing the port validates it
        _ = parts.port
    except ValueError as e:
        raise URLParseError(base, str(e)) from e

    path = parts.path
    if extra_path:
        path = _join_path(path, extra_path)

    params = _merge_query(
        parts.query,
        resolver.options.parameters,
        resolver.config.parameters,
    )
    query = resolver.parameters_serializer()(params) if params else ""

    return urlunsplit((parts.scheme, parts.netloc, path, query, parts.fragment))
