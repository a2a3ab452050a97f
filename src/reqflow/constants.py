"""Defaults and sentinels shared by the request pipeline.

Centralizes all tunable constants to avoid duplication across modules.
"""

from reqflow.version import __version__


# Timeouts (milliseconds)
REQUEST_TIMEOUT_DEFAULT = 1000
REQUEST_TIMEOUT_NO_LIMIT = -1

# Redirects
REQUEST_DEFAULT_MAX_REDIRECTS = 5
REQUEST_NO_REDIRECTS = -1

DEFAULT_USER_AGENT = f"reqflow/{__version__}"

# Default status validation accepts [200, 400)
HTTP_STATUS_OK = 200
HTTP_STATUS_BAD_REQUEST = 400

ALLOWED_METHODS = frozenset(
    {
        "CONNECT",
        "DELETE",
        "GET",
        "HEAD",
        "OPTIONS",
        "PATCH",
        "POST",
        "PUT",
        "TRACE",
    }
)
DEFAULT_METHOD = "GET"

# Content negotiation
CONTENT_TYPE_JSON = "json"
CONTENT_TYPE_FORM = "form"
DEFAULT_CONTENT_TYPE = CONTENT_TYPE_JSON

# Chunk size for streaming reads
DEFAULT_CHUNK_SIZE = 8192
