"""Response wrapper, body decompression and decoding helpers."""

import io
import itertools
from collections.abc import Callable, Iterator
from typing import Any, BinaryIO, TypeVar, overload

import httpx
import structlog
from pydantic import TypeAdapter

from reqflow.codec import CodecRegistry
from reqflow.constants import DEFAULT_CHUNK_SIZE
from reqflow.errors import DecompressionError, InvalidResponseError


logger = structlog.get_logger()

T = TypeVar("T")

# Content-Encoding aliases mapped onto the name httpx decodes.
DECOMPRESS_ENCODINGS = {"gzip": "gzip", "x-gzip": "gzip", "deflate": "deflate"}

_default_codecs = CodecRegistry()


class StreamBody(io.RawIOBase):
    """Readable raw stream over an iterator of byte chunks.

    ``source`` can be replaced until the first read, which is how the
    decompression step swaps raw chunks for decoded ones.
    """

    def __init__(
        self,
        chunks: Iterator[bytes],
        on_close: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the stream.

        Args:
            chunks: Source chunk iterator.
            on_close: Called once when the stream is closed.
        """
        super().__init__()
        self.source = chunks
        self._pending = b""
        self._on_close = on_close

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        while not self._pending:
            chunk = next(self.source, None)
            if chunk is None:
                return 0
            self._pending = chunk
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed and self._on_close is not None:
            self._on_close()
        super().close()


class Response:
    """HTTP response produced by the pipeline.

    Wraps a streamed ``httpx.Response``. Headers are a mutable copy so the
    pipeline can strip ``Content-Encoding`` once the body is decoded, and
    ``body`` is a file-like stream over the raw (still encoded) bytes until
    the decompression step switches it to decoded ones.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers (case-insensitive, multi-valued).
        url: Final URL.
        request: The request that produced this response.
        history: Redirect responses that were followed, oldest first.
        body: Readable body stream, or None once detached.
    """

    def __init__(self, raw: httpx.Response) -> None:
        """Wrap a streamed httpx response.

        Args:
            raw: Response returned by ``httpx.Client.send(stream=True)``.
        """
        self.raw = raw
        self.status_code = raw.status_code
        self.headers = httpx.Headers(raw.headers)
        self.url = str(raw.url)
        self.request = raw.request
        self.history = list(raw.history)
        self.http_version = raw.http_version
        self.reason_phrase = raw.reason_phrase
        if raw.is_stream_consumed:
            # Responses built with ``content=`` (as mock transports return
            # them) are read and decoded by httpx on construction.
            chunks: Iterator[bytes] = iter([raw.content])
            self.headers.pop("content-encoding", None)
        else:
            chunks = raw.iter_raw()
        self.stream = StreamBody(chunks, on_close=raw.close)
        self.body: BinaryIO | None = io.BufferedReader(self.stream)
        self._content: bytes | None = None

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}]>"

    def __enter__(self) -> "Response":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def is_closed(self) -> bool:
        """Check whether the body stream has been closed."""
        return self.body is None or self.body.closed

    @property
    def content_type(self) -> str:
        """Raw Content-Type header value."""
        return self.headers.get("content-type", "")

    @property
    def encoding(self) -> str:
        """Charset declared by the response, defaulting to UTF-8."""
        return self.raw.charset_encoding or "utf-8"

    def read(self) -> bytes:
        """Read the whole body and close the stream.

        Returns:
            Body bytes. Subsequent calls return the cached bytes.

        Raises:
            InvalidResponseError: If there is no body to read.
        """
        if self._content is not None:
            return self._content
        if self.body is None:
            raise InvalidResponseError("response has no body")
        try:
            self._content = self.body.read()
        finally:
            self.body.close()
        return self._content

    @property
    def text(self) -> str:
        """Body decoded with the declared charset."""
        data = self.read()
        try:
            return data.decode(self.encoding, errors="replace")
        except LookupError:
            return data.decode("utf-8", errors="replace")

    def close(self) -> None:
        """Close the body stream and release the connection."""
        if self.body is not None:
            self.body.close()
        self.raw.close()


def _decoded_chunks(response: Response, encoding: str) -> Iterator[bytes]:
    try:
        yield from response.raw.iter_bytes(DEFAULT_CHUNK_SIZE)
    except httpx.DecodingError as exc:
        msg = f"{encoding}: {exc}"
        raise DecompressionError(
            msg, request=response.request, response=response
        ) from exc


def decompress_response(response: Response) -> Response:
    """Switch a gzip or deflate encoded body to decoded bytes.

    Decoding is done by httpx (``x-gzip`` is decoded as gzip). The first
    chunk is decoded right away so a corrupt stream fails here rather than
    in the caller's first read. The Content-Encoding header is removed once
    the body is decoded; other encodings are left untouched.

    Args:
        response: Response whose body has not been read yet.

    Returns:
        The same response.

    Raises:
        DecompressionError: If the body cannot be decoded.
    """
    encoding = response.headers.get("content-encoding", "").strip().lower()
    target = DECOMPRESS_ENCODINGS.get(encoding)
    if target is None or response.body is None:
        return response

    response.raw.headers["content-encoding"] = target
    chunks = _decoded_chunks(response, encoding)
    first = next(chunks, b"")
    response.stream.source = itertools.chain([first], chunks)
    del response.headers["content-encoding"]
    return response


def _require_body(response: Response | None) -> Response:
    if response is None or response.body is None:
        raise InvalidResponseError
    return response


@overload
def to_object(
    response: Response | None,
    model: None = None,
    *,
    codecs: CodecRegistry | None = None,
) -> Any: ...


@overload
def to_object(
    response: Response | None,
    model: type[T],
    *,
    codecs: CodecRegistry | None = None,
) -> T | None: ...


def to_object(
    response: Response | None,
    model: Any = None,
    *,
    codecs: CodecRegistry | None = None,
) -> Any:
    """Read the body and decode it by the declared Content-Type.

    A missing Content-Type is decoded as JSON. A declared but unrecognized
    type leaves the result untouched (None) without raising.

    Args:
        response: Response returned by the client.
        model: Optional type to validate the decoded value into.
        codecs: Codec registry; defaults to the built-in codecs.

    Returns:
        Decoded value, validated into ``model`` when given, or None for an
        empty body or unrecognized content type.

    Raises:
        InvalidResponseError: If there is no response or body.
    """
    response = _require_body(response)
    registry = codecs or _default_codecs
    data = response.read()
    if not data:
        return None

    content_type = response.content_type
    codec = (
        registry.for_media_type(content_type)
        if content_type
        else registry.for_tag(None)
    )
    if codec is None:
        logger.debug("response_decode_skipped", content_type=content_type)
        return None

    value = codec.decode(data)
    if model is None:
        return value
    return TypeAdapter(model).validate_python(value)


def to_text(response: Response | None) -> str:
    """Read the whole body as text and close the stream.

    Args:
        response: Response returned by the client.

    Returns:
        Decoded body text.

    Raises:
        InvalidResponseError: If there is no response or body.
    """
    return _require_body(response).text
