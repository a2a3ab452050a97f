"""Content negotiation: encode and decode bodies by content type.

A registry maps a content type tag (``"json"``) used for request bodies and
a media type (``"application/json"``) declared by responses to a codec.
New codecs can be registered without touching the pipeline.
"""

import json
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlencode

from pydantic import BaseModel

from reqflow.constants import CONTENT_TYPE_FORM, CONTENT_TYPE_JSON, DEFAULT_CONTENT_TYPE
from reqflow.errors import BodyEncodeError, UnsupportedContentTypeError


Encoder = Callable[[Any], bytes]
Decoder = Callable[[bytes], Any]

RAW_BODY_TYPES = (bytes, bytearray, memoryview, str)


@dataclass(frozen=True)
class ContentCodec:
    """Encode/decode pair for one content type.

    Attributes:
        tag: Short name used in RequestOptions.content_type.
        media_type: MIME type sent as Content-Type and matched on responses.
        encode: Serializes a value into bytes.
        decode: Parses bytes into a value.
    """

    tag: str
    media_type: str
    encode: Encoder
    decode: Decoder


def normalize_tag(tag: str | None) -> str:
    """Lower-case a content type tag; empty means the default tag."""
    return (tag or DEFAULT_CONTENT_TYPE).strip().lower()


def normalize_media_type(content_type: str | None) -> str:
    """Strip parameters (such as charset) from a Content-Type value."""
    media_type, _, _ = (content_type or "").partition(";")
    return media_type.strip().lower()


def _to_plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def encode_json(value: Any) -> bytes:
    """Encode a value as compact UTF-8 JSON."""
    return json.dumps(
        _to_plain(value), separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def decode_json(data: bytes) -> Any:
    """Decode UTF-8 JSON bytes."""
    return json.loads(data)


def encode_form(value: Any) -> bytes:
    """Encode a mapping as application/x-www-form-urlencoded."""
    value = _to_plain(value)
    if not isinstance(value, Mapping):
        msg = f"form body must be a mapping, got {type(value).__name__}"
        raise TypeError(msg)
    return urlencode(value, doseq=True).encode("ascii")


def decode_form(data: bytes) -> dict[str, list[str]]:
    """Decode an application/x-www-form-urlencoded body."""
    return parse_qs(data.decode("ascii"), keep_blank_values=True)


class CodecRegistry:
    """Thread-safe mapping of tags and media types to codecs."""

    def __init__(self, codecs: list[ContentCodec] | None = None) -> None:
        """Initialize the registry.

        Args:
            codecs: Initial codecs. Defaults to the built-in JSON and form codecs.
        """
        self._lock = threading.Lock()
        self._by_tag: dict[str, ContentCodec] = {}
        self._by_media_type: dict[str, ContentCodec] = {}
        for codec in codecs if codecs is not None else builtin_codecs():
            self.register(codec)

    def register(self, codec: ContentCodec) -> None:
        """Register a codec, replacing any codec with the same tag or media type.

        Args:
            codec: Codec to register.
        """
        with self._lock:
            self._by_tag[normalize_tag(codec.tag)] = codec
            self._by_media_type[normalize_media_type(codec.media_type)] = codec

    def for_tag(self, tag: str | None) -> ContentCodec:
        """Look up the codec for a request content type tag.

        Args:
            tag: Content type tag; None or empty selects JSON.

        Returns:
            The registered codec.

        Raises:
            UnsupportedContentTypeError: If no codec has this tag.
        """
        key = normalize_tag(tag)
        with self._lock:
            codec = self._by_tag.get(key)
        if codec is None:
            raise UnsupportedContentTypeError(tag or "")
        return codec

    def for_media_type(self, content_type: str | None) -> ContentCodec | None:
        """Look up the codec for a declared response Content-Type.

        Args:
            content_type: Raw Content-Type header value.

        Returns:
            The codec, or None when the type is not recognized.
        """
        with self._lock:
            return self._by_media_type.get(normalize_media_type(content_type))

    def encode_body(self, body: Any, tag: str | None) -> bytes | None:
        """Encode a request body.

        Raw bytes and strings are passed through verbatim.

        Args:
            body: Body value from the request options.
            tag: Content type tag.

        Returns:
            Encoded bytes, or None when there is no body.

        Raises:
            UnsupportedContentTypeError: If the tag has no codec.
            BodyEncodeError: If the codec rejects the body.
        """
        if body is None:
            return None
        if isinstance(body, str):
            return body.encode("utf-8")
        if isinstance(body, RAW_BODY_TYPES):
            return bytes(body)
        codec = self.for_tag(tag)
        try:
            return codec.encode(body)
        except (TypeError, ValueError) as exc:
            raise BodyEncodeError(codec.tag, exc) from exc


def builtin_codecs() -> list[ContentCodec]:
    """Return the codecs registered by default."""
    return [
        ContentCodec(
            tag=CONTENT_TYPE_JSON,
            media_type="application/json",
            encode=encode_json,
            decode=decode_json,
        ),
        ContentCodec(
            tag=CONTENT_TYPE_FORM,
            media_type="application/x-www-form-urlencoded",
            encode=encode_form,
            decode=decode_form,
        ),
    ]
