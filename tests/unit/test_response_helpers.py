"""Unit tests for the response wrapper and decoding helpers."""

import gzip

import httpx
import pytest
from pydantic import BaseModel

from reqflow.client import Client
from reqflow.errors import DecompressionError, InvalidResponseError
from reqflow.response import Response, decompress_response, to_object, to_text


class User(BaseModel):
    id: int
    name: str


def wrap(body: bytes, headers: dict[str, str] | None = None, status: int = 200) -> Response:
    raw = httpx.Response(
        status,
        headers=headers,
        stream=httpx.ByteStream(body),
        request=httpx.Request("GET", "https://example.com/"),
    )
    return Response(raw)


class TestToObject:
    """Tests for to_object."""

    @pytest.mark.unit
    def test_json_by_content_type(self) -> None:
        """Test decoding a declared JSON body."""
        response = wrap(b'{"id": 1}', {"Content-Type": "application/json; charset=utf-8"})
        assert to_object(response) == {"id": 1}
        assert response.is_closed

    @pytest.mark.unit
    def test_missing_content_type_defaults_to_json(self) -> None:
        """Test that an undeclared body is decoded as JSON."""
        assert to_object(wrap(b"[1, 2]")) == [1, 2]

    @pytest.mark.unit
    def test_unknown_content_type_returns_none(self) -> None:
        """Test that an unrecognized type is skipped without error."""
        assert to_object(wrap(b"<html/>", {"Content-Type": "text/html"})) is None

    @pytest.mark.unit
    def test_empty_body_returns_none(self) -> None:
        """Test that an empty body decodes to None."""
        assert to_object(wrap(b"", {"Content-Type": "application/json"})) is None

    @pytest.mark.unit
    def test_model_validation(self) -> None:
        """Test validation into a pydantic model."""
        response = wrap(b'{"id": 7, "name": "ada"}', {"Content-Type": "application/json"})
        user = to_object(response, User)
        assert user == User(id=7, name="ada")

    @pytest.mark.unit
    def test_form_response(self) -> None:
        """Test decoding a form-encoded response."""
        response = wrap(b"a=1&a=2", {"Content-Type": "application/x-www-form-urlencoded"})
        assert to_object(response) == {"a": ["1", "2"]}

    @pytest.mark.unit
    def test_missing_response(self) -> None:
        """Test that None raises InvalidResponseError."""
        with pytest.raises(InvalidResponseError, match="invalid response"):
            to_object(None)

    @pytest.mark.unit
    def test_detached_body(self) -> None:
        """Test that a response without body raises."""
        response = wrap(b"{}")
        response.body = None
        with pytest.raises(InvalidResponseError):
            to_object(response)


class TestToText:
    """Tests for to_text and Response.read."""

    @pytest.mark.unit
    def test_reads_with_declared_charset(self) -> None:
        """Test text decoding with the response charset."""
        response = wrap("café".encode("latin-1"), {"Content-Type": "text/plain; charset=latin-1"})
        assert to_text(response) == "café"

    @pytest.mark.unit
    def test_read_is_cached(self) -> None:
        """Test that the body can be read more than once."""
        response = wrap(b"payload")
        assert response.read() == b"payload"
        assert response.read() == b"payload"

    @pytest.mark.unit
    def test_missing_response(self) -> None:
        """Test that None raises InvalidResponseError."""
        with pytest.raises(InvalidResponseError):
            to_text(None)

    @pytest.mark.unit
    def test_preloaded_httpx_response(self) -> None:
        """Test wrapping an httpx response whose body was already read."""
        raw = httpx.Response(
            200,
            content=b"ready",
            request=httpx.Request("GET", "https://example.com/"),
        )
        assert to_text(Response(raw)) == "ready"

    @pytest.mark.unit
    def test_mock_transport_content_response(self) -> None:
        """Test a client whose mock transport builds responses with content=."""
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200,
                content=gzip.compress(b"mocked"),
                headers={"Content-Encoding": "gzip"},
            )
        )
        with Client(transport=transport) as client:
            response = client.get("https://example.com/")

        assert "content-encoding" not in response.headers
        assert to_text(response) == "mocked"


class TestDecompressResponse:
    """Tests for decompress_response."""

    @pytest.mark.unit
    def test_x_gzip(self) -> None:
        """Test that x-gzip is treated as gzip."""
        response = decompress_response(
            wrap(gzip.compress(b"zipped"), {"Content-Encoding": "x-gzip"})
        )
        assert "content-encoding" not in response.headers
        assert response.read() == b"zipped"

    @pytest.mark.unit
    def test_empty_gzip_body(self) -> None:
        """Test that an empty gzip-declared body is not an error."""
        response = decompress_response(wrap(b"", {"Content-Encoding": "gzip"}))
        assert response.read() == b""

    @pytest.mark.unit
    def test_bad_gzip_header(self) -> None:
        """Test that an invalid gzip header raises."""
        with pytest.raises(DecompressionError, match="gzip"):
            decompress_response(wrap(b"plain", {"Content-Encoding": "gzip"}))

    @pytest.mark.unit
    def test_large_body_streamed(self) -> None:
        """Test inflating a body larger than one read chunk."""
        payload = bytes(range(256)) * 1024
        response = decompress_response(
            wrap(gzip.compress(payload), {"Content-Encoding": "gzip"})
        )
        assert response.read() == payload

    @pytest.mark.unit
    def test_decoding_error_chained(self) -> None:
        """Test that the httpx decoding error is kept as the cause."""
        response = wrap(b"plain", {"Content-Encoding": "deflate"})
        with pytest.raises(DecompressionError, match="deflate") as exc_info:
            decompress_response(response)

        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)
        assert exc_info.value.response is response

    @pytest.mark.unit
    def test_other_encoding_left_raw(self) -> None:
        """Test that encodings other than gzip and deflate keep raw bytes."""
        response = decompress_response(wrap(b"raw", {"Content-Encoding": "compress"}))
        assert response.headers["Content-Encoding"] == "compress"
        assert response.read() == b"raw"
