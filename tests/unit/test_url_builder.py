"""Unit tests for target URL resolution."""

import pytest

from reqflow.errors import NoURLError, URLParseError
from reqflow.models import ClientConfig, RequestOptions
from reqflow.resolver import OptionResolver
from reqflow.urls import build_url, encode_parameters, is_absolute_url, resolve_target


def build(
    url: str,
    config: ClientConfig | None = None,
    options: RequestOptions | None = None,
) -> str:
    return build_url(url, OptionResolver(config or ClientConfig(), options or RequestOptions()))


class TestIsAbsoluteUrl:
    """Tests for scheme detection."""

    @pytest.mark.unit
    def test_http_and_https(self) -> None:
        """Test that http and https URLs are absolute."""
        assert is_absolute_url("http://example.com")
        assert is_absolute_url("https://example.com/a")

    @pytest.mark.unit
    def test_other_strings(self) -> None:
        """Test that bare hosts, paths and other schemes are not absolute."""
        assert not is_absolute_url("www.example.com")
        assert not is_absolute_url("/path")
        assert not is_absolute_url("ftp://example.com")
        assert not is_absolute_url("")


class TestResolveTarget:
    """Tests for base URL and path splitting."""

    @pytest.mark.unit
    def test_absolute_url_ignores_base(self) -> None:
        """Test that an absolute call URL is used as is."""
        assert resolve_target("http://a.com/x", "https://b.com") == ("http://a.com/x", "")

    @pytest.mark.unit
    def test_path_joined_to_base(self) -> None:
        """Test that a relative URL becomes the extra path."""
        assert resolve_target("/users", "https://api.com/v1") == ("https://api.com/v1", "/users")

    @pytest.mark.unit
    def test_no_url_raises(self) -> None:
        """Test that an empty URL without base URL raises."""
        with pytest.raises(NoURLError, match="no url"):
            resolve_target("", "")

    @pytest.mark.unit
    def test_scheme_added_to_base(self) -> None:
        """Test that a base without scheme gets https."""
        assert resolve_target("/x", "api.com") == ("https://api.com", "/x")


class TestBuildUrl:
    """Tests for the full URL build."""

    @pytest.mark.unit
    def test_bare_host_gets_https(self) -> None:
        """Test that a host without scheme resolves to https."""
        assert build("www.example.com") == "https://www.example.com"

    @pytest.mark.unit
    def test_base_url_and_path(self) -> None:
        """Test joining a path onto the client base URL."""
        config = ClientConfig(base_url="https://api.example.com/v1/")
        assert build("users/42", config) == "https://api.example.com/v1/users/42"

    @pytest.mark.unit
    def test_call_base_url_overrides_client(self) -> None:
        """Test that the call base URL replaces the client base URL."""
        config = ClientConfig(base_url="https://client.example.com")
        options = RequestOptions(base_url="https://call.example.com/api")
        assert build("/items", config, options) == "https://call.example.com/api/items"

    @pytest.mark.unit
    def test_call_parameters_merged_with_url_query(self) -> None:
        """Test that call parameters append to existing query values."""
        options = RequestOptions(parameters={"q": ["test2"], "t": ["2"]})
        assert build("http://example.com?q=test1&w=1", options=options) == (
            "http://example.com?q=test1&q=test2&t=2&w=1"
        )

    @pytest.mark.unit
    def test_client_parameters_fill_absent_keys_only(self) -> None:
        """Test that client parameters never override present keys."""
        config = ClientConfig(parameters={"page": "1", "lang": "en"})
        options = RequestOptions(parameters={"page": "3"})
        assert build("https://example.com/list", config, options) == (
            "https://example.com/list?lang=en&page=3"
        )

    @pytest.mark.unit
    def test_custom_serializer(self) -> None:
        """Test that a custom parameters serializer is used."""
        options = RequestOptions(
            parameters={"a": ["1"]},
            parameters_serializer=lambda params: "custom=" + ",".join(sorted(params)),
        )
        assert build("https://example.com", options=options) == "https://example.com?custom=a"

    @pytest.mark.unit
    def test_invalid_port_raises(self) -> None:
        """Test that an unparsable port raises URLParseError."""
        with pytest.raises(URLParseError):
            build("http://example.com:notaport/x")

    @pytest.mark.unit
    def test_no_url_raises(self) -> None:
        """Test that an empty URL without base raises NoURLError."""
        with pytest.raises(NoURLError):
            build("")


class TestEncodeParameters:
    """Tests for the default query serializer."""

    @pytest.mark.unit
    def test_sorted_and_repeated(self) -> None:
        """Test key order and repeated keys."""
        assert encode_parameters({"b": ["2"], "a": ["1", "x y"]}) == "a=1&a=x+y&b=2"

    @pytest.mark.unit
    def test_escapes_reserved_characters(self) -> None:
        """Test that reserved characters are escaped."""
        assert encode_parameters({"k&": ["v=1"]}) == "k%26=v%3D1"
