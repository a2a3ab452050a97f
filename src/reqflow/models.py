"""Configuration models for the request client."""

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Annotated, Any
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reqflow.context import RequestContext


if TYPE_CHECKING:
    from reqflow.settings import ClientSettings


MultiValue = dict[str, list[str]]
StatusValidator = Callable[[int], bool]
ParametersSerializer = Callable[[Mapping[str, list[str]]], str]

# -1 is the "no limit" sentinel; None and 0 mean unset.
Sentinel = Annotated[int, Field(ge=-1)]


def _coerce_multi_value(value: Any) -> Any:
    """Coerce ``{key: "v"}`` into ``{key: ["v"]}`` and drop empty lists."""
    if not isinstance(value, Mapping):
        return value
    result: dict[str, list[str]] = {}
    for key, values in value.items():
        if isinstance(values, str):
            result[key] = [values]
        elif values:
            result[key] = [str(v) for v in values]
    return result


class ProxyConfig(BaseModel):
    """Address and credentials of a proxy server."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    protocol: Annotated[str, Field(min_length=1)] = "http"
    host: Annotated[str, Field(min_length=1)]
    port: Annotated[int, Field(ge=1, le=65535)]
    username: str = ""
    password: str = ""

    def url(self) -> str:
        """Render the proxy as a URL.

        Returns:
            URL of the form ``protocol://[user:pass@]host:port``.
        """
        host = f"[{self.host}]" if ":" in self.host else self.host
        userinfo = ""
        if self.username or self.password:
            user = quote(self.username, safe="")
            password = quote(self.password, safe="")
            userinfo = f"{user}:{password}@"
        return f"{self.protocol}://{userinfo}{host}:{self.port}"


class BasicAuth(BaseModel):
    """HTTP Basic auth credentials."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str
    password: str


class ClientConfig(BaseModel):
    """Client-wide defaults.

    Every field can be overridden per call through RequestOptions. Unset
    fields fall back to the hard defaults in ``reqflow.constants``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = ""
    headers: MultiValue = Field(default_factory=dict)
    parameters: MultiValue = Field(default_factory=dict)
    parameters_serializer: ParametersSerializer | None = None
    max_redirects: Sentinel | None = None
    timeout: Sentinel | None = Field(
        default=None, description="Request timeout in milliseconds, -1 for no limit"
    )
    user_agent: str = ""
    validate_status: StatusValidator | None = None
    proxy: ProxyConfig | None = None

    @field_validator("headers", "parameters", mode="before")
    @classmethod
    def coerce_multi_value(cls, v: Any) -> Any:
        """Accept single string values."""
        return _coerce_multi_value(v)

    @classmethod
    def from_settings(cls, settings: "ClientSettings") -> "ClientConfig":
        """Build a config from environment-backed settings.

        Args:
            settings: Loaded client settings.

        Returns:
            ClientConfig populated from the settings values.
        """
        return cls(
            base_url=settings.base_url or "",
            max_redirects=settings.max_redirects,
            timeout=settings.timeout,
            user_agent=settings.user_agent or "",
            proxy=settings.proxy_config(),
        )


class RequestOptions(BaseModel):
    """Per-call overrides. Constructed fresh for every call."""

    model_config = ConfigDict(
        extra="forbid", arbitrary_types_allowed=True, validate_assignment=True
    )

    auth: BasicAuth | None = None
    base_url: str = ""
    body: Any = None
    content_type: str | None = None
    context: RequestContext | None = None
    disable_decompress: bool = False
    headers: MultiValue | None = None
    max_redirects: Sentinel | None = None
    method: str | None = None
    parameters: MultiValue | None = None
    parameters_serializer: ParametersSerializer | None = None
    proxy: ProxyConfig | None = None
    timeout: Sentinel | None = None
    user_agent: str = ""
    validate_status: StatusValidator | None = None

    @field_validator("headers", "parameters", mode="before")
    @classmethod
    def coerce_multi_value(cls, v: Any) -> Any:
        """Accept single string values."""
        return _coerce_multi_value(v)
