"""Client settings powered by Pydantic BaseSettings."""

from urllib.parse import unquote, urlsplit

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from reqflow.models import ProxyConfig


DEFAULT_PROXY_PORTS = {"http": 80, "https": 443, "socks5": 1080}


class ClientSettings(BaseSettings):
    """Environment configuration for a default client."""

    model_config = SettingsConfigDict(
        env_prefix="REQFLOW_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str | None = None
    timeout: int | None = Field(default=None, ge=-1)
    max_redirects: int | None = Field(default=None, ge=-1)
    user_agent: str | None = None
    proxy_url: str | None = None
    max_idle_transports: int | None = Field(default=None, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    log_json: bool = True

    def proxy_config(self) -> ProxyConfig | None:
        """Parse ``proxy_url`` into a proxy config.

        Returns:
            ProxyConfig, or None when no proxy URL is set.

        Raises:
            ValueError: If the URL has no host.
        """
        if not self.proxy_url:
            return None
        parts = urlsplit(self.proxy_url)
        if not parts.hostname:
            msg = f"proxy url has no host: {self.proxy_url!r}"
            raise ValueError(msg)
        protocol = parts.scheme or "http"
        return ProxyConfig(
            protocol=protocol,
            host=parts.hostname,
            port=parts.port or DEFAULT_PROXY_PORTS.get(protocol, 80),
            username=unquote(parts.username or ""),
            password=unquote(parts.password or ""),
        )


def get_settings() -> ClientSettings:
    """Get a settings instance."""
    return ClientSettings()
