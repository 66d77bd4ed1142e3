"""Configuration loading from environment and YAML files."""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROVIDERS = ["woocommerce", "wordpress", "search", "store"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Feature flags
    mcp_enabled: bool = True
    auth_required: bool = True

    # JWT tokens
    jwt_secret_key: str = ""
    jwt_issuer: str = "woo-mcp"
    token_default_ttl: int = 3600  # 1 hour
    token_min_ttl: int = 3600  # 1 hour
    token_max_ttl: int = 86400  # 1 day
    token_max_active: int = 10  # per user

    # REST backend (WordPress / WooCommerce)
    backend_url: str = "http://localhost:8080/wp-json"
    backend_username: str = ""
    backend_password: str = ""
    backend_timeout: float = 30.0

    # Streamable HTTP transport
    mcp_endpoint: str = "/mcp"
    sse_heartbeat_interval: float = 15.0
    sse_max_duration: float = 300.0
    session_timeout: float = 1800.0

    # STDIO proxy mode
    proxy_url: str = ""
    proxy_token: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Server info
    server_name: str = "woo-mcp"
    server_version: str = "1.0.0"

    # Host and port
    host: str = "0.0.0.0"
    port: int = 8000

    # Providers, capability overrides and users
    config_file: str = ""

    model_config = SettingsConfigDict(
        env_prefix="WOO_MCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def backend_auth(self) -> tuple[str, str] | None:
        """Basic auth credentials for the REST backend, if configured."""
        if self.backend_username:
            return (self.backend_username, self.backend_password)
        return None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_server_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """
    Load providers, capability overrides and users from a YAML file.

    Args:
        config_path: Path to the config file. If None, uses default location.

    Returns:
        Dictionary with configuration data.
    """
    if not config_path:
        possible_paths = [
            Path("config/server.yaml"),
            Path(__file__).parent.parent.parent / "config" / "server.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break
        else:
            return {"enabled_providers": list(DEFAULT_PROVIDERS)}

    config_path = Path(config_path)
    if not config_path.exists():
        return {"enabled_providers": list(DEFAULT_PROVIDERS)}

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    return config


def get_enabled_providers(config: dict[str, Any] | None = None) -> list[str]:
    """Get list of enabled provider names."""
    if config is None:
        config = load_server_config()
    return config.get("enabled_providers", list(DEFAULT_PROVIDERS))


def get_capability_overrides(config: dict[str, Any] | None = None) -> dict[str, dict[str, bool]]:
    """Get enabled/disabled overrides keyed by capability kind, then name."""
    if config is None:
        config = load_server_config()
    overrides = config.get("capabilities") or {}
    return {
        kind: {name: bool(flag) for name, flag in (entries or {}).items()}
        for kind, entries in overrides.items()
    }
