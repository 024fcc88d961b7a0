"""Configuration management with pydantic-settings."""

from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TcnAuthSettings(BaseSettings):
    """tcnauth application settings loaded from environment variables.

    All settings use the TCNAUTH_ prefix for environment variables.
    """

    # Backend configuration
    base_url: str = Field(
        default="http://dominicb72.sg-host.com",
        description="WordPress site root (no trailing /wp-json)",
    )
    request_timeout: float = Field(
        default=20.0,
        description="Per-request timeout in seconds",
    )

    # Storage configuration
    storage_backend: str = Field(
        default="local",
        description="Storage backend: local, memory",
    )
    config_dir: Path = Field(
        default=Path.home() / ".config" / "tcnauth",
        description="Configuration directory for tcnauth data",
    )

    # Logging configuration
    log_level: str = Field(default="WARNING", description="Logging level")
    log_format: str = Field(default="console", description="Log format: console or json")

    # WooCommerce storefront credentials
    woocommerce_consumer_key: SecretStr | None = Field(
        default=None,
        description="WooCommerce REST consumer key (ck_...)",
    )
    woocommerce_consumer_secret: SecretStr | None = Field(
        default=None,
        description="WooCommerce REST consumer secret (cs_...)",
    )
    woocommerce_auth_header: SecretStr | None = Field(
        default=None,
        description="Pre-built Basic authorization header for the storefront API",
    )

    # Session behaviour
    remember_credentials: bool = Field(
        default=True,
        description="Allow the encrypted credential cache used for silent re-login",
    )
    single_flight_refresh: bool = Field(
        default=True,
        description="Share one in-flight token refresh between concurrent callers",
    )

    model_config = SettingsConfigDict(
        env_prefix="TCNAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings and create config directory."""
        super().__init__(**kwargs)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    @property
    def state_file(self) -> Path:
        """Path of the persisted session key/value file."""
        return self.config_dir / "session.json"

    @property
    def secrets_file(self) -> Path:
        """Path of the encrypted credential cache."""
        return self.config_dir / "secrets.enc"

    def woocommerce_credentials(self) -> tuple[str, str, str | None]:
        """Return raw (consumer_key, consumer_secret, auth_header) strings.

        Missing values are returned as empty strings (or None for the header)
        so callers can hand them straight to the credential deriver.
        """
        key = self.woocommerce_consumer_key.get_secret_value() if self.woocommerce_consumer_key else ""
        secret = (
            self.woocommerce_consumer_secret.get_secret_value()
            if self.woocommerce_consumer_secret
            else ""
        )
        header = (
            self.woocommerce_auth_header.get_secret_value() if self.woocommerce_auth_header else None
        )
        return key, secret, header

    def get_storage_config(self, backend_type: str | None = None) -> dict[str, Any]:
        """Get storage backend configuration.

        Args:
            backend_type: Optional storage backend type override. If not provided,
                uses self.storage_backend.

        Returns:
            Configuration dictionary for storage backend.

        Raises:
            ValueError: If storage backend configuration is invalid.
        """
        storage_type = (backend_type or self.storage_backend).lower()

        if storage_type == "local":
            return {"path": self.state_file}

        if storage_type == "memory":
            return {}

        raise ValueError(f"Unsupported storage backend: {storage_type}. Supported: local, memory")


# Global settings instance
_settings: TcnAuthSettings | None = None


def get_settings() -> TcnAuthSettings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = TcnAuthSettings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (useful for testing)."""
    global _settings
    _settings = None
