"""
Configuration Management

Centralized configuration using Pydantic Settings with environment variables
and an optional env-style configuration file.

A single Settings instance is built at startup and handed to every component
that needs it.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from incognitomail.core.exceptions import InvalidConfigException


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or a config file
    using the same KEY=value syntax.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===================================
    # General Settings
    # ===================================
    APP_ENV: str = Field(default="production", description="Environment: development, staging, production")
    APP_NAME: str = Field(default="IncognitoMail", description="Application name")
    MAIL_SYSTEM: str = Field(default="postfix", description="Mail system receiving handle mappings")
    UNIX_SOCK_PATH: str = Field(default="/tmp/incognitomail.sock", description="Control socket path")
    LOCK_FILE_PATH: str = Field(default="/var/lock/incognitomail.lock", description="Singleton lock file path")

    # ===================================
    # Public Listener
    # ===================================
    LISTEN_PATH: str = Field(default="/incognitomail", description="Websocket endpoint path")
    LISTEN_HOST: str = Field(default="0.0.0.0", description="Host to bind to")
    LISTEN_PORT: int = Field(default=8080, ge=1, le=65535, description="Port to bind to")
    TLS_CERT_FILE: Optional[str] = Field(default=None, description="TLS certificate file")
    TLS_KEY_FILE: Optional[str] = Field(default=None, description="TLS private key file")
    SHUTDOWN_TIMEOUT_SECONDS: int = Field(default=10, ge=0, description="Drain timeout for open connections")

    # ===================================
    # Persistence
    # ===================================
    PERSISTENCE_TYPE: str = Field(default="sqlite", description="Persistence backend")
    DATABASE_PATH: str = Field(default="incognitomail.db", description="Database file path")
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL queries (debug)")

    # ===================================
    # Postfix
    # ===================================
    POSTFIX_DOMAIN: str = Field(default="", description="Suffix appended to every handle, e.g. @example.com")
    POSTFIX_MAP_FILE_PATH: str = Field(default="", description="Virtual alias map file")
    POSTMAP_COMMAND: str = Field(default="postmap", description="Program rebuilding the map index")

    # ===================================
    # Commands
    # ===================================
    ACCOUNT_SECRET_SIZE: int = Field(default=64, ge=1, description="Generated account secret length")
    HANDLE_SIZE: int = Field(default=18, ge=1, description="Generated handle length")
    COMMAND_QUEUE_SIZE: int = Field(default=10, ge=1, description="Pending command queue depth")

    # ===================================
    # Logging Configuration
    # ===================================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="text", description="Log format: json or text")
    LOG_FILE: Optional[str] = Field(default=None, description="Log file path")

    # ===================================
    # Monitoring
    # ===================================
    ENABLE_METRICS: bool = Field(default=True, description="Expose Prometheus metrics")
    METRICS_ENDPOINT: str = Field(default="/metrics", description="Metrics endpoint path")

    # ===================================
    # Validators
    # ===================================

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v):
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("Log format must be one of: json, text")
        return v

    @field_validator("APP_ENV")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment."""
        valid_envs = ["development", "staging", "production"]
        v = v.lower()
        if v not in valid_envs:
            raise ValueError(f"Environment must be one of: {valid_envs}")
        return v

    @field_validator("MAIL_SYSTEM")
    @classmethod
    def validate_mail_system(cls, v):
        if v != "postfix":
            raise ValueError("Mail system must be: postfix")
        return v

    @field_validator("PERSISTENCE_TYPE")
    @classmethod
    def validate_persistence_type(cls, v):
        if v != "sqlite":
            raise ValueError("Persistence type must be: sqlite")
        return v

    @field_validator("UNIX_SOCK_PATH", "LOCK_FILE_PATH", "LISTEN_PATH", "LISTEN_HOST", "DATABASE_PATH")
    @classmethod
    def validate_not_empty(cls, v, info):
        """Reject empty paths and addresses."""
        if not v:
            raise ValueError(f"{info.field_name} must not be empty")
        return v

    @model_validator(mode="after")
    def validate_postfix(self):
        """Postfix needs both a domain and a map file."""
        if self.MAIL_SYSTEM == "postfix":
            if not self.POSTFIX_DOMAIN:
                raise ValueError("POSTFIX_DOMAIN is required for the postfix mail system")
            if not self.POSTFIX_MAP_FILE_PATH:
                raise ValueError("POSTFIX_MAP_FILE_PATH is required for the postfix mail system")
        return self

    # ===================================
    # Computed Properties
    # ===================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the embedded store."""
        return f"sqlite+aiosqlite:///{self.DATABASE_PATH}"

    @property
    def tls_enabled(self) -> bool:
        return bool(self.TLS_CERT_FILE and self.TLS_KEY_FILE)


def load_settings(config_path: Optional[str] = None, **overrides) -> Settings:
    """
    Build settings from the environment and an optional config file.

    Args:
        config_path: Path to a KEY=value config file (defaults to .env)
        **overrides: Explicit values taking precedence over everything else

    Returns:
        Settings: Validated settings

    Raises:
        InvalidConfigException: If any value is missing or invalid
    """
    kwargs = dict(overrides)
    if config_path:
        if not Path(config_path).is_file():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        kwargs["_env_file"] = config_path

    try:
        return Settings(**kwargs)
    except ValidationError as e:
        raise InvalidConfigException(detail=e.errors(include_url=False)) from e

