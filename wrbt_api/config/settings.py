"""
Application settings using Pydantic Settings v2.

Environment variables are loaded from .env file and can be overridden
by actual environment variables.

Pattern validated for high-concurrency asyncio environments.
"""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import AliasChoices, Field, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    """
    Find .env file in current directory or parent directory.

    This allows the app to work whether running from the repository root
    or from a nested working directory (e.g. scripts/).

    Returns:
        Path to .env file (current dir, parent dir, or default ".env")
    """
    current = Path.cwd() / ".env"
    parent = Path.cwd().parent / ".env"

    if current.exists():
        return str(current)
    elif parent.exists():
        return str(parent)
    else:
        # Fallback to default (will use environment variables only)
        return ".env"


class DatabaseSettings(BaseSettings):
    """Database configuration"""

    sqlite_path: Annotated[
        str,
        Field(
            default="./.dbdata/sqlite/wrbt.db",
            description="Path to SQLite database file",
            validation_alias="WRBT_SQLITE_PATH",
        ),
    ]
    storage_timeout_seconds: Annotated[
        float,
        Field(
            default=5.0,
            gt=0,
            le=60,
            description="Upper bound for a single registry/audit storage call",
            validation_alias="WRBT_STORAGE_TIMEOUT_SECONDS",
        ),
    ]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def sqlite_url(self) -> str:
        """Computed SQLite async URL with absolute path.

        Returns:
            SQLite connection URL for async SQLAlchemy engine with absolute path.
        """
        # Resolve to absolute path (handles relative paths from any working directory)
        abs_path = Path(self.sqlite_path).resolve()
        # Ensure parent directory exists
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+aiosqlite:///{abs_path}"

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )


class TokenSettings(BaseSettings):
    """Pairing code and bearer token configuration"""

    hashing_mode: Annotated[
        Literal["bcrypt", "plaintext"],
        Field(
            default="bcrypt",
            description="Token hashing policy. 'plaintext' is accepted only in development.",
            validation_alias="WRBT_TOKEN_HASHING",
        ),
    ]
    bcrypt_rounds: Annotated[
        int,
        Field(
            default=12,
            ge=4,
            le=16,
            description="bcrypt cost factor (log2 of rounds)",
            validation_alias="WRBT_BCRYPT_ROUNDS",
        ),
    ]
    pairing_code_length: Annotated[
        int,
        Field(
            default=8,
            ge=6,
            le=8,
            description="Pairing code length (uppercase letters)",
            validation_alias="WRBT_PAIRING_CODE_LENGTH",
        ),
    ]
    pairing_code_ttl_seconds: Annotated[
        int,
        Field(
            default=3600,
            ge=60,
            le=86400,
            description="Pairing code lifetime in seconds",
            validation_alias="WRBT_PAIRING_CODE_TTL",
        ),
    ]

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )


class RateLimitSettings(BaseSettings):
    """Per-IP rate limit policies for the public pairing endpoints"""

    register_max_requests: Annotated[
        int,
        Field(
            default=3,
            ge=1,
            description="Registrations allowed per IP per window",
            validation_alias="WRBT_RATE_LIMIT_REGISTER_MAX",
        ),
    ]
    register_window_seconds: Annotated[
        int,
        Field(
            default=3600,
            ge=1,
            description="Registration window in seconds",
            validation_alias="WRBT_RATE_LIMIT_REGISTER_WINDOW",
        ),
    ]
    status_max_requests: Annotated[
        int,
        Field(
            default=60,
            ge=1,
            description="Status checks allowed per IP per window",
            validation_alias="WRBT_RATE_LIMIT_STATUS_MAX",
        ),
    ]
    status_window_seconds: Annotated[
        int,
        Field(
            default=3600,
            ge=1,
            description="Status check window in seconds",
            validation_alias="WRBT_RATE_LIMIT_STATUS_WINDOW",
        ),
    ]
    cleanup_interval_seconds: Annotated[
        int,
        Field(
            default=300,
            ge=5,
            le=3600,
            description="Interval for purging expired rate-limit windows",
            validation_alias="WRBT_RATE_LIMIT_CLEANUP_INTERVAL",
        ),
    ]

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )


class AppSettings(BaseSettings):
    """Main application settings"""

    # Environment
    wrbt_env: Annotated[
        str,
        Field(
            default="development",
            description="Environment (development/production)",
            validation_alias="WRBT_ENV",
        ),
    ]

    # Admin console access
    admin_api_key: Annotated[
        str,
        Field(
            description="Shared secret the admin console sends in X-Admin-Key. "
            "Generate with: openssl rand -base64 32",
            validation_alias="WRBT_ADMIN_API_KEY",
        ),
    ]

    # Server
    port: Annotated[
        int,
        Field(
            default=5000,
            ge=1,
            le=65535,
            description="HTTP server port",
            validation_alias="WRBT_API_PORT",
        ),
    ]

    # Logging
    log_level: Annotated[
        str,
        Field(
            default="info",
            description="Log level: debug, info, warn, error",
            validation_alias="WRBT_LOG_LEVEL",
        ),
    ]
    log_format: Annotated[
        str,
        Field(
            default="json",
            description="Log format: json, text",
            validation_alias="WRBT_LOG_FORMAT",
        ),
    ]

    # Paths guarded by the bot bearer-token middleware
    bot_protected_prefixes: Annotated[
        str | list[str],
        Field(
            default=["/api/bot"],
            description="Path prefixes that require Authorization: Bearer <token>",
            validation_alias="WRBT_BOT_PROTECTED_PREFIXES",
        ),
    ]

    # CORS
    # Note: Type is str | list[str] to prevent Pydantic Settings from trying
    # to JSON-parse the env var. The validator converts comma-separated strings to list.
    cors_origins: Annotated[
        str | list[str],
        Field(
            default=["http://localhost:3000"],
            description="Allowed CORS origins (comma-separated string or list)",
            validation_alias=AliasChoices("wrbt_allow_origins", "cors_origins"),
        ),
    ]

    # Nested settings
    database: Annotated[
        DatabaseSettings, Field(default_factory=DatabaseSettings, description="Database settings")
    ]
    tokens: Annotated[
        TokenSettings, Field(default_factory=TokenSettings, description="Token settings")
    ]
    rate_limit: Annotated[
        RateLimitSettings,
        Field(default_factory=RateLimitSettings, description="Rate limit settings"),
    ]

    @field_validator("cors_origins", "bot_protected_prefixes", mode="before")
    @classmethod
    def parse_string_list(cls, v: str | list[str]) -> list[str]:
        """Parse a list setting from string or list.

        Args:
            v: Either a JSON string, comma-separated string, or list of values.

        Returns:
            List of values.
        """
        if isinstance(v, str):
            # Handle JSON array string from env var
            import json

            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # Fallback to comma-separated
                return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_development(self) -> bool:
        """True only when the deployment explicitly declares itself development."""
        return self.wrbt_env == "development"

    @model_validator(mode="after")
    def validate_token_hashing(self) -> "AppSettings":
        """Reject the plaintext hashing policy outside explicit development."""
        if self.tokens.hashing_mode == "plaintext" and not self.is_development:
            raise ValueError(
                "WRBT_TOKEN_HASHING=plaintext is only allowed when WRBT_ENV=development. "
                f"Current environment: {self.wrbt_env}"
            )
        return self

    @model_validator(mode="after")
    def validate_production_configuration(self) -> "AppSettings":
        """Validate production-only requirements."""
        if self.wrbt_env != "production":
            return self

        if len(self.admin_api_key) < 32:
            raise ValueError(
                "WRBT_ADMIN_API_KEY must be at least 32 characters when WRBT_ENV=production. "
                "Generate with: openssl rand -base64 32"
            )

        for origin in self.cors_origins:
            if not origin.startswith(("http://", "https://")):
                raise ValueError(f"CORS origin must start with http:// or https://. Got: {origin}")

        return self

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance (singleton, loaded once at import)
settings = AppSettings()
