"""Tests for deployment configuration and validation."""

import pytest
from pydantic import ValidationError
from pydantic_settings import SettingsConfigDict

from wrbt_api.config.settings import AppSettings

# Valid 32+ character admin key (generated with: openssl rand -base64 32)
TEST_ADMIN_KEY = "2VgT3TJSLHTtLvnvK+KQhNzzwMDtNcZrtIb4Q+BIP5I="


class _IsolatedAppSettings(AppSettings):
    """Test-only subclass that disables environment loading."""

    model_config = SettingsConfigDict(
        env_file=None,
        env_prefix="",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Only use init_settings source (constructor args), ignore all env sources."""
        return (init_settings,)


def create_test_settings(**kwargs):
    """Create AppSettings instance for testing without env loading.

    Note: When using validation_alias in Pydantic Settings, you must pass
    the ALIAS names (e.g., WRBT_ENV) not the field names (e.g., wrbt_env).
    Nested settings are passed as dicts so the test environment
    (WRBT_TOKEN_HASHING=plaintext) does not leak in.
    """
    kwargs.setdefault("tokens", {"WRBT_TOKEN_HASHING": "bcrypt"})
    return _IsolatedAppSettings(**kwargs)


class TestTokenHashingPolicy:
    """Plaintext token storage is a development-only convenience."""

    def test_plaintext_allowed_in_development(self):
        settings = create_test_settings(
            WRBT_ENV="development",
            WRBT_ADMIN_API_KEY="dev",
            tokens={"WRBT_TOKEN_HASHING": "plaintext"},
        )
        assert settings.tokens.hashing_mode == "plaintext"
        assert settings.is_development

    @pytest.mark.parametrize("env", ["production", "staging", "test"])
    def test_plaintext_rejected_outside_development(self, env):
        with pytest.raises(ValidationError, match="only allowed when WRBT_ENV=development"):
            create_test_settings(
                WRBT_ENV=env,
                WRBT_ADMIN_API_KEY=TEST_ADMIN_KEY,
                tokens={"WRBT_TOKEN_HASHING": "plaintext"},
            )

    def test_bcrypt_is_default(self):
        settings = create_test_settings(WRBT_ENV="production", WRBT_ADMIN_API_KEY=TEST_ADMIN_KEY)
        assert settings.tokens.hashing_mode == "bcrypt"
        assert settings.tokens.bcrypt_rounds == 12

    def test_unknown_hashing_mode_rejected(self):
        with pytest.raises(ValidationError):
            create_test_settings(
                WRBT_ADMIN_API_KEY=TEST_ADMIN_KEY, tokens={"WRBT_TOKEN_HASHING": "md5"}
            )

    @pytest.mark.parametrize("length", [5, 9])
    def test_pairing_code_length_bounds(self, length):
        with pytest.raises(ValidationError):
            create_test_settings(
                WRBT_ADMIN_API_KEY=TEST_ADMIN_KEY,
                tokens={"WRBT_TOKEN_HASHING": "bcrypt", "WRBT_PAIRING_CODE_LENGTH": length},
            )


class TestProductionValidation:
    """Production-only requirements."""

    def test_admin_key_is_required(self):
        with pytest.raises(ValidationError, match="WRBT_ADMIN_API_KEY"):
            create_test_settings(WRBT_ENV="development")

    def test_short_admin_key_rejected_in_production(self):
        with pytest.raises(ValidationError, match="at least 32 characters"):
            create_test_settings(WRBT_ENV="production", WRBT_ADMIN_API_KEY="short")

    def test_short_admin_key_allowed_in_development(self):
        settings = create_test_settings(WRBT_ENV="development", WRBT_ADMIN_API_KEY="short")
        assert settings.admin_api_key == "short"

    def test_cors_origin_must_have_protocol(self):
        with pytest.raises(ValidationError, match="must start with http"):
            create_test_settings(
                WRBT_ENV="production",
                WRBT_ADMIN_API_KEY=TEST_ADMIN_KEY,
                cors_origins="app.example.com",
            )

    def test_valid_production_configuration(self):
        settings = create_test_settings(
            WRBT_ENV="production",
            WRBT_ADMIN_API_KEY=TEST_ADMIN_KEY,
            cors_origins="https://console.example.com,https://admin.example.com",
        )
        assert settings.cors_origins == [
            "https://console.example.com",
            "https://admin.example.com",
        ]
        assert not settings.is_development


class TestListSettings:
    def test_protected_prefixes_from_comma_separated_string(self):
        settings = create_test_settings(
            WRBT_ADMIN_API_KEY=TEST_ADMIN_KEY,
            WRBT_BOT_PROTECTED_PREFIXES="/api/bot, /api/v2/bot",
        )
        assert settings.bot_protected_prefixes == ["/api/bot", "/api/v2/bot"]

    def test_protected_prefixes_from_json_string(self):
        settings = create_test_settings(
            WRBT_ADMIN_API_KEY=TEST_ADMIN_KEY,
            WRBT_BOT_PROTECTED_PREFIXES='["/api/bot"]',
        )
        assert settings.bot_protected_prefixes == ["/api/bot"]
