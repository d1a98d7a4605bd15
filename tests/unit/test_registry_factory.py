"""Unit tests for the provider registry and the settings-driven factory"""

import jwt
import pytest

from provider_auth.config.settings import Settings
from provider_auth.core.auth import (
    AppleProvider,
    NextcloudProvider,
    PCLOAProvider,
    SteamProvider,
    build_providers,
    clear_providers,
    get_provider,
    get_providers,
    register_configured_providers,
    use_providers,
)
from provider_auth.core.auth.errors import AuthenticationError, KeyParseError, ProviderNotFoundError


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


PCLOA_SETTINGS = {
    "pcloa_client_id": "cid",
    "pcloa_client_secret": "secret",
    "pcloa_callback_url": "https://app.example.com/auth/pcloa/callback",
}


@pytest.mark.unit
class TestRegistry:
    """Test provider registration and lookup"""

    def test_use_and_get(self):
        provider = PCLOAProvider("cid", "secret", "https://app.example.com/cb")

        use_providers(provider)

        assert get_provider("pcloa") is provider

    def test_get_unknown_provider(self):
        with pytest.raises(ProviderNotFoundError) as exc_info:
            get_provider("nope")

        assert str(exc_info.value) == "no provider for nope exists"
        assert isinstance(exc_info.value, AuthenticationError)
        assert isinstance(exc_info.value, KeyError)

    def test_registered_under_current_name(self):
        first = PCLOAProvider("cid", "secret", "https://app.example.com/cb")
        second = PCLOAProvider("cid-2", "secret", "https://app.example.com/cb")
        second.name = "pcloa-staging"

        use_providers(first, second)

        assert get_provider("pcloa") is first
        assert get_provider("pcloa-staging") is second
        assert set(get_providers()) == {"pcloa", "pcloa-staging"}

    def test_same_name_replaces(self):
        first = PCLOAProvider("cid", "secret", "https://app.example.com/cb")
        second = PCLOAProvider("cid-2", "secret", "https://app.example.com/cb")

        use_providers(first)
        use_providers(second)

        assert get_provider("pcloa") is second

    def test_get_providers_returns_copy(self):
        use_providers(SteamProvider("key", "https://app.example.com/cb"))

        get_providers().clear()

        assert "steam" in get_providers()

    def test_clear_providers(self):
        use_providers(SteamProvider("key", "https://app.example.com/cb"))

        clear_providers()

        assert get_providers() == {}


@pytest.mark.unit
class TestBuildProviders:
    """Test providers built from settings"""

    def test_nothing_configured(self):
        assert build_providers(_settings()) == []

    def test_pcloa_configured(self):
        providers = build_providers(
            _settings(**PCLOA_SETTINGS, pcloa_scopes=["profile"], http_timeout_seconds=3.0)
        )

        assert len(providers) == 1
        provider = providers[0]
        assert isinstance(provider, PCLOAProvider)
        assert provider.config.scopes == ("profile",)
        assert provider.timeout == 3.0

    def test_pcloa_incomplete_is_skipped(self):
        assert build_providers(_settings(pcloa_client_id="cid")) == []

    def test_nextcloud_configured(self):
        providers = build_providers(
            _settings(
                nextcloud_url="https://cloud.example.com",
                nextcloud_client_id="cid",
                nextcloud_client_secret="secret",
                nextcloud_callback_url="https://app.example.com/auth/nextcloud/callback",
            )
        )

        assert isinstance(providers[0], NextcloudProvider)
        assert providers[0].config.token_url == "https://cloud.example.com/apps/oauth2/api/v1/token"

    def test_steam_configured(self):
        providers = build_providers(
            _settings(
                steam_api_key="key",
                steam_callback_url="https://app.example.com/auth/steam/callback",
                openid_nonce_max_age_seconds=60,
            )
        )

        assert isinstance(providers[0], SteamProvider)
        assert providers[0].nonce_max_age == 60

    def test_apple_with_static_secret(self):
        providers = build_providers(
            _settings(
                apple_client_id="com.example.web",
                apple_callback_url="https://app.example.com/auth/apple/callback",
                apple_client_secret="presigned",
            )
        )

        provider = providers[0]
        assert isinstance(provider, AppleProvider)
        assert provider._client_secret() == "presigned"
        assert provider.config.scopes == ("name", "email")

    def test_apple_with_signing_key(self, tmp_path, ec_private_key_pem, ec_private_key):
        key_path = tmp_path / "AuthKey_ABC123DEFG.p8"
        key_path.write_text(ec_private_key_pem)

        providers = build_providers(
            _settings(
                apple_client_id="com.example.web",
                apple_callback_url="https://app.example.com/auth/apple/callback",
                apple_team_id="TK12345678",
                apple_key_id="ABC123DEFG",
                apple_private_key_path=str(key_path),
                apple_secret_lifetime_seconds=300,
            )
        )

        secret = providers[0]._client_secret()
        claims = jwt.decode(
            secret,
            ec_private_key.public_key(),
            algorithms=["ES256"],
            audience="https://appleid.apple.com",
        )
        assert claims["sub"] == "com.example.web"
        assert claims["exp"] - claims["iat"] == 300

    def test_apple_without_secret(self):
        with pytest.raises(ValueError, match="APPLE_CLIENT_SECRET"):
            build_providers(
                _settings(
                    apple_client_id="com.example.web",
                    apple_callback_url="https://app.example.com/auth/apple/callback",
                )
            )

    def test_apple_key_without_ids(self, tmp_path, ec_private_key_pem):
        key_path = tmp_path / "AuthKey.p8"
        key_path.write_text(ec_private_key_pem)

        with pytest.raises(ValueError, match="APPLE_TEAM_ID"):
            build_providers(
                _settings(
                    apple_client_id="com.example.web",
                    apple_callback_url="https://app.example.com/auth/apple/callback",
                    apple_private_key_path=str(key_path),
                )
            )

    def test_apple_unreadable_key(self, tmp_path):
        with pytest.raises(KeyParseError):
            build_providers(
                _settings(
                    apple_client_id="com.example.web",
                    apple_callback_url="https://app.example.com/auth/apple/callback",
                    apple_team_id="TK12345678",
                    apple_key_id="ABC123DEFG",
                    apple_private_key_path=str(tmp_path / "missing.p8"),
                )
            )

    def test_register_configured_providers(self):
        providers = register_configured_providers(_settings(**PCLOA_SETTINGS))

        assert get_provider("pcloa") is providers[0]
