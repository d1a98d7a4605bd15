"""Identity provider factory.

Builds the providers configured through environment variables and
registers them.
"""

import logging
from typing import List, Optional

import httpx

from provider_auth.config.settings import Settings, get_settings
from provider_auth.core.auth.provider import Provider
from provider_auth.core.auth.registry import use_providers
from provider_auth.infrastructure.auth.client_secret import ClientSecretSigner

logger = logging.getLogger(__name__)


def build_providers(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> List[Provider]:
    """Instantiate every provider whose required settings are present.

    Required settings per provider:
    - pcloa: PCLOA_CLIENT_ID, PCLOA_CLIENT_SECRET, PCLOA_CALLBACK_URL
    - nextcloud: NEXTCLOUD_URL, NEXTCLOUD_CLIENT_ID, NEXTCLOUD_CLIENT_SECRET, NEXTCLOUD_CALLBACK_URL
    - apple: APPLE_CLIENT_ID, APPLE_CALLBACK_URL and either APPLE_CLIENT_SECRET
      or APPLE_TEAM_ID + APPLE_KEY_ID + APPLE_PRIVATE_KEY_PATH
    - steam: STEAM_API_KEY, STEAM_CALLBACK_URL

    Args:
        settings: Settings to read (default: cached environment settings)
        http_client: Shared HTTP client handed to every provider (optional)

    Returns:
        Configured providers, possibly empty

    Raises:
        ValueError: If Apple is configured without any client secret source
        KeyParseError: If the Apple signing key cannot be loaded
    """
    settings = settings or get_settings()
    common = {"http_client": http_client, "timeout": settings.http_timeout_seconds}
    providers: List[Provider] = []

    if settings.pcloa_client_id and settings.pcloa_client_secret and settings.pcloa_callback_url:
        from provider_auth.core.auth.pcloa import PCLOAProvider

        providers.append(
            PCLOAProvider(
                client_id=settings.pcloa_client_id,
                client_secret=settings.pcloa_client_secret,
                callback_url=settings.pcloa_callback_url,
                scopes=settings.pcloa_scopes,
                auth_url=settings.pcloa_auth_url,
                token_url=settings.pcloa_token_url,
                profile_url=settings.pcloa_profile_url,
                **common,
            )
        )

    if all(
        [
            settings.nextcloud_url,
            settings.nextcloud_client_id,
            settings.nextcloud_client_secret,
            settings.nextcloud_callback_url,
        ]
    ):
        from provider_auth.core.auth.nextcloud import NextcloudProvider

        providers.append(
            NextcloudProvider(
                client_id=settings.nextcloud_client_id,
                client_secret=settings.nextcloud_client_secret,
                callback_url=settings.nextcloud_callback_url,
                base_url=settings.nextcloud_url,
                **common,
            )
        )

    if settings.apple_client_id and settings.apple_callback_url:
        from provider_auth.core.auth.apple import AppleProvider

        if settings.apple_private_key_path:
            if not (settings.apple_team_id and settings.apple_key_id):
                raise ValueError(
                    "Apple signing key requires: APPLE_TEAM_ID, APPLE_KEY_ID"
                )
            secret = ClientSecretSigner.from_file(
                settings.apple_private_key_path,
                team_id=settings.apple_team_id,
                key_id=settings.apple_key_id,
                client_id=settings.apple_client_id,
                lifetime_seconds=settings.apple_secret_lifetime_seconds,
            )
        elif settings.apple_client_secret:
            secret = settings.apple_client_secret
        else:
            raise ValueError(
                "Apple provider requires APPLE_CLIENT_SECRET or "
                "APPLE_TEAM_ID, APPLE_KEY_ID, APPLE_PRIVATE_KEY_PATH"
            )

        providers.append(
            AppleProvider(
                client_id=settings.apple_client_id,
                secret=secret,
                callback_url=settings.apple_callback_url,
                scopes=settings.apple_scopes,
                **common,
            )
        )

    if settings.steam_api_key and settings.steam_callback_url:
        from provider_auth.core.auth.steam import SteamProvider

        providers.append(
            SteamProvider(
                api_key=settings.steam_api_key,
                callback_url=settings.steam_callback_url,
                nonce_max_age=settings.openid_nonce_max_age_seconds,
                **common,
            )
        )

    logger.info(f"Identity providers configured: {[p.name for p in providers] or 'none'}")
    return providers


def register_configured_providers(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> List[Provider]:
    """Build the configured providers and add them to the registry."""
    providers = build_providers(settings, http_client=http_client)
    use_providers(*providers)
    return providers
