"""Configuration Settings for Provider Auth

Manages environment variables and provider credentials.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Library info
    service_name: str = "fm-provider-auth"
    service_version: str = "1.0.0"

    # HTTP transport
    http_timeout_seconds: float = 10.0

    # OpenID 2.0 replay protection
    openid_nonce_max_age_seconds: int = 300

    # PCLOA (OAuth2)
    pcloa_client_id: Optional[str] = None
    pcloa_client_secret: Optional[str] = None
    pcloa_callback_url: Optional[str] = None
    pcloa_auth_url: Optional[str] = None
    pcloa_token_url: Optional[str] = None
    pcloa_profile_url: Optional[str] = None
    pcloa_scopes: list[str] = []

    # Nextcloud (OAuth2)
    nextcloud_url: Optional[str] = None
    nextcloud_client_id: Optional[str] = None
    nextcloud_client_secret: Optional[str] = None
    nextcloud_callback_url: Optional[str] = None

    # Apple (OAuth2 with signed client assertion)
    apple_client_id: Optional[str] = None
    apple_callback_url: Optional[str] = None
    apple_client_secret: Optional[str] = None  # Pre-signed secret, used when no key is set
    apple_team_id: Optional[str] = None
    apple_key_id: Optional[str] = None
    apple_private_key_path: Optional[str] = None
    apple_secret_lifetime_seconds: int = 3600
    apple_scopes: list[str] = ["name", "email"]

    # Steam (OpenID 2.0)
    steam_api_key: Optional[str] = None
    steam_callback_url: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()
