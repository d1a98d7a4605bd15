"""FaultMaven Provider Auth

Pluggable third-party identity providers behind one Provider/Session contract.
"""

from provider_auth.core.auth import (
    AppleProvider,
    NextcloudProvider,
    OAuth2Provider,
    PCLOAProvider,
    Provider,
    Session,
    SteamProvider,
    get_provider,
    use_providers,
)
from provider_auth.core.auth.errors import AuthenticationError
from provider_auth.domain.models import Token, User
from provider_auth.infrastructure.auth.client_secret import ClientSecretSigner, SecretParams, make_secret

__version__ = "1.0.0"

__all__ = [
    "Provider",
    "Session",
    "OAuth2Provider",
    "PCLOAProvider",
    "NextcloudProvider",
    "AppleProvider",
    "SteamProvider",
    "use_providers",
    "get_provider",
    "User",
    "Token",
    "AuthenticationError",
    "ClientSecretSigner",
    "SecretParams",
    "make_secret",
]
