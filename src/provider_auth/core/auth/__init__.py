"""Identity provider abstraction layer.

Supports multiple protocol dialects behind one Provider/Session contract:
- oauth2: OAuth 2.0 authorization code (pcloa, nextcloud, generic)
- apple: OAuth 2.0 with a signed client assertion (Sign in with Apple)
- steam: OpenID 2.0
"""

from .provider import Provider, Session
from .oauth2 import OAuth2Config, OAuth2Provider, OAuth2Session
from .pcloa import PCLOAProvider
from .nextcloud import NextcloudProvider
from .apple import AppleProvider, AppleSession
from .steam import SteamProvider, SteamSession
from .registry import clear_providers, get_provider, get_providers, use_providers
from .factory import build_providers, register_configured_providers

__all__ = [
    "Provider",
    "Session",
    "OAuth2Config",
    "OAuth2Provider",
    "OAuth2Session",
    "PCLOAProvider",
    "NextcloudProvider",
    "AppleProvider",
    "AppleSession",
    "SteamProvider",
    "SteamSession",
    "use_providers",
    "get_provider",
    "get_providers",
    "clear_providers",
    "build_providers",
    "register_configured_providers",
]
