"""Process-wide provider registry.

Hosts register providers once at startup and look them up by name when
handling a login route (e.g. /auth/{provider}/callback).
"""

import logging
from typing import Dict

from provider_auth.core.auth.errors import ProviderNotFoundError
from provider_auth.core.auth.provider import Provider

logger = logging.getLogger(__name__)

_providers: Dict[str, Provider] = {}


def use_providers(*providers: Provider) -> None:
    """Register providers under their current names.

    A provider registered under a name already in use replaces the
    previous one.
    """
    for provider in providers:
        _providers[provider.name] = provider
        logger.info(f"Registered identity provider: {provider.name} ({provider.__class__.__name__})")


def get_provider(name: str) -> Provider:
    """Get a registered provider by name.

    Raises:
        ProviderNotFoundError: If no provider is registered under name
    """
    try:
        return _providers[name]
    except KeyError:
        raise ProviderNotFoundError(f"no provider for {name} exists", provider=name) from None


def get_providers() -> Dict[str, Provider]:
    """Get a copy of the name -> provider mapping."""
    return dict(_providers)


def clear_providers() -> None:
    """Remove every registered provider (for testing)."""
    _providers.clear()
