"""Authentication error taxonomy.

Every failure raised by a provider, session or the client secret builder
derives from AuthenticationError so hosts can catch the whole family at once.
"""

from typing import Optional


class AuthenticationError(Exception):
    """Authentication failed."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class PreconditionError(AuthenticationError):
    """Operation invoked on a session missing required prior state."""
    pass


class KeyParseError(AuthenticationError):
    """Private key is not a PKCS8-encoded P-256 elliptic curve key."""
    pass


class SigningError(AuthenticationError):
    """Signing the client assertion failed."""
    pass


class ExchangeError(AuthenticationError):
    """Token or assertion exchange was rejected by the provider endpoint."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(message, provider)
        self.status_code = status_code
        self.body = body


class ValidationError(AuthenticationError):
    """Returned assertion failed an integrity check."""
    pass


class FetchError(AuthenticationError):
    """Profile endpoint answered with a non-success status."""

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, provider)
        self.status_code = status_code


class ParseError(AuthenticationError):
    """Profile response body could not be parsed."""
    pass


class DeserializationError(AuthenticationError):
    """Serialized session text is malformed."""
    pass


class NotSupportedError(AuthenticationError):
    """Capability not offered by this provider."""
    pass


class TransportError(AuthenticationError):
    """Provider endpoint could not be reached."""
    pass


class ProviderNotFoundError(AuthenticationError, KeyError):
    """No provider registered under the requested name."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
