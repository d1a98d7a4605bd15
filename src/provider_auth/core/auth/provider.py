"""Abstract identity provider and session interfaces.

This module defines the contract that every identity provider dialect must
implement (OAuth2 authorization code, OAuth2 with a signed client assertion,
OpenID 2.0). A host drives all of them the same way:

    session = provider.begin_auth(state)          # redirect to session.get_auth_url()
    cookie = session.marshal()                    # persist across the redirect
    session = provider.unmarshal_session(cookie)
    await provider.authorize(session, callback_params)
    user = await provider.fetch_user(session)
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, ClassVar, Dict, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from provider_auth.core.auth.errors import (
    DeserializationError,
    FetchError,
    NotSupportedError,
    ParseError,
    PreconditionError,
    TransportError,
)
from provider_auth.domain.models import Token, User

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 10.0


class Session(BaseModel, ABC):
    """Mutable state of one login attempt.

    Subclasses declare their fields with the wire key as alias; declaration
    order is serialization order and every field is always written, so the
    marshaled text is stable and round-trips exactly.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    auth_url: str = Field("", alias="AuthURL")

    def get_auth_url(self) -> str:
        """Return the provider authorization URL.

        Raises:
            PreconditionError: If begin_auth never populated the URL
        """
        if not self.auth_url:
            raise PreconditionError("an AuthURL has not been set")
        return self.auth_url

    def marshal(self) -> str:
        """Serialize to compact JSON with the fixed key set."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def unmarshal(cls, data: str) -> "Session":
        """Rebuild a session from marshal() output.

        Missing keys take their zero value and unknown keys are ignored.

        Raises:
            DeserializationError: If data is not a JSON object of this shape
        """
        try:
            return cls.model_validate_json(data)
        except PydanticValidationError as e:
            raise DeserializationError(f"invalid {cls.__name__} data: {e}") from e

    def __str__(self) -> str:
        return self.marshal()


Params = Mapping[str, Any]


class Provider(ABC):
    """Abstract interface for identity providers.

    Configuration is fixed at construction and may be shared across
    concurrent flows; only the display name can be rebound, to tell apart
    several instances of the same provider type.

    Network calls go through an injected httpx.AsyncClient when one is
    given (its timeout, proxies and transport apply) and through a
    short-lived client otherwise. Failures are never retried.
    """

    session_class: ClassVar[type[Session]]

    def __init__(
        self,
        name: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        self._name = name
        self.http_client = http_client
        self.timeout = timeout

    @property
    def name(self) -> str:
        """Name used to retrieve this provider from the registry."""
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value

    @abstractmethod
    def begin_auth(self, state: str) -> Session:
        """Start a login attempt.

        Builds the provider authorization URL; never contacts the network.

        Args:
            state: Anti-forgery token echoed back on the callback

        Returns:
            New session with only the authorization URL populated
        """
        pass

    @abstractmethod
    async def authorize(self, session: Session, params: Params) -> str:
        """Complete the callback leg of the flow.

        Exchanges the callback payload at the provider and stores the
        resulting credential in the session. The session is left untouched
        when the exchange fails.

        Args:
            session: Session returned by begin_auth
            params: Callback query or form parameters

        Returns:
            Access credential (access token, or response nonce for OpenID 2.0)

        Raises:
            ExchangeError: If the provider rejects the exchange
            ValidationError: If the returned assertion fails integrity checks
        """
        pass

    @abstractmethod
    async def fetch_user(self, session: Session) -> User:
        """Fetch the canonical user for an authorized session.

        Raises:
            PreconditionError: If the session holds no credential (no network call is made)
            FetchError: If the profile endpoint answers with a non-success status
            ParseError: If the profile response cannot be parsed
        """
        pass

    def refresh_token_available(self) -> bool:
        """Whether refresh_token() is supported by this provider."""
        return False

    async def refresh_token(self, refresh_token: str) -> Token:
        """Exchange a refresh token for a new access credential.

        Raises:
            NotSupportedError: If the provider has no refresh capability
        """
        raise NotSupportedError(
            f"{self.name} does not support refreshing tokens", provider=self.name
        )

    def unmarshal_session(self, data: str) -> Session:
        """Rebuild this provider's session type from its marshaled text."""
        return self.session_class.unmarshal(data)

    def _check_session(self, session: Session) -> Any:
        if not isinstance(session, self.session_class):
            raise TypeError(
                f"{self.name} expects a {self.session_class.__name__}, "
                f"got {type(session).__name__}"
            )
        return session

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, translating transport failures into TransportError."""
        try:
            async with self._client() as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{self.name} request to {url} failed: {e}")
            raise TransportError(f"{self.name} request failed: {e}", provider=self.name) from e

    def _decode_profile(self, response: httpx.Response) -> Dict[str, Any]:
        """Check the status and decode a JSON object profile body.

        Raises:
            FetchError: On non-success status
            ParseError: If the body is not a JSON object
        """
        if not response.is_success:
            raise FetchError(
                f"{self.name} responded with a {response.status_code} trying to fetch user information",
                provider=self.name,
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"{self.name} returned malformed user information: {e}", provider=self.name) from e
        if not isinstance(payload, dict):
            raise ParseError(f"{self.name} returned malformed user information", provider=self.name)
        return payload
