"""OAuth 2.0 authorization code dialect.

Shared machinery for providers that follow RFC 6749's authorization code
grant: authorization URL construction, code exchange, refresh, and the
profile fetch skeleton. Concrete providers supply their endpoints and the
mapping from their profile payload to User.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, ClassVar, Dict, Optional
from urllib.parse import parse_qsl, urlencode

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from provider_auth.core.auth.errors import ExchangeError, ParseError, PreconditionError
from provider_auth.core.auth.provider import Params, Provider, Session
from provider_auth.domain.models import ZERO_TIME, Timestamp, Token, User, utc_now
from provider_auth.domain.models.profile import OptionalStr, ProfilePayload

logger = logging.getLogger(__name__)


class OAuth2Session(Session):
    """Session for OAuth2 authorization code providers.

    Wire format:
        {"AuthURL":"","AccessToken":"","RefreshToken":"","ExpiresAt":"0001-01-01T00:00:00Z"}
    """
    access_token: str = Field("", alias="AccessToken")
    refresh_token: str = Field("", alias="RefreshToken")
    expires_at: Timestamp = Field(ZERO_TIME, alias="ExpiresAt")


class StandardProfile(ProfilePayload):
    """OpenID Connect UserInfo claims"""
    sub: OptionalStr = ""
    email: OptionalStr = ""
    name: OptionalStr = ""
    given_name: OptionalStr = ""
    family_name: OptionalStr = ""
    preferred_username: OptionalStr = ""
    picture: OptionalStr = ""


class OAuth2Config(BaseModel):
    """Endpoint and client configuration of an OAuth2 provider.

    Attributes:
        client_id: OAuth 2.0 client ID
        client_secret: OAuth 2.0 client secret ("" for assertion-based clients)
        callback_url: Redirect URI registered with the provider
        auth_url: Authorization endpoint
        token_url: Token endpoint
        profile_url: User profile endpoint ("" when identity comes from the token)
        scopes: Scopes to request
    """
    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str = ""
    callback_url: str = ""
    auth_url: str
    token_url: str
    profile_url: str = ""
    scopes: tuple[str, ...] = ()

    def auth_code_url(self, state: str, **extra: str) -> str:
        """Build the authorization endpoint URL for the code grant."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "state": state,
        }
        if self.callback_url:
            params["redirect_uri"] = self.callback_url
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        params.update(extra)

        separator = "&" if "?" in self.auth_url else "?"
        return f"{self.auth_url}{separator}{urlencode(sorted(params.items()))}"


class OAuth2Provider(Provider):
    """Provider for the OAuth2 authorization code grant.

    Usable directly against any provider whose profile endpoint serves
    OpenID Connect UserInfo claims. Subclasses override _user_from_profile()
    for other payload shapes and _fetch_profile() when the endpoint is not a
    plain bearer-authenticated GET.
    """

    session_class: ClassVar[type[Session]] = OAuth2Session

    def __init__(
        self,
        name: str,
        config: OAuth2Config,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utc_now,
        **kwargs: Any,
    ):
        """Initialize OAuth2 provider.

        Args:
            name: Provider name
            config: Client and endpoint configuration
            http_client: Injected HTTP client (optional)
            clock: Source of the current time for token expiry
        """
        super().__init__(name, http_client=http_client, **kwargs)
        self.config = config
        self.clock = clock

    @property
    def client_id(self) -> str:
        return self.config.client_id

    @property
    def callback_url(self) -> str:
        return self.config.callback_url

    def begin_auth(self, state: str) -> OAuth2Session:
        """Build the authorization URL for this provider."""
        return OAuth2Session(auth_url=self.config.auth_code_url(state))

    async def authorize(self, session: Session, params: Params) -> str:
        """Exchange the callback authorization code for tokens."""
        sess = self._check_session(session)

        token = await self._exchange(
            {
                "grant_type": "authorization_code",
                "code": params.get("code", ""),
                "redirect_uri": self.config.callback_url,
            }
        )
        if not token.is_valid(self.clock()):
            raise ExchangeError(
                "invalid token received from provider", provider=self.name
            )

        self._store_token(sess, token)
        logger.info(f"{self.name} authorization code exchanged")
        return token.access_token

    async def fetch_user(self, session: Session) -> User:
        """Fetch the user profile and map it to User."""
        sess = self._check_session(session)
        if not sess.access_token:
            # data is not yet retrieved since access token is still empty
            raise PreconditionError(
                f"{self.name} cannot get user information without accessToken",
                provider=self.name,
            )

        payload = await self._fetch_profile(sess.access_token)
        try:
            fields = self._user_from_profile(payload)
        except PydanticValidationError as e:
            raise ParseError(f"{self.name} returned malformed user information: {e}", provider=self.name) from e
        return User(
            provider=self.name,
            access_token=sess.access_token,
            refresh_token=sess.refresh_token,
            expires_at=sess.expires_at,
            raw_data=payload,
            **fields,
        )

    def refresh_token_available(self) -> bool:
        return True

    async def refresh_token(self, refresh_token: str) -> Token:
        """Get a new access token based on the refresh token."""
        token = await self._exchange(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        if not token.refresh_token:
            # Some providers don't rotate
            token = token.model_copy(update={"refresh_token": refresh_token})
        logger.info(f"{self.name} access token refreshed")
        return token

    def _client_secret(self) -> str:
        return self.config.client_secret

    def _store_token(self, session: OAuth2Session, token: Token) -> None:
        session.access_token = token.access_token
        session.refresh_token = token.refresh_token
        session.expires_at = token.expires_at

    async def _exchange(self, data: Dict[str, str]) -> Token:
        """POST a grant to the token endpoint and parse the token response.

        Raises:
            ExchangeError: On non-success status or a response without access_token
        """
        form = dict(data)
        form["client_id"] = self.config.client_id
        form["client_secret"] = self._client_secret()

        response = await self._request(
            "POST",
            self.config.token_url,
            data=form,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
        )

        if not response.is_success:
            logger.error(f"{self.name} token exchange failed: {response.status_code}")
            raise ExchangeError(
                f"{self.name} token exchange failed: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
                body=response.text,
            )

        values = self._parse_token_response(response)
        access_token = values.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ExchangeError(
                "server response missing access_token",
                provider=self.name,
                status_code=response.status_code,
                body=response.text,
            )

        return Token(
            access_token=access_token,
            token_type=str(values.get("token_type") or ""),
            refresh_token=str(values.get("refresh_token") or ""),
            expires_at=self._expiry(values.get("expires_in")),
            id_token=str(values.get("id_token") or ""),
            raw=values,
        )

    def _parse_token_response(self, response: httpx.Response) -> Dict[str, Any]:
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if content_type in ("application/x-www-form-urlencoded", "text/plain"):
            return dict(parse_qsl(response.text))

        try:
            values = response.json()
        except ValueError as e:
            raise ExchangeError(
                f"{self.name} returned a malformed token response",
                provider=self.name,
                status_code=response.status_code,
                body=response.text,
            ) from e
        if not isinstance(values, dict):
            raise ExchangeError(
                f"{self.name} returned a malformed token response",
                provider=self.name,
                status_code=response.status_code,
                body=response.text,
            )
        return values

    def _expiry(self, expires_in: Any) -> datetime:
        try:
            seconds = int(expires_in)
        except (TypeError, ValueError):
            return ZERO_TIME
        if seconds <= 0:
            return ZERO_TIME
        return self.clock() + timedelta(seconds=seconds)

    async def _fetch_profile(self, access_token: str) -> Dict[str, Any]:
        """GET the profile endpoint with a bearer token."""
        response = await self._request(
            "GET",
            self.config.profile_url,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )
        return self._decode_profile(response)

    def _user_from_profile(self, payload: Dict[str, Any]) -> Dict[str, str]:
        """Map a profile payload to User field values.

        The default reads standard OpenID Connect UserInfo claims.
        """
        profile = StandardProfile.model_validate(payload)
        return {
            "user_id": profile.sub,
            "email": profile.email,
            "name": profile.name,
            "first_name": profile.given_name,
            "last_name": profile.family_name,
            "nick_name": profile.preferred_username,
            "avatar_url": profile.picture,
        }
