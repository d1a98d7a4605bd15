"""Sign in with Apple provider.

OAuth 2.0 authorization code flow where the client secret is a short-lived
ES256 JWT signed with the developer's private key instead of a static
string. Apple has no profile endpoint: the user's identity comes from the
ID token returned by the token exchange, which is verified against Apple's
published JWKS.

Example Configuration:
    APPLE_CLIENT_ID=com.example.web          # Services ID
    APPLE_TEAM_ID=TK12345678
    APPLE_KEY_ID=ABC123DEFG
    APPLE_PRIVATE_KEY_PATH=/app/config/AuthKey_ABC123DEFG.p8
    APPLE_CALLBACK_URL=https://app.example.com/auth/apple/callback
"""

import logging
from typing import Any, ClassVar, Dict, Iterable, Optional, Union

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field

from provider_auth.core.auth.errors import (
    ExchangeError,
    NotSupportedError,
    PreconditionError,
    ValidationError,
)
from provider_auth.core.auth.oauth2 import OAuth2Config, OAuth2Provider, OAuth2Session
from provider_auth.core.auth.provider import Params, Session
from provider_auth.domain.models import Token, User
from provider_auth.domain.models.profile import OptionalStr, ProfilePayload
from provider_auth.infrastructure.auth.client_secret import ClientSecretSigner

logger = logging.getLogger(__name__)

AUTH_URL = "https://appleid.apple.com/auth/authorize"
TOKEN_URL = "https://appleid.apple.com/auth/token"
KEYS_URL = "https://appleid.apple.com/auth/keys"
ISSUER = "https://appleid.apple.com"


class AppleID(BaseModel):
    """Verified claims of an Apple ID token."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sub: str = Field("", alias="Sub")
    email: str = Field("", alias="Email")
    is_private_email: bool = Field(False, alias="IsPrivateEmail")


class AppleSession(OAuth2Session):
    """Session for Sign in with Apple.

    Wire format:
        {"AuthURL":"","AccessToken":"","RefreshToken":"","ExpiresAt":"0001-01-01T00:00:00Z",
         "ID":{"Sub":"","Email":"","IsPrivateEmail":false}}
    """
    id: AppleID = Field(default_factory=AppleID, alias="ID")


class AppleIDClaims(ProfilePayload):
    """Identity claims read from a verified ID token."""
    sub: OptionalStr = ""
    email: OptionalStr = ""
    is_private_email: Any = None

    @property
    def private_email(self) -> bool:
        # Apple sends this claim either as a boolean or as "true"/"false"
        return self.is_private_email is True or self.is_private_email == "true"


class AppleProvider(OAuth2Provider):
    """Sign in with Apple provider.

    The client secret is either a pre-signed JWT string (see
    make_secret) or a ClientSecretSigner that mints a fresh one for
    every token request.
    """

    session_class: ClassVar[type[Session]] = AppleSession

    def __init__(
        self,
        client_id: str,
        secret: Union[str, ClientSecretSigner],
        callback_url: str,
        scopes: Iterable[str] = (),
        **kwargs: Any,
    ):
        """Initialize Apple provider.

        Args:
            client_id: Services ID registered with Apple
            secret: Pre-signed client secret or a signer
            callback_url: Redirect URI
            scopes: Scopes to request ("name", "email")
        """
        self._signer: Optional[ClientSecretSigner] = None
        static_secret = ""
        if isinstance(secret, ClientSecretSigner):
            self._signer = secret
        else:
            static_secret = secret

        config = OAuth2Config(
            client_id=client_id,
            client_secret=static_secret,
            callback_url=callback_url,
            auth_url=AUTH_URL,
            token_url=TOKEN_URL,
            scopes=tuple(scopes),
        )
        super().__init__("apple", config, **kwargs)

        # JWKS (lazy-loaded, refetched when an unknown key id shows up)
        self._jwks: Optional[dict] = None

    def begin_auth(self, state: str) -> AppleSession:
        """Build the Apple authorization URL.

        When name or email is requested Apple only answers with a POST, so
        response_mode=form_post is added.
        """
        extra = {"response_mode": "form_post"} if self.config.scopes else {}
        return AppleSession(auth_url=self.config.auth_code_url(state, **extra))

    async def authorize(self, session: Session, params: Params) -> str:
        """Exchange the authorization code and verify the returned ID token."""
        sess = self._check_session(session)

        token = await self._exchange(
            {
                "grant_type": "authorization_code",
                "code": params.get("code", ""),
                "redirect_uri": self.config.callback_url,
            }
        )
        if not token.is_valid(self.clock()):
            raise ExchangeError("invalid token received from provider", provider=self.name)

        identity = AppleID()
        if token.id_token:
            claims = AppleIDClaims.model_validate(
                await self._decode_id_token(token.id_token, token.access_token)
            )
            identity = AppleID(
                sub=claims.sub,
                email=claims.email,
                is_private_email=claims.private_email,
            )

        self._store_token(sess, token)
        sess.id = identity
        logger.info(f"{self.name} authorization code exchanged")
        return token.access_token

    async def fetch_user(self, session: Session) -> User:
        """Build the user from the verified ID token claims held by the session."""
        sess = self._check_session(session)
        if not sess.access_token:
            raise PreconditionError(
                f"no access token obtained for session with provider {self.name}",
                provider=self.name,
            )

        return User(
            provider=self.name,
            user_id=sess.id.sub,
            email=sess.id.email,
            access_token=sess.access_token,
            refresh_token=sess.refresh_token,
            expires_at=sess.expires_at,
            raw_data={"IsPrivateEmail": sess.id.is_private_email},
        )

    def refresh_token_available(self) -> bool:
        return False

    async def refresh_token(self, refresh_token: str) -> Token:
        raise NotSupportedError(
            f"{self.name} does not support refreshing tokens", provider=self.name
        )

    def _client_secret(self) -> str:
        if self._signer is not None:
            return self._signer.sign()
        return self.config.client_secret

    async def _get_jwks(self, refresh: bool = False) -> dict:
        """Fetch Apple's JSON Web Key Set for ID token validation."""
        if self._jwks is None or refresh:
            response = await self._request("GET", KEYS_URL, headers={"Accept": "application/json"})
            if not response.is_success:
                raise ExchangeError(
                    f"{self.name} responded with a {response.status_code} trying to fetch signing keys",
                    provider=self.name,
                    status_code=response.status_code,
                    body=response.text,
                )
            try:
                jwks = response.json()
            except ValueError as e:
                raise ExchangeError(f"{self.name} returned malformed signing keys", provider=self.name) from e
            if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
                raise ExchangeError(f"{self.name} returned malformed signing keys", provider=self.name)
            self._jwks = jwks
            logger.info(f"{self.name} JWKS loaded from {KEYS_URL}")
        return self._jwks

    async def _decode_id_token(self, id_token: str, access_token: str) -> Dict[str, Any]:
        """Decode and validate an Apple ID token.

        Validates signature, expiration, issuer, audience and at_hash.

        Raises:
            ValidationError: If the token fails any check
        """
        try:
            kid = jwt.get_unverified_header(id_token).get("kid")
        except JWTError as e:
            raise ValidationError(f"malformed id_token: {e}", provider=self.name) from e

        jwks = await self._get_jwks()
        if kid and not any(isinstance(key, dict) and key.get("kid") == kid for key in jwks["keys"]):
            jwks = await self._get_jwks(refresh=True)

        try:
            return jwt.decode(
                id_token,
                jwks,
                algorithms=["RS256"],
                issuer=ISSUER,
                audience=self.config.client_id,
                access_token=access_token,
            )
        except JWTError as e:
            logger.warning(f"{self.name} id_token validation failed: {e}")
            raise ValidationError(f"invalid id_token: {e}", provider=self.name) from e
