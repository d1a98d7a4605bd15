"""Steam OpenID 2.0 provider.

Steam authenticates users with OpenID 2.0 rather than OAuth2. There is no
access token: the flow ends with a verified claimed identifier, from which
the 64-bit SteamID is taken, and profile data is read from the Steam Web
API using the application's API key.

Flow:
    1. begin_auth: redirect to the Steam OP with mode=checkid_setup
    2. authorize: check the positive assertion locally, then confirm it
       with the OP using mode=check_authentication (direct verification)
    3. fetch_user: GetPlayerSummaries for the verified SteamID
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, ClassVar, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

from provider_auth.core.auth.errors import (
    ExchangeError,
    ParseError,
    PreconditionError,
    ValidationError,
)
from provider_auth.core.auth.provider import Params, Provider, Session
from provider_auth.domain.models import User, utc_now
from provider_auth.domain.models.profile import OptionalStr, ProfilePayload

logger = logging.getLogger(__name__)

OPENID_ENDPOINT = "https://steamcommunity.com/openid/login"
PLAYER_SUMMARIES_URL = "https://api.steampowered.com/ISteamUser/GetPlayerSummaries/v0002/"

OPENID_NS = "http://specs.openid.net/auth/2.0"
OPENID_IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"
CLAIMED_ID_PATTERN = re.compile(r"^https?://steamcommunity\.com/openid/id/[0-9]{15,25}$")

# Fields an OP must cover with its signature for the assertion to be trusted
REQUIRED_SIGNED_FIELDS = ("claimed_id", "return_to", "response_nonce")

DEFAULT_NONCE_MAX_AGE = 300


class SteamSession(Session):
    """Session for Steam OpenID 2.0.

    Wire format:
        {"AuthURL":"","CallbackURL":"","SteamID":"","ResponseNonce":""}
    """
    callback_url: str = Field("", alias="CallbackURL")
    steam_id: str = Field("", alias="SteamID")
    response_nonce: str = Field("", alias="ResponseNonce")


class SteamPlayer(ProfilePayload):
    steamid: OptionalStr = ""
    personaname: OptionalStr = ""
    realname: OptionalStr = ""
    avatarfull: OptionalStr = ""
    loccountrycode: OptionalStr = ""


class SteamPlayerList(ProfilePayload):
    players: list[SteamPlayer] = Field(default_factory=list)


class SteamPlayerSummaries(ProfilePayload):
    response: SteamPlayerList = Field(default_factory=SteamPlayerList)


def parse_key_value_form(body: str) -> Dict[str, str]:
    """Parse an OpenID 2.0 key-value form body ("key:value" per line)."""
    values = {}
    for line in body.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            values[key.strip()] = value.strip()
    return values


class SteamProvider(Provider):
    """OpenID 2.0 provider for Steam.

    Example Configuration:
        STEAM_API_KEY=xxx
        STEAM_CALLBACK_URL=https://app.example.com/auth/steam/callback
    """

    session_class: ClassVar[type[Session]] = SteamSession

    def __init__(
        self,
        api_key: str,
        callback_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utc_now,
        nonce_max_age: int = DEFAULT_NONCE_MAX_AGE,
        **kwargs: Any,
    ):
        """Initialize Steam provider.

        Args:
            api_key: Steam Web API key
            callback_url: URL the OP returns the user to
            http_client: Injected HTTP client (optional)
            clock: Source of the current time for nonce freshness
            nonce_max_age: Accepted clock distance of response nonces, in seconds
        """
        super().__init__("steam", http_client=http_client, **kwargs)
        self.api_key = api_key
        self.callback_url = callback_url
        self.clock = clock
        self.nonce_max_age = nonce_max_age

    def begin_auth(self, state: str) -> SteamSession:
        """Build the Steam OpenID login URL.

        The anti-forgery state travels in the return_to URL, which the
        session keeps to match it against the assertion later.
        """
        return_to = self._return_to(state)
        callback = urlsplit(self.callback_url)

        params = {
            "openid.claimed_id": OPENID_IDENTIFIER_SELECT,
            "openid.identity": OPENID_IDENTIFIER_SELECT,
            "openid.mode": "checkid_setup",
            "openid.ns": OPENID_NS,
            "openid.realm": f"{callback.scheme}://{callback.netloc}",
            "openid.return_to": return_to,
        }
        return SteamSession(
            auth_url=f"{OPENID_ENDPOINT}?{urlencode(sorted(params.items()))}",
            callback_url=return_to,
        )

    async def authorize(self, session: Session, params: Params) -> str:
        """Verify the OP's positive assertion.

        Returns:
            The response nonce of the verified assertion

        Raises:
            ValidationError: If the assertion fails a local or OP-side check
            ExchangeError: If the OP rejects the verification request
        """
        sess = self._check_session(session)

        if params.get("openid.mode") != "id_res":
            raise ValidationError('openid.mode must equal "id_res"', provider=self.name)
        if params.get("openid.return_to") != sess.callback_url:
            raise ValidationError(
                "openid.return_to must match the URL of the current request", provider=self.name
            )

        signed = [item for item in str(params.get("openid.signed", "")).split(",") if item]
        missing = [item for item in REQUIRED_SIGNED_FIELDS if item not in signed]
        if missing:
            raise ValidationError(
                f"assertion does not sign required fields: {', '.join(missing)}", provider=self.name
            )

        nonce = str(params.get("openid.response_nonce", ""))
        self._check_nonce(sess, nonce)

        claimed_id = str(params.get("openid.claimed_id", ""))
        if not CLAIMED_ID_PATTERN.match(claimed_id):
            raise ValidationError("invalid Steam ID pattern", provider=self.name)

        form = {
            "openid.assoc_handle": params.get("openid.assoc_handle", ""),
            "openid.signed": params.get("openid.signed", ""),
            "openid.sig": params.get("openid.sig", ""),
            "openid.ns": params.get("openid.ns", ""),
        }
        for item in signed:
            form[f"openid.{item}"] = params.get(f"openid.{item}", "")
        form["openid.mode"] = "check_authentication"

        response = await self._request("POST", OPENID_ENDPOINT, data=form)
        if not response.is_success:
            logger.error(f"{self.name} check_authentication failed: {response.status_code}")
            raise ExchangeError(
                f"{self.name} check_authentication failed: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
                body=response.text,
            )

        values = parse_key_value_form(response.text)
        if values.get("ns") != OPENID_NS:
            raise ValidationError("wrong ns in the response", provider=self.name)
        if values.get("is_valid") != "true":
            logger.warning(f"{self.name} rejected the OpenID assertion")
            raise ValidationError("unable to validate openId assertion", provider=self.name)

        sess.steam_id = claimed_id.rsplit("/", 1)[-1]
        sess.response_nonce = nonce
        logger.info(f"{self.name} OpenID assertion verified")
        return nonce

    async def fetch_user(self, session: Session) -> User:
        """Fetch the player summary of the verified SteamID."""
        sess = self._check_session(session)
        if not sess.steam_id:
            raise PreconditionError(
                f"{self.name} cannot get user information without SteamID", provider=self.name
            )

        response = await self._request(
            "GET",
            PLAYER_SUMMARIES_URL,
            params={"key": self.api_key, "steamids": sess.steam_id},
            headers={"Accept": "application/json"},
        )
        payload = self._decode_profile(response)

        try:
            players = SteamPlayerSummaries.model_validate(payload).response.players
        except PydanticValidationError as e:
            raise ParseError(f"{self.name} returned malformed player summaries: {e}", provider=self.name) from e
        if not players:
            raise ParseError(f"no player found for SteamID {sess.steam_id}", provider=self.name)

        player = players[0]
        # Steam does not expose email addresses
        return User(
            provider=self.name,
            user_id=player.steamid or sess.steam_id,
            nick_name=player.personaname,
            name=player.realname,
            avatar_url=player.avatarfull,
            location=player.loccountrycode,
            raw_data=payload["response"]["players"][0],
        )

    def _return_to(self, state: str) -> str:
        parts = urlsplit(self.callback_url)
        query = parse_qsl(parts.query, keep_blank_values=True)
        query.append(("state", state))
        return urlunsplit(parts._replace(query=urlencode(query)))

    def _check_nonce(self, session: SteamSession, nonce: str) -> None:
        """Check an OpenID 2.0 response nonce is well-formed, fresh and unused.

        A nonce starts with its UTC issue time (e.g. 2024-05-01T12:00:00Z)
        followed by up to 235 arbitrary characters.
        """
        if not nonce:
            raise ValidationError("missing openid.response_nonce", provider=self.name)
        if nonce == session.response_nonce:
            raise ValidationError("openid.response_nonce has already been used", provider=self.name)

        try:
            issued_at = datetime.strptime(nonce[:20], "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
        except ValueError as e:
            raise ValidationError("malformed openid.response_nonce", provider=self.name) from e

        if abs(self.clock() - issued_at) > timedelta(seconds=self.nonce_max_age):
            raise ValidationError("openid.response_nonce is stale", provider=self.name)
