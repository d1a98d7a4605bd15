"""PCLOA (Peng Cheng Laboratory OA) OAuth2 provider.

Reference implementation of a static-secret OAuth2 provider: standard
authorization code grant, with a profile endpoint that takes the access
token as a query parameter rather than a bearer header.

Example Configuration:
    PCLOA_CLIENT_ID=xxx
    PCLOA_CLIENT_SECRET=xxx
    PCLOA_CALLBACK_URL=https://app.example.com/auth/pcloa/callback
    # Optional self-hosted endpoints
    PCLOA_AUTH_URL=https://pcloa.acme.com/oauth/authorize
    PCLOA_TOKEN_URL=https://pcloa.acme.com/oauth/token
    PCLOA_PROFILE_URL=https://pcloa.acme.com/api/v3/user
"""

from typing import Any, Dict, Iterable, Optional

from pydantic import Field

from provider_auth.core.auth.oauth2 import OAuth2Config, OAuth2Provider
from provider_auth.domain.models.profile import OptionalStr, ProfilePayload

AUTH_URL = "https://one.pcl.ac.cn/idp/oauth2/authorize"
TOKEN_URL = "https://one.pcl.ac.cn/idp/oauth2/getToken"
PROFILE_URL = "https://one.pcl.ac.cn/idp/oauth2/getUserInfo"


class PCLOAProfile(ProfilePayload):
    mail: OptionalStr = ""
    display_name: OptionalStr = Field("", alias="displayName")
    login_name: OptionalStr = Field("", alias="loginName")


class PCLOAProvider(OAuth2Provider):
    """OAuth2 provider for the PCLOA identity platform."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        scopes: Iterable[str] = (),
        auth_url: Optional[str] = None,
        token_url: Optional[str] = None,
        profile_url: Optional[str] = None,
        **kwargs: Any,
    ):
        """Initialize PCLOA provider.

        Args:
            client_id: OAuth 2.0 client ID
            client_secret: OAuth 2.0 client secret
            callback_url: Redirect URI
            scopes: Scopes to request
            auth_url: Authorization endpoint (default: AUTH_URL)
            token_url: Token endpoint (default: TOKEN_URL)
            profile_url: Profile endpoint (default: PROFILE_URL)
        """
        config = OAuth2Config(
            client_id=client_id,
            client_secret=client_secret,
            callback_url=callback_url,
            auth_url=auth_url or AUTH_URL,
            token_url=token_url or TOKEN_URL,
            profile_url=profile_url or PROFILE_URL,
            scopes=tuple(scopes),
        )
        super().__init__("pcloa", config, **kwargs)

    async def _fetch_profile(self, access_token: str) -> Dict[str, Any]:
        response = await self._request(
            "GET",
            self.config.profile_url,
            params={"access_token": access_token, "client_id": self.config.client_id},
            headers={"Accept": "application/json"},
        )
        return self._decode_profile(response)

    def _user_from_profile(self, payload: Dict[str, Any]) -> Dict[str, str]:
        profile = PCLOAProfile.model_validate(payload)
        return {
            "email": profile.mail,
            "name": profile.display_name,
            "nick_name": profile.login_name,
            "user_id": profile.login_name,
        }
