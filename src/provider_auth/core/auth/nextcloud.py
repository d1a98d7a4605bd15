"""Nextcloud OAuth2 provider.

Nextcloud is self-hosted, so every endpoint hangs off the instance base URL:

    {base}/apps/oauth2/authorize
    {base}/apps/oauth2/api/v1/token
    {base}/ocs/v2.php/cloud/user?format=json
"""

from typing import Any, Dict, Iterable

from pydantic import Field

from provider_auth.core.auth.oauth2 import OAuth2Config, OAuth2Provider
from provider_auth.domain.models.profile import OptionalStr, ProfilePayload

AUTH_PATH = "/apps/oauth2/authorize"
TOKEN_PATH = "/apps/oauth2/api/v1/token"
PROFILE_PATH = "/ocs/v2.php/cloud/user?format=json"


class NextcloudUserData(ProfilePayload):
    id: OptionalStr = ""
    email: OptionalStr = ""
    display_name: OptionalStr = Field("", alias="display-name")
    address: OptionalStr = ""


class NextcloudOCS(ProfilePayload):
    data: NextcloudUserData = Field(default_factory=NextcloudUserData)


class NextcloudProfile(ProfilePayload):
    ocs: NextcloudOCS = Field(default_factory=NextcloudOCS)


class NextcloudProvider(OAuth2Provider):
    """OAuth2 provider for a Nextcloud instance."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        base_url: str,
        scopes: Iterable[str] = (),
        **kwargs: Any,
    ):
        """Initialize Nextcloud provider.

        Args:
            client_id: OAuth 2.0 client ID
            client_secret: OAuth 2.0 client secret
            callback_url: Redirect URI
            base_url: Nextcloud instance URL (e.g. https://cloud.example.com)
            scopes: Scopes to request
        """
        base_url = base_url.rstrip("/")
        config = OAuth2Config(
            client_id=client_id,
            client_secret=client_secret,
            callback_url=callback_url,
            auth_url=base_url + AUTH_PATH,
            token_url=base_url + TOKEN_PATH,
            profile_url=base_url + PROFILE_PATH,
            scopes=tuple(scopes),
        )
        super().__init__("nextcloud", config, **kwargs)

    async def _fetch_profile(self, access_token: str) -> Dict[str, Any]:
        response = await self._request(
            "GET",
            self.config.profile_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "OCS-APIRequest": "true",
                "Accept": "application/json",
            },
        )
        return self._decode_profile(response)

    def _user_from_profile(self, payload: Dict[str, Any]) -> Dict[str, str]:
        data = NextcloudProfile.model_validate(payload).ocs.data
        return {
            "user_id": data.id,
            "nick_name": data.id,
            "email": data.email,
            "name": data.display_name,
            "location": data.address,
        }
