"""Identity Data Models

Purpose: Define the provider-agnostic results of an authentication flow

Key Components:
- User: Canonical identity record produced by Provider.fetch_user
- Token: Access credential returned by a token exchange or refresh
- format_rfc3339 / ZERO_TIME: Timestamp conventions shared by session wire formats
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

# Zero instant, serialized as 0001-01-01T00:00:00Z
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

# Tokens are treated as expired slightly before their declared expiry
EXPIRY_DELTA = timedelta(seconds=10)

RFC3339_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,6}))?(Z|[+-]\d{2}:\d{2})$"
)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware values are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_zero_time(value: datetime) -> bool:
    """True when value is the zero instant, whatever its offset."""
    return ensure_utc(value).replace(tzinfo=None) == datetime(1, 1, 1)


def format_rfc3339(value: datetime) -> str:
    """Format a timestamp as RFC3339.

    UTC is written as ``Z``, other offsets numerically, and fractional
    seconds only when present with trailing zeros trimmed. Year 1 is
    zero-padded (``0001``) unlike ``strftime`` on some platforms.
    """
    value = ensure_utc(value)
    stamp = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        stamp += f".{value.microsecond:06d}".rstrip("0")

    offset = value.utcoffset()
    if not offset:
        return stamp + "Z"
    return stamp + value.isoformat()[-6:]


def utc_now() -> datetime:
    """Current wall-clock time in UTC"""
    return datetime.now(timezone.utc)


def parse_rfc3339(value: Any) -> datetime:
    """Parse an RFC3339 timestamp string.

    Only the form written by format_rfc3339 is accepted: a full date and
    time, at most microsecond precision, and a ``Z`` or numeric offset.
    datetime instances pass through unchanged.

    Raises:
        ValueError: If value is neither a datetime nor an RFC3339 string
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be an RFC3339 string, got {type(value).__name__}")

    match = RFC3339_PATTERN.fullmatch(value)
    if not match:
        raise ValueError(f"invalid RFC3339 timestamp: {value!r}")

    year, month, day, hour, minute, second, fraction, zone = match.groups()
    if zone == "Z":
        tzinfo = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        tzinfo = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))

    return datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second),
        int((fraction or "").ljust(6, "0")),
        tzinfo=tzinfo,
    )


# Datetime that is always timezone-aware and serializes as RFC3339
Timestamp = Annotated[
    datetime,
    BeforeValidator(parse_rfc3339),
    AfterValidator(ensure_utc),
    PlainSerializer(format_rfc3339, return_type=str),
]


class Token(BaseModel):
    """Access credential returned by a provider token endpoint.

    Attributes:
        access_token: Bearer credential for provider APIs
        token_type: Token type announced by the provider (usually "Bearer")
        refresh_token: Refresh credential, empty when not issued
        expires_at: Absolute expiry, ZERO_TIME when the provider gave none
        id_token: OpenID Connect identity token, empty when not issued
        raw: Full token response payload
    """
    access_token: str
    token_type: str = ""
    refresh_token: str = ""
    expires_at: Timestamp = ZERO_TIME
    id_token: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Check the token carries an access token that has not expired."""
        if not self.access_token:
            return False
        if is_zero_time(self.expires_at):
            return True
        now = now or utc_now()
        return self.expires_at - EXPIRY_DELTA > now


class User(BaseModel):
    """Canonical user returned from Provider.fetch_user.

    Every string field defaults to "" when the provider's profile
    payload lacks the corresponding key.

    Attributes:
        provider: Name of the provider that produced this record
        user_id: Provider-unique user identifier
        email: Email address
        name: Full display name
        first_name: Given name
        last_name: Family name
        nick_name: Login or handle
        description: Profile description
        avatar_url: Profile picture URL
        location: Free-form location
        access_token: Access credential used for the fetch
        refresh_token: Refresh credential, if issued
        expires_at: Access credential expiry
        id_token: OpenID Connect identity token, if issued
        raw_data: Original provider payload
    """
    model_config = ConfigDict(frozen=True)

    provider: str
    user_id: str = ""
    email: str = ""
    name: str = ""
    first_name: str = ""
    last_name: str = ""
    nick_name: str = ""
    description: str = ""
    avatar_url: str = ""
    location: str = ""
    access_token: str = ""
    refresh_token: str = ""
    expires_at: Timestamp = ZERO_TIME
    id_token: str = ""
    raw_data: Dict[str, Any] = Field(default_factory=dict)
