"""Domain models for Provider Auth"""

from provider_auth.domain.models.identity import (
    ZERO_TIME,
    Timestamp,
    Token,
    User,
    ensure_utc,
    format_rfc3339,
    is_zero_time,
    parse_rfc3339,
    utc_now,
)
from provider_auth.domain.models.profile import OptionalStr, ProfilePayload

__all__ = [
    # Identity models
    "User",
    "Token",
    "ZERO_TIME",
    "ensure_utc",
    "format_rfc3339",
    "is_zero_time",
    "parse_rfc3339",
    "utc_now",
    "Timestamp",
    # Profile extraction
    "OptionalStr",
    "ProfilePayload",
]
