"""Typed extraction of optional fields from provider profile payloads.

Profile payloads are decoded into small pydantic models whose string fields
use OptionalStr: an absent key, a null, or a value of the wrong type all
become "" instead of failing validation.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict


def _string_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""


OptionalStr = Annotated[str, BeforeValidator(_string_or_empty)]


class ProfilePayload(BaseModel):
    """Base class for provider profile shapes.

    Unknown keys are ignored and field names may be given by alias or
    by attribute name.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)
