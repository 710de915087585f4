"""
Identifier parsing shared by the API layer and the services.
"""
import uuid
from typing import Any, Optional

from app.core.exceptions import InvalidReferenceException


def try_parse_reference(value: Any) -> Optional[uuid.UUID]:
    """Return value as a UUID, or None when it is not a well-formed id."""
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value.strip())
    except ValueError:
        return None


def parse_reference(value: Any, field: str = "id") -> uuid.UUID:
    """Return value as a UUID or raise InvalidReferenceException."""
    parsed = try_parse_reference(value)
    if parsed is None:
        raise InvalidReferenceException(field, value)
    return parsed
