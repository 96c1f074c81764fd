"""Profile completeness evaluation and profile updates."""

import logging
from typing import Any, Optional

from app.models.citizen import Citizen

logger = logging.getLogger(__name__)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def street_number_of(profile: Any) -> str:
    """Street number, falling back to the legacy house number."""
    return _clean(getattr(profile, "street_number", None)) or _clean(getattr(profile, "house_number", None))


def street_name_of(profile: Any) -> str:
    """Street name, falling back to the legacy street field."""
    return _clean(getattr(profile, "street_name", None)) or _clean(getattr(profile, "street", None))


def is_profile_complete(profile: Any) -> bool:
    """Check whether a profile has every field needed to issue documents.

    Requires first name, last name, birth date, and a street number and
    street name from either address naming scheme. Whitespace-only strings
    count as missing. Pure: reads attributes only.

    Args:
        profile: Citizen or any object exposing the same attribute names

    Returns:
        True if the citizen may request documents
    """
    return bool(
        _clean(getattr(profile, "first_name", None))
        and _clean(getattr(profile, "last_name", None))
        and getattr(profile, "date_of_birth", None) is not None
        and street_number_of(profile)
        and street_name_of(profile)
    )


def refresh_profile_flag(citizen: Citizen) -> bool:
    """Recompute the cached completeness flag and store it on the citizen.

    Returns:
        The recomputed value
    """
    complete = is_profile_complete(citizen)
    if citizen.is_profile_complete != complete:
        logger.info(f"Profile completeness for citizen {citizen.id} changed to {complete}")
    citizen.is_profile_complete = complete
    return complete


def format_street_address(profile: Any) -> str:
    return " ".join(p for p in (street_number_of(profile), street_name_of(profile)) if p)


def apply_profile_update(citizen: Citizen, changes: dict) -> Optional[dict]:
    """Apply already-validated profile field changes and refresh the flag.

    Args:
        citizen: Citizen to mutate
        changes: Field name to new value, limited to the profile update schema

    Returns:
        Mapping of field name to {"old", "new"} for fields that changed, or
        None if nothing changed
    """
    diff = {}
    for field, value in changes.items():
        old = getattr(citizen, field)
        if old != value:
            diff[field] = {"old": str(old) if old is not None else None,
                           "new": str(value) if value is not None else None}
            setattr(citizen, field, value)
    refresh_profile_flag(citizen)
    return diff or None
