"""Test profile completeness and profile updates."""

from datetime import date
from types import SimpleNamespace

import pytest

from app.models import Citizen
from app.services.profile_service import (
    apply_profile_update,
    format_street_address,
    is_profile_complete,
    refresh_profile_flag,
)


def _profile(**overrides):
    values = {
        "first_name": "Maria",
        "last_name": "Reyes",
        "date_of_birth": date(1985, 6, 2),
        "street_number": "45",
        "street_name": "Mabini St",
        "house_number": None,
        "street": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_complete_profile():
    assert is_profile_complete(_profile()) is True


@pytest.mark.parametrize("field", ["first_name", "last_name", "street_number", "street_name"])
@pytest.mark.parametrize("value", [None, "", "   "])
def test_missing_or_blank_field_is_incomplete(field, value):
    assert is_profile_complete(_profile(**{field: value})) is False


def test_missing_birth_date_is_incomplete():
    assert is_profile_complete(_profile(date_of_birth=None)) is False


def test_legacy_address_fields_count():
    profile = _profile(street_number=None, street_name="  ", house_number="7", street="Luna St")
    assert is_profile_complete(profile) is True
    assert format_street_address(profile) == "7 Luna St"


def test_current_address_fields_take_precedence():
    profile = _profile(house_number="999", street="Old Road")
    assert format_street_address(profile) == "45 Mabini St"


def test_refresh_profile_flag_recomputes():
    citizen = Citizen(email="a@example.com", first_name="Ana", is_profile_complete=True)
    assert refresh_profile_flag(citizen) is False
    assert citizen.is_profile_complete is False


def test_apply_profile_update_returns_diff_and_refreshes_flag():
    citizen = Citizen(
        email="b@example.com",
        first_name="Ben",
        last_name="Cruz",
        date_of_birth=date(2000, 2, 29),
        street_number="1",
        street_name=None,
        is_profile_complete=False,
    )

    diff = apply_profile_update(citizen, {"street_name": "Bonifacio Ave", "first_name": "Ben"})

    assert diff == {"street_name": {"old": None, "new": "Bonifacio Ave"}}
    assert citizen.is_profile_complete is True


def test_apply_profile_update_without_changes():
    citizen = Citizen(email="c@example.com", first_name="Carlo", is_profile_complete=False)
    assert apply_profile_update(citizen, {"first_name": "Carlo"}) is None
