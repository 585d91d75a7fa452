"""Shared pytest fixtures."""

from datetime import timedelta
from types import SimpleNamespace

import pytest


@pytest.fixture(autouse=True)
def _reset_tenant_context():
    """No test may leak an active property into the next one."""
    from shared.infrastructure.tenancy import clear_tenant_context

    yield
    clear_tenant_context()


def build_hotel(name: str, phone: str):
    from apps.guests.models import Guest
    from apps.properties.models import Property, Room
    from shared.infrastructure.tenancy import privileged

    with privileged():
        property_obj = Property.objects.create(name=name, currency="UZS", timezone="Asia/Tashkent")
        room = Room.objects.create(
            property=property_obj,
            name="101",
            base_price=500_000,
            capacity_adults=2,
            capacity_children=1,
        )
        second_room = Room.objects.create(
            property=property_obj,
            name="102",
            base_price=400_000,
            capacity_adults=3,
            capacity_children=2,
        )
        guest = Guest.objects.create(
            property=property_obj,
            first_name="Aziz",
            last_name="Karimov",
            phone=phone,
        )
    return SimpleNamespace(property=property_obj, room=room, second_room=second_room, guest=guest)


@pytest.fixture
def hotel(db):
    return build_hotel("Silk Road Inn", "+998901112233")


@pytest.fixture
def other_hotel(db):
    return build_hotel("Registan Hostel", "+998907778899")


@pytest.fixture
def today(hotel):
    from apps.bookings.services import property_today

    return property_today(hotel.property)


@pytest.fixture
def stay(today):
    """A three-night stay starting next week."""
    check_in = today + timedelta(days=7)
    return check_in, check_in + timedelta(days=3)
