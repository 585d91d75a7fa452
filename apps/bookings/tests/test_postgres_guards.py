"""Database-level guards that only exist on PostgreSQL."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest
from django.db import IntegrityError, connection, connections, transaction

from apps.bookings.application import interface
from apps.bookings.models import Booking
from shared.domain.exceptions import RoomNotAvailable
from shared.infrastructure.db import translate_database_errors
from shared.infrastructure.tenancy import TENANT_SETTING_NAME, privileged

pytestmark = pytest.mark.skipif(
    connection.vendor != "postgresql",
    reason="exclusion constraint and row-level security are PostgreSQL features",
)


def _raw_booking(hotel, number, check_in, check_out, status="new"):
    return Booking.objects.create(
        property=hotel.property,
        room=hotel.room,
        guest=hotel.guest,
        booking_number=number,
        check_in=check_in,
        check_out=check_out,
        total_amount=1,
        status=status,
    )


@pytest.mark.django_db
def test_exclusion_constraint_rejects_overlap_written_around_the_service(hotel, stay):
    check_in, check_out = stay
    with privileged():
        _raw_booking(hotel, "BK-X-1", check_in, check_out)
        _raw_booking(hotel, "BK-X-2", check_out, check_out + timedelta(days=1))
        _raw_booking(hotel, "BK-X-3", check_in, check_out, status="cancelled")

        with pytest.raises(RoomNotAvailable):
            with translate_database_errors(), transaction.atomic():
                _raw_booking(hotel, "BK-X-4", check_in + timedelta(days=1), check_out)


@pytest.mark.django_db
def test_exclusion_constraint_is_an_integrity_error(hotel, stay):
    with privileged():
        _raw_booking(hotel, "BK-Y-1", *stay)
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                _raw_booking(hotel, "BK-Y-2", *stay)


@pytest.mark.django_db
def test_row_level_security_filters_by_session_property(hotel, other_hotel, stay):
    interface.create_booking(hotel.property.pk, hotel.room.pk, hotel.guest.pk, *stay)
    interface.create_booking(other_hotel.property.pk, other_hotel.room.pk, other_hotel.guest.pk, *stay)

    with connection.cursor() as cursor:
        cursor.execute("SAVEPOINT rls_probe")
        cursor.execute("CREATE ROLE booking_core_rls_probe NOLOGIN")
        cursor.execute("GRANT SELECT ON bookings_booking TO booking_core_rls_probe")
        cursor.execute("SET LOCAL ROLE booking_core_rls_probe")
        cursor.execute("SELECT set_config(%s, %s, true)", [TENANT_SETTING_NAME, str(hotel.property.pk)])
        cursor.execute("SELECT DISTINCT property_id FROM bookings_booking")
        visible = [row[0] for row in cursor.fetchall()]
        cursor.execute("SELECT set_config(%s, '', true)", [TENANT_SETTING_NAME])
        cursor.execute("SELECT count(*) FROM bookings_booking")
        (unscoped_count,) = cursor.fetchone()
        cursor.execute("ROLLBACK TO SAVEPOINT rls_probe")

    assert visible == [hotel.property.pk]
    assert unscoped_count == 0


@pytest.mark.django_db(transaction=True)
def test_concurrent_creates_for_same_nights_admit_one(hotel, stay):
    results = []
    barrier = threading.Barrier(2)

    def attempt():
        try:
            barrier.wait()
            booking = interface.create_booking(hotel.property.pk, hotel.room.pk, hotel.guest.pk, *stay)
            results.append(booking.pk)
        except RoomNotAvailable as exc:
            results.append(exc.code)
        finally:
            connections.close_all()

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count("room_not_available") == 1
    with privileged():
        assert Booking.objects.filter(room=hotel.room).count() == 1
