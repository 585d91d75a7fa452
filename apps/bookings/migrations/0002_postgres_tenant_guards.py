"""PostgreSQL-only guards: booking overlap exclusion and row-level security.

Other backends skip this migration; the application-level room lock and
tenant managers still apply there.
"""

from django.conf import settings
from django.db import migrations

CURRENT_PROPERTY_FUNCTION = """
CREATE OR REPLACE FUNCTION app_current_property_id() RETURNS bigint
LANGUAGE sql STABLE AS $$
    SELECT COALESCE(NULLIF(current_setting('app.current_property_id', true), ''), '0')::bigint
$$;
"""

OVERLAP_CONSTRAINT = """
ALTER TABLE bookings_booking
    ADD CONSTRAINT bookings_no_overlap
    EXCLUDE USING gist (
        room_id WITH =,
        daterange(check_in, check_out, '[)') WITH &&
    )
    WHERE (status <> 'cancelled');
"""

# table -> USING expression
DIRECT_POLICIES = {
    "properties_property": "id = app_current_property_id()",
    "properties_room": "property_id = app_current_property_id()",
    "properties_rate": "property_id = app_current_property_id()",
    "guests_guest": "property_id = app_current_property_id()",
    "bookings_booking": "property_id = app_current_property_id()",
}

PARENT_POLICIES = {
    "properties_roomblock": (
        "EXISTS (SELECT 1 FROM properties_room parent "
        "WHERE parent.id = properties_roomblock.room_id "
        "AND parent.property_id = app_current_property_id())"
    ),
    "bookings_bookinghistory": (
        "EXISTS (SELECT 1 FROM bookings_booking parent "
        "WHERE parent.id = bookings_bookinghistory.booking_id "
        "AND parent.property_id = app_current_property_id())"
    ),
    "finances_payment": (
        "EXISTS (SELECT 1 FROM bookings_booking parent "
        "WHERE parent.id = finances_payment.booking_id "
        "AND parent.property_id = app_current_property_id())"
    ),
}


def _policies():
    return {**DIRECT_POLICIES, **PARENT_POLICIES}


def install_guards(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute("CREATE EXTENSION IF NOT EXISTS btree_gist;")
    schema_editor.execute(OVERLAP_CONSTRAINT)
    schema_editor.execute(CURRENT_PROPERTY_FUNCTION)
    force = getattr(settings, "TENANT_RLS_FORCE", False)
    for table, expression in _policies().items():
        schema_editor.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;")
        if force:
            schema_editor.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY;")
        schema_editor.execute(
            f"CREATE POLICY tenant_isolation ON {table} "
            f"USING ({expression}) WITH CHECK ({expression});"
        )


def remove_guards(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    for table in _policies():
        schema_editor.execute(f"DROP POLICY IF EXISTS tenant_isolation ON {table};")
        schema_editor.execute(f"ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY;")
        schema_editor.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY;")
    schema_editor.execute("DROP FUNCTION IF EXISTS app_current_property_id();")
    schema_editor.execute("ALTER TABLE bookings_booking DROP CONSTRAINT IF EXISTS bookings_no_overlap;")


class Migration(migrations.Migration):

    dependencies = [
        ("bookings", "0001_initial"),
        ("finances", "0001_initial"),
        ("guests", "0001_initial"),
        ("properties", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(install_guards, remove_guards),
    ]
