"""
No two pending/confirmed bookings of one court may overlap.

PostgreSQL only: installs btree_gist and an exclusion constraint over
``[start_at, end_at)``. Other backends rely on the reservation transaction
alone.
"""

from django.db import migrations

CONSTRAINT_NAME = "booking_no_overlap_per_court"

CREATE_SQL = f"""
ALTER TABLE bookings_booking
ADD CONSTRAINT {CONSTRAINT_NAME}
EXCLUDE USING gist (
    court_id WITH =,
    tstzrange(start_at, end_at, '[)') WITH &&
)
WHERE (status IN ('pending', 'confirmed'));
"""

DROP_SQL = f"ALTER TABLE bookings_booking DROP CONSTRAINT IF EXISTS {CONSTRAINT_NAME};"


def add_exclusion_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute("CREATE EXTENSION IF NOT EXISTS btree_gist;")
    schema_editor.execute(CREATE_SQL)


def drop_exclusion_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute(DROP_SQL)


class Migration(migrations.Migration):

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(add_exclusion_constraint, drop_exclusion_constraint),
    ]
