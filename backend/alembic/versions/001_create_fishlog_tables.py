"""Create fishlog tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates trips, owner equipment, fish species, the three trip
       equipment junctions, catches, and weather snapshots with their hours.
How:   PostgreSQL UUID keys (gen_random_uuid()), TIMESTAMP WITH TIME ZONE
       everywhere, CHECK constraints mirroring the service-level rules.

Rollback: downgrade() drops every table in reverse dependency order
(destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EQUIPMENT_TABLES = ("rods", "lures", "groundbaits")
EQUIPMENT_KINDS = ("rod", "lure", "groundbait")


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "trips",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False,
                  comment="Owner of the trip (authenticated principal)"),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ended_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'draft'"),
                  comment="Lifecycle state: draft, active, closed"),
        sa.Column("location_lat", sa.Float(), nullable=True),
        sa.Column("location_lng", sa.Float(), nullable=True),
        sa.Column("location_label", sa.String(255), nullable=True),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True,
                  comment="Soft-delete marker; NULL means visible"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("ended_at IS NULL OR ended_at >= started_at", name="trips_ended_after_started"),
        sa.CheckConstraint("status <> 'closed' OR ended_at IS NOT NULL", name="trips_closed_requires_end"),
        sa.CheckConstraint("status IN ('draft', 'active', 'closed')", name="trips_status_valid"),
    )
    op.create_index("idx_trips_user_started_at", "trips", ["user_id", sa.text("started_at DESC")])

    op.create_table(
        "fish_species",
        _id_column(),
        sa.Column("name", sa.String(255), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    for table in EQUIPMENT_TABLES:
        op.create_table(
            table,
            _id_column(),
            sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
            _timestamp("created_at"),
            _timestamp("updated_at"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            f"{table}_user_name_unique",
            table,
            ["user_id", "name"],
            unique=True,
            postgresql_where=sa.text("deleted_at IS NULL"),
        )

    # trip_rods / trip_lures / trip_groundbaits
    for kind, table in zip(EQUIPMENT_KINDS, EQUIPMENT_TABLES):
        op.create_table(
            f"trip_{table}",
            _id_column(),
            sa.Column("trip_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column(f"{kind}_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column(f"{kind}_name_snapshot", sa.String(255), nullable=False),
            _timestamp("created_at"),
            sa.PrimaryKeyConstraint("id"),
            sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint([f"{kind}_id"], [f"{table}.id"]),
            sa.UniqueConstraint("trip_id", f"{kind}_id", name=f"trip_{kind}s_unique"),
        )
        op.create_index(f"idx_trip_{kind}s_trip_id", f"trip_{table}", ["trip_id"])

    op.create_table(
        "catches",
        _id_column(),
        sa.Column("trip_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("caught_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("species_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lure_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("groundbait_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("lure_name_snapshot", sa.String(255), nullable=True),
        sa.Column("groundbait_name_snapshot", sa.String(255), nullable=True),
        sa.Column("weight_g", sa.Integer(), nullable=True, comment="Weight in grams"),
        sa.Column("length_mm", sa.Integer(), nullable=True, comment="Length in millimeters"),
        sa.Column("photo_path", sa.String(255), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["species_id"], ["fish_species.id"]),
        sa.ForeignKeyConstraint(["lure_id"], ["lures.id"]),
        sa.ForeignKeyConstraint(["groundbait_id"], ["groundbaits.id"]),
        sa.CheckConstraint("weight_g IS NULL OR weight_g > 0", name="catches_weight_positive"),
        sa.CheckConstraint("length_mm IS NULL OR length_mm > 0", name="catches_length_positive"),
    )
    op.create_index("idx_catches_trip_caught_at", "catches", ["trip_id", sa.text("caught_at DESC")])

    op.create_table(
        "weather_snapshots",
        _id_column(),
        sa.Column("trip_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source", sa.String(10), nullable=False, comment="api or manual"),
        sa.Column("fetched_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("period_start", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("period_end", sa.TIMESTAMP(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
        sa.CheckConstraint("period_end >= period_start", name="weather_snapshots_period_valid"),
        sa.CheckConstraint("source IN ('api', 'manual')", name="weather_snapshots_source_valid"),
    )
    op.create_index(
        "idx_weather_snapshots_trip_fetched_at",
        "weather_snapshots",
        ["trip_id", sa.text("fetched_at DESC")],
    )

    op.create_table(
        "weather_hours",
        _id_column(),
        sa.Column("snapshot_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("observed_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("temperature_c", sa.Float(), nullable=True),
        sa.Column("pressure_hpa", sa.Integer(), nullable=True),
        sa.Column("wind_speed_kmh", sa.Float(), nullable=True),
        sa.Column("wind_direction", sa.Integer(), nullable=True, comment="Degrees 0-360"),
        sa.Column("humidity_percent", sa.Integer(), nullable=True),
        sa.Column("precipitation_mm", sa.Float(), nullable=True),
        sa.Column("cloud_cover", sa.Integer(), nullable=True, comment="Percent 0-100"),
        sa.Column("weather_icon", sa.String(50), nullable=True),
        sa.Column("weather_text", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["snapshot_id"], ["weather_snapshots.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_weather_hours_snapshot_observed_at",
        "weather_hours",
        ["snapshot_id", "observed_at"],
    )


def downgrade() -> None:
    """Drop every table, children first. Destructive."""
    op.drop_index("idx_weather_hours_snapshot_observed_at", table_name="weather_hours")
    op.drop_table("weather_hours")
    op.drop_index("idx_weather_snapshots_trip_fetched_at", table_name="weather_snapshots")
    op.drop_table("weather_snapshots")
    op.drop_index("idx_catches_trip_caught_at", table_name="catches")
    op.drop_table("catches")
    for kind, table in reversed(list(zip(EQUIPMENT_KINDS, EQUIPMENT_TABLES))):
        op.drop_index(f"idx_trip_{kind}s_trip_id", table_name=f"trip_{table}")
        op.drop_table(f"trip_{table}")
    for table in reversed(EQUIPMENT_TABLES):
        op.drop_index(f"{table}_user_name_unique", table_name=table)
        op.drop_table(table)
    op.drop_table("fish_species")
    op.drop_index("idx_trips_user_started_at", table_name="trips")
    op.drop_table("trips")
