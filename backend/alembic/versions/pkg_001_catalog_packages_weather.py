"""Catalog, weather snapshots and package tables

Revision ID: pkg_001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "pkg_001"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk():
    return sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("full_name", sa.String(200)),
        sa.Column("phone", sa.String(30)),
        sa.Column("verification_status", sa.String(20), server_default="unverified"),
        sa.Column("kyc_status", sa.String(20), server_default="pending"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- destinations + catalog ---
    op.create_table(
        "destinations",
        _uuid_pk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False, unique=True),
        sa.Column("center_lat", sa.Numeric(9, 6)),
        sa.Column("center_lng", sa.Numeric(9, 6)),
        sa.Column("altitude_m", sa.Numeric(8, 2)),
        sa.Column("base_price", sa.Numeric(10, 2)),
        sa.Column("images", JSONB, server_default="[]"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "destination_pricing_buckets",
        _uuid_pk(),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("bucket_type", sa.String(20), nullable=False),
        sa.Column("accommodation_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("transport_price", sa.Numeric(10, 2), nullable=False),
        sa.UniqueConstraint("destination_id", "bucket_type"),
    )

    op.create_table(
        "destination_distance_matrix",
        sa.Column("origin_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("distance_km", sa.Numeric(6, 2), nullable=False),
        sa.Column("duration_minutes", sa.Integer),
    )

    op.create_table(
        "cab_inventory",
        _uuid_pk(),
        sa.Column("cab_type", sa.String(20), nullable=False),
        sa.Column("make", sa.String(100), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("model_year", sa.Integer, nullable=False),
        sa.Column("base_price_per_km", sa.Numeric(8, 2), nullable=False),
        sa.Column("per_day_charge", sa.Numeric(10, 2)),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("is_available", sa.Boolean, server_default="true"),
    )
    op.create_index("idx_cab_available_capacity", "cab_inventory", ["is_available", "capacity"])

    op.create_table(
        "restaurants",
        _uuid_pk(),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("cuisine_types", JSONB, server_default="[]"),
        sa.Column("veg_non_veg", sa.String(10)),
        sa.Column("special_delicacies", JSONB, server_default="[]"),
        sa.Column("average_rating", sa.Numeric(3, 2), server_default="0"),
        sa.Column("total_ratings", sa.Integer, server_default="0"),
        sa.Column("price_range", sa.String(20)),
        sa.Column("is_active", sa.Boolean, server_default="true"),
    )
    op.create_index("idx_restaurants_destination_range", "restaurants", ["destination_id", "price_range"])

    op.create_table(
        "pois",
        _uuid_pk(),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("category_name", sa.String(100)),
        sa.Column("average_rating", sa.Numeric(3, 2), server_default="0"),
    )
    op.create_index("idx_pois_destination", "pois", ["destination_id"])

    op.create_table(
        "poi_pricing",
        _uuid_pk(),
        sa.Column("poi_id", UUID(as_uuid=True), sa.ForeignKey("pois.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("pricing_type", sa.String(20), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), server_default="0"),
        sa.Column("is_purchasable", sa.Boolean, server_default="false"),
        sa.Column("metadata", JSONB, server_default="{}"),
    )

    # --- weather_snapshots ---
    op.create_table(
        "weather_snapshots",
        _uuid_pk(),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("snapshot_date", sa.Date, nullable=False),
        sa.Column("is_final", sa.Boolean, server_default="false"),
        sa.Column("mapped", JSONB, nullable=False),
        sa.Column("checksum", sa.String(64)),
        sa.Column("fetched_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("destination_id", "snapshot_date", name="ux_weather_destination_date"),
    )

    # --- packages ---
    op.create_table(
        "packages",
        _uuid_pk(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("people", sa.Integer, nullable=False),
        sa.Column("cab_type", sa.String(20), nullable=False),
        sa.Column("cab_id", UUID(as_uuid=True), sa.ForeignKey("cab_inventory.id")),
        sa.Column("total_base_price", sa.Numeric(12, 2), server_default="0"),
        sa.Column("per_person_price", sa.Numeric(12, 2), server_default="0"),
        sa.Column("currency", sa.String(3), server_default="INR"),
        sa.Column("request", JSONB, server_default="{}"),
        sa.Column("breakdown", JSONB, server_default="{}"),
        sa.Column("meta", JSONB, server_default="{}"),
        sa.Column("available_cabs", JSONB, server_default="[]"),
        sa.Column("destination_ids", JSONB, server_default="[]"),
        sa.Column("weather_snapshot_ids", JSONB, server_default="[]"),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("booking_status", sa.String(30), server_default="generated"),
        sa.Column("is_public", sa.Boolean, server_default="false"),
        sa.Column("cloned_from_id", UUID(as_uuid=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_packages_user_created", "packages", ["user_id", "created_at"])
    op.create_index("ix_packages_cloned_from_id", "packages", ["cloned_from_id"])

    op.create_table(
        "package_legs",
        _uuid_pk(),
        sa.Column("package_id", UUID(as_uuid=True), sa.ForeignKey("packages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("origin_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id"), nullable=False),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id"), nullable=False),
        sa.Column("distance_km", sa.Numeric(8, 2)),
        sa.Column("duration_minutes", sa.Integer),
        sa.Column("cab_cost", sa.Numeric(12, 2)),
    )

    op.create_table(
        "package_days",
        _uuid_pk(),
        sa.Column("package_id", UUID(as_uuid=True), sa.ForeignKey("packages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_index", sa.Integer, nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id"), nullable=False),
        sa.Column("destination_name", sa.String(200), nullable=False),
        sa.Column("destination_altitude_m", sa.Numeric(8, 2)),
        sa.Column("activities_cost", sa.Numeric(12, 2), server_default="0"),
        sa.Column("transport_cost", sa.Numeric(12, 2), server_default="0"),
        sa.Column("hotel", JSONB),
        sa.Column("hotel_options", JSONB, server_default="[]"),
        sa.Column("weather_snapshot_id", UUID(as_uuid=True), sa.ForeignKey("weather_snapshots.id", ondelete="SET NULL")),
        sa.Column("weather_daily", JSONB),
        sa.UniqueConstraint("package_id", "day_index"),
    )

    op.create_table(
        "package_day_activities",
        _uuid_pk(),
        sa.Column("package_day_id", UUID(as_uuid=True), sa.ForeignKey("package_days.id", ondelete="CASCADE"), nullable=False),
        sa.Column("poi_id", UUID(as_uuid=True), sa.ForeignKey("pois.id"), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("pricing_type", sa.String(20)),
        sa.Column("base_price", sa.Numeric(12, 2)),
        sa.Column("cost", sa.Numeric(12, 2), server_default="0"),
        sa.Column("metadata", JSONB, server_default="{}"),
    )

    op.create_table(
        "package_day_restaurants",
        _uuid_pk(),
        sa.Column("package_day_id", UUID(as_uuid=True), sa.ForeignKey("package_days.id", ondelete="CASCADE"), nullable=False),
        sa.Column("restaurant_id", UUID(as_uuid=True), sa.ForeignKey("restaurants.id"), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("price_range", sa.String(20)),
        sa.Column("suggestion", JSONB, server_default="{}"),
    )


def downgrade() -> None:
    op.drop_table("package_day_restaurants")
    op.drop_table("package_day_activities")
    op.drop_table("package_days")
    op.drop_table("package_legs")
    op.drop_index("ix_packages_cloned_from_id", table_name="packages")
    op.drop_index("idx_packages_user_created", table_name="packages")
    op.drop_table("packages")
    op.drop_table("weather_snapshots")
    op.drop_table("poi_pricing")
    op.drop_index("idx_pois_destination", table_name="pois")
    op.drop_table("pois")
    op.drop_index("idx_restaurants_destination_range", table_name="restaurants")
    op.drop_table("restaurants")
    op.drop_index("idx_cab_available_capacity", table_name="cab_inventory")
    op.drop_table("cab_inventory")
    op.drop_table("destination_distance_matrix")
    op.drop_table("destination_pricing_buckets")
    op.drop_table("destinations")
    op.drop_table("users")
