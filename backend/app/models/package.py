import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONType


class Package(Base):
    __tablename__ = "packages"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    people: Mapped[int] = mapped_column(Integer, nullable=False)
    cab_type: Mapped[str] = mapped_column(String(20), nullable=False)
    cab_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("cab_inventory.id"))
    total_base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    per_person_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    request: Mapped[dict] = mapped_column(JSONType, default=dict)
    breakdown: Mapped[dict] = mapped_column(JSONType, default=dict)
    meta: Mapped[dict] = mapped_column(JSONType, default=dict)
    available_cabs: Mapped[list] = mapped_column(JSONType, default=list)
    destination_ids: Mapped[list] = mapped_column(JSONType, default=list)
    weather_snapshot_ids: Mapped[list] = mapped_column(JSONType, default=list)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    # generated | awaiting_auth | awaiting_verification | pending_kyc | booked
    booking_status: Mapped[str] = mapped_column(String(30), default="generated")
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    cloned_from_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    days: Mapped[list["PackageDay"]] = relationship(
        back_populates="package", cascade="all, delete-orphan", order_by="PackageDay.day_index"
    )
    legs: Mapped[list["PackageLeg"]] = relationship(
        back_populates="package", cascade="all, delete-orphan", order_by="PackageLeg.sequence"
    )


class PackageLeg(Base):
    __tablename__ = "package_legs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    package_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("packages.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    origin_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id"), nullable=False
    )
    destination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id"), nullable=False
    )
    distance_km: Mapped[Decimal | None] = mapped_column(Numeric(8, 2))
    duration_minutes: Mapped[int | None] = mapped_column(Integer)
    cab_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    package: Mapped["Package"] = relationship(back_populates="legs")


class PackageDay(Base):
    __tablename__ = "package_days"
    __table_args__ = (UniqueConstraint("package_id", "day_index"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    package_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("packages.id", ondelete="CASCADE"), nullable=False
    )
    day_index: Mapped[int] = mapped_column(Integer, nullable=False)
    day_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    destination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id"), nullable=False
    )
    destination_name: Mapped[str] = mapped_column(String(200), nullable=False)
    destination_altitude_m: Mapped[Decimal | None] = mapped_column(Numeric(8, 2))
    activities_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    transport_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    hotel: Mapped[dict | None] = mapped_column(JSONType)
    hotel_options: Mapped[list] = mapped_column(JSONType, default=list)
    weather_snapshot_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("weather_snapshots.id", ondelete="SET NULL")
    )
    weather_daily: Mapped[dict | None] = mapped_column(JSONType)

    package: Mapped["Package"] = relationship(back_populates="days")
    activities: Mapped[list["PackageDayActivity"]] = relationship(
        back_populates="day", cascade="all, delete-orphan"
    )
    restaurants: Mapped[list["PackageDayRestaurant"]] = relationship(
        back_populates="day", cascade="all, delete-orphan"
    )


class PackageDayActivity(Base):
    __tablename__ = "package_day_activities"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    package_day_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("package_days.id", ondelete="CASCADE"), nullable=False
    )
    poi_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("pois.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    pricing_type: Mapped[str | None] = mapped_column(String(20))
    base_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    details: Mapped[dict] = mapped_column("metadata", JSONType, default=dict)

    day: Mapped["PackageDay"] = relationship(back_populates="activities")


class PackageDayRestaurant(Base):
    __tablename__ = "package_day_restaurants"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    package_day_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("package_days.id", ondelete="CASCADE"), nullable=False
    )
    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    price_range: Mapped[str | None] = mapped_column(String(20))
    suggestion: Mapped[dict] = mapped_column(JSONType, default=dict)

    day: Mapped["PackageDay"] = relationship(back_populates="restaurants")
