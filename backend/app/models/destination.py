"""Destination catalog models — destinations, pricing buckets, routes, cabs, dining, attractions."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
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


class Destination(Base):
    __tablename__ = "destinations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    center_lat: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    center_lng: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    altitude_m: Mapped[Decimal | None] = mapped_column(Numeric(8, 2))
    base_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    images: Mapped[list] = mapped_column(JSONType, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class DestinationPricingBucket(Base):
    __tablename__ = "destination_pricing_buckets"
    __table_args__ = (UniqueConstraint("destination_id", "bucket_type"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    destination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id", ondelete="CASCADE"), nullable=False
    )
    bucket_type: Mapped[str] = mapped_column(String(20), nullable=False)  # budget | optimal | premium
    accommodation_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    transport_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)


class DestinationDistance(Base):
    __tablename__ = "destination_distance_matrix"

    origin_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id", ondelete="CASCADE"), primary_key=True
    )
    destination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id", ondelete="CASCADE"), primary_key=True
    )
    distance_km: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    duration_minutes: Mapped[int | None] = mapped_column(Integer)


class CabInventory(Base):
    __tablename__ = "cab_inventory"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    cab_type: Mapped[str] = mapped_column(String(20), nullable=False)  # hatchback | sedan | suv | tempo
    make: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    model_year: Mapped[int] = mapped_column(Integer, nullable=False)
    base_price_per_km: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    per_day_charge: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)


class Restaurant(Base):
    __tablename__ = "restaurants"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    destination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    cuisine_types: Mapped[list] = mapped_column(JSONType, default=list)
    veg_non_veg: Mapped[str | None] = mapped_column(String(10))
    special_delicacies: Mapped[list] = mapped_column(JSONType, default=list)
    average_rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), default=0)
    total_ratings: Mapped[int] = mapped_column(Integer, default=0)
    price_range: Mapped[str | None] = mapped_column(String(20))  # budget | mid_range | premium
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Poi(Base):
    __tablename__ = "pois"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    destination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    category_name: Mapped[str | None] = mapped_column(String(100))
    average_rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), default=0)

    pricing: Mapped["PoiPricing | None"] = relationship(back_populates="poi", uselist=False)


class PoiPricing(Base):
    __tablename__ = "poi_pricing"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    poi_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pois.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    pricing_type: Mapped[str] = mapped_column(String(20), nullable=False)  # one_time | per_person | rental | free
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    is_purchasable: Mapped[bool] = mapped_column(Boolean, default=False)
    details: Mapped[dict] = mapped_column("metadata", JSONType, default=dict)

    poi: Mapped["Poi"] = relationship(back_populates="pricing")
