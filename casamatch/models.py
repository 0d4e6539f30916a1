# casamatch/models.py
from __future__ import annotations

import enum
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    # naive UTC, same as what SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


# -----------------------------
# Core enums
# -----------------------------
class OwnerType(str, enum.Enum):
    private = "private"
    agency = "agency"


class Confidence(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"


class ListingStatus(str, enum.Enum):
    available = "available"
    withdrawn = "withdrawn"


class GeocodeStatus(str, enum.Enum):
    pending = "pending"
    success = "success"
    failed = "failed"


class TaskType(str, enum.Enum):
    SEND_MESSAGE = "SEND_MESSAGE"
    CALL_OWNER = "CALL_OWNER"
    CALL_AGENCY = "CALL_AGENCY"


class TaskStatus(str, enum.Enum):
    open = "open"
    completed = "completed"


class Channel(str, enum.Enum):
    whatsapp = "whatsapp"
    call_owner = "call_owner"
    call_agency = "call_agency"


class JobRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    failed = "failed"


# -----------------------------
# Models
# -----------------------------
class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        UniqueConstraint("portal", "source_id", name="uq_listing_portal_source"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    portal: Mapped[str] = mapped_column(String(60), index=True)
    source_id: Mapped[str] = mapped_column(String(120))

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str] = mapped_column(String(255))
    city: Mapped[str] = mapped_column(String(80), index=True)
    zone: Mapped[str | None] = mapped_column(String(120), nullable=True)

    price: Mapped[int] = mapped_column(Integer)
    size: Mapped[float] = mapped_column(Float, default=0)  # m2, 0 = unknown
    property_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    bedrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    floor: Mapped[str | None] = mapped_column(String(40), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    owner_type: Mapped[OwnerType] = mapped_column(Enum(OwnerType), default=OwnerType.private, index=True)
    owner_type_confidence: Mapped[Confidence | None] = mapped_column(Enum(Confidence), nullable=True)
    owner_type_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    agency_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    owner_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    geocode_status: Mapped[GeocodeStatus] = mapped_column(Enum(GeocodeStatus), default=GeocodeStatus.pending)

    status: Mapped[ListingStatus] = mapped_column(Enum(ListingStatus), default=ListingStatus.available, index=True)

    # NULL is read as "ours" by the task engine; portal ingestion inserts False
    is_owned: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_multiagency: Mapped[bool] = mapped_column(Boolean, default=False)
    exclusivity_hint: Mapped[bool] = mapped_column(Boolean, default=False)

    first_seen_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    salutation: Mapped[str | None] = mapped_column(String(40), nullable=True)
    first_name: Mapped[str] = mapped_column(String(80))
    last_name: Mapped[str] = mapped_column(String(80), default="")
    phone: Mapped[str] = mapped_column(String(40))
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_friend: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class BuyerProfile(Base):
    __tablename__ = "buyer_profiles"
    __table_args__ = (UniqueConstraint("client_id", name="uq_buyer_profile_client"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(Integer, index=True)

    max_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    property_type: Mapped[str | None] = mapped_column(String(40), nullable=True)

    # JSON list of [lng, lat] points; may be left open
    search_polygon_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    elevator: Mapped[bool] = mapped_column(Boolean, default=False)
    balcony: Mapped[bool] = mapped_column(Boolean, default=False)
    parking: Mapped[bool] = mapped_column(Boolean, default=False)
    garden: Mapped[bool] = mapped_column(Boolean, default=False)


class Interaction(Base):
    """
    Append-only outreach log. The anti-duplication guard reads it; nothing updates it.
    """
    __tablename__ = "interactions"
    __table_args__ = (
        Index("ix_interaction_triple", "client_id", "property_id", "channel", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(Integer)
    property_id: Mapped[int] = mapped_column(Integer)
    channel: Mapped[str] = mapped_column(String(40))
    direction: Mapped[str | None] = mapped_column(String(8), nullable=True)  # out|in

    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[TaskType] = mapped_column(Enum(TaskType), index=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    client_id: Mapped[int] = mapped_column(Integer, index=True)
    property_id: Mapped[int] = mapped_column(Integer, index=True)

    due_date: Mapped[date] = mapped_column(Date)
    status: Mapped[TaskStatus] = mapped_column(Enum(TaskStatus), default=TaskStatus.open, index=True)

    target: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class GeocodeCache(Base):
    __tablename__ = "geocode_cache"
    __table_args__ = (UniqueConstraint("normalized_address", name="uq_geocode_address"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    normalized_address: Mapped[str] = mapped_column(String(400))
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[GeocodeStatus] = mapped_column(Enum(GeocodeStatus))
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class JobRun(Base):
    """
    Tracks job executions (pipeline, ingestion).
    """
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(80), index=True)

    status: Mapped[JobRunStatus] = mapped_column(Enum(JobRunStatus), default=JobRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # optional metadata: {"city": ..., "max_price": ...}
    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)
