"""
FishLog Backend — Trip SQLAlchemy Model
=========================================

What:  ORM model for the `trips` table: one fishing outing owned by one user.
Why:   Trips are the ownership root; catches, equipment assignments and
       weather snapshots all hang off a trip.

Table Design Rationale:
    - status: draft | active | closed. Only two invariants are enforced
      (closed requires ended_at, ended_at >= started_at), both as CHECK
      constraints here and in TripService before any write.
    - location_*: optional flat columns; the API groups them as
      {lat, lng, label}.
    - deleted_at: soft-delete marker. Trips are never hard-deleted.

    Index on (user_id, started_at DESC):
        The default trip list is "my trips, newest first".
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Float, Index, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from fishlog.database import Base

TRIP_STATUSES = ("draft", "active", "closed")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Trip(Base):
    __tablename__ = "trips"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        comment="Owner of the trip (authenticated principal)",
    )
    started_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="draft",
        server_default=text("'draft'"),
        comment="Lifecycle state: draft, active, closed",
    )

    # ── Location ──────────────────────────────────────────────────────────
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_label: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ── Timestamps ────────────────────────────────────────────────────────
    deleted_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        comment="Soft-delete marker; NULL means visible",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint(
            "ended_at IS NULL OR ended_at >= started_at",
            name="trips_ended_after_started",
        ),
        CheckConstraint(
            "status <> 'closed' OR ended_at IS NOT NULL",
            name="trips_closed_requires_end",
        ),
        CheckConstraint(
            "status IN ('draft', 'active', 'closed')",
            name="trips_status_valid",
        ),
        Index("idx_trips_user_started_at", "user_id", started_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, status='{self.status}', started_at='{self.started_at}')>"
