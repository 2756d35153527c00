"""
FishLog Backend — Catch SQLAlchemy Model
==========================================

What:  ORM model for the `catches` table: one fish caught during a trip.
Why:   Catches are hard-deleted (no soft-delete) and owned through their trip.

Name Snapshots:
    lure_name_snapshot / groundbait_name_snapshot copy the equipment name
    when the reference is set. CatchService resolves them explicitly on
    create, and again on update only when the referenced id changes.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from fishlog.database import Base
from fishlog.models.trip import utcnow


class Catch(Base):
    __tablename__ = "catches"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    trip_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
    )
    caught_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    species_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fish_species.id"), nullable=False
    )

    # ── Equipment references + snapshots ──────────────────────────────────
    lure_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lures.id"), nullable=True
    )
    groundbait_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("groundbaits.id"), nullable=True
    )
    lure_name_snapshot: Mapped[str | None] = mapped_column(String(255), nullable=True)
    groundbait_name_snapshot: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ── Measurements ──────────────────────────────────────────────────────
    weight_g: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="Weight in grams")
    length_mm: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="Length in millimeters")

    # What: Blob path `{owner_id}/{catch_id}.{ext}` in the catch-photos bucket
    photo_path: Mapped[str | None] = mapped_column(String(255), nullable=True)

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
        CheckConstraint("weight_g IS NULL OR weight_g > 0", name="catches_weight_positive"),
        CheckConstraint("length_mm IS NULL OR length_mm > 0", name="catches_length_positive"),
        Index("idx_catches_trip_caught_at", "trip_id", caught_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Catch(id={self.id}, trip_id={self.trip_id}, caught_at='{self.caught_at}')>"
