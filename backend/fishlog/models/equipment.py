"""
FishLog Backend — Equipment Models
====================================

What:  Owner equipment (rods, lures, groundbaits), fish species, and the three
       parallel trip <-> equipment junction tables.
Why:   A trip records which equipment was used. Each assignment keeps a name
       snapshot taken when it was made, so renaming or deleting a rod later
       does not rewrite trip history.

Junction Constraints:
    UNIQUE (trip_id, <kind>_id) named trip_<kind>_unique. The error mapper
    keys off those names to report "already assigned" as a conflict.
"""

import uuid
from datetime import datetime
from typing import ClassVar

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from fishlog.database import Base
from fishlog.models.trip import utcnow


class FishSpecies(Base):
    __tablename__ = "fish_species"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<FishSpecies(id={self.id}, name='{self.name}')>"


class EquipmentMixin:
    """
    Columns shared by rods, lures and groundbaits.

    Names are unique per owner among live rows; a soft-deleted rod frees its
    name for a new one.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
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

    @declared_attr.directive
    def __table_args__(cls):
        return (
            Index(
                f"{cls.__tablename__}_user_name_unique",
                "user_id",
                "name",
                unique=True,
                postgresql_where=text("deleted_at IS NULL"),
            ),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id}, name='{self.name}')>"


class Rod(EquipmentMixin, Base):
    __tablename__ = "rods"


class Lure(EquipmentMixin, Base):
    __tablename__ = "lures"


class Groundbait(EquipmentMixin, Base):
    __tablename__ = "groundbaits"


class AssignmentMixin:
    """
    Columns shared by trip_rods, trip_lures and trip_groundbaits.

    Subclasses set `equipment_kind` ("rod", "lure", "groundbait"); the
    equipment id and snapshot columns are named after it.
    """

    equipment_kind: ClassVar[str] = ""

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
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    @declared_attr.directive
    def __table_args__(cls):
        kind = cls.equipment_kind
        return (
            UniqueConstraint("trip_id", f"{kind}_id", name=f"trip_{kind}s_unique"),
            Index(f"idx_trip_{kind}s_trip_id", "trip_id"),
        )


class TripRod(AssignmentMixin, Base):
    __tablename__ = "trip_rods"
    equipment_kind = "rod"

    rod_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("rods.id"), nullable=False
    )
    rod_name_snapshot: Mapped[str] = mapped_column(String(255), nullable=False)


class TripLure(AssignmentMixin, Base):
    __tablename__ = "trip_lures"
    equipment_kind = "lure"

    lure_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lures.id"), nullable=False
    )
    lure_name_snapshot: Mapped[str] = mapped_column(String(255), nullable=False)


class TripGroundbait(AssignmentMixin, Base):
    __tablename__ = "trip_groundbaits"
    equipment_kind = "groundbait"

    groundbait_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("groundbaits.id"), nullable=False
    )
    groundbait_name_snapshot: Mapped[str] = mapped_column(String(255), nullable=False)
