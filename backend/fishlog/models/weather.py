"""
FishLog Backend — Weather Snapshot Models
===========================================

What:  `weather_snapshots` (one fetch or manual entry for a trip) and its
       `weather_hours` children.
Why:   A trip can collect several snapshots over time; the "current" one is
       resolved at read time (newest manual, else newest api).

Cascade:
    Deleting a snapshot deletes its hours via ON DELETE CASCADE, so the
    service issues a single delete.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from fishlog.database import Base
from fishlog.models.trip import utcnow

WEATHER_SOURCES = ("api", "manual")


class WeatherSnapshot(Base):
    __tablename__ = "weather_snapshots"

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
    source: Mapped[str] = mapped_column(String(10), nullable=False, comment="api or manual")
    fetched_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    period_start: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint("period_end >= period_start", name="weather_snapshots_period_valid"),
        CheckConstraint("source IN ('api', 'manual')", name="weather_snapshots_source_valid"),
        Index("idx_weather_snapshots_trip_fetched_at", "trip_id", fetched_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<WeatherSnapshot(id={self.id}, source='{self.source}', fetched_at='{self.fetched_at}')>"


class WeatherHour(Base):
    __tablename__ = "weather_hours"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    snapshot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("weather_snapshots.id", ondelete="CASCADE"),
        nullable=False,
    )
    observed_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    temperature_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    pressure_hpa: Mapped[int | None] = mapped_column(Integer, nullable=True)
    wind_speed_kmh: Mapped[float | None] = mapped_column(Float, nullable=True)
    wind_direction: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="Degrees 0-360")
    humidity_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    precipitation_mm: Mapped[float | None] = mapped_column(Float, nullable=True)
    cloud_cover: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="Percent 0-100")
    weather_icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    weather_text: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_weather_hours_snapshot_observed_at", "snapshot_id", "observed_at"),
    )
