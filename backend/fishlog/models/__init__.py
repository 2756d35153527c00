"""
FishLog Backend — ORM Models
==============================

Importing this package registers every table on `Base.metadata`, which both
Alembic and the SQLAlchemy row store resolve table names against.
"""

from fishlog.models.catch import Catch
from fishlog.models.equipment import (
    FishSpecies,
    Groundbait,
    Lure,
    Rod,
    TripGroundbait,
    TripLure,
    TripRod,
)
from fishlog.models.trip import TRIP_STATUSES, Trip
from fishlog.models.weather import WEATHER_SOURCES, WeatherHour, WeatherSnapshot

__all__ = [
    "Catch",
    "FishSpecies",
    "Groundbait",
    "Lure",
    "Rod",
    "TRIP_STATUSES",
    "Trip",
    "TripGroundbait",
    "TripLure",
    "TripRod",
    "WEATHER_SOURCES",
    "WeatherHour",
    "WeatherSnapshot",
]
