"""
FishLog Backend
================

Service layer and HTTP API for a fishing log: trips, catches, the rods,
lures and groundbaits used on them, weather snapshots and catch photos.

Layers:
    routes/     HTTP only: parse input, call a service, unwrap the result
    services/   business rules; return ServiceResult, never raise for
                expected failures
    store/      row store (SQLAlchemy / PostgreSQL) and blob store
                (local disk / Supabase Storage) behind small interfaces
    models/     SQLAlchemy tables, used by the row store and Alembic
    schemas/    Pydantic request and response models
"""

__version__ = "1.0.0"
