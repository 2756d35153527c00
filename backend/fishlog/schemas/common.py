"""
FishLog Backend — Shared Pydantic Schemas
===========================================

What:  Response shapes shared by every router: the keyset page envelope,
       the error envelope, and the health check payload.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PageInfo(BaseModel):
    limit: int = Field(description="Page size that was applied")
    next_cursor: Optional[str] = Field(
        default=None,
        description="Opaque cursor for the next page; null on the last page",
    )


class Page(BaseModel, Generic[T]):
    """`{data: [...], page: {limit, next_cursor}}` returned by every list operation."""

    data: List[T]
    page: PageInfo


class ErrorBody(BaseModel):
    code: str = Field(description="Stable domain error code, e.g. 'validation_error'")
    message: str = Field(description="Human-readable explanation")
    http_status: int = Field(description="HTTP status mirrored in the body")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Field/context hints")


class ErrorResponse(BaseModel):
    """
    Standard error response format for all error cases.

    Example:
        {
            "error": {
                "code": "validation_error",
                "message": "caught_at must be equal to or later than the trip's started_at",
                "http_status": 400,
                "details": {"field": "caught_at"}
            },
            "request_id": "a1b2c3d4"
        }
    """

    error: ErrorBody
    request_id: Optional[str] = Field(default=None, description="Correlation ID for support")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    weather_provider: str = Field(description="Weather provider: available, circuit_open, not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
