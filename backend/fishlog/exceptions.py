"""
FishLog Backend — Domain Error Taxonomy
=========================================

What:  The closed set of domain errors every service operation can report.
Why:   Callers (routes, tests, other services) only ever see these seven codes,
       never raw database or HTTP-client error shapes.
How:   Each error class carries a stable `code`, an HTTP-equivalent status,
       a user-facing message and an optional context dict. Services return
       them inside a ServiceResult; routes unwrap the result and the global
       handlers in main.py render the envelope.
Who:   Built by services and the error mapper; rendered by main.py.

Error Taxonomy:
    FishLogError (base)
    ├── ValidationError               → 400 validation_error
    ├── NotFoundError                 → 404 not_found
    ├── ConflictError                 → 409 conflict
    ├── EquipmentOwnerMismatchError   → 409 equipment_owner_mismatch
    ├── EquipmentSoftDeletedError     → 409 equipment_soft_deleted
    ├── InternalError                 → 500 internal_error
    └── BadGatewayError               → 502 bad_gateway

Design Decision:
    Validation and not-found messages are written to be end-user safe and are
    returned verbatim. Internal and bad-gateway errors expose `public_message`
    instead; their real message and context only go to the log.
"""

from typing import Any, Dict, Optional


class FishLogError(Exception):
    """
    Base class for all FishLog domain errors.

    Attributes:
        message:  Error description (returned to the client unless `exposes_detail` is False)
        context:  Additional debug info (logged, and returned as `details` for 4xx errors)
    """

    code = "internal_error"
    http_status = 500
    exposes_detail = True
    public_message = "An unexpected error occurred. Please try again later."

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    @property
    def safe_message(self) -> str:
        """Message that is safe to show to the API consumer."""
        return self.message if self.exposes_detail else self.public_message

    def to_envelope(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.safe_message,
            "http_status": self.http_status,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(code='{self.code}', message='{self.message}')>"


class ValidationError(FishLogError):
    """
    Input, cursor, or a business invariant is invalid.

    When:    Malformed cursor, catch outside trip range, closed trip without
             an end time, undecodable photo, bad photo path.
    HTTP:    400 Bad Request
    """

    code = "validation_error"
    http_status = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(FishLogError):
    """
    Referenced entity does not exist or is not visible to the caller.

    Soft-deleted trips and trips owned by someone else are reported the same
    way as missing ones, so ids reveal nothing about other users.
    """

    code = "not_found"
    http_status = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class ConflictError(FishLogError):
    """Uniqueness violation, e.g. the same rod assigned twice to one trip."""

    code = "conflict"
    http_status = 409

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EquipmentOwnerMismatchError(FishLogError):
    """Referenced equipment belongs to a different owner than the trip."""

    code = "equipment_owner_mismatch"
    http_status = 409

    def __init__(
        self,
        message: str = "Equipment belongs to another user",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EquipmentSoftDeletedError(FishLogError):
    """Referenced equipment has been soft-deleted and cannot be assigned."""

    code = "equipment_soft_deleted"
    http_status = 409

    def __init__(
        self,
        message: str = "Equipment has been deleted and cannot be used",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InternalError(FishLogError):
    """
    Unexpected store or blob failure.

    Security Note:
        The message returned to the client is always generic. The original
        database/storage message (which can reveal table or bucket names)
        stays in `message`/`context` and is only logged.
    """

    code = "internal_error"
    http_status = 500
    exposes_detail = False

    def __init__(
        self,
        message: str = "Internal error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class BadGatewayError(FishLogError):
    """An external provider (weather API) failed or returned garbage."""

    code = "bad_gateway"
    http_status = 502
    exposes_detail = False
    public_message = "An upstream service is unavailable. Please try again later."

    def __init__(
        self,
        message: str = "Upstream service error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
