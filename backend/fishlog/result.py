"""
FishLog Backend — Service Result Type
=======================================

What:  `ServiceResult[T]` holds either a value or a FishLogError.
Why:   Expected failures (not found, invalid input, conflicts) are part of an
       operation's contract, so they are returned, not raised. Exceptions are
       left for programmer errors.
How:   Services build results with `ServiceResult.ok(value)` /
       `ServiceResult.fail(error)`. Route handlers call `unwrap()`, which
       re-raises the error so the global exception handlers can render it.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from fishlog.exceptions import FishLogError

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    data: Optional[T] = None
    error: Optional[FishLogError] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "ServiceResult[T]":
        return cls(data=data)

    @classmethod
    def fail(cls, error: FishLogError) -> "ServiceResult[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the carried domain error."""
        if self.error is not None:
            raise self.error
        return self.data
