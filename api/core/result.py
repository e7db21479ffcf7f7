"""
Success-or-error container returned by service functions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .errors import AppError

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    value: Any = None
    error: AppError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AppError) -> "ServiceResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """
        Return the value, or raise the error for the registered error handlers.
        """
        if self.error is not None:
            raise self.error
        return self.value
