"""Result wrapper distinguishing healthy values from degraded fallbacks."""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ReadStatus(str, Enum):
    """Whether a value came from a successful computation."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"


class ServiceResult(BaseModel, Generic[T]):
    """Value returned by analytics and impact services.

    ``data`` is always well formed. When ``status`` is ``degraded`` it holds
    the documented default for the operation and ``error`` says why.
    """

    status: ReadStatus = Field(default=ReadStatus.HEALTHY)
    data: T
    error: str | None = Field(default=None)

    @property
    def degraded(self) -> bool:
        return self.status == ReadStatus.DEGRADED

    @classmethod
    def ok(cls, data: T) -> "ServiceResult[T]":
        return cls(data=data)

    @classmethod
    def fallback(cls, data: T, error: Exception | str) -> "ServiceResult[T]":
        return cls(status=ReadStatus.DEGRADED, data=data, error=str(error))
