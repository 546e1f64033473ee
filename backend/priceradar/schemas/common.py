"""Response envelopes shared by every endpoint."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope. `count` is set for list payloads."""

    status: str = "success"
    data: T
    count: int | None = None


class ErrorDetail(BaseModel):
    """What went wrong, plus the monitor or setting it concerns when known."""

    code: str
    message: str
    monitor_id: str | None = None
    setting: str | None = None


class ErrorResponse(BaseModel):
    status: str = "error"
    error: ErrorDetail
