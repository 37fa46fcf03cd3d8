from pydantic import BaseModel, Field
from typing import Any, List, Optional
import uuid


def _rid():
    return uuid.uuid4().hex


class SuccessResponse(BaseModel):
    """Success wrapper shared by all endpoints: data, success flag and request_id"""
    success: Optional[bool] = Field(default=True)
    request_id: str = Field(default_factory=_rid)
    data: Optional[Any] = None


class ErrorBody(BaseModel):
    code: str  # Stable machine-readable code, e.g. IDEMPOTENCY_CONFLICT
    title: str
    detail: Optional[str] = None
    errors: Optional[List[Any]] = None  # Validation errors only


class ErrorResponse(BaseModel):
    """Error wrapper written by the exception handlers."""
    success: bool = False
    error: ErrorBody
    request_id: str = Field(default_factory=_rid)
