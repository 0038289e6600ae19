from __future__ import annotations

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from utils.time_utils import utcnow

T = TypeVar("T")


class ApiError(BaseModel):
    """Standard error payload for API responses."""

    code: str = Field(default="error")
    message: str
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore")


class ApiMeta(BaseModel):
    """Metadata attached to every response."""

    request_id: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: utcnow().isoformat())

    model_config = ConfigDict(extra="ignore")


class ApiResponse(BaseModel, Generic[T]):
    """Standard envelope for all API responses.

    `count` is set for list payloads and is None otherwise.
    """

    success: bool
    count: Optional[int] = None
    data: Optional[T] = None
    error: Optional[ApiError] = None
    meta: ApiMeta = Field(default_factory=ApiMeta)

    model_config = ConfigDict(extra="ignore")


def ok(
    data: Any = None,
    *,
    count: Optional[int] = None,
    meta: Optional[ApiMeta] = None,
) -> Dict[str, Any]:
    """Create a success envelope as a JSON-serializable dict.

    When `data` is a list and `count` is not given, `count` is its length.
    """

    if count is None and isinstance(data, list):
        count = len(data)
    payload = ApiResponse[Any](
        success=True, count=count, data=data, error=None, meta=meta or ApiMeta()
    )
    return payload.model_dump(mode="json")


def fail(
    message: str,
    *,
    code: str = "error",
    details: Optional[Dict[str, Any]] = None,
    meta: Optional[ApiMeta] = None,
) -> Dict[str, Any]:
    """Create an error envelope as a JSON-serializable dict."""

    payload = ApiResponse[None](
        success=False,
        data=None,
        error=ApiError(code=code, message=message, details=details),
        meta=meta or ApiMeta(),
    )
    return payload.model_dump(mode="json")
