"""
API request and response models.

Every response is wrapped in a success or error envelope; request bodies for
the POST endpoints are validated with the body models below.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from bird_db.query.results import Pagination


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SuccessResponse(BaseModel):
    """Envelope for successful responses."""

    success: bool = True
    message: str = Field(..., description="Human-readable summary")
    timestamp: str = Field(default_factory=utc_timestamp)
    data: Any = Field(None, description="Response payload")
    pagination: Pagination | None = Field(
        None, description="Page metadata (paginated endpoints only)"
    )

    def to_content(self) -> dict[str, Any]:
        content = self.model_dump(by_alias=True)
        if self.pagination is None:
            del content["pagination"]
        return content


class ErrorResponse(BaseModel):
    """Envelope for failed responses."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    error: str = Field(..., description="Error summary")
    timestamp: str = Field(default_factory=utc_timestamp)
    status_code: int = Field(..., alias="statusCode")
    details: Any = Field(None, description="Additional context, when available")

    def to_content(self) -> dict[str, Any]:
        content = self.model_dump(by_alias=True)
        if self.details is None:
            del content["details"]
        return content


class PageParams(BaseModel):
    """Optional page/limit accepted in POST bodies."""

    page: int | str | None = None
    limit: int | str | None = None


class CustomQueryRequest(PageParams):
    """Body of POST /api/custom."""

    filters: dict[str, Any]


class RawQueryRequest(PageParams):
    """Body of POST /api/query."""

    query: StrictStr = Field(..., min_length=1)


class HealthStatus(BaseModel):
    status: str
    uptime: float = Field(..., description="Seconds since startup")
    engine_ready: bool = Field(..., serialization_alias="engineReady")
    timestamp: str = Field(default_factory=utc_timestamp)
