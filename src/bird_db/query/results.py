"""
Result normalization and pagination.
"""

import math
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bird_db.errors import ValidationError


def normalize_records(result: Any) -> list:
    """
    Coerce an evaluation result into a list.

    JSONata collapses single-item sequences into the item itself and yields
    nothing for an empty match; callers expecting records always get a list.
    """
    if result is None:
        return []
    if isinstance(result, list):
        return result
    return [result]


class Pagination(BaseModel):
    """Page metadata, serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(..., alias="currentPage")
    total_items: int = Field(..., alias="totalItems")
    items_per_page: int = Field(..., alias="itemsPerPage")
    total_pages: int = Field(..., alias="totalPages")
    has_next: bool = Field(..., alias="hasNext")
    has_prev: bool = Field(..., alias="hasPrev")


@dataclass
class Page:
    results: list
    pagination: Pagination


def paginate(items: list, page: int = 1, limit: int = 50) -> Page:
    """
    Slice ``items`` into one page.

    Args:
        items: Full result list
        page: 1-based page number
        limit: Items per page

    Returns:
        Page with the slice ``[(page-1)*limit, page*limit)`` and metadata.
        Pages past the end are empty rather than an error.

    Raises:
        ValidationError: If ``page`` or ``limit`` is below 1.
    """
    if page < 1:
        raise ValidationError("Page must be at least 1", details=page)
    if limit < 1:
        raise ValidationError("Limit must be at least 1", details=limit)

    total = len(items)
    offset = (page - 1) * limit

    return Page(
        results=items[offset:offset + limit],
        pagination=Pagination(
            current_page=page,
            total_items=total,
            items_per_page=limit,
            total_pages=math.ceil(total / limit),
            has_next=offset + limit < total,
            has_prev=page > 1,
        ),
    )
