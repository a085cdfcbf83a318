# campus/utils/pagination.py
"""Pagination utilities for consistent API responses."""
from typing import Any, Dict, List
from pydantic import BaseModel, Field
from fastapi import Query
from math import ceil


class PaginationParams(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_previous: bool


class Paginator:
    @staticmethod
    def get_pagination_params(
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(20, ge=1, le=100, description="Items per page")
    ) -> PaginationParams:
        """FastAPI dependency for list endpoints."""
        return PaginationParams(page=page, limit=limit)

    @staticmethod
    def create_response(items: List[Any], page: int, limit: int, total: int) -> Dict[str, Any]:
        """Wrap one page of formatted rows with its pagination block."""
        total_pages = ceil(total / limit) if limit > 0 else 0
        meta = PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )
        return {"items": items, "pagination": meta.model_dump()}
