"""Shared response shapes."""
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of results. ``limit == 0`` means the page holds every match."""
    items: list[T]
    total: int
    page: int
    limit: int
    pages: int


class CountResponse(BaseModel):
    count: int


class ModifiedCountResponse(BaseModel):
    modified_count: int


class ExistsResponse(BaseModel):
    exists: bool
