"""Common shared schema types used across the API."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class MessageResponse(BaseModel):
    """Acknowledgement for actions that return nothing else."""

    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    # Approximate: true whenever the page came back full
    has_more: bool


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated list response."""

    items: list[T]
    pagination: Pagination
