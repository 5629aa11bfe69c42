"""Pydantic schemas for registration and the authenticated caller."""

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    """Request schema for registering a user account."""

    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")


class APIKeyResponse(BaseModel):
    """Response schema after an account and its API key are created.

    The api_key is shown exactly once. It is stored only as a hash in the
    database and cannot be retrieved again after this response.
    """

    api_key: str
    user_id: int
    username: str
    message: str = "Store this key securely -- it cannot be retrieved again"


class MeResponse(BaseModel):
    id: int
    username: str
    role: str
    is_banned: bool
