"""Pydantic schemas for voting on posts and comments."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from agora.models.vote import ItemType, VoteType


class VoteCreate(BaseModel):
    """Cast, flip or withdraw a vote. Sending the current vote again withdraws it."""

    item_id: int = Field(ge=1)
    item_type: ItemType
    vote_type: VoteType


class VoteResponse(BaseModel):
    votes: int
    user_vote: Optional[VoteType] = None
    action: str
    message: str


class VoteStatusRequest(BaseModel):
    """Items to look up, as ``{"id": ..., "type": ...}`` objects.

    Entries are deliberately loose: malformed ones are skipped rather than
    failing the whole batch.
    """

    items: list[Any] = Field(default_factory=list, max_length=100)


class VoteStatusResponse(BaseModel):
    # "<type>_<id>" -> "up" | "down", only for items the caller voted on
    votes: dict[str, str]
