"""Pydantic schemas for reports and the moderation review queue."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from agora.config import settings
from agora.models.vote import ItemType


class ReportCreate(BaseModel):
    item_id: int = Field(ge=1)
    item_type: ItemType
    reason: Optional[str] = Field(None, max_length=settings.report_reason_max_length)


class ReportResponse(BaseModel):
    """A report as seen by moderators, with the reported content's context."""

    id: int
    item_id: int
    item_type: str
    reason: Optional[str] = None
    status: str
    created_at: datetime
    reporter: str
    # Post title, or a snippet of the comment body
    item_title: Optional[str] = None
    item_author: Optional[str] = None
