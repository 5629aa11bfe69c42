"""Report ORM model.

One row per (reporter, item) pair, ever: the unique constraint covers every
status, so a dismissed report still blocks a second report of the same item
by the same user. Reports are never deleted; moderators move them out of
``pending`` by dismissing them or by deleting the reported content.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

REPORT_UNIQUE_CONSTRAINT = "uq_reports_reporter_item"


class ReportStatus(str, enum.Enum):
    pending = "pending"
    reviewed = "reviewed"
    dismissed = "dismissed"


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint("reporter_id", "item_type", "item_id", name=REPORT_UNIQUE_CONSTRAINT),
        CheckConstraint("item_type IN ('post', 'comment')", name="item_type"),
        CheckConstraint("status IN ('pending', 'reviewed', 'dismissed')", name="status"),
        Index("ix_reports_item", "item_type", "item_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reporter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    item_type: Mapped[str] = mapped_column(String(10), nullable=False)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=ReportStatus.pending.value,
        server_default=ReportStatus.pending.value,
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
