import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

# A second first-vote on the same item fails on this constraint and the
# ledger retries from a fresh read.
VOTE_UNIQUE_CONSTRAINT = "uq_votes_user_item"


class ItemType(str, enum.Enum):
    post = "post"
    comment = "comment"


class VoteType(str, enum.Enum):
    up = "up"
    down = "down"

    @property
    def weight(self) -> int:
        """Contribution of one vote of this type to an item's counter."""
        return 1 if self is VoteType.up else -1


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("user_id", "item_type", "item_id", name=VOTE_UNIQUE_CONSTRAINT),
        CheckConstraint("item_type IN ('post', 'comment')", name="item_type"),
        CheckConstraint("vote_type IN ('up', 'down')", name="vote_type"),
        Index("ix_votes_item", "item_type", "item_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Polymorphic item reference: no FK, the pair resolves to posts or comments
    item_type: Mapped[str] = mapped_column(String(10), nullable=False)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    vote_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
