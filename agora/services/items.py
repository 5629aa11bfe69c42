"""Item references: a (type, id) pair pointing at a post or a comment."""

from dataclasses import dataclass
from typing import Any, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agora.errors import NotFoundError
from agora.models.comment import Comment
from agora.models.post import Post
from agora.models.vote import ItemType

ITEM_MODELS: dict[ItemType, type[Union[Post, Comment]]] = {
    ItemType.post: Post,
    ItemType.comment: Comment,
}


@dataclass(frozen=True)
class ItemRef:
    item_type: ItemType
    item_id: int

    @property
    def model(self) -> type[Union[Post, Comment]]:
        return ITEM_MODELS[self.item_type]

    @property
    def key(self) -> str:
        """Key used in vote status maps, e.g. ``post_12``."""
        return f"{self.item_type.value}_{self.item_id}"

    @classmethod
    def parse(cls, raw: Any) -> Optional["ItemRef"]:
        """Build a reference from a loose ``{"id": ..., "type": ...}`` mapping.

        Returns None for anything malformed instead of raising: batch callers
        drop invalid entries silently.
        """
        if not isinstance(raw, dict):
            return None
        try:
            item_type = ItemType(raw.get("type"))
        except ValueError:
            return None
        item_id = raw.get("id")
        # bool is an int subclass; reject it explicitly
        if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id < 1:
            return None
        return cls(item_type=item_type, item_id=item_id)


async def item_exists(db: AsyncSession, item: ItemRef) -> bool:
    model = item.model
    result = await db.execute(select(model.id).where(model.id == item.item_id))
    return result.scalar_one_or_none() is not None


async def ensure_item_exists(db: AsyncSession, item: ItemRef) -> None:
    if not await item_exists(db, item):
        raise NotFoundError(f"{item.item_type.value.capitalize()} not found")
