"""Vote ledger: one vote per (user, item) and the item's aggregate counter.

Casting a vote is a toggle:

- no vote yet        -> insert it,            counter += weight
- same type again    -> delete it (toggle-off), counter -= weight of the removed vote
- the other type     -> flip it,              counter += 2 * weight of the new type

Design notes:
- The vote row change and the counter change happen in one transaction. The
  counter moves by a column expression (``votes = votes + delta``) and the new
  value comes back from the same UPDATE via RETURNING, so concurrent voters on
  the same item never overwrite each other and the caller never sees a stale
  total.
- Two requests from the same user on the same item race on the vote row.
  The unique constraint rejects a second first-vote insert, and the delete and
  flip statements are conditional on the vote_type we read. Either way the
  loser rolls back and starts over from a fresh read, up to
  ``settings.vote_max_attempts`` times.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agora.config import settings
from agora.errors import ConflictError, NotFoundError
from agora.metrics import vote_retries, votes_applied
from agora.models.vote import Vote, VoteType
from agora.services.identity import Principal
from agora.services.items import ItemRef, ensure_item_exists

log = structlog.get_logger()


@dataclass(frozen=True)
class VoteResult:
    votes: int
    user_vote: Optional[VoteType]
    action: str  # created | removed | updated


class _VoteChanged(Exception):
    """The vote row changed between our read and our write."""


class VoteLedger:
    def __init__(self, db: AsyncSession, max_attempts: int = settings.vote_max_attempts) -> None:
        self._db = db
        self._max_attempts = max_attempts

    async def cast(self, principal: Principal, item: ItemRef, vote_type: VoteType) -> VoteResult:
        """Cast, flip or withdraw ``principal``'s vote on ``item``."""
        for attempt in range(1, self._max_attempts + 1):
            await ensure_item_exists(self._db, item)
            try:
                result = await self._apply(principal, item, vote_type)
            except (IntegrityError, _VoteChanged):
                await self._db.rollback()
                vote_retries.inc()
                log.info(
                    "vote_retry",
                    user_id=principal.id,
                    item=item.key,
                    attempt=attempt,
                )
                continue
            except NotFoundError:
                await self._db.rollback()
                raise
            await self._db.commit()

            votes_applied.labels(item_type=item.item_type.value, action=result.action).inc()
            log.info(
                "vote_applied",
                user_id=principal.id,
                item=item.key,
                action=result.action,
                votes=result.votes,
            )
            return result

        raise ConflictError("Vote could not be applied due to concurrent updates, retry")

    async def _apply(self, principal: Principal, item: ItemRef, vote_type: VoteType) -> VoteResult:
        existing = await self._db.execute(
            select(Vote.id, Vote.vote_type)
            .where(
                Vote.user_id == principal.id,
                Vote.item_type == item.item_type.value,
                Vote.item_id == item.item_id,
            )
            .with_for_update()
        )
        row = existing.one_or_none()

        if row is None:
            self._db.add(
                Vote(
                    user_id=principal.id,
                    item_type=item.item_type.value,
                    item_id=item.item_id,
                    vote_type=vote_type.value,
                )
            )
            # IntegrityError here means a concurrent first vote won the race
            await self._db.flush()
            delta = vote_type.weight
            action = "created"
            user_vote: Optional[VoteType] = vote_type
        else:
            current = VoteType(row.vote_type)
            if current is vote_type:
                changed = await self._db.execute(
                    delete(Vote)
                    .where(Vote.id == row.id, Vote.vote_type == current.value)
                    .execution_options(synchronize_session=False)
                )
                delta = -current.weight
                action = "removed"
                user_vote = None
            else:
                changed = await self._db.execute(
                    update(Vote)
                    .where(Vote.id == row.id, Vote.vote_type == current.value)
                    .values(vote_type=vote_type.value)
                    .execution_options(synchronize_session=False)
                )
                delta = 2 * vote_type.weight
                action = "updated"
                user_vote = vote_type
            if changed.rowcount != 1:
                raise _VoteChanged()

        model = item.model
        counter = await self._db.execute(
            update(model)
            .where(model.id == item.item_id)
            .values(votes=model.votes + delta)
            .returning(model.votes)
            .execution_options(synchronize_session=False)
        )
        votes = counter.scalar_one_or_none()
        if votes is None:
            # Deleted between the existence check and the counter update
            raise NotFoundError(f"{item.item_type.value.capitalize()} not found")

        return VoteResult(votes=votes, user_vote=user_vote, action=action)

    async def status(self, principal: Principal, raw_items: Iterable[Any]) -> dict[str, str]:
        """Map ``"<type>_<id>"`` to the caller's vote for each voted item.

        Malformed entries are dropped and items the caller has not voted on
        are absent from the result. Read-only.
        """
        items = {ref for ref in (ItemRef.parse(raw) for raw in raw_items) if ref is not None}
        if not items:
            return {}

        ids_by_type: dict[str, set[int]] = {}
        for ref in items:
            ids_by_type.setdefault(ref.item_type.value, set()).add(ref.item_id)

        result = await self._db.execute(
            select(Vote.item_type, Vote.item_id, Vote.vote_type).where(
                Vote.user_id == principal.id,
                or_(
                    *(
                        and_(Vote.item_type == item_type, Vote.item_id.in_(sorted(ids)))
                        for item_type, ids in ids_by_type.items()
                    )
                ),
            )
        )
        return {f"{row.item_type}_{row.item_id}": row.vote_type for row in result.all()}

    async def votes_for(self, principal: Principal, item_type: str, item_ids: list[int]) -> dict[int, str]:
        """The caller's votes on several items of one type, keyed by item id."""
        if not item_ids:
            return {}
        result = await self._db.execute(
            select(Vote.item_id, Vote.vote_type).where(
                Vote.user_id == principal.id,
                Vote.item_type == item_type,
                Vote.item_id.in_(item_ids),
            )
        )
        return {row.item_id: row.vote_type for row in result.all()}
