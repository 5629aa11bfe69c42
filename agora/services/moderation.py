"""Moderation action executor.

Every operation starts with a fresh role check through the gate, so a
non-moderator is rejected even when the target exists. Mutations follow the
same three steps:

1. apply the change and commit it,
2. capture the result to return,
3. append an audit entry (best-effort, see ``AuditLog.record``).

A mutation that fails raises before step 3, so no audit entry describes an
action that did not happen. Browsing operations are read-only and are not
audited.

Deleting a post or comment also drops the votes cast on it and closes out
pending reports against it by moving them to ``reviewed``, in the same
transaction. The same applies to the comments a deleted post takes with it;
the comment rows themselves are removed by the store's foreign keys.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agora.errors import ConflictError, InvalidError, NotFoundError
from agora.models.comment import Comment
from agora.models.post import Post
from agora.models.report import Report, ReportStatus
from agora.models.user import User, UserRole
from agora.models.vote import ItemType, Vote
from agora.services.audit import AuditLog
from agora.services.filters import FilterBuilder, contains
from agora.services.gate import RoleGate
from agora.services.identity import Principal
from agora.services.pagination import Page
from agora.services.reports import snippet


@dataclass(frozen=True)
class ContentFilters:
    search: Optional[str] = None
    author: Optional[str] = None
    status: str = "all"  # all | reported | normal
    sort_by: str = "created_at"  # created_at | votes


@dataclass(frozen=True)
class UserFilters:
    search: Optional[str] = None
    sort_by: str = "created_at"  # created_at | posts | comments


@dataclass(frozen=True)
class UserContentDeletion:
    username: str
    deleted_posts: int
    deleted_comments: int


def _pending_report_exists(item_type: ItemType, item_id_column):
    return exists().where(
        Report.item_type == item_type.value,
        Report.item_id == item_id_column,
        Report.status == ReportStatus.pending.value,
    )


def _truncate(text: str, length: int = 500) -> str:
    return text if len(text) <= length else f"{text[: length - 3]}..."


class ModerationExecutor:
    def __init__(self, db: AsyncSession, gate: RoleGate, audit: AuditLog) -> None:
        self._db = db
        self._gate = gate
        self._audit = audit

    async def _record(
        self,
        moderator: Principal,
        action: str,
        target_type: Optional[str],
        target_id: Optional[int],
        details: str,
    ) -> None:
        await self._audit.record_action(moderator.id, action, target_type, target_id, details)

    async def _retire_items(self, post_ids: list[int], comment_ids: list[int]) -> None:
        """Drop the votes and close the pending reports of content about to be deleted.

        Comments under ``post_ids`` go with their posts, so they are retired
        too. Must run in the deleting transaction, before the rows go.
        """
        if post_ids:
            result = await self._db.execute(select(Comment.id).where(Comment.post_id.in_(post_ids)))
            comment_ids = sorted(set(comment_ids) | set(result.scalars().all()))

        for item_type, item_ids in ((ItemType.post, post_ids), (ItemType.comment, comment_ids)):
            if not item_ids:
                continue
            await self._db.execute(
                delete(Vote).where(Vote.item_type == item_type.value, Vote.item_id.in_(item_ids))
            )
            await self._mark_reports_reviewed(item_type, item_ids)

    async def _mark_reports_reviewed(self, item_type: ItemType, item_ids: Iterable[int]) -> None:
        await self._db.execute(
            update(Report)
            .where(
                Report.item_type == item_type.value,
                Report.item_id.in_(list(item_ids)),
                Report.status == ReportStatus.pending.value,
            )
            .values(status=ReportStatus.reviewed.value)
        )

    async def _get_user(self, username: str) -> User:
        result = await self._db.execute(
            select(User).where(User.username == username).execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")
        return user

    # ------------------------------------------------------------------
    # Content deletion
    # ------------------------------------------------------------------

    async def delete_post(self, moderator: Principal, post_id: int) -> None:
        await self._gate.require_moderator(moderator)

        result = await self._db.execute(select(Post.id, Post.title).where(Post.id == post_id))
        post = result.one_or_none()
        if post is None:
            raise NotFoundError("Post not found")

        await self._retire_items([post_id], [])
        await self._db.execute(delete(Post).where(Post.id == post_id))
        await self._db.commit()

        await self._record(moderator, "delete_post", "post", post_id, f'Deleted post: "{post.title}"')

    async def delete_comment(self, moderator: Principal, comment_id: int) -> None:
        await self._gate.require_moderator(moderator)

        result = await self._db.execute(select(Comment.id, Comment.body).where(Comment.id == comment_id))
        comment = result.one_or_none()
        if comment is None:
            raise NotFoundError("Comment not found")

        await self._retire_items([], [comment_id])
        await self._db.execute(delete(Comment).where(Comment.id == comment_id))
        await self._db.commit()

        await self._record(
            moderator, "delete_comment", "comment", comment_id, f'Deleted comment: "{snippet(comment.body)}"'
        )

    async def bulk_delete_posts(self, moderator: Principal, post_ids: Iterable[int]) -> int:
        """Delete the posts among ``post_ids`` that exist; return how many were deleted."""
        await self._gate.require_moderator(moderator)

        requested = sorted(set(post_ids))
        if not requested:
            raise InvalidError("post_ids must not be empty")

        result = await self._db.execute(
            select(Post.id, Post.title).where(Post.id.in_(requested)).order_by(Post.id)
        )
        posts = result.all()
        if not posts:
            raise NotFoundError("No posts found")

        found_ids = [post.id for post in posts]
        await self._retire_items(found_ids, [])
        await self._db.execute(delete(Post).where(Post.id.in_(found_ids)))
        await self._db.commit()

        titles = ", ".join(post.title for post in posts)
        await self._record(
            moderator,
            "bulk_delete_posts",
            "post",
            None,
            _truncate(f"Bulk deleted {len(found_ids)} posts: {titles}"),
        )
        return len(found_ids)

    async def bulk_delete_comments(self, moderator: Principal, comment_ids: Iterable[int]) -> int:
        """Delete the comments among ``comment_ids`` that exist; return how many were deleted."""
        await self._gate.require_moderator(moderator)

        requested = sorted(set(comment_ids))
        if not requested:
            raise InvalidError("comment_ids must not be empty")

        result = await self._db.execute(select(Comment.id).where(Comment.id.in_(requested)))
        found_ids = sorted(result.scalars().all())
        if not found_ids:
            raise NotFoundError("No comments found")

        await self._retire_items([], found_ids)
        await self._db.execute(delete(Comment).where(Comment.id.in_(found_ids)))
        await self._db.commit()

        await self._record(
            moderator,
            "bulk_delete_comments",
            "comment",
            None,
            f"Bulk deleted {len(found_ids)} comments: ids {', '.join(map(str, found_ids))}",
        )
        return len(found_ids)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def ban_user(self, moderator: Principal, username: str) -> None:
        await self._gate.require_moderator(moderator)

        user = await self._get_user(username)
        if user.is_banned:
            raise ConflictError("User is already banned")

        changed = await self._db.execute(
            update(User)
            .where(User.id == user.id, User.is_banned.is_(False))
            .values(is_banned=True)
        )
        if changed.rowcount != 1:
            await self._db.rollback()
            raise ConflictError("User is already banned")
        await self._db.commit()

        await self._record(moderator, "ban_user", "user", user.id, f"Banned user: {username}")

    async def unban_user(self, moderator: Principal, username: str) -> None:
        await self._gate.require_moderator(moderator)

        user = await self._get_user(username)
        if not user.is_banned:
            raise ConflictError("User is not banned")

        changed = await self._db.execute(
            update(User)
            .where(User.id == user.id, User.is_banned.is_(True))
            .values(is_banned=False)
        )
        if changed.rowcount != 1:
            await self._db.rollback()
            raise ConflictError("User is not banned")
        await self._db.commit()

        await self._record(moderator, "unban_user", "user", user.id, f"Unbanned user: {username}")

    async def change_role(self, moderator: Principal, username: str, role: UserRole) -> None:
        """Grant or revoke moderation rights. Admins only."""
        await self._gate.require_admin(moderator)

        user = await self._get_user(username)
        previous = user.role
        if previous == role.value:
            raise ConflictError(f"User already has role {role.value}")

        await self._db.execute(
            update(User)
            .where(User.id == user.id)
            .values(role=role.value)
        )
        await self._db.commit()

        await self._record(
            moderator, "change_role", "user", user.id, f"Changed role of {username}: {previous} -> {role.value}"
        )

    async def delete_user_content(self, moderator: Principal, username: str) -> UserContentDeletion:
        """Delete every post and comment the user authored; the account stays."""
        await self._gate.require_moderator(moderator)

        user = await self._get_user(username)
        post_ids = list((await self._db.execute(select(Post.id).where(Post.author_id == user.id))).scalars())
        comment_ids = list(
            (await self._db.execute(select(Comment.id).where(Comment.author_id == user.id))).scalars()
        )

        await self._retire_items(post_ids, comment_ids)
        await self._db.execute(delete(Comment).where(Comment.author_id == user.id))
        await self._db.execute(delete(Post).where(Post.author_id == user.id))
        await self._db.commit()

        outcome = UserContentDeletion(
            username=username,
            deleted_posts=len(post_ids),
            deleted_comments=len(comment_ids),
        )
        await self._record(
            moderator,
            "delete_user_content",
            "user",
            user.id,
            f"Deleted all content for user {username}: "
            f"{outcome.deleted_posts} posts, {outcome.deleted_comments} comments",
        )
        return outcome

    # ------------------------------------------------------------------
    # Browsing (read-only, not audited)
    # ------------------------------------------------------------------

    async def list_posts(
        self, moderator: Principal, filters: ContentFilters = ContentFilters(), page: Page = Page()
    ) -> list[dict]:
        await self._gate.require_moderator(moderator)

        comment_counts = (
            select(Comment.post_id, func.count(Comment.id).label("comment_count"))
            .group_by(Comment.post_id)
            .subquery()
        )
        is_reported = _pending_report_exists(ItemType.post, Post.id)

        where = FilterBuilder().search(filters.search, Post.title, Post.body)
        if filters.author:
            where.add(contains(User.username, filters.author))
        if filters.status == "reported":
            where.add(is_reported)
        elif filters.status == "normal":
            where.add(~is_reported)

        order = Post.votes.desc() if filters.sort_by == "votes" else Post.created_at.desc()
        stmt = (
            select(
                Post,
                User.username.label("author"),
                User.is_banned.label("author_banned"),
                func.coalesce(comment_counts.c.comment_count, 0).label("comment_count"),
                is_reported.label("is_reported"),
            )
            .join(User, User.id == Post.author_id)
            .outerjoin(comment_counts, comment_counts.c.post_id == Post.id)
            .execution_options(populate_existing=True)
        )
        stmt = where.apply(stmt).order_by(order, Post.id.desc()).limit(page.limit).offset(page.offset)

        result = await self._db.execute(stmt)
        return [
            {
                "id": row.Post.id,
                "title": row.Post.title,
                "url": row.Post.url,
                "image_url": row.Post.image_url,
                "body": row.Post.body,
                "votes": row.Post.votes,
                "created_at": row.Post.created_at,
                "author": row.author,
                "author_banned": bool(row.author_banned),
                "comment_count": row.comment_count,
                "is_reported": bool(row.is_reported),
            }
            for row in result.all()
        ]

    async def list_comments(
        self, moderator: Principal, filters: ContentFilters = ContentFilters(), page: Page = Page()
    ) -> list[dict]:
        await self._gate.require_moderator(moderator)

        is_reported = _pending_report_exists(ItemType.comment, Comment.id)

        where = FilterBuilder().search(filters.search, Comment.body, Post.title)
        if filters.author:
            where.add(contains(User.username, filters.author))
        if filters.status == "reported":
            where.add(is_reported)
        elif filters.status == "normal":
            where.add(~is_reported)

        order = Comment.votes.desc() if filters.sort_by == "votes" else Comment.created_at.desc()
        stmt = (
            select(
                Comment,
                User.username.label("author"),
                User.is_banned.label("author_banned"),
                Post.title.label("post_title"),
                is_reported.label("is_reported"),
            )
            .join(User, User.id == Comment.author_id)
            .join(Post, Post.id == Comment.post_id)
            .execution_options(populate_existing=True)
        )
        stmt = where.apply(stmt).order_by(order, Comment.id.desc()).limit(page.limit).offset(page.offset)

        result = await self._db.execute(stmt)
        return [
            {
                "id": row.Comment.id,
                "body": row.Comment.body,
                "votes": row.Comment.votes,
                "created_at": row.Comment.created_at,
                "author": row.author,
                "author_banned": bool(row.author_banned),
                "post_id": row.Comment.post_id,
                "post_title": row.post_title,
                "is_reported": bool(row.is_reported),
            }
            for row in result.all()
        ]

    @staticmethod
    def _user_counts():
        post_count = (
            select(func.count(Post.id)).where(Post.author_id == User.id).correlate(User).scalar_subquery()
        )
        comment_count = (
            select(func.count(Comment.id)).where(Comment.author_id == User.id).correlate(User).scalar_subquery()
        )
        return post_count.label("post_count"), comment_count.label("comment_count")

    async def list_users(
        self, moderator: Principal, filters: UserFilters = UserFilters(), page: Page = Page()
    ) -> list[dict]:
        await self._gate.require_moderator(moderator)

        post_count, comment_count = self._user_counts()
        order = {
            "posts": post_count.desc(),
            "comments": comment_count.desc(),
        }.get(filters.sort_by, User.created_at.desc())

        stmt = select(User, post_count, comment_count).execution_options(populate_existing=True)
        stmt = (
            FilterBuilder()
            .search(filters.search, User.username)
            .apply(stmt)
            .order_by(order, User.id.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        result = await self._db.execute(stmt)
        return [self._user_row(row.User, row.post_count, row.comment_count) for row in result.all()]

    @staticmethod
    def _user_row(user: User, post_count: int, comment_count: int) -> dict:
        return {
            "id": user.id,
            "username": user.username,
            "role": user.role,
            "is_banned": user.is_banned,
            "created_at": user.created_at,
            "post_count": post_count,
            "comment_count": comment_count,
        }

    async def get_user_profile(self, moderator: Principal, username: str) -> dict:
        """A user's account details plus all of their posts and comments."""
        await self._gate.require_moderator(moderator)

        post_count, comment_count = self._user_counts()
        result = await self._db.execute(
            select(User, post_count, comment_count).where(User.username == username)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("User not found")
        user = row.User

        comment_counts = (
            select(Comment.post_id, func.count(Comment.id).label("comment_count"))
            .group_by(Comment.post_id)
            .subquery()
        )
        posts = await self._db.execute(
            select(Post, func.coalesce(comment_counts.c.comment_count, 0).label("comment_count"))
            .outerjoin(comment_counts, comment_counts.c.post_id == Post.id)
            .where(Post.author_id == user.id)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .execution_options(populate_existing=True)
        )
        comments = await self._db.execute(
            select(Comment, Post.title.label("post_title"))
            .join(Post, Post.id == Comment.post_id)
            .where(Comment.author_id == user.id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .execution_options(populate_existing=True)
        )

        profile = self._user_row(user, row.post_count, row.comment_count)
        profile["posts"] = [
            {
                "id": p.Post.id,
                "title": p.Post.title,
                "url": p.Post.url,
                "image_url": p.Post.image_url,
                "body": p.Post.body,
                "votes": p.Post.votes,
                "created_at": p.Post.created_at,
                "comment_count": p.comment_count,
            }
            for p in posts.all()
        ]
        profile["comments"] = [
            {
                "id": c.Comment.id,
                "body": c.Comment.body,
                "votes": c.Comment.votes,
                "created_at": c.Comment.created_at,
                "post_id": c.Comment.post_id,
                "post_title": c.post_title,
            }
            for c in comments.all()
        ]
        return profile

    async def get_stats(self, moderator: Principal) -> dict[str, int]:
        await self._gate.require_moderator(moderator)

        def _reported(item_type: ItemType):
            return (
                select(func.count(func.distinct(Report.item_id)))
                .where(Report.item_type == item_type.value, Report.status == ReportStatus.pending.value)
                .scalar_subquery()
            )

        result = await self._db.execute(
            select(
                select(func.count(Post.id)).scalar_subquery().label("total_posts"),
                select(func.count(Comment.id)).scalar_subquery().label("total_comments"),
                _reported(ItemType.post).label("reported_posts"),
                _reported(ItemType.comment).label("reported_comments"),
                select(func.count(User.id)).scalar_subquery().label("total_users"),
                select(func.count(User.id)).where(User.is_banned.is_(True)).scalar_subquery().label("banned_users"),
            )
        )
        return dict(result.one()._mapping)

    async def list_logs(self, moderator: Principal, page: Page = Page()) -> list[dict]:
        await self._gate.require_moderator(moderator)
        return await self._audit.list_entries(page)
