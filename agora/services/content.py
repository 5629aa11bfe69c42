"""Posts and comments: creation (ban-gated) and public reading."""

from typing import Optional
from urllib.parse import urlparse

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agora.errors import InvalidError, NotFoundError
from agora.models.comment import Comment
from agora.models.post import Post
from agora.models.user import User
from agora.models.vote import ItemType
from agora.services.gate import RoleGate
from agora.services.identity import Principal
from agora.services.pagination import Page
from agora.services.votes import VoteLedger

log = structlog.get_logger()

TITLE_MAX_LENGTH = 300
POST_BODY_MAX_LENGTH = 10000
COMMENT_BODY_MAX_LENGTH = 5000


def _validate_url(value: Optional[str], field: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidError(f"{field} must be an http(s) URL")
    return value


def _comment_row(comment: Comment, author: str, user_vote: Optional[str] = None) -> dict:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "body": comment.body,
        "reply_to_id": comment.reply_to_id,
        "votes": comment.votes,
        "created_at": comment.created_at,
        "author": author,
        "user_vote": user_vote,
    }


class ContentService:
    def __init__(self, db: AsyncSession, gate: RoleGate, ledger: VoteLedger) -> None:
        self._db = db
        self._gate = gate
        self._ledger = ledger

    async def create_post(
        self,
        principal: Principal,
        title: str,
        url: Optional[str] = None,
        image_url: Optional[str] = None,
        body: Optional[str] = None,
    ) -> dict:
        await self._gate.check_ban_status(principal)

        title = title.strip()
        if not title:
            raise InvalidError("Title is required")
        if len(title) > TITLE_MAX_LENGTH:
            raise InvalidError(f"Title too long (max {TITLE_MAX_LENGTH} characters)")
        if body is not None:
            body = body.strip() or None
            if body is not None and len(body) > POST_BODY_MAX_LENGTH:
                raise InvalidError(f"Body too long (max {POST_BODY_MAX_LENGTH} characters)")

        post = Post(
            title=title,
            url=_validate_url(url, "url"),
            image_url=_validate_url(image_url, "image_url"),
            body=body,
            author_id=principal.id,
        )
        self._db.add(post)
        await self._db.commit()
        await self._db.refresh(post)

        log.info("post_created", post_id=post.id, author_id=principal.id)
        return self._post_row(post, principal.username, False, 0, None)

    async def create_comment(
        self,
        principal: Principal,
        post_id: int,
        body: str,
        reply_to_id: Optional[int] = None,
    ) -> dict:
        await self._gate.check_ban_status(principal)

        body = body.strip()
        if not body:
            raise InvalidError("Comment body is required")
        if len(body) > COMMENT_BODY_MAX_LENGTH:
            raise InvalidError(f"Comment too long (max {COMMENT_BODY_MAX_LENGTH} characters)")

        result = await self._db.execute(select(Post.id).where(Post.id == post_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Post not found")

        if reply_to_id is not None:
            result = await self._db.execute(
                select(Comment.id).where(Comment.id == reply_to_id, Comment.post_id == post_id)
            )
            if result.scalar_one_or_none() is None:
                raise NotFoundError("Parent comment not found")

        comment = Comment(post_id=post_id, author_id=principal.id, body=body, reply_to_id=reply_to_id)
        self._db.add(comment)
        await self._db.commit()
        await self._db.refresh(comment)

        log.info("comment_created", comment_id=comment.id, post_id=post_id, author_id=principal.id)
        return _comment_row(comment, principal.username)

    @staticmethod
    def _post_row(
        post: Post, author: str, author_banned: bool, comment_count: int, user_vote: Optional[str]
    ) -> dict:
        return {
            "id": post.id,
            "title": post.title,
            "url": post.url,
            "image_url": post.image_url,
            "body": post.body,
            "votes": post.votes,
            "created_at": post.created_at,
            "author": author,
            "author_banned": bool(author_banned),
            "comment_count": comment_count,
            "user_vote": user_vote,
        }

    def _posts_query(self):
        comment_counts = (
            select(Comment.post_id, func.count(Comment.id).label("comment_count"))
            .group_by(Comment.post_id)
            .subquery()
        )
        return (
            select(
                Post,
                User.username.label("author"),
                User.is_banned.label("author_banned"),
                func.coalesce(comment_counts.c.comment_count, 0).label("comment_count"),
            )
            .join(User, User.id == Post.author_id)
            .outerjoin(comment_counts, comment_counts.c.post_id == Post.id)
            .execution_options(populate_existing=True)
        )

    async def list_posts(self, principal: Optional[Principal] = None, page: Page = Page()) -> list[dict]:
        """Newest posts first, each with the caller's vote when authenticated."""
        result = await self._db.execute(
            self._posts_query()
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        rows = result.all()

        user_votes: dict[int, str] = {}
        if principal is not None:
            user_votes = await self._ledger.votes_for(
                principal, ItemType.post.value, [row.Post.id for row in rows]
            )
        return [
            self._post_row(row.Post, row.author, row.author_banned, row.comment_count, user_votes.get(row.Post.id))
            for row in rows
        ]

    async def list_comments(self, post_id: int, principal: Optional[Principal] = None) -> list[dict]:
        """All comments of a post, oldest first."""
        result = await self._db.execute(select(Post.id).where(Post.id == post_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Post not found")

        result = await self._db.execute(
            select(Comment, User.username.label("author"))
            .join(User, User.id == Comment.author_id)
            .where(Comment.post_id == post_id)
            .execution_options(populate_existing=True)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        rows = result.all()

        user_votes: dict[int, str] = {}
        if principal is not None:
            user_votes = await self._ledger.votes_for(
                principal, ItemType.comment.value, [row.Comment.id for row in rows]
            )
        return [_comment_row(row.Comment, row.author, user_votes.get(row.Comment.id)) for row in rows]

    async def get_post(self, post_id: int, principal: Optional[Principal] = None) -> dict:
        result = await self._db.execute(self._posts_query().where(Post.id == post_id))
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("Post not found")

        user_vote = None
        if principal is not None:
            votes = await self._ledger.votes_for(principal, ItemType.post.value, [post_id])
            user_vote = votes.get(post_id)

        post = self._post_row(row.Post, row.author, row.author_banned, row.comment_count, user_vote)
        post["comments"] = await self.list_comments(post_id, principal)
        return post
