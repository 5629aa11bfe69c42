"""Posts and comments: validation, the ban gate and public reads."""

import pytest
from sqlalchemy import update

from agora.errors import ForbiddenError, InvalidError, NotFoundError, UnauthenticatedError
from agora.models.user import User
from agora.models.vote import VoteType
from agora.services.identity import Principal
from agora.services.pagination import Page


class TestCreatePost:
    async def test_title_is_trimmed(self, content, alice):
        post = await content.create_post(alice.principal, "  Hello  ", url="https://example.com/a")
        assert post["title"] == "Hello"
        assert post["url"] == "https://example.com/a"
        assert post["author"] == "alice"
        assert post["votes"] == 0

    @pytest.mark.parametrize("title", ["", "   ", "x" * 301])
    async def test_bad_title(self, content, alice, title):
        with pytest.raises(InvalidError):
            await content.create_post(alice.principal, title)

    @pytest.mark.parametrize("url", ["ftp://example.com", "javascript:alert(1)", "example.com"])
    async def test_non_http_url_rejected(self, content, alice, url):
        with pytest.raises(InvalidError):
            await content.create_post(alice.principal, "Link", url=url)

    async def test_body_limit(self, content, alice):
        with pytest.raises(InvalidError):
            await content.create_post(alice.principal, "Long", body="x" * 10001)


class TestCreateComment:
    async def test_reply_within_post(self, content, alice, post, comment):
        reply = await content.create_comment(alice.principal, post.item_id, " agreed ", reply_to_id=comment.item_id)
        assert reply["body"] == "agreed"
        assert reply["reply_to_id"] == comment.item_id

    async def test_reply_to_comment_of_other_post(self, content, alice, bob, comment):
        other = await content.create_post(bob.principal, "Elsewhere")
        with pytest.raises(NotFoundError, match="Parent comment"):
            await content.create_comment(alice.principal, other["id"], "hi", reply_to_id=comment.item_id)

    async def test_missing_post(self, content, alice):
        with pytest.raises(NotFoundError, match="Post"):
            await content.create_comment(alice.principal, 404, "hi")

    @pytest.mark.parametrize("body", ["", "  ", "x" * 5001])
    async def test_bad_body(self, content, alice, post, body):
        with pytest.raises(InvalidError):
            await content.create_comment(alice.principal, post.item_id, body)


class TestBanGate:
    async def test_banned_user_cannot_post_or_comment(self, content, executor, mod, bob, post):
        await executor.ban_user(mod.principal, "bob")
        with pytest.raises(ForbiddenError, match="banned"):
            await content.create_post(bob.principal, "Let me back")
        with pytest.raises(ForbiddenError):
            await content.create_comment(bob.principal, post.item_id, "hello?")

    async def test_unban_restores_posting(self, content, executor, mod, bob):
        await executor.ban_user(mod.principal, "bob")
        await executor.unban_user(mod.principal, "bob")
        created = await content.create_post(bob.principal, "Back again")
        assert created["author"] == "bob"

    async def test_ban_takes_effect_without_new_principal(self, db, content, bob):
        await db.execute(update(User).where(User.id == bob.principal.id).values(is_banned=True))
        await db.commit()
        with pytest.raises(ForbiddenError):
            await content.create_post(bob.principal, "Sneaky")

    async def test_unknown_principal(self, content):
        with pytest.raises(UnauthenticatedError):
            await content.create_post(Principal(id=999, username="ghost"), "Boo")


class TestReading:
    async def test_list_posts_with_user_vote(self, content, ledger, alice, bob, post):
        second = await content.create_post(bob.principal, "Second")
        await ledger.cast(alice.principal, post, VoteType.down)

        posts = await content.list_posts(alice.principal)
        assert [p["title"] for p in posts] == ["Second", "First post"]
        by_title = {p["title"]: p for p in posts}
        assert by_title["First post"]["user_vote"] == "down"
        assert by_title["First post"]["votes"] == -1
        assert by_title["Second"]["user_vote"] is None

        anonymous = await content.list_posts(None)
        assert all(p["user_vote"] is None for p in anonymous)
        assert second["id"] in {p["id"] for p in anonymous}

    async def test_list_posts_pagination(self, content, alice):
        for i in range(3):
            await content.create_post(alice.principal, f"Post {i}")
        page = Page(page=2, limit=2)
        rows = await content.list_posts(None, page)
        assert [p["title"] for p in rows] == ["Post 0"]
        assert page.has_more(rows) is False

    async def test_get_post_with_comments(self, content, ledger, alice, post, comment):
        await ledger.cast(alice.principal, comment, VoteType.up)
        detail = await content.get_post(post.item_id, alice.principal)
        assert detail["comment_count"] == 1
        assert detail["comments"][0]["author"] == "bob"
        assert detail["comments"][0]["user_vote"] == "up"
        assert detail["comments"][0]["votes"] == 1

    async def test_get_missing_post(self, content):
        with pytest.raises(NotFoundError):
            await content.get_post(404)

    async def test_comments_oldest_first(self, content, alice, post, comment):
        later = await content.create_comment(alice.principal, post.item_id, "Later")
        rows = await content.list_comments(post.item_id)
        assert [c["id"] for c in rows] == [comment.item_id, later["id"]]

    async def test_comment_vote_map_is_per_type(self, content, ledger, alice, post, comment):
        # Both are the first row of their table, so they share an id
        assert post.item_id == comment.item_id
        await ledger.cast(alice.principal, post, VoteType.up)
        rows = await content.list_comments(post.item_id, alice.principal)
        assert rows[0]["user_vote"] is None
