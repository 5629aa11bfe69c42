"""Vote ledger: toggle semantics and the counter invariant.

After every sequence the item's ``votes`` counter must equal the signed sum
of the vote rows that currently exist for it.
"""

import pytest
from sqlalchemy import case, func, select

from agora.errors import ConflictError, NotFoundError
from agora.models.comment import Comment
from agora.models.post import Post
from agora.models.vote import ItemType, Vote, VoteType
from agora.services.items import ItemRef
from agora.services.votes import VoteLedger, _VoteChanged

UP, DOWN = VoteType.up, VoteType.down


async def stored_counter(db, item: ItemRef) -> int:
    model = item.model
    return await db.scalar(select(model.votes).where(model.id == item.item_id))


async def signed_vote_sum(db, item: ItemRef) -> int:
    weight = case((Vote.vote_type == UP.value, 1), else_=-1)
    return await db.scalar(
        select(func.coalesce(func.sum(weight), 0)).where(
            Vote.item_type == item.item_type.value, Vote.item_id == item.item_id
        )
    )


async def assert_invariant(db, item: ItemRef) -> None:
    assert await stored_counter(db, item) == await signed_vote_sum(db, item)


class TestCast:
    async def test_first_vote_creates(self, db, ledger, alice, post):
        result = await ledger.cast(alice.principal, post, UP)
        assert result.action == "created"
        assert result.votes == 1
        assert result.user_vote is UP
        await assert_invariant(db, post)

    async def test_first_downvote_goes_negative(self, db, ledger, alice, post):
        result = await ledger.cast(alice.principal, post, DOWN)
        assert result.votes == -1
        assert result.user_vote is DOWN
        await assert_invariant(db, post)

    async def test_same_type_twice_toggles_off(self, db, ledger, alice, post):
        """Casting the same vote twice returns the item to its pre-vote state."""
        await ledger.cast(alice.principal, post, DOWN)
        result = await ledger.cast(alice.principal, post, DOWN)
        assert result.action == "removed"
        assert result.votes == 0
        assert result.user_vote is None
        assert await db.scalar(select(func.count()).select_from(Vote)) == 0
        await assert_invariant(db, post)

    async def test_switching_twice_restores_original(self, db, ledger, alice, post):
        await ledger.cast(alice.principal, post, UP)
        flipped = await ledger.cast(alice.principal, post, DOWN)
        assert flipped.action == "updated"
        assert flipped.votes == -1
        restored = await ledger.cast(alice.principal, post, UP)
        assert restored.action == "updated"
        assert restored.votes == 1
        assert restored.user_vote is UP
        await assert_invariant(db, post)

    async def test_votes_on_comments(self, db, ledger, alice, bob, comment):
        await ledger.cast(alice.principal, comment, UP)
        result = await ledger.cast(bob.principal, comment, UP)
        assert result.votes == 2
        assert await db.scalar(select(Comment.votes).where(Comment.id == comment.item_id)) == 2
        await assert_invariant(db, comment)

    async def test_same_id_different_type_is_separate(self, db, ledger, alice, post, comment):
        await ledger.cast(alice.principal, post, UP)
        await ledger.cast(alice.principal, comment, DOWN)
        assert await stored_counter(db, post) == 1
        assert await stored_counter(db, comment) == -1

    @pytest.mark.parametrize("item_type", [ItemType.post, ItemType.comment])
    async def test_missing_item_is_not_found(self, db, ledger, alice, item_type):
        with pytest.raises(NotFoundError):
            await ledger.cast(alice.principal, ItemRef(item_type, 999), UP)
        assert await db.scalar(select(func.count()).select_from(Vote)) == 0

    async def test_banned_user_may_vote(self, ledger, executor, mod, bob, post):
        await executor.ban_user(mod.principal, "bob")
        result = await ledger.cast(bob.principal, post, UP)
        assert result.votes == 1


class TestScenario:
    async def test_two_voters_switch_and_toggle(self, db, ledger, alice, bob, post):
        """A up (1), B up (2), A switches to down (0), A toggles down off (1)."""
        steps = [
            (alice, UP, 1),
            (bob, UP, 2),
            (alice, DOWN, 0),
            (alice, DOWN, 1),
        ]
        for account, vote_type, expected in steps:
            result = await ledger.cast(account.principal, post, vote_type)
            assert result.votes == expected
            await assert_invariant(db, post)

        remaining = await db.execute(select(Vote.user_id, Vote.vote_type))
        assert [tuple(row) for row in remaining.all()] == [(bob.principal.id, UP.value)]

    async def test_long_mixed_sequence_keeps_invariant(self, db, ledger, make_account, post, comment):
        accounts = [await make_account(f"voter{i}") for i in range(4)]
        sequence = [UP, DOWN, DOWN, UP, UP, DOWN, UP, UP, DOWN, DOWN, DOWN, UP]
        for i, vote_type in enumerate(sequence):
            account = accounts[i % len(accounts)]
            target = post if i % 3 else comment
            await ledger.cast(account.principal, target, vote_type)
            await assert_invariant(db, post)
            await assert_invariant(db, comment)


class TestRetry:
    async def test_lost_races_exhaust_to_conflict(self, db, alice, post):
        class AlwaysRacing(VoteLedger):
            calls = 0

            async def _apply(self, principal, item, vote_type):
                AlwaysRacing.calls += 1
                raise _VoteChanged()

        ledger = AlwaysRacing(db, max_attempts=3)
        with pytest.raises(ConflictError):
            await ledger.cast(alice.principal, post, UP)
        assert AlwaysRacing.calls == 3
        assert await stored_counter(db, post) == 0

    async def test_recovers_after_one_lost_race(self, db, alice, post):
        class RacingOnce(VoteLedger):
            raced = False

            async def _apply(self, principal, item, vote_type):
                if not RacingOnce.raced:
                    RacingOnce.raced = True
                    raise _VoteChanged()
                return await super()._apply(principal, item, vote_type)

        result = await RacingOnce(db).cast(alice.principal, post, UP)
        assert result.votes == 1
        await assert_invariant(db, post)


class TestStatus:
    async def test_maps_only_voted_items(self, ledger, alice, post, comment):
        await ledger.cast(alice.principal, post, UP)
        await ledger.cast(alice.principal, comment, DOWN)
        status = await ledger.status(
            alice.principal,
            [
                {"id": post.item_id, "type": "post"},
                {"id": comment.item_id, "type": "comment"},
                {"id": 12345, "type": "post"},
            ],
        )
        assert status == {post.key: "up", comment.key: "down"}

    async def test_malformed_entries_are_dropped(self, ledger, alice, post):
        await ledger.cast(alice.principal, post, UP)
        status = await ledger.status(
            alice.principal,
            [
                "post_1",
                {"id": "1", "type": "post"},
                {"id": True, "type": "post"},
                {"id": 0, "type": "post"},
                {"id": post.item_id, "type": "thread"},
                {"type": "post"},
                {"id": post.item_id, "type": "post"},
            ],
        )
        assert status == {post.key: "up"}

    async def test_empty_batch(self, ledger, alice):
        assert await ledger.status(alice.principal, []) == {}

    async def test_other_users_votes_are_invisible(self, ledger, alice, bob, post):
        await ledger.cast(alice.principal, post, UP)
        assert await ledger.status(bob.principal, [{"id": post.item_id, "type": "post"}]) == {}

    async def test_status_is_read_only(self, db, ledger, alice, post):
        await ledger.status(alice.principal, [{"id": post.item_id, "type": "post"}])
        assert await db.scalar(select(Post.votes).where(Post.id == post.item_id)) == 0


class TestAfterDeletion:
    async def test_status_omits_deleted_post(self, ledger, executor, mod, alice, post):
        await ledger.cast(alice.principal, post, UP)
        await executor.delete_post(mod.principal, post.item_id)
        assert await ledger.status(alice.principal, [{"id": post.item_id, "type": "post"}]) == {}

    async def test_new_post_does_not_inherit_old_votes(self, db, ledger, executor, content, mod, alice, post):
        await ledger.cast(alice.principal, post, UP)
        await executor.delete_post(mod.principal, post.item_id)

        created = await content.create_post(alice.principal, "Fresh start")
        fresh = ItemRef(ItemType.post, created["id"])
        assert fresh.item_id != post.item_id

        result = await ledger.cast(alice.principal, fresh, UP)
        assert (result.action, result.votes, result.user_vote) == ("created", 1, UP)
        await assert_invariant(db, fresh)
