"""Voting endpoints for posts and comments.

POST /api/v1/votes        -- cast, flip or withdraw a vote
POST /api/v1/votes/status -- the caller's votes on a batch of items
"""

from fastapi import APIRouter

from agora.dependencies import CurrentUser, Ledger
from agora.middleware.rate_limiter import ReadRateLimit, WriteRateLimit
from agora.schemas.vote import VoteCreate, VoteResponse, VoteStatusRequest, VoteStatusResponse
from agora.services.items import ItemRef

router = APIRouter(prefix="/api/v1", tags=["votes"])

_MESSAGES = {
    "created": "Vote created successfully",
    "removed": "Vote removed successfully",
    "updated": "Vote updated successfully",
}


@router.post("/votes", response_model=VoteResponse)
async def cast_vote(
    body: VoteCreate,
    user: CurrentUser,
    ledger: Ledger,
    _rate: WriteRateLimit,
) -> VoteResponse:
    """Cast an upvote or downvote on a post or comment.

    Voting the same way twice withdraws the vote; voting the other way flips
    it. The response carries the item's new total as computed by the same
    statement that moved it. Banned users may still vote.
    """
    result = await ledger.cast(user, ItemRef(body.item_type, body.item_id), body.vote_type)
    return VoteResponse(
        votes=result.votes,
        user_vote=result.user_vote,
        action=result.action,
        message=_MESSAGES[result.action],
    )


@router.post("/votes/status", response_model=VoteStatusResponse)
async def vote_status(
    body: VoteStatusRequest,
    user: CurrentUser,
    ledger: Ledger,
    _rate: ReadRateLimit,
) -> VoteStatusResponse:
    """Map ``<type>_<id>`` to the caller's vote. Unvoted and malformed items are omitted."""
    votes = await ledger.status(user, body.items)
    return VoteStatusResponse(votes=votes)
