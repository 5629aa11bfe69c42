"""Comment creation.

POST /api/v1/comments -- comment on a post, optionally replying to a comment of that post
"""

from fastapi import APIRouter

from agora.dependencies import Content, CurrentUser
from agora.middleware.rate_limiter import WriteRateLimit
from agora.schemas.content import CommentCreate, CommentResponse

router = APIRouter(prefix="/api/v1", tags=["comments"])


@router.post("/comments", response_model=CommentResponse, status_code=201)
async def create_comment(
    body: CommentCreate,
    user: CurrentUser,
    content: Content,
    _rate: WriteRateLimit,
) -> CommentResponse:
    comment = await content.create_comment(user, body.post_id, body.body, reply_to_id=body.reply_to_id)
    return CommentResponse(**comment)
