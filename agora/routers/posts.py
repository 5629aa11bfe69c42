"""Post endpoints.

GET  /api/v1/posts                     -- newest posts, with the caller's votes when authenticated
POST /api/v1/posts                     -- create a post (banned users are refused)
GET  /api/v1/posts/{post_id}           -- one post with its comments
GET  /api/v1/posts/{post_id}/comments  -- the comments of a post
"""

from fastapi import APIRouter, Query

from agora.config import settings
from agora.dependencies import Content, CurrentUser, OptionalUser
from agora.middleware.rate_limiter import WriteRateLimit
from agora.schemas.common import PaginatedResponse, Pagination
from agora.schemas.content import CommentResponse, PostCreate, PostDetailResponse, PostResponse
from agora.services.pagination import Page

router = APIRouter(prefix="/api/v1", tags=["posts"])


@router.get("/posts", response_model=PaginatedResponse[PostResponse])
async def list_posts(
    content: Content,
    user: OptionalUser,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.page_size_default, ge=1),
) -> PaginatedResponse[PostResponse]:
    request = Page(page=page, limit=limit)
    posts = await content.list_posts(user, request)
    return PaginatedResponse[PostResponse](
        items=[PostResponse(**post) for post in posts],
        pagination=Pagination(page=request.page, limit=request.limit, has_more=request.has_more(posts)),
    )


@router.post("/posts", response_model=PostResponse, status_code=201)
async def create_post(
    body: PostCreate,
    user: CurrentUser,
    content: Content,
    _rate: WriteRateLimit,
) -> PostResponse:
    """Create a post. Refused with 403 while the author is banned."""
    post = await content.create_post(user, body.title, url=body.url, image_url=body.image_url, body=body.body)
    return PostResponse(**post)


@router.get("/posts/{post_id}", response_model=PostDetailResponse)
async def get_post(post_id: int, content: Content, user: OptionalUser) -> PostDetailResponse:
    post = await content.get_post(post_id, user)
    return PostDetailResponse(**post)


@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
async def list_post_comments(post_id: int, content: Content, user: OptionalUser) -> list[CommentResponse]:
    comments = await content.list_comments(post_id, user)
    return [CommentResponse(**comment) for comment in comments]
