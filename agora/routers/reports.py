"""Report submission.

POST /api/v1/reports -- report a post or comment for moderator review
"""

from fastapi import APIRouter

from agora.dependencies import CurrentUser, Reports
from agora.middleware.rate_limiter import WriteRateLimit
from agora.schemas.common import MessageResponse
from agora.schemas.report import ReportCreate
from agora.services.items import ItemRef

router = APIRouter(prefix="/api/v1", tags=["reports"])


@router.post("/reports", response_model=MessageResponse, status_code=201)
async def submit_report(
    body: ReportCreate,
    user: CurrentUser,
    reports: Reports,
    _rate: WriteRateLimit,
) -> MessageResponse:
    """File a report. Each user may report a given item once, whatever became of the first report."""
    await reports.submit(user, ItemRef(body.item_type, body.item_id), body.reason)
    return MessageResponse(message="Report submitted successfully")
