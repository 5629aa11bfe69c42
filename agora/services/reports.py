"""Report workflow: deduplicated submission and the moderator review queue."""

from typing import Optional

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from agora.config import settings
from agora.errors import ConflictError, InvalidError, NotFoundError
from agora.metrics import reports_submitted
from agora.models.comment import Comment
from agora.models.post import Post
from agora.models.report import Report, ReportStatus
from agora.models.user import User
from agora.models.vote import ItemType
from agora.services.audit import AuditLog
from agora.services.gate import RoleGate
from agora.services.identity import Principal
from agora.services.items import ItemRef, ensure_item_exists
from agora.services.pagination import Page

log = structlog.get_logger()


def snippet(text: Optional[str], length: int = settings.audit_snippet_length) -> Optional[str]:
    """First ``length`` characters of ``text`` followed by an ellipsis."""
    if text is None:
        return None
    return f"{text[:length]}..."


class ReportWorkflow:
    def __init__(self, db: AsyncSession, gate: RoleGate, audit: AuditLog) -> None:
        self._db = db
        self._gate = gate
        self._audit = audit

    async def submit(self, principal: Principal, item: ItemRef, reason: Optional[str] = None) -> Report:
        """File a pending report. A user may report a given item once, ever."""
        if reason is not None:
            reason = reason.strip() or None
            if reason is not None and len(reason) > settings.report_reason_max_length:
                raise InvalidError(
                    f"Reason too long (max {settings.report_reason_max_length} characters)"
                )

        await ensure_item_exists(self._db, item)

        result = await self._db.execute(
            select(Report.id).where(
                Report.reporter_id == principal.id,
                Report.item_type == item.item_type.value,
                Report.item_id == item.item_id,
            )
        )
        if result.scalar_one_or_none() is not None:
            raise ConflictError("You have already reported this content")

        report = Report(
            reporter_id=principal.id,
            item_type=item.item_type.value,
            item_id=item.item_id,
            reason=reason,
            status=ReportStatus.pending.value,
        )
        self._db.add(report)
        try:
            await self._db.commit()
        except IntegrityError:
            # A concurrent identical report won the unique constraint
            await self._db.rollback()
            raise ConflictError("You have already reported this content")

        reports_submitted.labels(item_type=item.item_type.value).inc()
        log.info("report_submitted", report_id=report.id, reporter_id=principal.id, item=item.key)
        return report

    async def list_reports(
        self,
        moderator: Principal,
        status: ReportStatus = ReportStatus.pending,
        page: Page = Page(),
    ) -> list[dict]:
        """Reports in ``status``, newest first, with reporter and content context."""
        await self._gate.require_moderator(moderator)

        reporter = aliased(User, name="reporter")
        post_author = aliased(User, name="post_author")
        comment_author = aliased(User, name="comment_author")

        stmt = (
            select(
                Report,
                reporter.username.label("reporter"),
                Post.title.label("post_title"),
                Comment.body.label("comment_body"),
                post_author.username.label("post_author"),
                comment_author.username.label("comment_author"),
            )
            .join(reporter, reporter.id == Report.reporter_id)
            .outerjoin(
                Post,
                and_(Report.item_type == ItemType.post.value, Post.id == Report.item_id),
            )
            .outerjoin(post_author, post_author.id == Post.author_id)
            .outerjoin(
                Comment,
                and_(Report.item_type == ItemType.comment.value, Comment.id == Report.item_id),
            )
            .outerjoin(comment_author, comment_author.id == Comment.author_id)
            .where(Report.status == status.value)
            .order_by(Report.created_at.desc(), Report.id.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        result = await self._db.execute(stmt)

        reports = []
        for row in result.all():
            report = row.Report
            is_post = report.item_type == ItemType.post.value
            reports.append(
                {
                    "id": report.id,
                    "item_id": report.item_id,
                    "item_type": report.item_type,
                    "reason": report.reason,
                    "status": report.status,
                    "created_at": report.created_at,
                    "reporter": row.reporter,
                    "item_title": row.post_title if is_post else snippet(row.comment_body),
                    "item_author": row.post_author if is_post else row.comment_author,
                }
            )
        return reports

    async def dismiss(self, moderator: Principal, report_id: int) -> Report:
        """Mark a report dismissed, whatever its current status."""
        await self._gate.require_moderator(moderator)

        result = await self._db.execute(select(Report).where(Report.id == report_id))
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError("Report not found")

        await self._db.execute(
            update(Report)
            .where(Report.id == report_id)
            .values(status=ReportStatus.dismissed.value)
        )
        await self._db.commit()
        await self._db.refresh(report)

        await self._audit.record_action(
            moderator.id,
            "dismiss_report",
            "report",
            report_id,
            f"Dismissed report for {report.item_type} {report.item_id}",
        )
        return report
