from .base import Base
from .user import MODERATOR_ROLES, User, UserRole
from .post import Post
from .comment import Comment
from .vote import ItemType, Vote, VoteType
from .report import Report, ReportStatus
from .moderation_log import ModerationLog

__all__ = [
    "Base",
    "User",
    "UserRole",
    "MODERATOR_ROLES",
    "Post",
    "Comment",
    "ItemType",
    "Vote",
    "VoteType",
    "Report",
    "ReportStatus",
    "ModerationLog",
]
