from dataclasses import dataclass
from typing import Sequence

from agora.config import settings


@dataclass(frozen=True)
class Page:
    """A page request. ``page`` is 1-based; ``limit`` is clamped to the configured maximum."""

    page: int = 1
    limit: int = settings.page_size_default

    def __post_init__(self) -> None:
        object.__setattr__(self, "page", max(1, self.page))
        object.__setattr__(self, "limit", min(max(1, self.limit), settings.page_size_max))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def has_more(self, rows: Sequence) -> bool:
        # Approximate: a full page suggests there may be another one
        return len(rows) == self.limit
