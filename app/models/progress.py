from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Literal

ProgressStatus = Literal["Not_started", "In_progress", "Completed", "Failed"]

# Order matters: status distributions are emitted in this order.
PROGRESS_STATUSES: tuple[ProgressStatus, ...] = (
    "Not_started",
    "In_progress",
    "Completed",
    "Failed",
)


@dataclass(frozen=True, slots=True)
class UserProgress:
    """One user's progress through one course."""

    id: int
    user_id: int
    course_id: int
    status: str = "Not_started"  # Not_started|In_progress|Completed|Failed
    progress_percentage: int = 0
    time_spent_minutes: int = 0
    completed_modules: tuple[str, ...] = ()
    completed_at: datetime.datetime | None = None
    last_accessed_at: datetime.datetime | None = None
    certificate_issued: bool = False


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """Read model — a progress row with its course relations resolved.

    Like a populated CMS query: course title and category name are joined
    in by the store so the aggregation never does per-row lookups.
    """

    progress: UserProgress
    course_title: str | None = None
    category_name: str | None = None

    @property
    def user_id(self) -> int:
        return self.progress.user_id
