"""Typed filter objects passed from the HTTP boundary into the service.

Query strings are coerced once, in the controller, into these structs.
Past that point every field is either a real value or None ("all").
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Literal

SortOrder = Literal["asc", "desc"]

DEFAULT_PAGE_SIZE = 10
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 100


@dataclass(frozen=True, slots=True)
class AnalyticsFilters:
    """Canonical dashboard filter set."""

    date_from: str | None = None
    date_to: str | None = None
    department: int | None = None
    company: str | None = None
    course_category: int | None = None
    user_id: int | None = None


@dataclass(frozen=True, slots=True)
class EmployeeTableQuery:
    company: str | None = None
    search: str | None = None
    date_from: str | None = None
    date_to: str | None = None
    sort_by: str = "courseCompletionTimeMinutes"
    sort_order: SortOrder = "desc"
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True, slots=True)
class EmployeeLookup:
    company: str | None = None
    department: int | None = None
    search: str | None = None


@dataclass(frozen=True, slots=True)
class RecordFilter:
    """Store predicate for timestamped records.

    The date bounds apply to whichever timestamp the record type is
    filtered on (last_accessed_at, submitted_at or published_at); the
    store method decides which.  User-derived constraints (department,
    company) are matched against the owning user.
    """

    date_from: datetime.datetime | None = None
    date_to: datetime.datetime | None = None
    department_id: int | None = None
    company: str | None = None
    course_category_id: int | None = None
    user_id: int | None = None
    user_ids: tuple[int, ...] | None = None


@dataclass(frozen=True, slots=True)
class UserCriteria:
    """Store predicate for the users table.  Blocked users are excluded by default."""

    company: str | None = None
    department_id: int | None = None
    user_id: int | None = None
    text: str | None = None  # name/email/username, case-insensitive
    email_text: str | None = None
    active_only: bool = False
    include_blocked: bool = False
