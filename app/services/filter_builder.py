"""Translate canonical filter structs into store predicates.

Dates arrive as ISO strings.  Anything that does not parse imposes no
constraint, so a typo in a dashboard filter widens the result instead of
failing the request.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, replace

from app.models.filters import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MIN_PAGE_SIZE,
    AnalyticsFilters,
    EmployeeLookup,
    EmployeeTableQuery,
    RecordFilter,
    UserCriteria,
)

logger = logging.getLogger(__name__)


def parse_date_bound(value: str | None, *, end_of_day: bool = False) -> datetime.datetime | None:
    """Parse an ISO date or datetime string into an aware UTC datetime.

    A bare date (``2024-03-31``) used as an upper bound covers the whole
    day, so ``dateTo`` stays inclusive against stored timestamps.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    try:
        if len(text) == 10:
            day = datetime.date.fromisoformat(text)
            bound = datetime.datetime.combine(
                day, datetime.time.max if end_of_day else datetime.time.min
            )
        else:
            bound = datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparsable date bound %r", value)
        return None

    if bound.tzinfo is None:
        bound = bound.replace(tzinfo=datetime.UTC)
    return bound


def _date_range(
    date_from: str | None, date_to: str | None
) -> tuple[datetime.datetime | None, datetime.datetime | None]:
    return parse_date_bound(date_from), parse_date_bound(date_to, end_of_day=True)


def build_progress_filter(filters: AnalyticsFilters) -> RecordFilter:
    date_from, date_to = _date_range(filters.date_from, filters.date_to)
    return RecordFilter(
        date_from=date_from,
        date_to=date_to,
        department_id=filters.department,
        company=filters.company or None,
        course_category_id=filters.course_category,
        user_id=filters.user_id,
    )


def build_submission_filter(filters: AnalyticsFilters) -> RecordFilter:
    # Quiz submissions are only ever narrowed by date and submitter.
    date_from, date_to = _date_range(filters.date_from, filters.date_to)
    return RecordFilter(date_from=date_from, date_to=date_to, user_id=filters.user_id)


def build_published_filter(
    filters: AnalyticsFilters, *, by_company: bool = True
) -> RecordFilter:
    """Predicate for holidays, news, events and townhalls (``published_at``)."""
    date_from, date_to = _date_range(filters.date_from, filters.date_to)
    return RecordFilter(
        date_from=date_from,
        date_to=date_to,
        company=(filters.company or None) if by_company else None,
    )


def build_page_filter(query: EmployeeTableQuery, user_ids: tuple[int, ...]) -> RecordFilter:
    date_from, date_to = _date_range(query.date_from, query.date_to)
    return RecordFilter(date_from=date_from, date_to=date_to, user_ids=user_ids)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SearchTerm:
    user_id: int | None = None
    text: str | None = None


def parse_search(raw: str | None) -> SearchTerm:
    """Split a search box value into an exact id match or a text match.

    ``"42"`` is an id; ``"042"``, ``"42a"`` and ``"4 2"`` are text.
    """
    if raw is None:
        return SearchTerm()
    text = raw.strip()
    if not text:
        return SearchTerm()
    try:
        numeric = int(text)
    except ValueError:
        return SearchTerm(text=text)
    if str(numeric) == text:
        return SearchTerm(user_id=numeric)
    return SearchTerm(text=text)


def build_user_criteria(
    *,
    company: str | None = None,
    department: int | None = None,
    search: str | None = None,
    email_only: bool = False,
    active_only: bool = False,
) -> UserCriteria:
    term = parse_search(search)
    return UserCriteria(
        company=company or None,
        department_id=department,
        user_id=term.user_id,
        text=None if email_only else term.text,
        email_text=term.text if email_only else None,
        active_only=active_only,
    )


def build_table_user_criteria(query: EmployeeTableQuery) -> UserCriteria:
    return build_user_criteria(company=query.company, search=query.search)


def build_lookup_user_criteria(lookup: EmployeeLookup) -> UserCriteria:
    return build_user_criteria(
        company=lookup.company,
        department=lookup.department,
        search=lookup.search,
        email_only=True,
    )


def normalize_table_query(query: EmployeeTableQuery) -> EmployeeTableQuery:
    """Clamp paging: ``page >= 1``; ``page_size`` in [5, 100], 0 meaning default."""
    page = max(1, query.page or 1)
    page_size = min(MAX_PAGE_SIZE, max(MIN_PAGE_SIZE, query.page_size or DEFAULT_PAGE_SIZE))
    return replace(query, page=page, page_size=page_size)
