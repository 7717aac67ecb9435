"""Analytics aggregation — raw portal records in, chart-ready summaries out.

Every public method is one read → reduce cycle: query the store with the
caller's filters, make a single pass over the rows, and derive rates and
averages from the running totals.  Nothing is cached and nothing is
written, so concurrent calls share no state.

FETCH CAPS
----------
The global views read at most a fixed number of rows per entity (see the
*_LIMIT constants) instead of paging through the table.  When a fetch
comes back full, the aggregate may be truncated; that is logged and
counted in ``analytics_fetch_cap_hits_total`` so it shows up on the
dashboards before anyone trusts a wrong number.  Replacing the caps with
streaming reduction is the fix if the tables outgrow them.
"""

from __future__ import annotations

import datetime
import functools
import logging
import math
import time
import unicodedata
from collections.abc import Awaitable, Callable, Iterable, Sized
from dataclasses import replace
from typing import Any, TypeVar

from app.core.metrics import (
    ANALYTICS_AGGREGATIONS,
    ANALYTICS_DURATION,
    ANALYTICS_FETCH_CAP_HITS,
)
from app.models.analytics import (
    CompanyCount,
    CourseProgressRow,
    EmployeeOption,
    EmployeeRow,
    EmployeeTable,
    LearningKpis,
    LearningReport,
    MonthCount,
    NamedCount,
    OverallKpis,
    OverallReport,
    PersonalKpis,
    PersonalLearningReport,
    PersonalOverallKpis,
    PersonalOverallReport,
    QuizSummary,
)
from app.models.filters import (
    AnalyticsFilters,
    EmployeeLookup,
    EmployeeTableQuery,
    UserCriteria,
)
from app.models.progress import PROGRESS_STATUSES, ProgressRecord
from app.models.quiz import QuizSubmission
from app.models.user import Department
from app.repos.analytics_repo import AnalyticsRepo
from app.services.filter_builder import (
    build_lookup_user_criteria,
    build_page_filter,
    build_progress_filter,
    build_published_filter,
    build_submission_filter,
    build_table_user_criteria,
    normalize_table_query,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROGRESS_LIMIT = 5000
PERSONAL_PROGRESS_LIMIT = 500
SUBMISSION_LIMIT = 5000
HOLIDAY_LIMIT = 1000
PERSONAL_HOLIDAY_LIMIT = 500
NEWS_LIMIT = 1000
EVENT_LIMIT = 500
TOWNHALL_LIMIT = 500
TABLE_PROGRESS_LIMIT = 10000
TABLE_SUBMISSION_LIMIT = 5000
EMPLOYEE_LIST_LIMIT = 500
DEPARTMENT_LIMIT = 200

COMPLETED = "Completed"
UNKNOWN = "Unknown"
UNCATEGORIZED = "Uncategorized"
OTHER = "Other"
UNASSIGNED = "Unassigned"
NO_COMPANY = "—"

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

DEFAULT_SORT = "course_completion_time_minutes"

# sortBy values the dashboard sends → EmployeeRow attribute.
SORT_FIELDS = {
    "employeeName": "employee_name",
    "coursesEnrolled": "courses_enrolled",
    "courseCompletionTime": "course_completion_time_minutes",
    "courseCompletionTimeMinutes": "course_completion_time_minutes",
    "totalModulesDone": "total_modules_done",
    "progressPercent": "progress_percent",
    "quizPassRate": "quiz_pass_rate",
    "avgScore": "avg_score",
}


# ---------------------------------------------------------------------------
# Arithmetic helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; dashboards expect 12.5 -> 13.
    return math.floor(value + 0.5)


def rate(part: int, total: int) -> int:
    """Percentage of ``part`` in ``total`` as an int in [0, 100]; 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)


def mean(total: float, count: int) -> int:
    if count <= 0:
        return 0
    return round_half_up(total / count)


def month_key(ts: datetime.datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone(datetime.UTC)
    return ts.strftime("%Y-%m")


def _bump(counts: dict[str, int], key: str) -> None:
    counts[key] = counts.get(key, 0) + 1


def _named(counts: dict[str, int]) -> list[NamedCount]:
    return [NamedCount(name=k, value=v) for k, v in counts.items()]


def _monthly(counts: dict[str, int]) -> list[MonthCount]:
    # Zero-padded YYYY-MM sorts chronologically as a string.
    return [MonthCount(month=k, value=counts[k]) for k in sorted(counts)]


def _status_counts() -> dict[str, int]:
    return {status: 0 for status in PROGRESS_STATUSES}


def _holidays_by_month(dates: Iterable[datetime.date | None]) -> list[NamedCount]:
    """Group by calendar month as ``"Mon YYYY"``, oldest first."""
    counts: dict[tuple[int, int], int] = {}
    for d in dates:
        if d is None:
            continue
        key = (d.year, d.month)
        counts[key] = counts.get(key, 0) + 1
    return [
        NamedCount(name=f"{MONTH_NAMES[month - 1]} {year}", value=counts[(year, month)])
        for year, month in sorted(counts)
    ]


def _company_label(company: str | None) -> str:
    return company or UNASSIGNED


def _quiz_summary(submissions: list[QuizSubmission]) -> QuizSummary:
    total = len(submissions)
    passed = sum(1 for s in submissions if s.passed)
    return QuizSummary(
        pass_rate=rate(passed, total),
        avg_score=mean(sum(s.score or 0 for s in submissions), total),
        total_attempts=total,
        passed=passed,
        failed=total - passed,
    )


def _instrumented(view: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Time an aggregation and count it by outcome (ok / not_found / error)."""

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.monotonic()
            try:
                result = await fn(*args, **kwargs)
            except Exception:
                ANALYTICS_AGGREGATIONS.labels(view=view, outcome="error").inc()
                raise
            finally:
                ANALYTICS_DURATION.labels(view=view).observe(time.monotonic() - start)
            outcome = "not_found" if result is None else "ok"
            ANALYTICS_AGGREGATIONS.labels(view=view, outcome=outcome).inc()
            logger.debug("Aggregated %s in %.1fms", view, (time.monotonic() - start) * 1000)
            return result

        return wrapper

    return decorator


class AnalyticsService:
    """Aggregations behind the learning and overall dashboards."""

    def __init__(self, repo: AnalyticsRepo) -> None:
        self._repo = repo

    def _check_cap(self, entity: str, rows: Sized, limit: int) -> None:
        if len(rows) >= limit:
            ANALYTICS_FETCH_CAP_HITS.labels(entity=entity).inc()
            logger.warning(
                "Fetch for %s hit the %d-row cap; aggregate may be truncated",
                entity,
                limit,
            )

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    @_instrumented("learning_global")
    async def learning_global(self, filters: AnalyticsFilters) -> LearningReport:
        records = await self._repo.find_progress(
            build_progress_filter(filters), limit=PROGRESS_LIMIT
        )
        self._check_cap("user_progress", records, PROGRESS_LIMIT)

        # One lookup for every owner instead of one per record.
        departments = await self._repo.department_names_for_users(
            {r.user_id for r in records}
        )

        statuses = _status_counts()
        categories: dict[str, int] = {}
        by_department: dict[str, int] = {}
        monthly: dict[str, int] = {}
        total_minutes = 0
        certificates = 0

        for r in records:
            p = r.progress
            _bump(statuses, p.status)
            total_minutes += p.time_spent_minutes or 0
            if p.certificate_issued:
                certificates += 1
            _bump(categories, r.category_name or UNCATEGORIZED)
            _bump(by_department, departments.get(p.user_id, UNKNOWN))
            if p.status == COMPLETED and p.completed_at is not None:
                _bump(monthly, month_key(p.completed_at))

        total = len(records)
        return LearningReport(
            kpis=LearningKpis(
                total_assignments=total,
                completion_rate=rate(statuses[COMPLETED], total),
                avg_time_spent_minutes=mean(total_minutes, total),
                certificates_issued=certificates,
            ),
            status_distribution=_named(statuses),
            category_distribution=_named(categories),
            department_distribution=_named(by_department),
            monthly_completions=_monthly(monthly),
        )

    @_instrumented("learning_personal")
    async def learning_personal(
        self, user_id: int | None, filters: AnalyticsFilters
    ) -> PersonalLearningReport | None:
        """One employee's learning view, or None when there is nothing to show."""
        if user_id is None:
            return None

        # The user id replaces the department/company scope of the global view.
        flt = build_progress_filter(
            replace(filters, user_id=user_id, department=None, company=None)
        )
        records = await self._repo.find_progress(flt, limit=PERSONAL_PROGRESS_LIMIT)
        if not records:
            logger.info("No learning records for user_id=%d", user_id)
            return None
        self._check_cap("user_progress", records, PERSONAL_PROGRESS_LIMIT)

        statuses = _status_counts()
        monthly: dict[str, int] = {}
        course_rows: list[CourseProgressRow] = []
        total_minutes = 0
        certificates = 0

        for r in records:
            p = r.progress
            _bump(statuses, p.status)
            total_minutes += p.time_spent_minutes or 0
            if p.certificate_issued:
                certificates += 1
            course_rows.append(_course_row(r))
            if p.status == COMPLETED and p.completed_at is not None:
                _bump(monthly, month_key(p.completed_at))

        total = len(records)
        return PersonalLearningReport(
            kpis=PersonalKpis(
                total_courses=total,
                completion_rate=rate(statuses[COMPLETED], total),
                avg_time_spent_minutes=mean(total_minutes, total),
                certificates_earned=certificates,
            ),
            status_distribution=_named(statuses),
            course_progress=course_rows,
            monthly_completions=_monthly(monthly),
        )

    async def _quiz(self, filters: AnalyticsFilters) -> QuizSummary:
        submissions = await self._repo.find_submissions(
            build_submission_filter(filters), limit=SUBMISSION_LIMIT
        )
        self._check_cap("quiz_submissions", submissions, SUBMISSION_LIMIT)
        return _quiz_summary(submissions)

    @_instrumented("quiz_global")
    async def quiz_global(self, filters: AnalyticsFilters) -> QuizSummary:
        return await self._quiz(filters)

    @_instrumented("quiz_personal")
    async def quiz_personal(self, user_id: int, filters: AnalyticsFilters) -> QuizSummary:
        return await self._quiz(
            AnalyticsFilters(
                date_from=filters.date_from,
                date_to=filters.date_to,
                user_id=user_id,
            )
        )

    # ------------------------------------------------------------------
    # Overall
    # ------------------------------------------------------------------

    @_instrumented("overall_global")
    async def overall_global(self, filters: AnalyticsFilters) -> OverallReport:
        company = filters.company or None
        employees = await self._repo.count_users_by_company(UserCriteria(company=company))
        active = await self._repo.count_users_by_company(
            UserCriteria(company=company, active_only=True)
        )

        published = build_published_filter(filters)
        holidays = await self._repo.find_holidays(published, limit=HOLIDAY_LIMIT)
        self._check_cap("holidays", holidays, HOLIDAY_LIMIT)
        news = await self._repo.find_news(published, limit=NEWS_LIMIT)
        self._check_cap("news", news, NEWS_LIMIT)
        events = await self._repo.find_events(published, limit=EVENT_LIMIT)
        self._check_cap("events", events, EVENT_LIMIT)
        townhalls = await self._repo.find_townhalls(
            build_published_filter(filters, by_company=False), limit=TOWNHALL_LIMIT
        )
        self._check_cap("townhalls", townhalls, TOWNHALL_LIMIT)

        employees_by_company = _by_company(employees)
        active_by_company = _by_company(active)

        news_by_category: dict[str, int] = {}
        for n in news:
            _bump(news_by_category, n.category_name or UNCATEGORIZED)
        events_by_type: dict[str, int] = {}
        for e in events:
            _bump(events_by_type, e.event_type or OTHER)
        townhall_by_type: dict[str, int] = {}
        for t in townhalls:
            _bump(townhall_by_type, t.meeting_content_type or OTHER)

        return OverallReport(
            kpis=OverallKpis(
                total_users=sum(employees.values()),
                total_active_users=sum(active.values()),
                total_holidays=len(holidays),
                total_news=len(news),
                total_events=len(events),
                total_townhalls=len(townhalls),
            ),
            holiday_by_month=_holidays_by_month(h.date for h in holidays),
            employees_by_company=[
                CompanyCount(
                    name=name,
                    value=value,
                    active_value=active_by_company.get(name, 0),
                )
                for name, value in employees_by_company.items()
            ],
            active_users_by_company=_named(active_by_company),
            news_by_category=_named(news_by_category),
            events_by_type=_named(events_by_type),
            townhall_by_content_type=_named(townhall_by_type),
        )

    @_instrumented("overall_personal")
    async def overall_personal(
        self, user_id: int | None, filters: AnalyticsFilters
    ) -> PersonalOverallReport | None:
        if user_id is None:
            return None
        if await self._repo.get_user(user_id) is None:
            logger.info("Overall view requested for unknown user_id=%d", user_id)
            return None

        holidays = await self._repo.find_holidays(
            build_published_filter(filters), limit=PERSONAL_HOLIDAY_LIMIT
        )
        self._check_cap("holidays", holidays, PERSONAL_HOLIDAY_LIMIT)
        employees = await self._repo.count_users_by_company(UserCriteria())

        return PersonalOverallReport(
            kpis=PersonalOverallKpis(total_holidays=len(holidays)),
            holiday_by_month=_holidays_by_month(h.date for h in holidays),
            employees_by_company=_named(_by_company(employees)),
        )

    # ------------------------------------------------------------------
    # Employee table
    # ------------------------------------------------------------------

    @_instrumented("employee_table")
    async def employee_table(self, query: EmployeeTableQuery) -> EmployeeTable:
        """One aggregated row per employee, for a single page of employees.

        ``total`` counts matching users, not rows, so the pager stays
        correct however many progress records each user has.
        """
        query = normalize_table_query(query)
        criteria = build_table_user_criteria(query)

        total = await self._repo.count_users(criteria)
        users = await self._repo.find_users(
            criteria, limit=query.page_size, offset=query.offset
        )
        if not users:
            return EmployeeTable(total=total, page=query.page, page_size=query.page_size)

        ids = tuple(u.id for u in users)
        flt = build_page_filter(query, ids)
        progress = await self._repo.find_progress(flt, limit=TABLE_PROGRESS_LIMIT)
        self._check_cap("user_progress", progress, TABLE_PROGRESS_LIMIT)
        submissions = await self._repo.find_submissions(flt, limit=TABLE_SUBMISSION_LIMIT)
        self._check_cap("quiz_submissions", submissions, TABLE_SUBMISSION_LIMIT)

        progress_by_user: dict[int, list[ProgressRecord]] = {uid: [] for uid in ids}
        for r in progress:
            if r.user_id in progress_by_user:
                progress_by_user[r.user_id].append(r)
        submissions_by_user: dict[int, list[QuizSubmission]] = {uid: [] for uid in ids}
        for s in submissions:
            if s.user_id in submissions_by_user:
                submissions_by_user[s.user_id].append(s)

        rows = []
        for u in users:
            records = progress_by_user[u.id]
            subs = submissions_by_user[u.id]
            quiz = _quiz_summary(subs)
            rows.append(
                EmployeeRow(
                    employee_id=u.id,
                    employee_name=u.display_name,
                    company=u.company or NO_COMPANY,
                    courses_enrolled=len(records),
                    course_completion_time_minutes=sum(
                        r.progress.time_spent_minutes or 0 for r in records
                    ),
                    total_modules_done=sum(
                        len(r.progress.completed_modules or ()) for r in records
                    ),
                    progress_percent=mean(
                        sum(r.progress.progress_percentage or 0 for r in records),
                        len(records),
                    ),
                    quiz_pass_rate=quiz.pass_rate,
                    avg_score=quiz.avg_score,
                )
            )

        return EmployeeTable(
            rows=sort_rows(rows, query.sort_by, query.sort_order),
            total=total,
            page=query.page,
            page_size=query.page_size,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def employees(self, lookup: EmployeeLookup) -> list[EmployeeOption]:
        """Employee dropdown / autocomplete; a search returns at most one match."""
        searching = bool(lookup.search and lookup.search.strip())
        users = await self._repo.find_users(
            build_lookup_user_criteria(lookup),
            limit=1 if searching else EMPLOYEE_LIST_LIMIT,
            order_by_name=True,
        )
        departments = await self._repo.department_names_for_users(u.id for u in users)
        return [
            EmployeeOption(
                id=u.id,
                employee_name=u.employee_name or u.username or u.email,
                email=u.email,
                department=departments.get(u.id),
                company=u.company,
            )
            for u in users
        ]

    async def departments(self) -> list[Department]:
        return await self._repo.list_departments(limit=DEPARTMENT_LIMIT)


def _course_row(record: ProgressRecord) -> CourseProgressRow:
    p = record.progress
    return CourseProgressRow(
        course_title=record.course_title or UNKNOWN,
        status=p.status,
        percentage=p.progress_percentage or 0,
        time_spent_minutes=p.time_spent_minutes or 0,
        completed_at=p.completed_at,
        certificate_issued=p.certificate_issued,
    )


def _by_company(counts: dict[str | None, int]) -> dict[str, int]:
    # Stable, name-ordered buckets; users without a company share one bucket.
    out: dict[str, int] = {}
    for company in sorted(counts, key=lambda c: (c is None, c or "")):
        label = _company_label(company)
        out[label] = out.get(label, 0) + counts[company]
    return out


def name_sort_key(name: str) -> tuple[str, str]:
    """Collation key for people's names: accents and case fold away, then break ties.

    ``"Émile"`` sorts with the E names, not after ``"Zoe"``.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return base.casefold(), name.casefold()


def sort_rows(rows: list[EmployeeRow], sort_by: str | None, sort_order: str | None) -> list[EmployeeRow]:
    """Sort table rows by a dashboard column.  Ties keep page order."""
    attr = SORT_FIELDS.get(sort_by or "", DEFAULT_SORT)
    descending = (sort_order or "desc").lower() != "asc"
    if attr == "employee_name":
        return sorted(rows, key=lambda r: name_sort_key(r.employee_name), reverse=descending)
    return sorted(rows, key=lambda r: getattr(r, attr), reverse=descending)
