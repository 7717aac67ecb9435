from __future__ import annotations

import datetime
from collections.abc import Iterable
from typing import Protocol

from app.models.content import Event, Holiday, NewsItem, Townhall
from app.models.course import Course, CourseCategory
from app.models.filters import RecordFilter, UserCriteria
from app.models.progress import ProgressRecord, UserProgress
from app.models.quiz import QuizSubmission
from app.models.user import Department, User


class AnalyticsStoreError(RuntimeError):
    """A query against the analytics store failed."""


class AnalyticsRepo(Protocol):
    """Read-only query interface over the portal's records.

    Every ``find_*`` takes a hard ``limit``; callers pass a fixed cap
    rather than paging through the table.
    """

    async def find_progress(self, flt: RecordFilter, *, limit: int) -> list[ProgressRecord]: ...
    async def find_submissions(self, flt: RecordFilter, *, limit: int) -> list[QuizSubmission]: ...
    async def department_names_for_users(self, user_ids: Iterable[int]) -> dict[int, str]: ...
    async def get_user(self, user_id: int) -> User | None: ...
    async def count_users(self, criteria: UserCriteria) -> int: ...
    async def count_users_by_company(self, criteria: UserCriteria) -> dict[str | None, int]: ...
    async def find_users(
        self,
        criteria: UserCriteria,
        *,
        limit: int,
        offset: int = 0,
        order_by_name: bool = False,
    ) -> list[User]: ...
    async def find_holidays(self, flt: RecordFilter, *, limit: int) -> list[Holiday]: ...
    async def find_news(self, flt: RecordFilter, *, limit: int) -> list[NewsItem]: ...
    async def find_events(self, flt: RecordFilter, *, limit: int) -> list[Event]: ...
    async def find_townhalls(self, flt: RecordFilter, *, limit: int) -> list[Townhall]: ...
    async def list_departments(self, *, limit: int) -> list[Department]: ...


def _in_range(value: datetime.datetime | None, flt: RecordFilter) -> bool:
    if flt.date_from is None and flt.date_to is None:
        return True
    if value is None:
        return False
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.UTC)
    if flt.date_from is not None and value < flt.date_from:
        return False
    if flt.date_to is not None and value > flt.date_to:
        return False
    return True


def _contains(haystack: str | None, needle: str) -> bool:
    if not haystack:
        return False
    return needle.casefold() in haystack.casefold()


class InMemoryAnalyticsRepo:
    """Dict-backed store used when no DATABASE_URL is configured (and in tests).

    Records are kept in insertion order, which plays the role of the
    database's natural row order.
    """

    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._departments: dict[int, Department] = {}
        self._categories: dict[int, CourseCategory] = {}
        self._courses: dict[int, Course] = {}
        self._progress: list[UserProgress] = []
        self._submissions: list[QuizSubmission] = []
        self._holidays: list[Holiday] = []
        self._news: list[NewsItem] = []
        self._events: list[Event] = []
        self._townhalls: list[Townhall] = []

    # --- writes (seeding only; the service never calls these) ---

    def add_user(self, user: User) -> None:
        self._users[user.id] = user

    def remove_user(self, user_id: int) -> None:
        self._users.pop(user_id, None)

    def add_department(self, department: Department) -> None:
        self._departments[department.id] = department

    def add_category(self, category: CourseCategory) -> None:
        self._categories[category.id] = category

    def add_course(self, course: Course) -> None:
        self._courses[course.id] = course

    def add_progress(self, progress: UserProgress) -> None:
        self._progress.append(progress)

    def add_submission(self, submission: QuizSubmission) -> None:
        self._submissions.append(submission)

    def add_holiday(self, holiday: Holiday) -> None:
        self._holidays.append(holiday)

    def add_news(self, news: NewsItem) -> None:
        self._news.append(news)

    def add_event(self, event: Event) -> None:
        self._events.append(event)

    def add_townhall(self, townhall: Townhall) -> None:
        self._townhalls.append(townhall)

    def clear(self) -> None:
        for store in (self._users, self._departments, self._categories, self._courses):
            store.clear()
        for rows in (
            self._progress,
            self._submissions,
            self._holidays,
            self._news,
            self._events,
            self._townhalls,
        ):
            rows.clear()

    # --- queries ---

    def _owner_matches(self, user_id: int, flt: RecordFilter) -> bool:
        user = self._users.get(user_id)
        if user is None:
            return False
        if flt.user_id is not None and user.id != flt.user_id:
            return False
        if flt.user_ids is not None and user.id not in flt.user_ids:
            return False
        if flt.department_id is not None and user.department_id != flt.department_id:
            return False
        if flt.company is not None and user.company != flt.company:
            return False
        return True

    def _category_of(self, course: Course | None) -> CourseCategory | None:
        if course is None or course.category_id is None:
            return None
        return self._categories.get(course.category_id)

    async def find_progress(self, flt: RecordFilter, *, limit: int) -> list[ProgressRecord]:
        out: list[ProgressRecord] = []
        for p in self._progress:
            if len(out) >= limit:
                break
            if not self._owner_matches(p.user_id, flt):
                continue
            if not _in_range(p.last_accessed_at, flt):
                continue
            course = self._courses.get(p.course_id)
            category = self._category_of(course)
            if flt.course_category_id is not None and (
                category is None or category.id != flt.course_category_id
            ):
                continue
            out.append(
                ProgressRecord(
                    progress=p,
                    course_title=course.title if course else None,
                    category_name=category.name if category else None,
                )
            )
        return out

    async def find_submissions(self, flt: RecordFilter, *, limit: int) -> list[QuizSubmission]:
        out = [
            s
            for s in self._submissions
            if self._owner_matches(s.user_id, flt) and _in_range(s.submitted_at, flt)
        ]
        return out[:limit]

    async def department_names_for_users(self, user_ids: Iterable[int]) -> dict[int, str]:
        names: dict[int, str] = {}
        for uid in set(user_ids):
            user = self._users.get(uid)
            if user is None or user.department_id is None:
                continue
            department = self._departments.get(user.department_id)
            if department is not None:
                names[uid] = department.name
        return names

    async def get_user(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    def _select_users(self, criteria: UserCriteria) -> list[User]:
        out: list[User] = []
        for u in self._users.values():
            if u.blocked and not criteria.include_blocked:
                continue
            if criteria.active_only and not u.is_active:
                continue
            if criteria.company is not None and u.company != criteria.company:
                continue
            if criteria.department_id is not None and u.department_id != criteria.department_id:
                continue
            if criteria.user_id is not None and u.id != criteria.user_id:
                continue
            if criteria.text is not None and not (
                _contains(u.employee_name, criteria.text)
                or _contains(u.email, criteria.text)
                or _contains(u.username, criteria.text)
            ):
                continue
            if criteria.email_text is not None and not _contains(u.email, criteria.email_text):
                continue
            out.append(u)
        return out

    async def count_users(self, criteria: UserCriteria) -> int:
        return len(self._select_users(criteria))

    async def count_users_by_company(self, criteria: UserCriteria) -> dict[str | None, int]:
        counts: dict[str | None, int] = {}
        for u in self._select_users(criteria):
            counts[u.company] = counts.get(u.company, 0) + 1
        return counts

    async def find_users(
        self,
        criteria: UserCriteria,
        *,
        limit: int,
        offset: int = 0,
        order_by_name: bool = False,
    ) -> list[User]:
        users = self._select_users(criteria)
        if order_by_name:
            users.sort(key=lambda u: u.employee_name)
        else:
            users.sort(key=lambda u: u.id)
        return users[offset : offset + limit]

    def _published(self, rows, flt: RecordFilter, *, limit: int, by_company: bool = True):
        out = []
        for row in rows:
            if not _in_range(row.published_at, flt):
                continue
            if by_company and flt.company is not None and row.company != flt.company:
                continue
            out.append(row)
        return out[:limit]

    async def find_holidays(self, flt: RecordFilter, *, limit: int) -> list[Holiday]:
        return self._published(self._holidays, flt, limit=limit)

    async def find_news(self, flt: RecordFilter, *, limit: int) -> list[NewsItem]:
        return self._published(self._news, flt, limit=limit)

    async def find_events(self, flt: RecordFilter, *, limit: int) -> list[Event]:
        return self._published(self._events, flt, limit=limit)

    async def find_townhalls(self, flt: RecordFilter, *, limit: int) -> list[Townhall]:
        # Townhalls are not company-scoped.
        return self._published(self._townhalls, flt, limit=limit, by_company=False)

    async def list_departments(self, *, limit: int) -> list[Department]:
        return sorted(self._departments.values(), key=lambda d: d.name)[:limit]
