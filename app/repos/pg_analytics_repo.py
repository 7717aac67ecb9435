"""PostgreSQL implementation of AnalyticsRepo."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import (
    CourseCategoryRow,
    CourseRow,
    DepartmentRow,
    EventRow,
    HolidayRow,
    NewsCategoryRow,
    NewsRow,
    QuizSubmissionRow,
    TownhallRow,
    UserProgressRow,
    UserRow,
)
from app.models.content import Event, Holiday, NewsItem, Townhall
from app.models.filters import RecordFilter, UserCriteria
from app.models.progress import ProgressRecord, UserProgress
from app.models.quiz import QuizSubmission
from app.models.user import Department, User
from app.repos.analytics_repo import AnalyticsStoreError

logger = logging.getLogger(__name__)


def _date_bounds(stmt: Select, column: Any, flt: RecordFilter) -> Select:
    if flt.date_from is not None:
        stmt = stmt.where(column >= flt.date_from)
    if flt.date_to is not None:
        stmt = stmt.where(column <= flt.date_to)
    return stmt


def _owner_bounds(stmt: Select, owner_column: Any, flt: RecordFilter) -> Select:
    # Inner join on users drops records whose owner no longer exists.
    stmt = stmt.join(UserRow, UserRow.id == owner_column)
    if flt.user_id is not None:
        stmt = stmt.where(UserRow.id == flt.user_id)
    if flt.user_ids is not None:
        stmt = stmt.where(UserRow.id.in_(flt.user_ids))
    if flt.department_id is not None:
        stmt = stmt.where(UserRow.department_id == flt.department_id)
    if flt.company is not None:
        stmt = stmt.where(UserRow.company == flt.company)
    return stmt


def _user_bounds(stmt: Select, criteria: UserCriteria) -> Select:
    if not criteria.include_blocked:
        stmt = stmt.where(UserRow.blocked.is_(False))
    if criteria.active_only:
        stmt = stmt.where(UserRow.is_active.is_(True))
    if criteria.company is not None:
        stmt = stmt.where(UserRow.company == criteria.company)
    if criteria.department_id is not None:
        stmt = stmt.where(UserRow.department_id == criteria.department_id)
    if criteria.user_id is not None:
        stmt = stmt.where(UserRow.id == criteria.user_id)
    if criteria.text is not None:
        stmt = stmt.where(
            or_(
                UserRow.employee_name.icontains(criteria.text, autoescape=True),
                UserRow.email.icontains(criteria.text, autoescape=True),
                UserRow.username.icontains(criteria.text, autoescape=True),
            )
        )
    if criteria.email_text is not None:
        stmt = stmt.where(UserRow.email.icontains(criteria.email_text, autoescape=True))
    return stmt


class PgAnalyticsRepo:
    """Satisfies the AnalyticsRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _all(self, stmt: Select) -> list[Any]:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Analytics query failed: %s", e)
            raise AnalyticsStoreError(str(e)) from e
        return list(result.all())

    async def _scalar(self, stmt: Select) -> Any:
        try:
            return (await self._session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            logger.error("Analytics query failed: %s", e)
            raise AnalyticsStoreError(str(e)) from e

    async def find_progress(self, flt: RecordFilter, *, limit: int) -> list[ProgressRecord]:
        stmt = (
            select(UserProgressRow, CourseRow.title, CourseCategoryRow.name)
            .outerjoin(CourseRow, CourseRow.id == UserProgressRow.course_id)
            .outerjoin(CourseCategoryRow, CourseCategoryRow.id == CourseRow.category_id)
        )
        stmt = _owner_bounds(stmt, UserProgressRow.user_id, flt)
        stmt = _date_bounds(stmt, UserProgressRow.last_accessed_at, flt)
        if flt.course_category_id is not None:
            stmt = stmt.where(CourseCategoryRow.id == flt.course_category_id)
        stmt = stmt.order_by(UserProgressRow.id).limit(limit)

        return [
            ProgressRecord(
                progress=_row_to_progress(row),
                course_title=title,
                category_name=category,
            )
            for row, title, category in await self._all(stmt)
        ]

    async def find_submissions(self, flt: RecordFilter, *, limit: int) -> list[QuizSubmission]:
        stmt = select(QuizSubmissionRow)
        stmt = _owner_bounds(stmt, QuizSubmissionRow.submitted_by_id, flt)
        stmt = _date_bounds(stmt, QuizSubmissionRow.submitted_at, flt)
        stmt = stmt.order_by(QuizSubmissionRow.id).limit(limit)
        return [_row_to_submission(row) for (row,) in await self._all(stmt)]

    async def department_names_for_users(self, user_ids: Iterable[int]) -> dict[int, str]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        stmt = (
            select(UserRow.id, DepartmentRow.name)
            .join(DepartmentRow, DepartmentRow.id == UserRow.department_id)
            .where(UserRow.id.in_(ids))
        )
        return {uid: name for uid, name in await self._all(stmt)}

    async def get_user(self, user_id: int) -> User | None:
        rows = await self._all(select(UserRow).where(UserRow.id == user_id))
        if not rows:
            return None
        return _row_to_user(rows[0][0])

    async def count_users(self, criteria: UserCriteria) -> int:
        stmt = _user_bounds(select(func.count()).select_from(UserRow), criteria)
        return int(await self._scalar(stmt))

    async def count_users_by_company(self, criteria: UserCriteria) -> dict[str | None, int]:
        stmt = _user_bounds(select(UserRow.company, func.count()), criteria)
        stmt = stmt.group_by(UserRow.company).order_by(UserRow.company)
        return {company: int(n) for company, n in await self._all(stmt)}

    async def find_users(
        self,
        criteria: UserCriteria,
        *,
        limit: int,
        offset: int = 0,
        order_by_name: bool = False,
    ) -> list[User]:
        stmt = _user_bounds(select(UserRow), criteria)
        order = (UserRow.employee_name, UserRow.id) if order_by_name else (UserRow.id,)
        stmt = stmt.order_by(*order).limit(limit).offset(offset)
        return [_row_to_user(row) for (row,) in await self._all(stmt)]

    async def find_holidays(self, flt: RecordFilter, *, limit: int) -> list[Holiday]:
        stmt = _date_bounds(select(HolidayRow), HolidayRow.published_at, flt)
        if flt.company is not None:
            stmt = stmt.where(HolidayRow.company == flt.company)
        stmt = stmt.order_by(HolidayRow.id).limit(limit)
        return [
            Holiday(
                id=row.id,
                name=row.name,
                date=row.date,
                published_at=row.published_at,
                company=row.company,
            )
            for (row,) in await self._all(stmt)
        ]

    async def find_news(self, flt: RecordFilter, *, limit: int) -> list[NewsItem]:
        stmt = select(NewsRow, NewsCategoryRow.name).outerjoin(
            NewsCategoryRow, NewsCategoryRow.id == NewsRow.news_category_id
        )
        stmt = _date_bounds(stmt, NewsRow.published_at, flt)
        if flt.company is not None:
            stmt = stmt.where(NewsRow.company == flt.company)
        stmt = stmt.order_by(NewsRow.id).limit(limit)
        return [
            NewsItem(
                id=row.id,
                title=row.title,
                category_name=category,
                published_at=row.published_at,
                company=row.company,
            )
            for row, category in await self._all(stmt)
        ]

    async def find_events(self, flt: RecordFilter, *, limit: int) -> list[Event]:
        stmt = _date_bounds(select(EventRow), EventRow.published_at, flt)
        if flt.company is not None:
            stmt = stmt.where(EventRow.company == flt.company)
        stmt = stmt.order_by(EventRow.id).limit(limit)
        return [
            Event(
                id=row.id,
                title=row.title,
                event_type=row.event_type,
                published_at=row.published_at,
                company=row.company,
            )
            for (row,) in await self._all(stmt)
        ]

    async def find_townhalls(self, flt: RecordFilter, *, limit: int) -> list[Townhall]:
        stmt = _date_bounds(select(TownhallRow), TownhallRow.published_at, flt)
        stmt = stmt.order_by(TownhallRow.id).limit(limit)
        return [
            Townhall(
                id=row.id,
                title=row.title,
                meeting_content_type=row.meeting_content_type,
                published_at=row.published_at,
            )
            for (row,) in await self._all(stmt)
        ]

    async def list_departments(self, *, limit: int) -> list[Department]:
        stmt = select(DepartmentRow).order_by(DepartmentRow.name).limit(limit)
        return [Department(id=row.id, name=row.name) for (row,) in await self._all(stmt)]


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username or "",
        employee_name=row.employee_name or "",
        company=row.company,
        department_id=row.department_id,
        blocked=row.blocked,
        is_active=row.is_active,
    )


def _row_to_progress(row: UserProgressRow) -> UserProgress:
    return UserProgress(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        status=row.progress_status,
        progress_percentage=row.progress_percentage or 0,
        time_spent_minutes=row.time_spent_minutes or 0,
        completed_modules=tuple(row.completed_modules or ()),
        completed_at=row.completed_at,
        last_accessed_at=row.last_accessed_at,
        certificate_issued=row.certificate_issued,
    )


def _row_to_submission(row: QuizSubmissionRow) -> QuizSubmission:
    return QuizSubmission(
        id=row.id,
        user_id=row.submitted_by_id,
        quiz_id=row.quiz_id,
        score=row.score or 0,
        passed=row.passed,
        attempt_number=row.attempt_number,
        submitted_at=row.submitted_at,
    )
