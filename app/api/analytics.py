"""Analytics dashboard endpoints.

Every endpoint follows the same sequence:
  Client -> GET /api/analytics/...?dateFrom=...&company=...
  -> coerce query strings into a typed filter struct (once, here)
  -> AnalyticsService aggregates from the store
  -> 200 JSON (camelCase keys)

Personal views: missing userId -> 400, nothing to show -> 404.
Anything unexpected -> logged with traceback, 500 with the error message.

These routes are unauthenticated; put them behind the admin proxy.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.dependencies import get_analytics_service
from app.models.analytics import (
    EmployeeOption,
    EmployeeTable,
    LearningReport,
    OverallReport,
    PersonalLearningReport,
    PersonalOverallReport,
)
from app.models.filters import (
    DEFAULT_PAGE_SIZE,
    AnalyticsFilters,
    EmployeeLookup,
    EmployeeTableQuery,
)
from app.models.user import Department
from app.services.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

Service = Annotated[AnalyticsService, Depends(get_analytics_service)]


# --- Pydantic schemas ---


class _CamelOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NamedCountOut(_CamelOut):
    name: str
    value: int


class MonthCountOut(_CamelOut):
    month: str
    value: int


class CompanyCountOut(_CamelOut):
    name: str
    value: int
    active_value: int


class QuizOut(_CamelOut):
    pass_rate: int
    avg_score: int
    total_attempts: int
    passed: int
    failed: int


class LearningKpisOut(_CamelOut):
    total_assignments: int
    completion_rate: int
    avg_time_spent_minutes: int
    certificates_issued: int


class LearningGlobalOut(_CamelOut):
    kpis: LearningKpisOut
    status_distribution: list[NamedCountOut]
    category_distribution: list[NamedCountOut]
    department_distribution: list[NamedCountOut]
    monthly_completions: list[MonthCountOut]
    quiz: QuizOut | None = None


class PersonalKpisOut(_CamelOut):
    total_courses: int
    completion_rate: int
    avg_time_spent_minutes: int
    certificates_earned: int


class CourseProgressOut(_CamelOut):
    course_title: str
    status: str
    percentage: int
    time_spent_minutes: int
    completed_at: datetime.datetime | None
    certificate_issued: bool


class LearningPersonalOut(_CamelOut):
    kpis: PersonalKpisOut
    status_distribution: list[NamedCountOut]
    course_progress: list[CourseProgressOut]
    monthly_completions: list[MonthCountOut]
    quiz: QuizOut | None = None


class EmployeeRowOut(_CamelOut):
    employee_id: int
    employee_name: str
    company: str
    courses_enrolled: int
    course_completion_time_minutes: int
    total_modules_done: int
    progress_percent: int
    quiz_pass_rate: int
    avg_score: int


class EmployeeTableOut(_CamelOut):
    rows: list[EmployeeRowOut]
    total: int
    page: int
    page_size: int


class OverallKpisOut(_CamelOut):
    total_users: int
    total_active_users: int
    total_holidays: int
    total_news: int
    total_events: int
    total_townhalls: int


class OverallGlobalOut(_CamelOut):
    kpis: OverallKpisOut
    holiday_by_month: list[NamedCountOut]
    employees_by_company: list[CompanyCountOut]
    active_users_by_company: list[NamedCountOut]
    news_by_category: list[NamedCountOut]
    events_by_type: list[NamedCountOut]
    townhall_by_content_type: list[NamedCountOut]


class PersonalOverallKpisOut(_CamelOut):
    total_holidays: int


class OverallPersonalOut(_CamelOut):
    kpis: PersonalOverallKpisOut
    holiday_by_month: list[NamedCountOut]
    employees_by_company: list[NamedCountOut]


class EmployeeOptionOut(BaseModel):
    id: int
    employee_name: str
    email: str
    department: str | None
    company: str | None


class DepartmentOut(BaseModel):
    id: int
    name: str


# --- Query-string coercion ---
# The admin UI sends camelCase; older callers send snake_case.  Both work.


def _param(request: Request, *names: str) -> str | None:
    for name in names:
        value = request.query_params.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _int_param(request: Request, *names: str) -> int | None:
    raw = _param(request, *names)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.debug("Ignoring non-integer %s=%r", names[0], raw)
        return None


def analytics_filters(request: Request) -> AnalyticsFilters:
    return AnalyticsFilters(
        date_from=_param(request, "dateFrom", "date_from"),
        date_to=_param(request, "dateTo", "date_to"),
        department=_int_param(request, "department"),
        company=_param(request, "company"),
        course_category=_int_param(request, "courseCategory", "course_category"),
        user_id=_int_param(request, "userId", "user_id"),
    )


def employee_table_query(request: Request) -> EmployeeTableQuery:
    sort_order = (_param(request, "sortOrder", "sort_order") or "desc").lower()
    return EmployeeTableQuery(
        company=_param(request, "company"),
        search=_param(request, "search"),
        date_from=_param(request, "dateFrom", "date_from"),
        date_to=_param(request, "dateTo", "date_to"),
        sort_by=_param(request, "sortBy", "sort_by") or "courseCompletionTimeMinutes",
        sort_order="asc" if sort_order == "asc" else "desc",
        page=_int_param(request, "page") or 1,
        page_size=_int_param(request, "pageSize", "page_size") or DEFAULT_PAGE_SIZE,
    )


def employee_lookup(request: Request) -> EmployeeLookup:
    return EmployeeLookup(
        company=_param(request, "company"),
        department=_int_param(request, "department"),
        search=_param(request, "search"),
    )


Filters = Annotated[AnalyticsFilters, Depends(analytics_filters)]


@contextmanager
def _surface_errors(view: str) -> Iterator[None]:
    try:
        yield
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Analytics %s failed", view)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e


def _require_user_id(filters: AnalyticsFilters) -> int:
    if filters.user_id is None:
        logger.warning("Personal analytics requested without userId")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="userId is required for personal analytics",
        )
    return filters.user_id


# ---------------------------------------------------------------------------
# Learning analytics
# ---------------------------------------------------------------------------


@router.get("/learning/global", response_model=LearningGlobalOut)
async def learning_global(filters: Filters, service: Service) -> LearningReport:
    with _surface_errors("learning_global"):
        report = await service.learning_global(filters)
        quiz = await service.quiz_global(filters)
    return replace(report, quiz=quiz)


@router.get("/learning/personal", response_model=LearningPersonalOut)
async def learning_personal(filters: Filters, service: Service) -> PersonalLearningReport:
    user_id = _require_user_id(filters)
    with _surface_errors("learning_personal"):
        report = await service.learning_personal(user_id, filters)
        if report is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No learning data found for this user",
            )
        quiz = await service.quiz_personal(user_id, filters)
    return replace(report, quiz=quiz)


@router.get("/learning/employee-table", response_model=EmployeeTableOut)
async def learning_employee_table(
    query: Annotated[EmployeeTableQuery, Depends(employee_table_query)],
    service: Service,
) -> EmployeeTable:
    with _surface_errors("learning_employee_table"):
        return await service.employee_table(query)


# ---------------------------------------------------------------------------
# Overall analytics
# ---------------------------------------------------------------------------


@router.get("/overall/global", response_model=OverallGlobalOut)
async def overall_global(filters: Filters, service: Service) -> OverallReport:
    with _surface_errors("overall_global"):
        return await service.overall_global(filters)


@router.get("/overall/personal", response_model=OverallPersonalOut)
async def overall_personal(filters: Filters, service: Service) -> PersonalOverallReport:
    user_id = _require_user_id(filters)
    with _surface_errors("overall_personal"):
        report = await service.overall_personal(user_id, filters)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No overall data found for this user",
        )
    return report


# ---------------------------------------------------------------------------
# Filter dropdowns
# ---------------------------------------------------------------------------


@router.get("/employees", response_model=list[EmployeeOptionOut])
async def employees(
    lookup: Annotated[EmployeeLookup, Depends(employee_lookup)],
    service: Service,
) -> list[EmployeeOption]:
    with _surface_errors("employees"):
        return await service.employees(lookup)


@router.get("/departments", response_model=list[DepartmentOut])
async def departments(service: Service) -> list[Department]:
    with _surface_errors("departments"):
        return await service.departments()
