"""Chart-ready result shapes produced by the analytics service.

Field names are snake_case here; the HTTP layer renders them camelCase.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class NamedCount:
    name: str
    value: int


@dataclass(frozen=True, slots=True)
class MonthCount:
    month: str  # YYYY-MM
    value: int


@dataclass(frozen=True, slots=True)
class CompanyCount:
    name: str
    value: int
    active_value: int = 0


@dataclass(frozen=True, slots=True)
class QuizSummary:
    pass_rate: int
    avg_score: int
    total_attempts: int
    passed: int
    failed: int


# --- Learning ---


@dataclass(frozen=True, slots=True)
class LearningKpis:
    total_assignments: int
    completion_rate: int
    avg_time_spent_minutes: int
    certificates_issued: int


@dataclass(frozen=True, slots=True)
class LearningReport:
    kpis: LearningKpis
    status_distribution: list[NamedCount]
    category_distribution: list[NamedCount]
    department_distribution: list[NamedCount]
    monthly_completions: list[MonthCount]
    quiz: QuizSummary | None = None


@dataclass(frozen=True, slots=True)
class PersonalKpis:
    total_courses: int
    completion_rate: int
    avg_time_spent_minutes: int
    certificates_earned: int


@dataclass(frozen=True, slots=True)
class CourseProgressRow:
    course_title: str
    status: str
    percentage: int
    time_spent_minutes: int
    completed_at: datetime.datetime | None
    certificate_issued: bool


@dataclass(frozen=True, slots=True)
class PersonalLearningReport:
    kpis: PersonalKpis
    status_distribution: list[NamedCount]
    course_progress: list[CourseProgressRow]
    monthly_completions: list[MonthCount]
    quiz: QuizSummary | None = None


# --- Overall ---


@dataclass(frozen=True, slots=True)
class OverallKpis:
    total_users: int
    total_active_users: int
    total_holidays: int
    total_news: int
    total_events: int
    total_townhalls: int


@dataclass(frozen=True, slots=True)
class OverallReport:
    kpis: OverallKpis
    holiday_by_month: list[NamedCount]
    employees_by_company: list[CompanyCount]
    active_users_by_company: list[NamedCount]
    news_by_category: list[NamedCount]
    events_by_type: list[NamedCount]
    townhall_by_content_type: list[NamedCount]


@dataclass(frozen=True, slots=True)
class PersonalOverallKpis:
    total_holidays: int


@dataclass(frozen=True, slots=True)
class PersonalOverallReport:
    kpis: PersonalOverallKpis
    holiday_by_month: list[NamedCount]
    employees_by_company: list[NamedCount]


# --- Employee table / lookups ---


@dataclass(frozen=True, slots=True)
class EmployeeRow:
    employee_id: int
    employee_name: str
    company: str
    courses_enrolled: int
    course_completion_time_minutes: int
    total_modules_done: int
    progress_percent: int
    quiz_pass_rate: int
    avg_score: int


@dataclass(frozen=True, slots=True)
class EmployeeTable:
    total: int
    page: int
    page_size: int
    rows: list[EmployeeRow] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class EmployeeOption:
    id: int
    employee_name: str
    email: str
    department: str | None
    company: str | None
