from __future__ import annotations

import datetime
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import memory_repo
from app.main import app
from app.models.content import Event, Holiday, NewsItem, Townhall
from app.models.course import Course, CourseCategory
from app.models.progress import UserProgress
from app.models.quiz import QuizSubmission
from app.models.user import Department, User
from app.repos.analytics_repo import InMemoryAnalyticsRepo

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Clear the shared in-memory store between tests."""
    memory_repo.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def repo() -> InMemoryAnalyticsRepo:
    """The same store the app serves from when DATABASE_URL is unset."""
    return memory_repo


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------


def ts(value: str) -> datetime.datetime:
    """Aware UTC datetime from ``YYYY-MM-DD`` or ``YYYY-MM-DDTHH:MM``."""
    return datetime.datetime.fromisoformat(value).replace(tzinfo=datetime.UTC)


def seed_catalog(repo: InMemoryAnalyticsRepo) -> None:
    """Two departments, two course categories, three courses."""
    repo.add_department(Department(id=1, name="Engineering"))
    repo.add_department(Department(id=2, name="Sales"))
    repo.add_category(CourseCategory(id=10, name="Compliance"))
    repo.add_category(CourseCategory(id=11, name="Leadership"))
    repo.add_course(Course(id=100, title="Data Privacy", category_id=10))
    repo.add_course(Course(id=101, title="Coaching Basics", category_id=11))
    repo.add_course(Course(id=102, title="Onboarding", category_id=None))


def add_user(
    repo: InMemoryAnalyticsRepo,
    user_id: int,
    *,
    name: str = "",
    company: str | None = "AIA",
    department_id: int | None = 1,
    blocked: bool = False,
    is_active: bool = True,
    email: str | None = None,
) -> User:
    user = User(
        id=user_id,
        email=email or f"user{user_id}@example.com",
        username=f"user{user_id}",
        employee_name=name,
        company=company,
        department_id=department_id,
        blocked=blocked,
        is_active=is_active,
    )
    repo.add_user(user)
    return user


_next_id = iter(range(1, 1_000_000))


def add_progress(
    repo: InMemoryAnalyticsRepo,
    user_id: int,
    *,
    course_id: int = 100,
    status: str = "In_progress",
    percentage: int = 0,
    minutes: int = 0,
    modules: tuple[str, ...] = (),
    completed_at: datetime.datetime | None = None,
    last_accessed_at: datetime.datetime | None = None,
    certificate: bool = False,
) -> UserProgress:
    progress = UserProgress(
        id=next(_next_id),
        user_id=user_id,
        course_id=course_id,
        status=status,
        progress_percentage=percentage,
        time_spent_minutes=minutes,
        completed_modules=modules,
        completed_at=completed_at,
        last_accessed_at=last_accessed_at or ts("2024-03-01"),
        certificate_issued=certificate,
    )
    repo.add_progress(progress)
    return progress


def add_submission(
    repo: InMemoryAnalyticsRepo,
    user_id: int,
    *,
    score: int,
    passed: bool,
    submitted_at: datetime.datetime | None = None,
) -> QuizSubmission:
    submission = QuizSubmission(
        id=next(_next_id),
        user_id=user_id,
        quiz_id=1,
        score=score,
        passed=passed,
        submitted_at=submitted_at or ts("2024-03-01"),
    )
    repo.add_submission(submission)
    return submission


def add_holiday(
    repo: InMemoryAnalyticsRepo,
    date: str | None,
    *,
    company: str | None = "AIA",
    published_at: datetime.datetime | None = None,
) -> Holiday:
    holiday = Holiday(
        id=next(_next_id),
        name=f"Holiday {date or 'TBC'}",
        date=datetime.date.fromisoformat(date) if date else None,
        published_at=published_at or ts("2024-01-01"),
        company=company,
    )
    repo.add_holiday(holiday)
    return holiday


def add_news(
    repo: InMemoryAnalyticsRepo,
    category: str | None,
    *,
    company: str | None = "AIA",
    published_at: datetime.datetime | None = None,
) -> NewsItem:
    item = NewsItem(
        id=next(_next_id),
        title="News",
        category_name=category,
        published_at=published_at or ts("2024-01-01"),
        company=company,
    )
    repo.add_news(item)
    return item


def add_event(
    repo: InMemoryAnalyticsRepo,
    event_type: str | None,
    *,
    company: str | None = "AIA",
    published_at: datetime.datetime | None = None,
) -> Event:
    event = Event(
        id=next(_next_id),
        title="Event",
        event_type=event_type,
        published_at=published_at or ts("2024-01-01"),
        company=company,
    )
    repo.add_event(event)
    return event


def add_townhall(
    repo: InMemoryAnalyticsRepo,
    content_type: str | None,
    *,
    published_at: datetime.datetime | None = None,
) -> Townhall:
    townhall = Townhall(
        id=next(_next_id),
        title="Townhall",
        meeting_content_type=content_type,
        published_at=published_at or ts("2024-01-01"),
    )
    repo.add_townhall(townhall)
    return townhall
