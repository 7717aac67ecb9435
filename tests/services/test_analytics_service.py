"""Tests for the learning and overall aggregations.

The service is driven directly against the in-memory store, so each test
seeds exactly the rows it reasons about.
"""

from __future__ import annotations

import asyncio

import pytest
from prometheus_client import REGISTRY

from app.models.filters import AnalyticsFilters
from app.repos.analytics_repo import InMemoryAnalyticsRepo
from app.services import analytics_service
from app.services.analytics_service import AnalyticsService, month_key, rate, round_half_up
from tests.conftest import (
    add_event,
    add_holiday,
    add_news,
    add_progress,
    add_submission,
    add_townhall,
    add_user,
    seed_catalog,
    ts,
)


def _svc(repo: InMemoryAnalyticsRepo) -> AnalyticsService:
    return AnalyticsService(repo)


def _sample(name: str, labels: dict) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels)
    return value if value is not None else 0.0


def _as_dict(named: list) -> dict[str, int]:
    return {n.name: n.value for n in named}


# ---- arithmetic ----


def test_rate_is_zero_for_empty_total() -> None:
    assert rate(0, 0) == 0


def test_rate_stays_within_bounds_and_rounds_half_up() -> None:
    for total in range(0, 41):
        for passed in range(0, total + 1):
            r = rate(passed, total)
            assert 0 <= r <= 100
            if total:
                assert r == int(passed / total * 100 + 0.5)


def test_round_half_up_differs_from_bankers_rounding() -> None:
    assert round_half_up(12.5) == 13
    assert round_half_up(0.5) == 1
    assert rate(1, 8) == 13  # 12.5%


def test_month_key_uses_utc() -> None:
    assert month_key(ts("2024-03-31T23:00")) == "2024-03"


# ---- learning global ----


def test_learning_global_end_to_end(repo: InMemoryAnalyticsRepo) -> None:
    """10 records, 4 completed in March 2024 -> 40% completion."""
    seed_catalog(repo)
    for uid in range(1, 11):
        add_user(repo, uid)
    for uid in range(1, 5):
        add_progress(
            repo,
            uid,
            status="Completed",
            percentage=100,
            minutes=30,
            completed_at=ts(f"2024-03-{uid + 10:02d}"),
            certificate=True,
        )
    for uid, status in zip(range(5, 11), ["In_progress"] * 3 + ["Not_started"] * 2 + ["Failed"]):
        add_progress(repo, uid, status=status, minutes=10)

    report = asyncio.run(_svc(repo).learning_global(AnalyticsFilters()))

    assert _as_dict(report.status_distribution)["Completed"] == 4
    assert [(m.month, m.value) for m in report.monthly_completions] == [("2024-03", 4)]
    assert report.kpis.completion_rate == 40
    assert report.kpis.total_assignments == 10
    assert report.kpis.certificates_issued == 4
    assert report.kpis.avg_time_spent_minutes == 18  # (4*30 + 6*10) / 10


def test_status_distribution_always_has_four_statuses(repo: InMemoryAnalyticsRepo) -> None:
    report = asyncio.run(_svc(repo).learning_global(AnalyticsFilters()))
    assert [n.name for n in report.status_distribution] == [
        "Not_started",
        "In_progress",
        "Completed",
        "Failed",
    ]
    assert all(n.value == 0 for n in report.status_distribution)
    assert report.kpis.completion_rate == 0
    assert report.kpis.avg_time_spent_minutes == 0


def test_learning_global_orphans_fall_into_default_buckets(
    repo: InMemoryAnalyticsRepo,
) -> None:
    seed_catalog(repo)
    add_user(repo, 1, department_id=None)
    add_user(repo, 2, department_id=99)  # department row missing
    add_progress(repo, 1, course_id=102)  # course without category
    add_progress(repo, 2, course_id=999)  # course row missing

    report = asyncio.run(_svc(repo).learning_global(AnalyticsFilters()))

    assert _as_dict(report.category_distribution) == {"Uncategorized": 2}
    assert _as_dict(report.department_distribution) == {"Unknown": 2}


def test_learning_global_groups_by_category_and_department(
    repo: InMemoryAnalyticsRepo,
) -> None:
    seed_catalog(repo)
    add_user(repo, 1, department_id=1)
    add_user(repo, 2, department_id=2)
    add_progress(repo, 1, course_id=100)
    add_progress(repo, 1, course_id=101)
    add_progress(repo, 2, course_id=100)

    report = asyncio.run(_svc(repo).learning_global(AnalyticsFilters()))

    assert _as_dict(report.category_distribution) == {"Compliance": 2, "Leadership": 1}
    assert _as_dict(report.department_distribution) == {"Engineering": 2, "Sales": 1}


def test_learning_global_filters(repo: InMemoryAnalyticsRepo) -> None:
    seed_catalog(repo)
    add_user(repo, 1, company="AIA", department_id=1)
    add_user(repo, 2, company="Vega", department_id=2)
    add_progress(repo, 1, course_id=100, last_accessed_at=ts("2024-01-15"))
    add_progress(repo, 2, course_id=101, last_accessed_at=ts("2024-03-31T18:00"))

    svc = _svc(repo)

    def total(**kwargs: object) -> int:
        report = asyncio.run(svc.learning_global(AnalyticsFilters(**kwargs)))
        return report.kpis.total_assignments

    assert total() == 2
    assert total(company="Vega") == 1
    assert total(department=1) == 1
    assert total(course_category=11) == 1
    # Date-only upper bound covers the whole day.
    assert total(date_from="2024-03-01", date_to="2024-03-31") == 1
    assert total(date_to="2024-02-01") == 1
    # Unparsable dates impose no constraint.
    assert total(date_from="not-a-date") == 2


def test_learning_global_excludes_records_of_deleted_users(
    repo: InMemoryAnalyticsRepo,
) -> None:
    seed_catalog(repo)
    add_user(repo, 1)
    add_progress(repo, 1)
    add_progress(repo, 2)  # no such user

    report = asyncio.run(_svc(repo).learning_global(AnalyticsFilters()))
    assert report.kpis.total_assignments == 1


def test_learning_global_is_idempotent(repo: InMemoryAnalyticsRepo) -> None:
    seed_catalog(repo)
    for uid in range(1, 6):
        add_user(repo, uid, department_id=1 + uid % 2)
        add_progress(
            repo,
            uid,
            course_id=100 + uid % 3,
            status="Completed" if uid % 2 else "In_progress",
            completed_at=ts(f"2024-0{uid}-10"),
        )
    svc = _svc(repo)
    first = asyncio.run(svc.learning_global(AnalyticsFilters()))
    second = asyncio.run(svc.learning_global(AnalyticsFilters()))
    assert first == second


def test_monthly_completions_are_chronological(repo: InMemoryAnalyticsRepo) -> None:
    seed_catalog(repo)
    add_user(repo, 1)
    for day in ("2025-01-05", "2024-11-05", "2024-02-05"):
        add_progress(repo, 1, status="Completed", completed_at=ts(day))
    # Completed without a timestamp counts in the status but not the series.
    add_progress(repo, 1, status="Completed", completed_at=None)

    report = asyncio.run(_svc(repo).learning_global(AnalyticsFilters()))

    assert [m.month for m in report.monthly_completions] == ["2024-02", "2024-11", "2025-01"]
    assert _as_dict(report.status_distribution)["Completed"] == 4


def test_fetch_cap_hit_is_counted(
    repo: InMemoryAnalyticsRepo, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(analytics_service, "PROGRESS_LIMIT", 2)
    seed_catalog(repo)
    add_user(repo, 1)
    for _ in range(3):
        add_progress(repo, 1)

    labels = {"entity": "user_progress"}
    before = _sample("analytics_fetch_cap_hits_total", labels)
    report = asyncio.run(_svc(repo).learning_global(AnalyticsFilters()))
    after = _sample("analytics_fetch_cap_hits_total", labels)

    assert report.kpis.total_assignments == 2
    assert after - before == 1


# ---- learning personal ----


def test_learning_personal_scopes_to_user(repo: InMemoryAnalyticsRepo) -> None:
    seed_catalog(repo)
    add_user(repo, 1, company="AIA")
    add_user(repo, 2)
    add_progress(
        repo,
        1,
        course_id=100,
        status="Completed",
        percentage=100,
        minutes=45,
        completed_at=ts("2024-03-10"),
        certificate=True,
    )
    add_progress(repo, 1, course_id=999, percentage=20, minutes=15)
    add_progress(repo, 2, course_id=100)

    # Department/company filters do not narrow a personal view.
    report = asyncio.run(
        _svc(repo).learning_personal(1, AnalyticsFilters(company="Vega", department=2))
    )

    assert report is not None
    assert report.kpis.total_courses == 2
    assert report.kpis.completion_rate == 50
    assert report.kpis.avg_time_spent_minutes == 30
    assert report.kpis.certificates_earned == 1
    assert [c.course_title for c in report.course_progress] == ["Data Privacy", "Unknown"]
    assert report.course_progress[0].completed_at == ts("2024-03-10")
    assert [(m.month, m.value) for m in report.monthly_completions] == [("2024-03", 1)]


def test_learning_personal_returns_none_without_records(
    repo: InMemoryAnalyticsRepo,
) -> None:
    add_user(repo, 1)
    svc = _svc(repo)
    assert asyncio.run(svc.learning_personal(1, AnalyticsFilters())) is None
    assert asyncio.run(svc.learning_personal(None, AnalyticsFilters())) is None


def test_learning_personal_not_found_is_counted(repo: InMemoryAnalyticsRepo) -> None:
    labels = {"view": "learning_personal", "outcome": "not_found"}
    before = _sample("analytics_aggregations_total", labels)
    asyncio.run(_svc(repo).learning_personal(7, AnalyticsFilters()))
    assert _sample("analytics_aggregations_total", labels) - before == 1


# ---- quiz ----


def test_quiz_global_summary(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1)
    add_user(repo, 2)
    add_submission(repo, 1, score=80, passed=True)
    add_submission(repo, 1, score=90, passed=True)
    add_submission(repo, 2, score=45, passed=False)

    quiz = asyncio.run(_svc(repo).quiz_global(AnalyticsFilters()))

    assert quiz.total_attempts == 3
    assert quiz.passed == 2
    assert quiz.failed == 1
    assert quiz.pass_rate == 67
    assert quiz.avg_score == 72


def test_quiz_global_ignores_department_and_company(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1, company="AIA")
    add_user(repo, 2, company="Vega")
    add_submission(repo, 1, score=50, passed=False)
    add_submission(repo, 2, score=100, passed=True)

    quiz = asyncio.run(_svc(repo).quiz_global(AnalyticsFilters(company="AIA", department=5)))
    assert quiz.total_attempts == 2


def test_quiz_personal_respects_dates(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1)
    add_user(repo, 2)
    add_submission(repo, 1, score=70, passed=True, submitted_at=ts("2024-01-10"))
    add_submission(repo, 1, score=30, passed=False, submitted_at=ts("2024-06-10"))
    add_submission(repo, 2, score=100, passed=True, submitted_at=ts("2024-01-10"))

    quiz = asyncio.run(
        _svc(repo).quiz_personal(1, AnalyticsFilters(date_from="2024-01-01", date_to="2024-01-31"))
    )
    assert quiz.total_attempts == 1
    assert quiz.pass_rate == 100
    assert quiz.avg_score == 70


def test_quiz_empty_is_all_zero(repo: InMemoryAnalyticsRepo) -> None:
    quiz = asyncio.run(_svc(repo).quiz_global(AnalyticsFilters()))
    assert (quiz.pass_rate, quiz.avg_score, quiz.total_attempts) == (0, 0, 0)


def test_quiz_personal_is_counted_under_its_own_view(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1)
    add_submission(repo, 1, score=80, passed=True)
    personal = {"view": "quiz_personal", "outcome": "ok"}
    global_ = {"view": "quiz_global", "outcome": "ok"}
    personal_before = _sample("analytics_aggregations_total", personal)
    global_before = _sample("analytics_aggregations_total", global_)

    asyncio.run(_svc(repo).quiz_personal(1, AnalyticsFilters()))

    assert _sample("analytics_aggregations_total", personal) - personal_before == 1
    assert _sample("analytics_aggregations_total", global_) == global_before


# ---- overall ----


def test_holiday_by_month_is_chronological(repo: InMemoryAnalyticsRepo) -> None:
    add_holiday(repo, "2025-01-01")
    add_holiday(repo, "2024-02-10")
    add_holiday(repo, "2024-02-19")
    add_holiday(repo, "2024-12-25")

    report = asyncio.run(_svc(repo).overall_global(AnalyticsFilters()))

    assert [(h.name, h.value) for h in report.holiday_by_month] == [
        ("Feb 2024", 2),
        ("Dec 2024", 1),
        ("Jan 2025", 1),
    ]
    assert report.kpis.total_holidays == 4


def test_overall_global_breakdowns(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1, company="Vega")
    add_user(repo, 2, company="AIA")
    add_user(repo, 3, company="AIA", is_active=False)
    add_user(repo, 4, company=None)
    add_user(repo, 5, company="AIA", blocked=True)
    add_news(repo, "HR")
    add_news(repo, "HR")
    add_news(repo, None)
    add_event(repo, "Workshop")
    add_event(repo, None)
    add_townhall(repo, "Video")
    add_townhall(repo, "Pdf")
    add_townhall(repo, None)

    report = asyncio.run(_svc(repo).overall_global(AnalyticsFilters()))

    assert [(c.name, c.value, c.active_value) for c in report.employees_by_company] == [
        ("AIA", 2, 1),
        ("Vega", 1, 1),
        ("Unassigned", 1, 1),
    ]
    assert _as_dict(report.active_users_by_company) == {"AIA": 1, "Vega": 1, "Unassigned": 1}
    assert report.kpis.total_users == 4
    assert report.kpis.total_active_users == 3
    assert _as_dict(report.news_by_category) == {"HR": 2, "Uncategorized": 1}
    assert _as_dict(report.events_by_type) == {"Workshop": 1, "Other": 1}
    assert _as_dict(report.townhall_by_content_type) == {"Video": 1, "Pdf": 1, "Other": 1}
    assert report.kpis.total_news == 3
    assert report.kpis.total_events == 2
    assert report.kpis.total_townhalls == 3


def test_overall_global_company_filter_skips_townhalls(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1, company="AIA")
    add_user(repo, 2, company="Vega")
    add_holiday(repo, "2024-05-01", company="AIA")
    add_holiday(repo, "2024-05-02", company="Vega")
    add_news(repo, "HR", company="Vega")
    add_event(repo, "Workshop", company="AIA")
    add_townhall(repo, "Video")

    report = asyncio.run(_svc(repo).overall_global(AnalyticsFilters(company="AIA")))

    assert report.kpis.total_users == 1
    assert report.kpis.total_holidays == 1
    assert report.kpis.total_news == 0
    assert report.kpis.total_events == 1
    assert report.kpis.total_townhalls == 1


def test_overall_personal(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1, company="AIA")
    add_user(repo, 2, company="Vega")
    add_holiday(repo, "2024-05-01")

    report = asyncio.run(_svc(repo).overall_personal(1, AnalyticsFilters()))

    assert report is not None
    assert report.kpis.total_holidays == 1
    assert [h.name for h in report.holiday_by_month] == ["May 2024"]
    assert _as_dict(report.employees_by_company) == {"AIA": 1, "Vega": 1}


def test_overall_personal_unknown_user(repo: InMemoryAnalyticsRepo) -> None:
    svc = _svc(repo)
    assert asyncio.run(svc.overall_personal(404, AnalyticsFilters())) is None
    assert asyncio.run(svc.overall_personal(None, AnalyticsFilters())) is None


def _seed_content_across_months(repo: InMemoryAnalyticsRepo) -> None:
    for published in ("2024-01-15", "2024-05-10", "2024-09-20"):
        when = ts(published)
        add_holiday(repo, published, published_at=when)
        add_news(repo, "HR", published_at=when)
        add_event(repo, "Workshop", published_at=when)
        add_townhall(repo, "Video", published_at=when)


def test_overall_global_date_range_uses_published_at(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1)
    _seed_content_across_months(repo)

    report = asyncio.run(
        _svc(repo).overall_global(AnalyticsFilters(date_from="2024-05-01", date_to="2024-09-20"))
    )

    kpis = report.kpis
    assert (kpis.total_holidays, kpis.total_news, kpis.total_events, kpis.total_townhalls) == (
        2,
        2,
        2,
        2,
    )
    assert [(h.name, h.value) for h in report.holiday_by_month] == [
        ("May 2024", 1),
        ("Sep 2024", 1),
    ]
    # Users are not dated.
    assert kpis.total_users == 1


def test_overall_personal_date_range_uses_published_at(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1)
    _seed_content_across_months(repo)

    report = asyncio.run(
        _svc(repo).overall_personal(1, AnalyticsFilters(date_from="2024-02-01", date_to="2024-06-30"))
    )

    assert report is not None
    assert report.kpis.total_holidays == 1
    assert [(h.name, h.value) for h in report.holiday_by_month] == [("May 2024", 1)]


def test_undated_holiday_counts_but_is_not_charted(repo: InMemoryAnalyticsRepo) -> None:
    add_user(repo, 1)
    add_holiday(repo, "2024-05-01")
    add_holiday(repo, None)

    svc = _svc(repo)
    overall = asyncio.run(svc.overall_global(AnalyticsFilters()))
    personal = asyncio.run(svc.overall_personal(1, AnalyticsFilters()))

    assert personal is not None
    for report in (overall, personal):
        assert report.kpis.total_holidays == 2
        assert [(h.name, h.value) for h in report.holiday_by_month] == [("May 2024", 1)]


# ---- lookups ----


def test_departments_sorted_by_name(repo: InMemoryAnalyticsRepo) -> None:
    seed_catalog(repo)
    departments = asyncio.run(_svc(repo).departments())
    assert [d.name for d in departments] == ["Engineering", "Sales"]
