"""Tests for percentage calculation and report building."""
from datetime import datetime, timedelta, timezone
import pytest
from posture_collector.application.metrics import MetricsAggregator
from posture_collector.application.posture import (
    build_report,
    format_timestamp,
    percent,
    security_features_coverage,
)
from posture_collector.domain.models import OrgAccessState, RepositoryRecord


@pytest.mark.parametrize("count", [0, 1, 5, 1000])
def test_percent_of_zero_total_is_zero(count):
    assert percent(count, 0) == 0


@pytest.mark.parametrize(
    "count, total, expected",
    [
        (0, 7, 0),
        (7, 7, 100),
        (1, 3, 33),
        (2, 3, 66),
        (1, 2, 50),
        (199, 200, 99),
    ],
)
def test_percent_truncates(count, total, expected):
    assert percent(count, total) == expected


def test_security_features_coverage_rounds_once():
    """Test that the average is truncated once, not per feature."""
    metrics = MetricsAggregator()
    metrics.total_repos = 3
    metrics.vulnerability_alerts_enabled = 2
    metrics.code_scanning_enabled = 2
    metrics.secret_scanning_enabled = 2
    metrics.secret_scanning_push_protection = 2
    metrics.dependabot_security_updates_enabled = 1

    # 9 * 100 // 15 == 60; averaging truncated percentages would give 59
    assert security_features_coverage(metrics) == 60


def test_security_features_coverage_without_repositories():
    assert security_features_coverage(MetricsAggregator()) == 0


def test_format_timestamp_converts_to_utc():
    moment = datetime(2026, 1, 1, 14, 30, 15, 999, tzinfo=timezone(timedelta(hours=2)))

    assert format_timestamp(moment) == "2026-01-01T12:30:15Z"


def test_build_report_for_empty_organization():
    """Test that an organization without repositories reports zeros."""
    report = build_report(
        organization="acme",
        org_access=OrgAccessState(two_factor_required=False),
        metrics=MetricsAggregator(),
        include_patterns=["*"],
        exclude_patterns=None,
        collected_at=datetime(2026, 1, 1, tzinfo=timezone.utc)
    )

    assert report.scope.repositories_coverage == 0
    assert report.scope.exclude_patterns == ()
    assert report.posture.branch_protection_coverage == 0
    assert report.posture.security_features_coverage == 0
    assert report.access_control.two_factor_required is False
    assert report.collected_at == "2026-01-01T00:00:00Z"


def test_build_report_percentages_are_relative_to_scope():
    """Test that feature percentages use in-scope repositories as the total."""
    metrics = MetricsAggregator()
    for name in ["prod-a", "prod-b", "test-a", "test-b"]:
        metrics.process_repository(
            RepositoryRecord(owner="acme", name=name, vulnerability_alerts_enabled=True),
            ["prod-*"],
            []
        )

    report = build_report(
        organization="acme",
        org_access=OrgAccessState(),
        metrics=metrics,
        include_patterns=["prod-*"],
        exclude_patterns=[],
        collected_at=datetime(2026, 1, 1, tzinfo=timezone.utc)
    )

    assert report.scope.repositories_coverage == 50
    assert report.security_features.vulnerability_alerts == 100
    assert report.posture.security_features_coverage == 20
    assert report.access_control.two_factor_required is None
