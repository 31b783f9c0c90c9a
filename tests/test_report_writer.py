"""Tests for writing posture reports."""
import io
import json
from datetime import datetime, timezone
from posture_collector.application.metrics import MetricsAggregator
from posture_collector.application.posture import build_report
from posture_collector.domain.models import OrgAccessState
from posture_collector.infrastructure.report_writer import write_report


def make_report():
    return build_report(
        organization="acme",
        org_access=OrgAccessState(),
        metrics=MetricsAggregator(),
        include_patterns=["*"],
        exclude_patterns=["*-archive"],
        collected_at=datetime(2026, 1, 1, tzinfo=timezone.utc)
    )


def test_write_report_to_file(tmp_path):
    output = tmp_path / "posture.json"

    write_report(make_report(), str(output))

    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["organization"] == "acme"
    assert data["scope"]["exclude_patterns"] == ["*-archive"]
    assert data["access_control"]["two_factor_required"] is None


def test_write_report_to_stream():
    stream = io.StringIO()

    write_report(make_report(), stream=stream)

    data = json.loads(stream.getvalue())
    assert data["schema_version"] == "1.0.0"
    assert data["collected_at"] == "2026-01-01T00:00:00Z"
