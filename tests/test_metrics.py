"""Tests for the metrics aggregator."""
from posture_collector.application.metrics import MetricsAggregator
from posture_collector.domain.models import (
    BranchProtectionRule,
    RepositoryIdentity,
    RepositoryRecord,
    RepositorySecuritySettings,
)


FULL_PROTECTION = BranchProtectionRule(
    requires_approving_reviews=True,
    required_approving_review_count=2,
    dismisses_stale_reviews=True,
    requires_code_owner_reviews=True,
    requires_status_checks=True,
    requires_commit_signatures=True,
    is_admin_enforced=True
)


def test_excluded_repository_only_counts_exclusion():
    """Test that an out-of-scope repository touches nothing but the excluded count."""
    metrics = MetricsAggregator()
    repo = RepositoryRecord(
        owner="acme",
        name="old-archive",
        vulnerability_alerts_enabled=True,
        branch_protection=FULL_PROTECTION
    )

    metrics.process_repository(repo, ["*"], ["*-archive"])

    assert metrics.excluded_repos == 1
    assert metrics.total_repos == 0
    assert metrics.repos == []
    assert metrics.branch_protection_enabled == 0
    assert metrics.vulnerability_alerts_enabled == 0


def test_included_repository_without_protection():
    metrics = MetricsAggregator()

    metrics.process_repository(RepositoryRecord(owner="acme", name="api"), ["*"], [])

    assert metrics.total_repos == 1
    assert metrics.repos == [RepositoryIdentity(owner="acme", name="api")]
    assert metrics.branch_protection_enabled == 0
    assert metrics.require_pull_request == 0
    assert metrics.vulnerability_alerts_enabled == 0


def test_full_branch_protection_counts_every_rule():
    metrics = MetricsAggregator()
    repo = RepositoryRecord(
        owner="acme",
        name="api",
        vulnerability_alerts_enabled=True,
        branch_protection=FULL_PROTECTION
    )

    metrics.process_repository(repo, ["*"], [])

    assert metrics.branch_protection_enabled == 1
    assert metrics.require_pull_request == 1
    assert metrics.require_approving_reviews == 1
    assert metrics.dismiss_stale_reviews == 1
    assert metrics.require_code_owner_reviews == 1
    assert metrics.require_status_checks == 1
    assert metrics.require_signed_commits == 1
    assert metrics.enforce_admins == 1
    assert metrics.vulnerability_alerts_enabled == 1


def test_protection_rule_with_no_flags_counts_as_enabled():
    """Test that an empty rule still counts toward branch protection coverage."""
    metrics = MetricsAggregator()
    repo = RepositoryRecord(owner="acme", name="api", branch_protection=BranchProtectionRule())

    metrics.process_repository(repo, ["*"], [])

    assert metrics.branch_protection_enabled == 1
    assert metrics.require_pull_request == 0
    assert metrics.require_status_checks == 0


def test_pull_request_and_approving_reviews_share_a_flag():
    metrics = MetricsAggregator()
    rule = BranchProtectionRule(requires_approving_reviews=True)

    metrics.process_repository(
        RepositoryRecord(owner="acme", name="api", branch_protection=rule), ["*"], []
    )

    assert metrics.require_pull_request == metrics.require_approving_reviews == 1


def test_count_security_settings():
    """Test that each settings flag is counted independently."""
    metrics = MetricsAggregator()

    metrics.count_security_settings(RepositorySecuritySettings(
        secret_scanning=True,
        code_scanning_enabled=True
    ))
    metrics.count_security_settings(RepositorySecuritySettings(
        secret_scanning=True,
        secret_scanning_push_protection=True,
        dependabot_security_updates=True
    ))

    assert metrics.secret_scanning_enabled == 2
    assert metrics.secret_scanning_push_protection == 1
    assert metrics.dependabot_security_updates_enabled == 1
    assert metrics.code_scanning_enabled == 1


def test_disabled_settings_are_a_no_op():
    metrics = MetricsAggregator()

    metrics.count_security_settings(RepositorySecuritySettings.disabled())

    assert metrics.secret_scanning_enabled == 0
    assert metrics.secret_scanning_push_protection == 0
    assert metrics.dependabot_security_updates_enabled == 0
    assert metrics.code_scanning_enabled == 0


def test_observed_repos_and_identity_order():
    """Test that included + excluded equals every repository seen."""
    metrics = MetricsAggregator()
    names = ["prod-a", "test-b", "prod-c", "prod-d", "scratch"]

    for name in names:
        metrics.process_repository(RepositoryRecord(owner="acme", name=name), ["prod-*"], [])

    assert metrics.observed_repos == len(names)
    assert metrics.total_repos == 3
    assert metrics.excluded_repos == 2
    assert [repo.name for repo in metrics.repos] == ["prod-a", "prod-c", "prod-d"]
