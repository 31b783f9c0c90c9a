"""Conversion of aggregated counts into the posture report."""
from datetime import datetime, timezone
from typing import Optional, Sequence
from posture_collector.application.metrics import MetricsAggregator
from posture_collector.domain.models import (
    MAX_PERCENTAGE,
    NUM_SECURITY_FEATURES,
    AccessControl,
    BranchProtectionRules,
    OrgAccessState,
    Posture,
    PostureReport,
    Scope,
    SecurityFeatures,
)


def percent(count: int, total: int) -> int:
    """Percentage of count over total, truncated. Returns 0 if total is 0."""
    if total == 0:
        return 0
    return (count * MAX_PERCENTAGE) // total


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as an RFC 3339 UTC timestamp with second precision."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def security_features_coverage(metrics: MetricsAggregator) -> int:
    """Average adoption across all tracked security features.

    Computed from the raw counts so truncation is applied once.
    """
    if metrics.total_repos == 0:
        return 0
    enabled = (
        metrics.vulnerability_alerts_enabled
        + metrics.code_scanning_enabled
        + metrics.secret_scanning_enabled
        + metrics.secret_scanning_push_protection
        + metrics.dependabot_security_updates_enabled
    )
    return (enabled * MAX_PERCENTAGE) // (metrics.total_repos * NUM_SECURITY_FEATURES)


def branch_protection_rules(metrics: MetricsAggregator) -> BranchProtectionRules:
    total = metrics.total_repos
    return BranchProtectionRules(
        pull_request_required=percent(metrics.require_pull_request, total),
        approving_reviews=percent(metrics.require_approving_reviews, total),
        dismiss_stale_reviews=percent(metrics.dismiss_stale_reviews, total),
        code_owner_reviews=percent(metrics.require_code_owner_reviews, total),
        status_checks=percent(metrics.require_status_checks, total),
        signed_commits=percent(metrics.require_signed_commits, total),
        admin_enforcement=percent(metrics.enforce_admins, total),
    )


def security_features(metrics: MetricsAggregator) -> SecurityFeatures:
    total = metrics.total_repos
    return SecurityFeatures(
        vulnerability_alerts=percent(metrics.vulnerability_alerts_enabled, total),
        code_scanning=percent(metrics.code_scanning_enabled, total),
        secret_scanning=percent(metrics.secret_scanning_enabled, total),
        secret_scanning_push_protection=percent(
            metrics.secret_scanning_push_protection, total
        ),
        dependabot_security_updates=percent(
            metrics.dependabot_security_updates_enabled, total
        ),
    )


def build_report(
    organization: str,
    org_access: OrgAccessState,
    metrics: MetricsAggregator,
    include_patterns: Sequence[str],
    exclude_patterns: Optional[Sequence[str]],
    collected_at: datetime
) -> PostureReport:
    """Build the final posture report from aggregated metrics.

    All per-rule and per-feature percentages are relative to the repositories
    in scope, not to every repository in the organization.

    Args:
        organization: Organization login
        org_access: Organization access control state
        metrics: Aggregator holding the final counts
        include_patterns: Resolved include patterns
        exclude_patterns: Exclude patterns, None treated as empty
        collected_at: Collection time

    Returns:
        Immutable PostureReport
    """
    scope = Scope(
        include_patterns=tuple(include_patterns),
        exclude_patterns=tuple(exclude_patterns or ()),
        repositories_coverage=percent(metrics.total_repos, metrics.observed_repos),
    )

    posture = Posture(
        branch_protection_coverage=percent(
            metrics.branch_protection_enabled, metrics.total_repos
        ),
        security_features_coverage=security_features_coverage(metrics),
    )

    return PostureReport(
        collected_at=format_timestamp(collected_at),
        organization=organization,
        scope=scope,
        posture=posture,
        access_control=AccessControl(
            two_factor_required=org_access.two_factor_required
        ),
        branch_protection_rules=branch_protection_rules(metrics),
        security_features=security_features(metrics),
    )
