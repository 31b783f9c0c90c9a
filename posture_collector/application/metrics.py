"""Streaming aggregation of repository metrics."""
import threading
from typing import List, Sequence
from posture_collector.domain.models import (
    RepositoryIdentity,
    RepositoryRecord,
    RepositorySecuritySettings,
)
from posture_collector.domain.patterns import should_include_repo


class MetricsAggregator:
    """Accumulates per-feature counts across the collection phases.

    Repositories are processed as they are enumerated; the identities of
    in-scope repositories drive the per-repository settings fetch, whose
    results are folded in with count_security_settings. The aggregator does
    no I/O and does not enforce phase ordering; the caller does.
    """

    def __init__(self):
        # Scope tracking
        self.total_repos = 0
        self.excluded_repos = 0
        self.repos: List[RepositoryIdentity] = []

        # Branch protection counts
        self.branch_protection_enabled = 0
        self.require_pull_request = 0
        self.require_approving_reviews = 0
        self.dismiss_stale_reviews = 0
        self.require_code_owner_reviews = 0
        self.require_status_checks = 0
        self.require_signed_commits = 0
        self.enforce_admins = 0

        # Security feature counts
        self.vulnerability_alerts_enabled = 0
        self.code_scanning_enabled = 0
        self.secret_scanning_enabled = 0
        self.secret_scanning_push_protection = 0
        self.dependabot_security_updates_enabled = 0

        self._settings_lock = threading.Lock()

    @property
    def observed_repos(self) -> int:
        """Number of repositories seen across all pages, in scope or not."""
        return self.total_repos + self.excluded_repos

    def process_repository(
        self,
        repo: RepositoryRecord,
        include_patterns: Sequence[str],
        exclude_patterns: Sequence[str]
    ) -> None:
        """Count a single enumerated repository.

        Args:
            repo: Repository as returned by the enumeration phase
            include_patterns: Glob patterns a name must match to be in scope
            exclude_patterns: Glob patterns that take a name out of scope
        """
        if not should_include_repo(repo.name, include_patterns, exclude_patterns):
            self.excluded_repos += 1
            return

        self.total_repos += 1
        self.repos.append(repo.identity())

        self._count_branch_protection(repo)

        if repo.vulnerability_alerts_enabled:
            self.vulnerability_alerts_enabled += 1

    def _count_branch_protection(self, repo: RepositoryRecord) -> None:
        rule = repo.branch_protection
        if rule is None:
            return

        self.branch_protection_enabled += 1

        # Both pull request counters track the approving reviews flag.
        if rule.requires_approving_reviews:
            self.require_pull_request += 1
            self.require_approving_reviews += 1
        if rule.dismisses_stale_reviews:
            self.dismiss_stale_reviews += 1
        if rule.requires_code_owner_reviews:
            self.require_code_owner_reviews += 1
        if rule.requires_status_checks:
            self.require_status_checks += 1
        if rule.requires_commit_signatures:
            self.require_signed_commits += 1
        if rule.is_admin_enforced:
            self.enforce_admins += 1

    def count_security_settings(self, settings: RepositorySecuritySettings) -> None:
        """Fold one repository's security settings into the feature counts.

        Safe to call from concurrently completing settings fetches.
        """
        with self._settings_lock:
            if settings.code_scanning_enabled:
                self.code_scanning_enabled += 1
            if settings.secret_scanning:
                self.secret_scanning_enabled += 1
            if settings.secret_scanning_push_protection:
                self.secret_scanning_push_protection += 1
            if settings.dependabot_security_updates:
                self.dependabot_security_updates_enabled += 1
