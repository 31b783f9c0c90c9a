"""Collector service orchestrating the posture collection phases."""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence
from posture_collector.application.metrics import MetricsAggregator
from posture_collector.application.posture import build_report
from posture_collector.domain.errors import ConfigurationError, FatalFetchError
from posture_collector.domain.github_interface import IGitHubClient
from posture_collector.domain.models import (
    DEFAULT_INCLUDE_PATTERN,
    PostureReport,
    RepositoryIdentity,
    RepositorySecuritySettings,
)


logger = logging.getLogger(__name__)

StatusFunc = Callable[[str], None]
ProgressFunc = Callable[[int, int, str], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PostureCollectorService:
    """Application service for collecting an organization's security posture.

    Runs three phases in order: organization security settings, repository
    enumeration, and per-repository security settings. The first two are
    fatal on failure; a failed settings fetch for a single repository counts
    that repository as having every setting disabled.
    """

    def __init__(
        self,
        github_client: IGitHubClient,
        max_concurrency: int = 1,
        on_status: Optional[StatusFunc] = None,
        on_progress: Optional[ProgressFunc] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        """Initialize collector service.

        Args:
            github_client: GitHub API client implementation
            max_concurrency: Maximum concurrent per-repository settings fetches
            on_status: Called with a message at phase boundaries
            on_progress: Called with (current, total, message) per repository
                during the settings phase
            clock: Returns the collection timestamp
        """
        if max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")

        self._github_client = github_client
        self._max_concurrency = max_concurrency
        self._on_status = on_status
        self._on_progress = on_progress
        self._clock = clock

    async def collect(
        self,
        organization: str,
        include_patterns: Optional[Sequence[str]] = None,
        exclude_patterns: Optional[Sequence[str]] = None
    ) -> PostureReport:
        """Collect and aggregate security posture metrics for an organization.

        Args:
            organization: Organization login
            include_patterns: Glob patterns for repositories in scope,
                defaults to every repository
            exclude_patterns: Glob patterns for repositories out of scope

        Returns:
            PostureReport built from the final counts

        Raises:
            ConfigurationError: If no organization is given
            FatalFetchError: If the organization or repository fetch fails
        """
        if not organization:
            raise ConfigurationError("organization is required")

        includes = list(include_patterns) if include_patterns else [DEFAULT_INCLUDE_PATTERN]
        excludes = list(exclude_patterns) if exclude_patterns else []

        start_time = time.time()
        metrics = MetricsAggregator()

        self._status(f"Fetching security settings for organization {organization}")
        try:
            org_access = await self._github_client.fetch_org_security(organization)
        except Exception as e:
            logger.error(f"Error fetching org security for {organization}: {e}")
            raise FatalFetchError("org security", e) from e

        self._status(f"Fetching repositories for organization {organization}")
        try:
            async for page in self._github_client.fetch_repositories(organization):
                for repo in page:
                    metrics.process_repository(repo, includes, excludes)
                logger.info(
                    f"Processed page of {len(page)} repositories. "
                    f"Included: {metrics.total_repos}, excluded: {metrics.excluded_repos}"
                )
        except Exception as e:
            logger.error(f"Error fetching repositories for {organization}: {e}")
            raise FatalFetchError("repositories", e) from e

        self._status(f"Fetching security settings for {metrics.total_repos} repositories")
        await self._fetch_security_settings(metrics)

        report = build_report(
            organization=organization,
            org_access=org_access,
            metrics=metrics,
            include_patterns=includes,
            exclude_patterns=excludes,
            collected_at=self._clock(),
        )

        duration = time.time() - start_time
        logger.info(
            f"Collection completed for {organization}: {metrics.total_repos} repositories "
            f"in scope, {metrics.excluded_repos} excluded, in {duration:.2f} seconds"
        )
        self._status("Collection complete")

        return report

    async def _fetch_security_settings(self, metrics: MetricsAggregator) -> None:
        """Fetch settings for every in-scope repository and count them."""
        repos: List[RepositoryIdentity] = list(metrics.repos)
        total = len(repos)

        if self._max_concurrency == 1:
            for index, repo in enumerate(repos, start=1):
                settings = await self._fetch_settings_or_disabled(repo)
                metrics.count_security_settings(settings)
                self._progress(index, total, repo.full_name)
            return

        semaphore = asyncio.Semaphore(self._max_concurrency)
        completed = 0

        async def fetch_one(repo: RepositoryIdentity) -> None:
            nonlocal completed
            async with semaphore:
                settings = await self._fetch_settings_or_disabled(repo)
            metrics.count_security_settings(settings)
            completed += 1
            self._progress(completed, total, repo.full_name)

        await asyncio.gather(*(fetch_one(repo) for repo in repos))

    async def _fetch_settings_or_disabled(
        self, repo: RepositoryIdentity
    ) -> RepositorySecuritySettings:
        """Fetch one repository's settings, degrading failures to all disabled."""
        try:
            return await self._github_client.fetch_security_settings(repo.owner, repo.name)
        except Exception as e:
            # Don't fail the entire collection for one repository
            logger.warning(
                f"Error fetching security settings for {repo.full_name}, "
                f"counting as disabled: {e}"
            )
            return RepositorySecuritySettings.disabled()

    def _status(self, message: str) -> None:
        logger.info(message)
        if self._on_status:
            self._on_status(message)

    def _progress(self, current: int, total: int, message: str) -> None:
        if self._on_progress:
            self._on_progress(current, total, message)

    async def close(self) -> None:
        """Close connections."""
        await self._github_client.close()
