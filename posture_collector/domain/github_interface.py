"""GitHub API interface (port) for fetching posture data.

This is the anti-corruption layer that shields the domain from GitHub API specifics.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, List
from posture_collector.domain.models import (
    OrgAccessState,
    RepositoryRecord,
    RepositorySecuritySettings,
)


class IGitHubClient(ABC):
    """Abstract interface for GitHub API operations."""

    @abstractmethod
    async def fetch_org_security(self, org: str) -> OrgAccessState:
        """Fetch organization-level access control settings.

        Settings the credential cannot observe are returned as None rather
        than raising.

        Args:
            org: Organization login
        """
        pass

    @abstractmethod
    def fetch_repositories(self, org: str) -> AsyncIterator[List[RepositoryRecord]]:
        """Fetch all repositories of an organization.

        Args:
            org: Organization login

        Yields:
            One list of RepositoryRecord entities per API page
        """
        pass

    @abstractmethod
    async def fetch_security_settings(
        self, owner: str, name: str
    ) -> RepositorySecuritySettings:
        """Fetch security and analysis settings for a single repository."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
