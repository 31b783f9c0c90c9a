"""GitHub API client implementation with rate limiting and retry logic.

Repositories are enumerated through the GraphQL API; organization and
per-repository security settings come from the REST API.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
import aiohttp
from gql import gql, Client
from gql.transport.aiohttp import AIOHTTPTransport
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
from posture_collector.config import DEFAULT_API_URL, DEFAULT_GRAPHQL_URL
from posture_collector.domain.errors import GitHubAPIError
from posture_collector.domain.github_interface import IGitHubClient
from posture_collector.domain.models import (
    BranchProtectionRule,
    OrgAccessState,
    RepositoryRecord,
    RepositorySecuritySettings,
)
from posture_collector.infrastructure.auth import (
    ACCEPT_HEADER,
    API_VERSION,
    TokenProvider,
)


logger = logging.getLogger(__name__)

STATUS_ENABLED = "enabled"
STATE_CONFIGURED = "configured"

# Statuses meaning the credential cannot see the organization's settings.
# 401 is a bad credential and is not included.
PERMISSION_GAP_STATUSES = (403, 404)


class RateLimitException(Exception):
    """Exception raised when rate limit is hit."""
    pass


RETRYABLE_ERRORS = (RateLimitException, asyncio.TimeoutError, aiohttp.ClientConnectionError)


def parse_branch_protection(node: Optional[Dict[str, Any]]) -> Optional[BranchProtectionRule]:
    if not node:
        return None
    return BranchProtectionRule(
        requires_approving_reviews=bool(node.get("requiresApprovingReviews")),
        required_approving_review_count=node.get("requiredApprovingReviewCount") or 0,
        dismisses_stale_reviews=bool(node.get("dismissesStaleReviews")),
        requires_code_owner_reviews=bool(node.get("requiresCodeOwnerReviews")),
        requires_status_checks=bool(node.get("requiresStatusChecks")),
        requires_commit_signatures=bool(node.get("requiresCommitSignatures")),
        is_admin_enforced=bool(node.get("isAdminEnforced")),
    )


def parse_repository_node(node: Optional[Dict[str, Any]]) -> Optional[RepositoryRecord]:
    """Transform a GraphQL repository node into a domain entity.

    Returns None for nodes without an owner or name.
    """
    if not node:
        return None

    owner = (node.get("owner") or {}).get("login")
    name = node.get("name")
    if not owner or not name:
        return None

    branch_ref = node.get("defaultBranchRef") or {}
    return RepositoryRecord(
        owner=owner,
        name=name,
        vulnerability_alerts_enabled=bool(node.get("hasVulnerabilityAlertsEnabled")),
        branch_protection=parse_branch_protection(branch_ref.get("branchProtectionRule")),
        visibility=node.get("visibility"),
        default_branch=branch_ref.get("name"),
    )


def parse_security_and_analysis(body: Dict[str, Any]) -> Dict[str, bool]:
    """Read the enabled flags from a repository's security_and_analysis block."""
    analysis = body.get("security_and_analysis") or {}

    def enabled(feature: str) -> bool:
        return (analysis.get(feature) or {}).get("status") == STATUS_ENABLED

    return {
        "secret_scanning": enabled("secret_scanning"),
        "secret_scanning_push_protection": enabled("secret_scanning_push_protection"),
        "dependabot_security_updates": enabled("dependabot_security_updates"),
    }


class GitHubClient(IGitHubClient):
    """GitHub API client with rate limiting and retry mechanisms.

    Implements the IGitHubClient port, providing an anti-corruption layer
    between the domain and GitHub's API. Transient failures are retried here;
    callers see only the final outcome.
    """

    # GraphQL query to fetch organization repositories with security settings
    REPOSITORIES_QUERY = gql("""
        query OrganizationRepositories($org: String!, $cursor: String) {
            organization(login: $org) {
                repositories(first: 100, after: $cursor) {
                    pageInfo {
                        hasNextPage
                        endCursor
                    }
                    nodes {
                        name
                        owner {
                            login
                        }
                        visibility
                        defaultBranchRef {
                            name
                            branchProtectionRule {
                                requiresApprovingReviews
                                requiredApprovingReviewCount
                                dismissesStaleReviews
                                requiresCodeOwnerReviews
                                requiresStatusChecks
                                requiresCommitSignatures
                                isAdminEnforced
                            }
                        }
                        hasVulnerabilityAlertsEnabled
                    }
                }
            }
            rateLimit {
                remaining
                resetAt
            }
        }
    """)

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str = DEFAULT_API_URL,
        graphql_url: str = DEFAULT_GRAPHQL_URL
    ):
        """Initialize GitHub client.

        Args:
            token_provider: Supplies the bearer token for every request
            base_url: REST API base URL
            graphql_url: GraphQL endpoint URL
        """
        self._token_provider = token_provider
        self._base_url = base_url.rstrip("/")
        self._graphql_url = graphql_url
        self._transport: Optional[AIOHTTPTransport] = None
        self._client: Optional[Client] = None
        self._client_token: Optional[str] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limit_remaining: int = 5000
        self._rate_limit_reset_at: Optional[datetime] = None

    async def _init_client(self) -> None:
        """Initialize the GraphQL client, rebuilding it when the token changes."""
        token = await self._token_provider.get_token()
        if self._client is not None and token == self._client_token:
            return

        if self._transport:
            await self._transport.close()

        headers = {"Authorization": f"Bearer {token}"}
        self._transport = AIOHTTPTransport(url=self._graphql_url, headers=headers)
        self._client = Client(
            transport=self._transport,
            fetch_schema_from_transport=False
        )
        self._client_token = token

    async def _rest_headers(self) -> Dict[str, str]:
        token = await self._token_provider.get_token()
        return {
            "Accept": ACCEPT_HEADER,
            "X-GitHub-Api-Version": API_VERSION,
            "Authorization": f"Bearer {token}",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _check_rate_limit(self) -> None:
        """Check and handle rate limiting."""
        if self._rate_limit_remaining <= 10:
            if self._rate_limit_reset_at:
                wait_time = (
                    self._rate_limit_reset_at - datetime.now(timezone.utc)
                ).total_seconds()
                if wait_time > 0:
                    logger.warning(
                        f"Rate limit nearly exhausted. Waiting {wait_time:.0f} seconds "
                        f"until reset at {self._rate_limit_reset_at}"
                    )
                    await asyncio.sleep(wait_time + 1)  # Add 1 second buffer

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True
    )
    async def _execute_query(self, org: str, cursor: Optional[str] = None) -> dict:
        """Execute GraphQL query with retry logic.

        Args:
            org: Organization login
            cursor: Pagination cursor for fetching next page

        Returns:
            Query result dictionary

        Raises:
            RateLimitException: When rate limit is hit
        """
        await self._init_client()
        await self._check_rate_limit()

        try:
            async with self._client as session:
                result = await session.execute(
                    self.REPOSITORIES_QUERY,
                    variable_values={"org": org, "cursor": cursor}
                )
        except Exception as e:
            logger.error(f"Error executing GraphQL query: {e}")
            if "rate limit" in str(e).lower():
                raise RateLimitException(str(e))
            raise

        # Update rate limit info
        rate_limit = result.get("rateLimit") or {}
        self._rate_limit_remaining = rate_limit.get("remaining", 0)
        reset_at_str = rate_limit.get("resetAt")
        if reset_at_str:
            self._rate_limit_reset_at = datetime.fromisoformat(
                reset_at_str.replace("Z", "+00:00")
            )

        logger.debug(
            f"Rate limit remaining: {self._rate_limit_remaining}, "
            f"resets at: {self._rate_limit_reset_at}"
        )

        return result

    async def fetch_repositories(self, org: str) -> AsyncIterator[List[RepositoryRecord]]:
        """Fetch all repositories of an organization, one page at a time.

        Args:
            org: Organization login

        Yields:
            Lists of RepositoryRecord entities, one per page
        """
        cursor = None
        fetched = 0

        logger.info(f"Starting to fetch repositories for {org}")

        while True:
            result = await self._execute_query(org, cursor)
            organization = result.get("organization")
            if organization is None:
                raise GitHubAPIError(f"organization {org} not found or not accessible")

            repositories = organization.get("repositories") or {}
            nodes = repositories.get("nodes") or []
            page_info = repositories.get("pageInfo") or {}

            page = []
            for node in nodes:
                repository = parse_repository_node(node)
                if repository is not None:
                    page.append(repository)

            fetched += len(page)
            yield page

            if not page_info.get("hasNextPage"):
                break

            cursor = page_info.get("endCursor")
            logger.info(f"Fetched {fetched} repositories so far")

        logger.info(f"Successfully fetched {fetched} repositories")

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True
    )
    async def _get_json(self, path: str) -> Tuple[int, Optional[Any]]:
        """GET a REST API path, returning the status and decoded body.

        The body is None when the response is not 200 or is not valid JSON.
        """
        session = self._get_session()
        headers = await self._rest_headers()
        async with session.get(f"{self._base_url}{path}", headers=headers) as response:
            if response.status == 429 or (
                response.status == 403
                and response.headers.get("X-RateLimit-Remaining") == "0"
            ):
                raise RateLimitException(f"rate limit exceeded for {path}")
            if response.status != 200:
                return response.status, None
            try:
                return response.status, await response.json()
            except (aiohttp.ContentTypeError, ValueError):
                return response.status, None

    async def fetch_org_security(self, org: str) -> OrgAccessState:
        """Fetch organization-level security settings.

        The two-factor requirement is only visible to organization owners; for
        other credentials it stays unknown (None).
        """
        status, body = await self._get_json(f"/orgs/{org}")

        if status in PERMISSION_GAP_STATUSES:
            logger.warning(
                f"Org API returned status {status} for {org}, "
                f"two-factor requirement unknown"
            )
            return OrgAccessState(two_factor_required=None)
        if status != 200:
            raise GitHubAPIError(f"org API returned status {status}", status=status)
        if not isinstance(body, dict):
            raise GitHubAPIError("org API returned an unreadable body", status=status)

        two_factor = body.get("two_factor_requirement_enabled")
        if not isinstance(two_factor, bool):
            two_factor = None
        return OrgAccessState(two_factor_required=two_factor)

    async def fetch_security_settings(
        self, owner: str, name: str
    ) -> RepositorySecuritySettings:
        """Fetch security settings for a repository via REST API.

        Raises:
            GitHubAPIError: If the repository cannot be read
        """
        status, body = await self._get_json(f"/repos/{owner}/{name}")
        if status != 200 or not isinstance(body, dict):
            raise GitHubAPIError(
                f"repository API returned status {status} for {owner}/{name}",
                status=status
            )

        flags = parse_security_and_analysis(body)
        return RepositorySecuritySettings(
            secret_scanning=flags["secret_scanning"],
            secret_scanning_push_protection=flags["secret_scanning_push_protection"],
            dependabot_security_updates=flags["dependabot_security_updates"],
            code_scanning_enabled=await self._check_code_scanning(owner, name),
        )

    async def _check_code_scanning(self, owner: str, name: str) -> bool:
        """Check if code scanning default setup is configured for a repository."""
        try:
            status, body = await self._get_json(
                f"/repos/{owner}/{name}/code-scanning/default-setup"
            )
        except Exception as e:
            logger.warning(
                f"Error checking code scanning for {owner}/{name}, counting as disabled: {e}"
            )
            return False
        if status != 200 or not isinstance(body, dict):
            return False
        return body.get("state") == STATE_CONFIGURED

    async def close(self) -> None:
        """Close the GraphQL transport and the REST session."""
        if self._transport:
            await self._transport.close()
            self._transport = None
            self._client = None
            self._client_token = None
        if self._session:
            await self._session.close()
            self._session = None
