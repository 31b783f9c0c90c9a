"""Authentication for the GitHub API: personal access tokens and GitHub Apps."""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import aiohttp
import jwt
from posture_collector.config import DEFAULT_API_URL, Config
from posture_collector.domain.errors import ConfigurationError, GitHubAPIError


logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/vnd.github+json"
API_VERSION = "2022-11-28"

# GitHub rejects App JWTs that live longer than 10 minutes
JWT_LIFETIME_SECONDS = 9 * 60
JWT_CLOCK_SKEW_SECONDS = 60
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


class TokenProvider(ABC):
    """Supplies the bearer token used for API requests."""

    @abstractmethod
    async def get_token(self) -> str:
        pass


class StaticTokenProvider(TokenProvider):
    """Personal access token authentication."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self) -> str:
        return self._token


def build_app_jwt(app_id: int, private_key: str, now: Optional[float] = None) -> str:
    """Sign the JWT a GitHub App uses to request installation tokens.

    Args:
        app_id: GitHub App ID
        private_key: PEM encoded RSA private key of the App
        now: Current unix time, defaults to time.time()

    Returns:
        RS256 signed JWT
    """
    issued_at = int(now if now is not None else time.time())
    payload = {
        "iat": issued_at - JWT_CLOCK_SKEW_SECONDS,
        "exp": issued_at + JWT_LIFETIME_SECONDS,
        "iss": str(app_id),
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


class GitHubAppTokenProvider(TokenProvider):
    """GitHub App installation token authentication.

    Exchanges a signed App JWT for an installation access token and caches
    it until shortly before it expires.
    """

    def __init__(
        self,
        app_id: int,
        installation_id: int,
        private_key: str,
        base_url: str = DEFAULT_API_URL
    ):
        self._app_id = app_id
        self._installation_id = installation_id
        self._private_key = private_key
        self._base_url = base_url.rstrip("/")
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    def _token_valid(self) -> bool:
        if self._token is None or self._expires_at is None:
            return False
        return datetime.now(timezone.utc) < self._expires_at - TOKEN_REFRESH_MARGIN

    async def get_token(self) -> str:
        async with self._lock:
            if not self._token_valid():
                await self._refresh()
            return self._token

    async def _refresh(self) -> None:
        url = f"{self._base_url}/app/installations/{self._installation_id}/access_tokens"
        headers = {
            "Accept": ACCEPT_HEADER,
            "X-GitHub-Api-Version": API_VERSION,
            "Authorization": f"Bearer {build_app_jwt(self._app_id, self._private_key)}",
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(url, headers=headers) as response:
                if response.status != 201:
                    raise GitHubAPIError(
                        f"installation token request returned status {response.status}",
                        status=response.status
                    )
                body = await response.json()

        self._token = body["token"]
        self._expires_at = datetime.fromisoformat(body["expires_at"].replace("Z", "+00:00"))
        logger.info(f"Obtained installation token, expires at {self._expires_at}")


def create_token_provider(config: Config) -> TokenProvider:
    """Choose the authentication method from configuration.

    GitHub App authentication is preferred when an App ID and private key are
    configured; otherwise the personal access token is used.

    Raises:
        ConfigurationError: If no usable credentials are configured
    """
    if config.app_id and config.private_key:
        if not config.installation_id:
            raise ConfigurationError(
                "installation_id is required when using GitHub App authentication"
            )
        logger.info(f"Using GitHub App authentication (app {config.app_id})")
        return GitHubAppTokenProvider(
            config.app_id,
            config.installation_id,
            config.private_key,
            base_url=config.api_url
        )

    if config.github_token:
        logger.info("Using personal access token authentication")
        return StaticTokenProvider(config.github_token)

    raise ConfigurationError(
        "authentication required: provide GITHUB_TOKEN or "
        "GITHUB_APP_ID + GITHUB_APP_PRIVATE_KEY"
    )
