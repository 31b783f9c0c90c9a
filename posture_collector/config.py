"""Configuration loaded from environment variables."""
import os
from dataclasses import dataclass, field
from typing import List, Optional
from posture_collector.domain.errors import ConfigurationError


DEFAULT_API_URL = "https://api.github.com"
DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"


@dataclass
class Config:
    """Collector configuration.

    Include patterns are kept as given; an empty list is resolved to the
    match-everything pattern by the collector service.
    """
    organization: str = ""
    github_token: str = ""
    app_id: int = 0
    installation_id: int = 0
    private_key: str = ""
    include_patterns: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    max_concurrency: int = 1
    api_url: str = DEFAULT_API_URL
    graphql_url: str = DEFAULT_GRAPHQL_URL

    @property
    def has_app_auth(self) -> bool:
        return bool(self.app_id and self.private_key)

    @property
    def has_token_auth(self) -> bool:
        return bool(self.github_token)

    def validate(self) -> None:
        """Check that collection can start with this configuration.

        Raises:
            ConfigurationError: If the configuration is unusable
        """
        if not self.organization:
            raise ConfigurationError("organization is required (set GITHUB_ORG)")
        if not self.has_app_auth and not self.has_token_auth:
            raise ConfigurationError(
                "authentication required: provide GITHUB_TOKEN or "
                "GITHUB_APP_ID + GITHUB_APP_PRIVATE_KEY"
            )
        if self.has_app_auth and not self.installation_id:
            raise ConfigurationError(
                "GITHUB_APP_INSTALLATION_ID is required when using GitHub App authentication"
            )
        if self.max_concurrency < 1:
            raise ConfigurationError("MAX_CONCURRENCY must be at least 1")


def parse_patterns(value: Optional[str]) -> List[str]:
    """Split a comma-separated pattern list, dropping blank entries."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def load_config() -> Config:
    """Build configuration from environment variables."""
    return Config(
        organization=os.getenv("GITHUB_ORG", ""),
        github_token=os.getenv("GITHUB_TOKEN", ""),
        app_id=_get_int("GITHUB_APP_ID", 0),
        installation_id=_get_int("GITHUB_APP_INSTALLATION_ID", 0),
        private_key=os.getenv("GITHUB_APP_PRIVATE_KEY", ""),
        include_patterns=parse_patterns(os.getenv("INCLUDE_PATTERNS")),
        exclude_patterns=parse_patterns(os.getenv("EXCLUDE_PATTERNS")),
        max_concurrency=_get_int("MAX_CONCURRENCY", 1),
        api_url=os.getenv("GITHUB_API_URL", DEFAULT_API_URL),
        graphql_url=os.getenv("GITHUB_GRAPHQL_URL", DEFAULT_GRAPHQL_URL),
    )
