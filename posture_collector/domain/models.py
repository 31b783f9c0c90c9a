"""Domain models representing core business entities."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


SCHEMA_VERSION = "1.0.0"
DEFAULT_INCLUDE_PATTERN = "*"
NUM_SECURITY_FEATURES = 5
MAX_PERCENTAGE = 100


@dataclass(frozen=True)
class RepositoryIdentity:
    """Owner/name pair used to address a repository in follow-up API calls."""
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class BranchProtectionRule:
    """Branch protection configured on a repository's default branch."""
    requires_approving_reviews: bool = False
    required_approving_review_count: int = 0
    dismisses_stale_reviews: bool = False
    requires_code_owner_reviews: bool = False
    requires_status_checks: bool = False
    requires_commit_signatures: bool = False
    is_admin_enforced: bool = False


@dataclass(frozen=True)
class RepositoryRecord:
    """Immutable snapshot of a repository's security-relevant attributes.

    ``branch_protection`` is None when the default branch has no protection
    rule (or the repository has no default branch at all).
    """
    owner: str
    name: str
    vulnerability_alerts_enabled: bool = False
    branch_protection: Optional[BranchProtectionRule] = None
    visibility: Optional[str] = None
    default_branch: Optional[str] = None

    @property
    def full_name(self) -> str:
        """Returns the full repository name (owner/name)."""
        return f"{self.owner}/{self.name}"

    def identity(self) -> RepositoryIdentity:
        return RepositoryIdentity(owner=self.owner, name=self.name)


@dataclass(frozen=True)
class RepositorySecuritySettings:
    """Per-repository security settings fetched after enumeration."""
    secret_scanning: bool = False
    secret_scanning_push_protection: bool = False
    dependabot_security_updates: bool = False
    code_scanning_enabled: bool = False

    @classmethod
    def disabled(cls) -> 'RepositorySecuritySettings':
        """Settings value used when a repository's settings could not be fetched."""
        return cls()


@dataclass(frozen=True)
class OrgAccessState:
    """Organization-level access control.

    ``two_factor_required`` is None when the credential is not allowed to
    observe the setting. None means unknown, not disabled.
    """
    two_factor_required: Optional[bool] = None


@dataclass(frozen=True)
class Scope:
    include_patterns: Tuple[str, ...]
    exclude_patterns: Tuple[str, ...]
    repositories_coverage: int


@dataclass(frozen=True)
class Posture:
    branch_protection_coverage: int
    security_features_coverage: int


@dataclass(frozen=True)
class AccessControl:
    two_factor_required: Optional[bool]


@dataclass(frozen=True)
class BranchProtectionRules:
    """Per-rule coverage percentages."""
    pull_request_required: int
    approving_reviews: int
    dismiss_stale_reviews: int
    code_owner_reviews: int
    status_checks: int
    signed_commits: int
    admin_enforcement: int


@dataclass(frozen=True)
class SecurityFeatures:
    """Per-feature coverage percentages."""
    vulnerability_alerts: int
    code_scanning: int
    secret_scanning: int
    secret_scanning_push_protection: int
    dependabot_security_updates: int


@dataclass(frozen=True)
class PostureReport:
    """Security posture of a GitHub organization at collection time.

    Built once at the end of a successful collection and never mutated.
    """
    collected_at: str
    organization: str
    scope: Scope
    posture: Posture
    access_control: AccessControl
    branch_protection_rules: BranchProtectionRules
    security_features: SecurityFeatures
    schema_version: str = field(default=SCHEMA_VERSION)

    def to_dict(self) -> Dict[str, Any]:
        """Returns the report in its JSON output schema.

        Unknown two-factor state stays in the output as None (JSON null).
        """
        return {
            "schema_version": self.schema_version,
            "collected_at": self.collected_at,
            "organization": self.organization,
            "scope": {
                "include_patterns": list(self.scope.include_patterns),
                "exclude_patterns": list(self.scope.exclude_patterns),
                "repositories_coverage": self.scope.repositories_coverage,
            },
            "posture": {
                "branch_protection_coverage": self.posture.branch_protection_coverage,
                "security_features_coverage": self.posture.security_features_coverage,
            },
            "access_control": {
                "two_factor_required": self.access_control.two_factor_required,
            },
            "branch_protection_rules": {
                "pull_request_required": self.branch_protection_rules.pull_request_required,
                "approving_reviews": self.branch_protection_rules.approving_reviews,
                "dismiss_stale_reviews": self.branch_protection_rules.dismiss_stale_reviews,
                "code_owner_reviews": self.branch_protection_rules.code_owner_reviews,
                "status_checks": self.branch_protection_rules.status_checks,
                "signed_commits": self.branch_protection_rules.signed_commits,
                "admin_enforcement": self.branch_protection_rules.admin_enforcement,
            },
            "security_features": {
                "vulnerability_alerts": self.security_features.vulnerability_alerts,
                "code_scanning": self.security_features.code_scanning,
                "secret_scanning": self.security_features.secret_scanning,
                "secret_scanning_push_protection":
                    self.security_features.secret_scanning_push_protection,
                "dependabot_security_updates":
                    self.security_features.dependabot_security_updates,
            },
        }
