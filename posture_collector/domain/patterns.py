"""Glob matching for repository names and include/exclude scope filtering."""
import re
from functools import lru_cache
from typing import Optional, Pattern, Sequence


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Optional[Pattern[str]]:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))

    try:
        return re.compile("".join(parts), re.DOTALL)
    except re.error:
        return None


def matches_pattern(name: str, pattern: str) -> bool:
    """Check if a name matches a glob pattern.

    Supports ``*`` (any run of characters) and ``?`` (exactly one character).
    Every other character matches literally and the whole name must match.

    Args:
        name: Repository name
        pattern: Glob pattern

    Returns:
        True if the name matches, False otherwise (including for patterns
        that cannot be compiled)
    """
    if pattern == "*":
        return True

    regex = _compile(pattern)
    if regex is None:
        return False
    return regex.fullmatch(name) is not None


def should_include_repo(
    repo_name: str,
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str]
) -> bool:
    """Decide whether a repository is in scope.

    Exclude patterns take precedence over include patterns. An empty list of
    include patterns includes nothing.
    """
    for pattern in exclude_patterns:
        if matches_pattern(repo_name, pattern):
            return False

    return any(matches_pattern(repo_name, pattern) for pattern in include_patterns)
