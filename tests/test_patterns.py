"""Tests for repository name matching and scope filtering."""
import pytest
from posture_collector.domain.patterns import matches_pattern, should_include_repo


@pytest.mark.parametrize("name", ["anything", "", "a.b.c", "with space", "[x]"])
def test_wildcard_matches_everything(name):
    assert matches_pattern(name, "*") is True


@pytest.mark.parametrize(
    "name, pattern, expected",
    [
        ("my-repo", "my-*", True),
        ("my-", "my-*", True),
        ("other", "my-*", False),
        ("repo1", "repo?", True),
        ("repo12", "repo?", False),
        ("repo", "repo?", False),
        ("service-api", "*-api", True),
        ("service-api-v2", "*-api", False),
        ("exact", "exact", True),
        ("exactly", "exact", False),
        ("not-exact", "exact", False),
    ],
)
def test_glob_patterns(name, pattern, expected):
    assert matches_pattern(name, pattern) is expected


def test_literal_dot_matches_only_dot():
    """Test that regex metacharacters in a pattern are literal."""
    assert matches_pattern("my.repo", "my.repo") is True
    assert matches_pattern("myXrepo", "my.repo") is False
    assert matches_pattern("docs.github.io", "*.github.io") is True
    assert matches_pattern("docs-githubXio", "*.github.io") is False


@pytest.mark.parametrize(
    "name, pattern",
    [
        ("a+b", "a+b"),
        ("(x)", "(x)"),
        ("[abc]", "[abc]"),
        ("a|b", "a|b"),
        ("^start$", "^start$"),
        ("back\\slash", "back\\slash"),
        ("{1}", "{1}"),
    ],
)
def test_special_characters_are_escaped(name, pattern):
    assert matches_pattern(name, pattern) is True


def test_special_characters_do_not_act_as_regex():
    assert matches_pattern("aab", "a+b") is False
    assert matches_pattern("a", "[abc]") is False
    assert matches_pattern("a", "a|b") is False


def test_exclusion_takes_precedence():
    """Test that an excluded name stays excluded even when included."""
    assert should_include_repo("x-archive", ["*"], ["*-archive"]) is False
    assert should_include_repo("x-live", ["*"], ["*-archive"]) is True


def test_included_when_any_include_pattern_matches():
    includes = ["prod-*", "shared-*"]

    assert should_include_repo("shared-lib", includes, []) is True
    assert should_include_repo("prod-api", includes, []) is True
    assert should_include_repo("test-api", includes, []) is False


def test_empty_include_patterns_include_nothing():
    assert should_include_repo("anything", [], []) is False


def test_multiple_exclude_patterns():
    excludes = ["*-archive", "deprecated-*"]

    assert should_include_repo("deprecated-tool", ["*"], excludes) is False
    assert should_include_repo("old-archive", ["*"], excludes) is False
    assert should_include_repo("tool", ["*"], excludes) is True
