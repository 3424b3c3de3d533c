"""
Tests for reference resolution against a fake repository.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from zigit.domain import GitTarget, RefKind, RepositoryLocator, TargetRequest
from zigit.exit_codes import RefNotFound
from zigit.services.resolver_service import ReferenceResolver, request_for_update

ROOT = "1" * 40      # first commit on main
MAIN = "2" * 40      # tip of main, child of ROOT
DEV = "3" * 40       # tip of dev, child of ROOT
TAGGED = "4" * 40    # commit tagged v1.0.0

LOCATOR = RepositoryLocator("github.com", "org", "tool")
CACHE_PATH = Path("/cache/github.com/org/tool")


class FakeGit:
    """Answers the queries the resolver makes from a fixed ref table."""

    def __init__(self, refs, default="main", parents=None):
        self.refs = dict(refs)
        self.default = default
        self.parents = parents or {}

    def _commits(self):
        commits = set(self.refs.values())
        for child, parents in self.parents.items():
            commits.add(child)
            commits.update(parents)
        return commits

    def rev_parse(self, path, rev):
        if rev in self.refs:
            return self.refs[rev]
        for commit in self._commits():
            if commit.startswith(rev.lower()):
                return commit
        return None

    def default_branch(self, path):
        return self.default

    def is_ancestor(self, path, ancestor, descendant):
        if ancestor == descendant:
            return True
        return any(self.is_ancestor(path, ancestor, p) for p in self.parents.get(descendant, ()))


@pytest.fixture
def git():
    return FakeGit(
        refs={
            'refs/remotes/origin/main': MAIN,
            'refs/remotes/origin/dev': DEV,
            'refs/tags/v1.0.0': TAGGED,
        },
        parents={MAIN: [ROOT], DEV: [ROOT], TAGGED: [ROOT]},
    )


@pytest.fixture
def cache():
    cache = MagicMock()
    cache.ensure.return_value = CACHE_PATH
    return cache


@pytest.fixture
def resolver(git, cache):
    return ReferenceResolver(git, cache)


class TestResolve:
    """Tests for ReferenceResolver.resolve."""

    def test_default_branch(self, resolver, cache):
        """Test that no flags track the default branch tip."""
        target = resolver.resolve(LOCATOR, TargetRequest())

        assert target == GitTarget(RefKind.DEFAULT_BRANCH, "main", MAIN)
        cache.ensure.assert_called_once_with(LOCATOR, "https://github.com/org/tool.git")
        cache.fetch.assert_called_once_with(CACHE_PATH)

    def test_clone_url_passed_through(self, resolver, cache):
        """Test that an explicit clone URL is used for the cache entry."""
        resolver.resolve(LOCATOR, TargetRequest(), "git@github.com:org/tool.git")
        cache.ensure.assert_called_once_with(LOCATOR, "git@github.com:org/tool.git")

    def test_tag(self, resolver):
        """Test tag resolution."""
        assert resolver.resolve(LOCATOR, TargetRequest(tag="v1.0.0")) == GitTarget(RefKind.TAG, "v1.0.0", TAGGED)

    def test_missing_tag(self, resolver):
        """Test that an unknown tag is RefNotFound."""
        with pytest.raises(RefNotFound):
            resolver.resolve(LOCATOR, TargetRequest(tag="v9"))

    def test_branch(self, resolver):
        """Test branch tip resolution."""
        assert resolver.resolve(LOCATOR, TargetRequest(branch="dev")) == GitTarget(RefKind.BRANCH, "dev", DEV)

    def test_missing_branch(self, resolver):
        """Test that an unknown branch is RefNotFound."""
        with pytest.raises(RefNotFound):
            resolver.resolve(LOCATOR, TargetRequest(branch="gone"))

    def test_branch_with_commit(self, resolver):
        """Test pinning an abbreviated commit reachable from a branch."""
        target = resolver.resolve(LOCATOR, TargetRequest(branch="main", commit=ROOT[:7]))
        assert target == GitTarget(RefKind.BRANCH, "main", ROOT)

    def test_branch_with_unreachable_commit(self, resolver):
        """Test that a commit not on the branch is refused."""
        with pytest.raises(RefNotFound):
            resolver.resolve(LOCATOR, TargetRequest(branch="dev", commit=MAIN))

    def test_commit_only(self, resolver):
        """Test that a bare commit is pinned on the default branch."""
        target = resolver.resolve(LOCATOR, TargetRequest(commit=ROOT))
        assert target == GitTarget(RefKind.DEFAULT_BRANCH, "main", ROOT)

    def test_unknown_commit(self, resolver):
        """Test that a commit absent from the clone is RefNotFound."""
        with pytest.raises(RefNotFound):
            resolver.resolve(LOCATOR, TargetRequest(commit="deadbeef"))

    def test_no_default_branch(self, git, cache):
        """Test a remote without a HEAD."""
        git.default = None
        with pytest.raises(RefNotFound):
            ReferenceResolver(git, cache).resolve(LOCATOR, TargetRequest())


class TestRefresh:
    """Tests for re-resolving stored targets."""

    def test_tag_follows_moved_tag(self, resolver, git):
        """Test that a re-pointed tag is picked up."""
        git.refs['refs/tags/v1.0.0'] = MAIN
        target = resolver.refresh(LOCATOR, GitTarget(RefKind.TAG, "v1.0.0", TAGGED))
        assert target == GitTarget(RefKind.TAG, "v1.0.0", MAIN)

    def test_pinned_branch_moves_to_tip(self, resolver):
        """Test that a branch pinned at install moves to its tip on update."""
        target = resolver.refresh(LOCATOR, GitTarget(RefKind.BRANCH, "main", ROOT))
        assert target.resolved_commit == MAIN

    def test_default_branch_follows_new_default(self, resolver, git):
        """Test that the current default branch is used."""
        git.default = "dev"
        target = resolver.refresh(LOCATOR, GitTarget(RefKind.DEFAULT_BRANCH, "main", ROOT))
        assert target == GitTarget(RefKind.DEFAULT_BRANCH, "dev", DEV)

    def test_commit_stays_pinned(self, resolver, cache):
        """Test that a COMMIT target never moves."""
        target = resolver.refresh(LOCATOR, GitTarget(RefKind.COMMIT, ROOT, ROOT))

        assert target == GitTarget(RefKind.COMMIT, ROOT, ROOT)
        cache.fetch.assert_called_once()


class TestLatestCommit:
    """Tests for the remote tip used by the outdated check."""

    @pytest.mark.parametrize("target,expected", [
        (GitTarget(RefKind.DEFAULT_BRANCH, "main", ROOT), MAIN),
        (GitTarget(RefKind.BRANCH, "dev", ROOT), DEV),
        (GitTarget(RefKind.TAG, "v1.0.0", ROOT), TAGGED),
        (GitTarget(RefKind.COMMIT, ROOT, ROOT), ROOT),
        (GitTarget(RefKind.BRANCH, "gone", ROOT), None),
    ])
    def test_latest_commit(self, resolver, target, expected):
        """Test each kind of target."""
        assert resolver.latest_commit(CACHE_PATH, target) == expected

    def test_request_for_update(self):
        """Test the request used to refresh a tag."""
        assert request_for_update(GitTarget(RefKind.TAG, "v1", ROOT)) == TargetRequest(tag="v1")
