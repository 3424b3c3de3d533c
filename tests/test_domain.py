"""
Tests for zigit domain objects.
"""

import json

import pytest

from zigit.domain import (
    GitTarget,
    InstalledPackage,
    OperationResult,
    OperationStatus,
    PackageInfo,
    PackageStatus,
    RefKind,
    RepositoryLocator,
    TargetRequest,
)
from zigit.domain.package import validate_package_name
from zigit.exit_codes import (
    BuildFailed,
    FilesystemError,
    InvalidRequestError,
    NotInstalled,
    PartialSuccessError,
    get_exit_code_for_exception,
    BUILD_FAILED,
    DATA_ERROR,
    GENERAL_ERROR,
    NOT_INSTALLED,
    PERMISSION_ERROR,
)

COMMIT_A = "a" * 40
COMMIT_B = "b" * 40
LOCATOR = RepositoryLocator("github.com", "ziglang", "zls")


class TestTargetRequest:
    """Tests for --tag/--branch/--commit validation."""

    def test_empty(self):
        """Test that no flags is a valid default-branch request."""
        assert TargetRequest().is_empty

    @pytest.mark.parametrize("kwargs", [
        {"tag": "v1.0.0"},
        {"branch": "main"},
        {"commit": "3f2a9c1"},
        {"branch": "main", "commit": COMMIT_A},
    ])
    def test_valid_combinations(self, kwargs):
        """Test the accepted flag combinations."""
        assert not TargetRequest(**kwargs).is_empty

    @pytest.mark.parametrize("kwargs", [
        {"tag": "v1", "branch": "main"},
        {"tag": "v1", "commit": COMMIT_A},
        {"tag": "v1", "branch": "main", "commit": COMMIT_A},
    ])
    def test_tag_excludes_other_flags(self, kwargs):
        """Test that --tag cannot be combined."""
        with pytest.raises(InvalidRequestError):
            TargetRequest(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"tag": ""},
        {"branch": "   "},
        {"branch": "--upload-pack=evil"},
        {"commit": "not-a-hash"},
        {"commit": "abc"},
    ])
    def test_malformed_values(self, kwargs):
        """Test empty, option-like and non-hex values."""
        with pytest.raises(InvalidRequestError):
            TargetRequest(**kwargs)

    def test_values_are_stripped(self):
        """Test surrounding whitespace removal."""
        assert TargetRequest(tag=" v1.2.0 ").tag == "v1.2.0"

    def test_for_target(self):
        """Test the request that re-resolves each kind of target."""
        assert TargetRequest.for_target(GitTarget(RefKind.TAG, "v1", COMMIT_A)) == TargetRequest(tag="v1")
        assert TargetRequest.for_target(GitTarget(RefKind.BRANCH, "dev", COMMIT_A)) == TargetRequest(branch="dev")
        assert TargetRequest.for_target(GitTarget(RefKind.COMMIT, COMMIT_A, COMMIT_A)) == TargetRequest(commit=COMMIT_A)
        assert TargetRequest.for_target(GitTarget(RefKind.DEFAULT_BRANCH, "main", COMMIT_A)).is_empty


class TestGitTarget:
    """Tests for GitTarget and its column mapping."""

    def test_default_branch_record(self):
        """Test that the default branch is stored with a NULL type."""
        target = GitTarget(RefKind.DEFAULT_BRANCH, "main", COMMIT_A)
        assert target.to_record() == (None, "main")
        assert GitTarget.from_record(None, "main", COMMIT_A) == target

    def test_default_branch_without_name(self):
        """Test rows that carry neither type nor ref."""
        target = GitTarget.from_record(None, None, COMMIT_A)
        assert target.kind == RefKind.DEFAULT_BRANCH
        assert target.value == ""
        assert target.to_record() == (None, None)

    def test_legacy_pinned_commit(self):
        """Test that a NULL type with a full hash decodes as a pinned commit."""
        target = GitTarget.from_record(None, COMMIT_B, COMMIT_B)
        assert target.kind == RefKind.COMMIT
        assert target.resolved_commit == COMMIT_B

    @pytest.mark.parametrize("kind,value", [
        (RefKind.TAG, "v1.2.0"),
        (RefKind.BRANCH, "release/1.x"),
        (RefKind.COMMIT, COMMIT_A),
    ])
    def test_named_kinds(self, kind, value):
        """Test tag, branch and commit rows."""
        target = GitTarget(kind, value, COMMIT_A)
        assert GitTarget.from_record(*target.to_record(), COMMIT_A) == target

    def test_unknown_type(self):
        """Test that an unknown git_ref_type is rejected."""
        with pytest.raises(ValueError):
            GitTarget.from_record("revision", "x", COMMIT_A)

    def test_describe(self):
        """Test the human readable forms."""
        assert GitTarget(RefKind.DEFAULT_BRANCH, "main", COMMIT_A).describe() == "default (main)"
        assert GitTarget(RefKind.TAG, "v1", COMMIT_A).describe() == "tag v1"
        assert GitTarget(RefKind.BRANCH, "dev", COMMIT_A).describe() == "branch dev"
        assert GitTarget(RefKind.COMMIT, COMMIT_A, COMMIT_A).describe() == "commit aaaaaaaa"

    def test_is_resolved(self):
        """Test that only full hashes count as resolved."""
        assert GitTarget(RefKind.TAG, "v1", COMMIT_A).is_resolved
        assert not GitTarget(RefKind.TAG, "v1").is_resolved
        assert not GitTarget(RefKind.TAG, "v1", "abc1234").is_resolved


class TestPackageName:
    """Tests for validate_package_name."""

    @pytest.mark.parametrize("name", ["zls", "zig-spec", "tool_2", "v1.0"])
    def test_valid(self, name):
        """Test plain file names."""
        assert validate_package_name(name) == name

    @pytest.mark.parametrize("name", ["", "  ", ".", "..", "-rf", "a/b", "a\\b", "c:d", "x*"])
    def test_invalid(self, name):
        """Test names that cannot be bin entries."""
        with pytest.raises(InvalidRequestError):
            validate_package_name(name)


class TestInstalledPackage:
    """Tests for InstalledPackage."""

    def test_effective_name(self):
        """Test alias-over-name resolution."""
        pkg = InstalledPackage("zls", LOCATOR, GitTarget(RefKind.TAG, "0.13.0", COMMIT_A))

        assert pkg.effective_name == "zls"
        assert pkg.with_alias("zls-dev").effective_name == "zls-dev"
        assert pkg.with_alias("zls-dev").name == "zls"

    def test_fetch_url(self):
        """Test clone URL fallback."""
        pkg = InstalledPackage("zls", LOCATOR, GitTarget(RefKind.TAG, "0.13.0", COMMIT_A))

        assert pkg.fetch_url == "https://github.com/ziglang/zls.git"
        assert InstalledPackage("zls", LOCATOR, pkg.target, clone_url="git@x:y/z").fetch_url == "git@x:y/z"

    def test_to_dict(self):
        """Test serialization drops empty fields."""
        pkg = InstalledPackage("zls", LOCATOR, GitTarget(RefKind.TAG, "0.13.0", COMMIT_A))
        data = json.loads(pkg.to_jsonl())

        assert data == {
            'name': 'zls',
            'key': 'zls',
            'repository': 'github.com/ziglang/zls',
            'ref_type': 'tag',
            'ref': '0.13.0',
            'commit': COMMIT_A,
        }

    def test_status_to_dict(self):
        """Test list rows carry the outdated check."""
        pkg = InstalledPackage("zls", LOCATOR, GitTarget(RefKind.BRANCH, "master", COMMIT_A))
        data = PackageStatus(pkg, linked=True, latest_commit=COMMIT_B, outdated=True).to_dict()

        assert data['outdated'] is True
        assert data['latest_commit'] == COMMIT_B
        assert 'error' not in data

    def test_info_for_package(self):
        """Test info built from a record."""
        pkg = InstalledPackage("zls", LOCATOR, GitTarget(RefKind.COMMIT, COMMIT_A, COMMIT_A), alias="z")
        info = PackageInfo.for_package(pkg, author="Someone")

        assert info.name == "z"
        assert info.installed
        assert info.tracks_commit
        assert info.to_dict()['author'] == "Someone"


class TestOperationResult:
    """Tests for OperationResult."""

    def test_update_without_change(self):
        """Test that a rebuild at the same commit is not a change."""
        pkg = InstalledPackage("zls", LOCATOR, GitTarget(RefKind.TAG, "v1", COMMIT_A))
        result = OperationResult(operation='update', name='zls', package=pkg,
                                 previous_commit=COMMIT_A, rebuilt=True)

        assert not result.changed
        assert result.to_dict()['rebuilt'] is True

    def test_update_with_change(self):
        """Test a moved commit."""
        pkg = InstalledPackage("zls", LOCATOR, GitTarget(RefKind.TAG, "v1", COMMIT_B))
        result = OperationResult(operation='update', name='zls', package=pkg, previous_commit=COMMIT_A)

        assert result.changed
        assert result.to_dict()['previous_commit'] == COMMIT_A

    def test_unchanged_status(self):
        """Test the serialized status value."""
        result = OperationResult(operation='rename', name='x', status=OperationStatus.UNCHANGED)
        assert result.to_dict()['status'] == 'unchanged'
        assert not result.changed


class TestErrors:
    """Tests for error types and exit codes."""

    def test_exit_codes(self):
        """Test exit code mapping."""
        assert get_exit_code_for_exception(NotInstalled("zls")) == NOT_INSTALLED
        assert get_exit_code_for_exception(BuildFailed("boom", 2)) == BUILD_FAILED
        assert get_exit_code_for_exception(ValueError("x")) == DATA_ERROR
        assert get_exit_code_for_exception(RuntimeError("x")) == GENERAL_ERROR

    def test_annotate_keeps_innermost(self):
        """Test that the first annotation wins."""
        error = NotInstalled("zls").annotate("zls", "lookup")
        error.annotate("other", "record")

        assert error.package == "zls"
        assert error.stage == "lookup"
        assert error.describe() == "zls: Package 'zls' is not installed (stage: lookup)"

    def test_to_dict(self):
        """Test structured error output."""
        data = BuildFailed("Build failed with exit code 2", exit_code=2, output="error: x").to_dict()

        assert data['type'] == 'BuildFailed'
        assert data['build_exit_code'] == 2
        assert data['output'] == "error: x"

        partial = PartialSuccessError("1 failed", succeeded=2, failed=1).to_dict()
        assert partial['succeeded'] == 2
        assert partial['failed'] == 1

    def test_filesystem_error_from_os_error(self):
        """Test that OS errors keep their reason, path and exit code."""
        error = FilesystemError.from_os_error(PermissionError(13, "Permission denied", "/usr/bin/zls"))

        assert error.message == "Permission denied (/usr/bin/zls)"
        assert error.exit_code == PERMISSION_ERROR
        assert FilesystemError.from_os_error(OSError("disk gone")).exit_code == GENERAL_ERROR
