"""Tests for error messages and remediation hints."""

import pytest

from stacker.errors import (
    CIFailedError, GitHubAPIError, GitTimeoutError, NoRemoteError, PRMergeError, PushError,
    StackerError,
)


class TestSuggestions:
    """Errors pick their hint from the failure they wrap."""

    def test_push_rejected_by_lease(self) -> None:
        err = PushError("feat/1", Exception("! [rejected] feat/1 (stale info)"))
        assert "moved" in (err.suggestion or "")

    def test_push_permission_denied(self) -> None:
        err = PushError("feat/1", Exception("Permission to octo/widgets.git denied"))
        assert err.suggestion == "Check your repository permissions."

    def test_push_other_failure(self) -> None:
        assert "network" in (PushError("feat/1", Exception("timed out")).suggestion or "")

    @pytest.mark.parametrize("status,message,hint", [
        (401, "Bad credentials", "gh auth login"),
        (403, "API rate limit exceeded", "rate limit"),
        (403, "Resource not accessible", "permissions"),
        (404, "Not Found", "not found"),
    ])
    def test_github_api(self, status: int, message: str, hint: str) -> None:
        err = GitHubAPIError("get PR #1", Exception(message), status)
        assert hint in (err.suggestion or "")
        assert err.status == status

    def test_merge_conflict(self) -> None:
        assert "conflicts" in (PRMergeError(3, Exception("merge conflict")).suggestion or "")

    def test_every_error_is_a_stacker_error(self) -> None:
        for err in (NoRemoteError("origin"), GitTimeoutError("fetch origin", 60.0),
                    CIFailedError(1, ["build", "lint"])):
            assert isinstance(err, StackerError)
            assert str(err) == err.user_message

    def test_ci_failed_lists_checks(self) -> None:
        err = CIFailedError(7, ["build", "lint"])
        assert err.user_message == "PR #7 has failing CI checks:\n  - build\n  - lint"
        assert err.failed_checks == ["build", "lint"]

    def test_timeout_message(self) -> None:
        err = GitTimeoutError("fetch origin", 2.5)
        assert err.user_message == "Git command timed out after 2.5s: git fetch origin"
