"""Error types with user-facing messages and remediation hints.

Every error raised by stacker derives from StackerError. The CLI prints
``user_message`` and ``suggestion``; with ``-v`` it also prints the wrapped
``cause``.
"""

from typing import List, Optional


class StackerError(Exception):
    """Base class for all stacker errors."""

    def __init__(self, user_message: str, suggestion: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(user_message)
        self.user_message = user_message
        self.suggestion = suggestion
        self.cause = cause


# Preconditions

class NotInGitRepoError(StackerError):
    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(
            "Not in a git repository",
            "Run this command from within a git project, or run `git init` to create one.",
            cause)


class NoCommitsError(StackerError):
    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(
            "No commits in this repository",
            "Create at least one commit before using stacker.",
            cause)


class NoRemoteError(StackerError):
    def __init__(self, remote: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"No remote '{remote}' configured",
            f"Add a remote with: git remote add {remote} <url>",
            cause)


class DirtyWorkingTreeError(StackerError):
    def __init__(self) -> None:
        super().__init__(
            "You have uncommitted changes",
            "Commit or stash your changes before running this command.")


class DetachedHeadError(StackerError):
    def __init__(self) -> None:
        super().__init__(
            "HEAD is detached",
            "Check out the branch holding your stack before running this command.")


class NoPRForCommitError(StackerError):
    def __init__(self, sha: str):
        super().__init__(
            f"Commit {sha[:8]} has no associated PR",
            "Run `stacker submit` first to create PRs for your stack.")


class RepoNotConfiguredError(StackerError):
    def __init__(self) -> None:
        super().__init__(
            "Could not determine the GitHub repository",
            "Set repo.github_repo_owner and repo.github_repo_name in .stacker.yaml, "
            "or point the remote at a GitHub URL.")


class BranchNameConflictError(StackerError):
    def __init__(self, branch: str, existing: str):
        super().__init__(
            f"Cannot create local branch '{branch}': branch '{existing}' already exists",
            "Git cannot nest a branch under another one. Set stack.branch_template in "
            ".stacker.yaml to a pattern outside existing branches, e.g. 'stacks/{stack}/{index}'.")


# Resolution

class GitCommandError(StackerError):
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Git command failed: {message}", None, cause)


class GitTimeoutError(StackerError):
    def __init__(self, command: str, timeout: float, cause: Optional[BaseException] = None):
        super().__init__(
            f"Git command timed out after {timeout:g}s: git {command}",
            "Check for a hung credential prompt or network problem, or raise tool.git_timeout.",
            cause)


class BranchNotFoundError(StackerError):
    def __init__(self, ref: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Branch '{ref}' does not exist",
            f"Check the branch name or create it with: git checkout -b {ref}",
            cause)


class MergeBaseError(StackerError):
    def __init__(self, ref_a: str, ref_b: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Could not find common ancestor between '{ref_a}' and '{ref_b}'",
            "Make sure both refs exist and share history.",
            cause)


class CommitNotFoundError(StackerError):
    def __init__(self, sha: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Commit '{sha}' not found",
            "Make sure the commit exists in this repository.",
            cause)


class CheckoutError(StackerError):
    def __init__(self, ref: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to checkout '{ref}'",
            "Make sure the branch or commit exists and you have no conflicting changes.",
            cause)


class FetchError(StackerError):
    def __init__(self, remote: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to fetch from '{remote}'",
            "Check your network connection and that the remote exists.",
            cause)


# Rewrites

class RebaseInProgressError(StackerError):
    def __init__(self) -> None:
        super().__init__(
            "A rebase is already in progress",
            "Run `stacker edit --continue` to continue or `stacker edit --abort` to abort.")


class RebaseConflictError(StackerError):
    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(
            "Rebase failed due to conflicts",
            "Resolve the conflicts, then run `stacker edit --continue`.",
            cause)


class RewritePausedError(StackerError):
    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(
            "Rewriting commit trailers stopped before finishing; the rebase is paused",
            "Inspect the repository, then run `stacker edit --continue` or `stacker edit --abort`.",
            cause)


class RewriteError(StackerError):
    def __init__(self, reason: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to rewrite commit trailers: {reason}", None, cause)


# Push

class PushError(StackerError):
    def __init__(self, branch: str, cause: Optional[BaseException] = None):
        msg = str(cause or "")
        suggestion = "Check your network connection and repository permissions."
        if "stale info" in msg or "rejected" in msg:
            suggestion = ("The remote branch moved since it was last fetched. "
                          "Fetch and inspect it before pushing again.")
        elif "permission" in msg.lower() or "denied" in msg.lower():
            suggestion = "Check your repository permissions."
        super().__init__(f"Failed to push branch '{branch}'", suggestion, cause)


# Review service

class GitHubTokenError(StackerError):
    def __init__(self) -> None:
        super().__init__(
            "No GitHub token found",
            "Set GITHUB_TOKEN, or log in with `gh auth login`.")


class GitHubAPIError(StackerError):
    def __init__(self, operation: str, cause: Optional[BaseException] = None,
                 status: Optional[int] = None):
        msg = str(cause or "").lower()
        suggestion = "Check your network connection and try again."
        if status == 401 or "bad credentials" in msg:
            suggestion = "Run `gh auth login` or refresh GITHUB_TOKEN to re-authenticate."
        elif "rate limit" in msg:
            suggestion = "GitHub API rate limit exceeded. Wait and try again."
        elif status == 403:
            suggestion = "Check your repository permissions."
        elif status == 404:
            suggestion = "The requested resource was not found."
        super().__init__(f"GitHub API error during {operation}", suggestion, cause)
        self.status = status


class NetworkError(StackerError):
    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(
            "Failed to connect to GitHub",
            "Check your network connection and try again.",
            cause)


class PRCreationError(StackerError):
    def __init__(self, branch: str, reason: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to create PR for branch '{branch}': {reason}", None, cause)


class PRUpdateError(StackerError):
    def __init__(self, number: int, cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to update PR #{number}",
            "Check that the PR exists and you have permission to edit it.",
            cause)


class PRNotFoundError(StackerError):
    def __init__(self, number: int, cause: Optional[BaseException] = None):
        super().__init__(
            f"PR #{number} not found",
            "Check the PR number and make sure it exists.",
            cause)


class PRMergeError(StackerError):
    def __init__(self, number: int, cause: Optional[BaseException] = None):
        msg = str(cause or "")
        suggestion = "Check that the PR is mergeable."
        if "protected branch" in msg or "required" in msg:
            suggestion = "The branch has protection rules. Ensure all requirements are met."
        elif "conflict" in msg:
            suggestion = "The PR has merge conflicts. Resolve them first."
        super().__init__(f"Failed to merge PR #{number}", suggestion, cause)


# Landing gates

class PRNotMergeableError(StackerError):
    def __init__(self, number: int, reason: str, suggestion: Optional[str] = None):
        super().__init__(f"PR #{number} cannot be merged: {reason}", suggestion)


class ChangesRequestedError(StackerError):
    def __init__(self, number: int):
        super().__init__(
            f"PR #{number} has changes requested",
            "Address the review feedback before landing.")


class ReviewRequiredError(StackerError):
    def __init__(self, number: int):
        super().__init__(
            f"PR #{number} requires review approval",
            "Get the PR approved before landing.")


class CIFailedError(StackerError):
    def __init__(self, number: int, failed_checks: List[str]):
        check_list = "\n".join(f"  - {c}" for c in failed_checks)
        super().__init__(
            f"PR #{number} has failing CI checks:\n{check_list}",
            "Fix the failing checks or use --force to land anyway.")
        self.failed_checks = failed_checks


class CIPendingError(StackerError):
    def __init__(self, number: int):
        super().__init__(
            f"PR #{number} has pending CI checks",
            "Wait for CI to complete or use --force to land anyway.")
