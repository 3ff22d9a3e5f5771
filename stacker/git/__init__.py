"""Git interfaces and implementation."""

import os
import shlex
import logging
from typing import Dict, List, Optional, Sequence
import git

from ..config.models import StackerConfig
from ..errors import (
    BranchNotFoundError, CheckoutError, CommitNotFoundError, DetachedHeadError,
    FetchError, GitCommandError, GitTimeoutError, MergeBaseError, NoRemoteError,
    NotInGitRepoError, PushError, RebaseConflictError,
)
from ..trailers import parse_trailers
from ..typing import Commit, CommitHash, GitInterface
from .rewrite import RewriteDriver, run_scripted_rebase

__all__ = ['RealGit', 'GitInterface', 'parse_log', 'commit_from_message']

# Get module logger
logger = logging.getLogger(__name__)

LOG_FORMAT = "%H%x00%h%x00%B%x1e"


def commit_from_message(sha: str, short_sha: str, message: str) -> Commit:
    """Split a raw message into subject, body and trailers."""
    message = message.rstrip("\n")
    lines = message.split("\n")
    subject = lines[0].strip()
    body = "\n".join(lines[1:]).strip("\n")
    return Commit(CommitHash(sha), short_sha, subject, body, parse_trailers(message))


def parse_log(output: str) -> List[Commit]:
    """Parse ``git log --format=LOG_FORMAT`` output."""
    commits: List[Commit] = []
    for record in output.split("\x1e"):
        record = record.lstrip("\n")
        if not record.strip():
            continue
        sha, short_sha, message = record.split("\x00", 2)
        commits.append(commit_from_message(sha, short_sha, message))
    return commits


class RealGit:
    """Real Git implementation over GitPython."""
    def __init__(self, config: StackerConfig, path: Optional[str] = None):
        self.config: StackerConfig = config
        self.path = path

    def _repo(self) -> git.Repo:
        try:
            return git.Repo(self.path or os.getcwd(), search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise NotInGitRepoError(e) from e

    def _log_command(self, args: Sequence[str]) -> None:
        level = logging.INFO if self.config.user.log_git_commands else logging.DEBUG
        logger.log(level, f"> git {' '.join(args)}")

    def execute(self, args: List[str], env: Optional[Dict[str, str]] = None) -> str:
        """Run ``git <args>`` and return stdout.

        Every call is bounded by ``tool.git_timeout``; GitPython kills the
        process when it expires.
        """
        self._log_command(args)
        repo = self._repo()
        timeout = self.config.tool.git_timeout
        try:
            result = repo.git.execute(["git", *args], env=env, kill_after_timeout=timeout)
        except git.GitCommandError as e:
            if "Timeout:" in str(e.stderr or ""):
                raise GitTimeoutError(" ".join(args), timeout, e) from e
            raise GitCommandError(f"git {' '.join(args)}: {(e.stderr or str(e)).strip()}", e) from e
        return result if isinstance(result, str) else str(result)

    def run_cmd(self, command: str) -> str:
        """Run git command."""
        return self.execute(shlex.split(command.strip()))

    def git_dir(self) -> str:
        return self.execute(["rev-parse", "--absolute-git-dir"]).strip()

    def has_commits(self) -> bool:
        try:
            self.execute(["rev-parse", "--verify", "--quiet", "HEAD"])
            return True
        except GitCommandError:
            return False

    def current_branch(self) -> str:
        branch = self.execute(["rev-parse", "--abbrev-ref", "HEAD"]).strip()
        if branch == "HEAD":
            raise DetachedHeadError()
        return branch

    def resolve_ref(self, ref: str) -> CommitHash:
        try:
            return CommitHash(self.execute(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"]).strip())
        except GitCommandError as e:
            raise BranchNotFoundError(ref, e) from e

    def merge_base(self, ref_a: str, ref_b: str) -> CommitHash:
        try:
            return CommitHash(self.execute(["merge-base", ref_a, ref_b]).strip())
        except GitCommandError as e:
            raise MergeBaseError(ref_a, ref_b, e) from e

    def commits_in_range(self, base: str, head: str) -> List[Commit]:
        """Commits in base..head, oldest first."""
        if base == head:
            return []
        output = self.execute(["log", f"--format={LOG_FORMAT}", "--reverse", f"{base}..{head}"])
        return parse_log(output)

    def parse_commit(self, sha: str) -> Commit:
        try:
            output = self.execute(["log", "-1", f"--format={LOG_FORMAT}", sha])
        except GitCommandError as e:
            raise CommitNotFoundError(sha, e) from e
        commits = parse_log(output)
        if not commits:
            raise CommitNotFoundError(sha)
        return commits[0]

    def commit_message(self, sha: str) -> str:
        try:
            return self.execute(["log", "-1", "--format=%B", sha]).rstrip("\n")
        except GitCommandError as e:
            raise CommitNotFoundError(sha, e) from e

    def branch_exists(self, name: str) -> bool:
        try:
            self.execute(["show-ref", "--verify", "--quiet", f"refs/heads/{name}"])
            return True
        except GitCommandError:
            return False

    def create_branch(self, name: str, sha: str) -> None:
        """Point a local branch at sha, recreating it if it exists."""
        if self.branch_exists(name):
            self.delete_branch(name)
        self.execute(["branch", name, sha])

    def delete_branch(self, name: str) -> None:
        self.execute(["branch", "-D", name])

    def push_branch(self, remote: str, name: str, force: bool = True,
                    sha: Optional[str] = None) -> None:
        """Publish sha (or the local branch) as refs/heads/<name> on remote.

        A forced push carries a lease on the remote-tracking ref, so it is
        rejected if the remote branch moved since we last saw it.
        """
        source = sha or f"refs/heads/{name}"
        args = ["push"]
        if force:
            args.append(f"--force-with-lease=refs/heads/{name}")
        args += [remote, f"{source}:refs/heads/{name}"]
        try:
            self.execute(args)
        except GitTimeoutError:
            raise
        except GitCommandError as e:
            raise PushError(name, e.cause or e) from e

    def delete_remote_branch(self, remote: str, name: str) -> None:
        try:
            self.execute(["push", remote, "--delete", f"refs/heads/{name}"])
        except GitTimeoutError:
            raise
        except GitCommandError as e:
            raise PushError(name, e.cause or e) from e

    def remote_branch_sha(self, remote: str, name: str) -> Optional[CommitHash]:
        output = self.execute(["ls-remote", "--heads", remote, f"refs/heads/{name}"]).strip()
        if not output:
            return None
        return CommitHash(output.split()[0])

    def fetch(self, remote: str, ref: Optional[str] = None) -> None:
        args = ["fetch", remote] + ([ref] if ref else [])
        try:
            self.execute(args)
        except GitTimeoutError:
            raise
        except GitCommandError as e:
            raise FetchError(remote, e) from e

    def checkout(self, ref: str, detach: bool = False) -> None:
        args = ["checkout"] + (["--detach"] if detach else []) + [ref]
        try:
            self.execute(args)
        except GitCommandError as e:
            raise CheckoutError(ref, e) from e

    def rebase_onto(self, target: str, upstream: Optional[str] = None) -> None:
        """Rebase the current branch onto target.

        With upstream, only the commits after upstream are replayed. A
        conflict leaves the rebase paused and raises RebaseConflictError.
        """
        args = ["rebase", "--onto", target, upstream] if upstream else ["rebase", target]
        try:
            self.execute(args)
        except GitCommandError as e:
            if self.is_rebase_in_progress():
                raise RebaseConflictError(e) from e
            raise

    def amend_message(self, message: str) -> None:
        self.execute(["commit", "--amend", "--allow-empty", "-m", message])

    def amend_no_edit(self) -> None:
        self.execute(["commit", "--amend", "--allow-empty", "--no-edit"])

    def stage_all(self) -> None:
        self.execute(["add", "-A"])

    def is_working_tree_clean(self) -> bool:
        """True when tracked files have no staged or unstaged changes."""
        return not self.execute(["status", "--porcelain", "--untracked-files=no"]).strip()

    def is_rebase_in_progress(self) -> bool:
        git_dir = self.git_dir()
        return (os.path.isdir(os.path.join(git_dir, "rebase-merge")) or
                os.path.isdir(os.path.join(git_dir, "rebase-apply")))

    def continue_rebase(self) -> None:
        try:
            self.execute(["rebase", "--continue"], env={"GIT_EDITOR": "true"})
        except GitCommandError as e:
            if self.is_rebase_in_progress():
                raise RebaseConflictError(e) from e
            raise

    def abort_rebase(self) -> None:
        self.execute(["rebase", "--abort"])

    def remote_exists(self, remote: str) -> bool:
        return remote in self.execute(["remote"]).split()

    def remote_url(self, remote: str) -> str:
        try:
            return self.execute(["remote", "get-url", remote]).strip()
        except GitCommandError as e:
            raise NoRemoteError(remote, e) from e

    def scripted_reword(self, base: str, commits: Sequence[Commit], driver: RewriteDriver) -> None:
        """Reword base..HEAD using the driver's messages."""
        run_scripted_rebase(self, base, commits, driver)
