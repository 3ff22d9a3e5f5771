"""Common types used across the codebase."""

from dataclasses import dataclass, field
from typing import List, Literal, Mapping, NewType, Optional, Protocol, Sequence, TYPE_CHECKING

from .trailers import StackTrailers

if TYPE_CHECKING:
    from .git.rewrite import RewriteDriver

CommitHash = NewType('CommitHash', str)

MergeMethod = Literal['squash', 'merge', 'rebase']
ReviewDecision = Literal['APPROVED', 'CHANGES_REQUESTED', 'REVIEW_REQUIRED']


@dataclass(frozen=True)
class Commit:
    """Immutable snapshot of a commit.

    Identity is the sha. Rewriting the message produces a new Commit with a
    new sha, which also changes the sha of every descendant.
    """
    sha: CommitHash
    short_sha: str
    subject: str
    body: str = ""
    trailers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_strings(cls, sha: str, subject: str, body: str = "",
                     trailers: Optional[Mapping[str, str]] = None) -> 'Commit':
        """Create a Commit from plain strings, used mostly by tests."""
        return cls(CommitHash(sha), sha[:7], subject, body, dict(trailers or {}))

    @property
    def message(self) -> str:
        """Full commit message, subject first."""
        if not self.body:
            return self.subject
        return f"{self.subject}\n\n{self.body}"

    @property
    def stack_trailers(self) -> StackTrailers:
        return StackTrailers.from_mapping(self.trailers)


@dataclass
class StackEntry:
    """One commit paired with its branch and (eventually) its pull request."""
    commit: Commit
    branch_name: str
    target_branch: str
    pr_number: Optional[int] = None
    pr_url: Optional[str] = None


@dataclass(frozen=True)
class StackDependency:
    """A stack whose bottom PR targets another stack's top branch."""
    stack_name: str
    top_branch: str
    pr_number: Optional[int] = None
    auto_detected: bool = True


@dataclass
class Stack:
    """Ordered entries, bottom of the stack (oldest commit) first.

    A Stack is rebuilt at the start of every command and never persisted.
    """
    name: str
    entries: List[StackEntry]
    target: str
    base: CommitHash
    depends_on: Optional[StackDependency] = None

    def top_branch(self) -> str:
        """Branch of the top entry, or the target for an empty stack."""
        if not self.entries:
            return self.target
        return self.entries[-1].branch_name

    def landing_target(self) -> str:
        """Branch the bottom entry merges into."""
        if self.depends_on:
            return self.depends_on.top_branch
        return self.target


@dataclass(frozen=True)
class CheckRun:
    """One status check on a PR head commit."""
    name: str
    status: str
    conclusion: Optional[str] = None


@dataclass(frozen=True)
class PRStatus:
    """Merge readiness of a pull request."""
    number: int
    mergeable: bool
    merge_state: str
    review_decision: Optional[ReviewDecision]
    state: str
    checks: List[CheckRun] = field(default_factory=list)


@dataclass(frozen=True)
class PullRequestInfo:
    """Pull request details as the review service reports them."""
    number: int
    title: str
    body: str
    state: str
    head_ref: str
    base_ref: str
    url: str


class GitInterface(Protocol):
    """Operations the stack engine needs from version control."""

    def run_cmd(self, command: str) -> str:
        ...

    def current_branch(self) -> str:
        ...

    def resolve_ref(self, ref: str) -> CommitHash:
        ...

    def merge_base(self, ref_a: str, ref_b: str) -> CommitHash:
        ...

    def commits_in_range(self, base: str, head: str) -> List[Commit]:
        ...

    def parse_commit(self, sha: str) -> Commit:
        ...

    def commit_message(self, sha: str) -> str:
        ...

    def branch_exists(self, name: str) -> bool:
        ...

    def create_branch(self, name: str, sha: str) -> None:
        ...

    def delete_branch(self, name: str) -> None:
        ...

    def push_branch(self, remote: str, name: str, force: bool = True,
                    sha: Optional[str] = None) -> None:
        ...

    def delete_remote_branch(self, remote: str, name: str) -> None:
        ...

    def remote_branch_sha(self, remote: str, name: str) -> Optional[CommitHash]:
        ...

    def fetch(self, remote: str, ref: Optional[str] = None) -> None:
        ...

    def checkout(self, ref: str, detach: bool = False) -> None:
        ...

    def rebase_onto(self, target: str, upstream: Optional[str] = None) -> None:
        ...

    def amend_message(self, message: str) -> None:
        ...

    def amend_no_edit(self) -> None:
        ...

    def stage_all(self) -> None:
        ...

    def is_working_tree_clean(self) -> bool:
        ...

    def is_rebase_in_progress(self) -> bool:
        ...

    def continue_rebase(self) -> None:
        ...

    def abort_rebase(self) -> None:
        ...

    def remote_exists(self, remote: str) -> bool:
        ...

    def remote_url(self, remote: str) -> str:
        ...

    def has_commits(self) -> bool:
        ...

    def git_dir(self) -> str:
        ...

    def scripted_reword(self, base: str, commits: Sequence[Commit], driver: 'RewriteDriver') -> None:
        ...


