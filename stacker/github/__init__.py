"""GitHub interfaces and implementation."""

import os
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Protocol, runtime_checkable
import requests
import yaml
from github import GithubException

from ..config.models import StackerConfig
from ..errors import (
    GitHubAPIError, GitHubTokenError, NetworkError, PRCreationError, PRMergeError,
    PRNotFoundError, PRUpdateError, RepoNotConfiguredError, StackerError,
)
from ..typing import MergeMethod, PRStatus, PullRequestInfo
from .types import PR_STATUS_QUERY, GitHubRequester, GraphQLResponseType, parse_graphql_response

# Get module logger
logger = logging.getLogger(__name__)

PENDING_CHECK_STATUSES = ("IN_PROGRESS", "PENDING", "QUEUED", "WAITING", "REQUESTED")
FAILING_CHECK_CONCLUSIONS = ("FAILURE", "ERROR", "TIMED_OUT", "CANCELLED",
                             "ACTION_REQUIRED", "STARTUP_FAILURE")


# Define protocols for GitHub objects
@runtime_checkable
class GitHubRefProtocol(Protocol):
    """Protocol for GitHub ref objects (base/head references)."""
    @property
    def ref(self) -> str:
        ...

    @property
    def sha(self) -> str:
        ...


@runtime_checkable
class GitHubGitRefProtocol(Protocol):
    """A git reference on the server, e.g. ``heads/feature/1``."""
    def delete(self) -> None:
        ...


@runtime_checkable
class GitHubPullRequestProtocol(Protocol):
    """Protocol for GitHub pull request objects (real or fake)."""
    @property
    def number(self) -> int:
        ...

    @property
    def title(self) -> str:
        ...

    @property
    def body(self) -> str:
        ...

    @property
    def state(self) -> str:
        ...

    @property
    def base(self) -> GitHubRefProtocol:
        ...

    @property
    def head(self) -> GitHubRefProtocol:
        ...

    @property
    def html_url(self) -> str:
        ...

    @property
    def merged(self) -> bool:
        ...

    def edit(self, title: Optional[str] = None, body: Optional[str] = None,
             state: Optional[str] = None, base: Optional[str] = None) -> None:
        """Edit the pull request. None leaves a field unchanged."""
        ...

    def merge(self, commit_title: Optional[str] = None, commit_message: Optional[str] = None,
              merge_method: str = "merge") -> None:
        ...

    def create_review_request(self, reviewers: List[str]) -> None:
        ...


@runtime_checkable
class GitHubRepoProtocol(Protocol):
    """Protocol for GitHub repository objects (real or fake)."""
    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        ...

    def get_pulls(self, state: str = "open", head: str = "",
                  base: str = "") -> List[GitHubPullRequestProtocol]:
        ...

    def create_pull(self, title: str, body: str, base: str, head: str,
                    draft: bool = False) -> GitHubPullRequestProtocol:
        ...

    def get_git_ref(self, ref: str) -> GitHubGitRefProtocol:
        ...


@runtime_checkable
class PyGithubProtocol(Protocol):
    """Protocol for PyGithub implementations (real or fake).

    GraphQL goes through the private ``_Github__requester`` attribute, which
    both the adapter and the fake expose.
    """
    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        ...


@dataclass
class CISummary:
    """Classification of a PR's checks."""
    passing: bool = True
    pending: bool = False
    failing: bool = False
    failed_checks: List[str] = field(default_factory=list)
    pending_checks: List[str] = field(default_factory=list)

    def describe(self) -> str:
        if self.failing:
            return "failing"
        if self.pending:
            return "pending"
        return "passing"


def ci_summary(status: PRStatus) -> CISummary:
    """Sort the checks of a PR status into failing and pending."""
    summary = CISummary()
    for check in status.checks:
        if check.conclusion and check.conclusion.upper() in FAILING_CHECK_CONCLUSIONS:
            summary.failing = True
            summary.failed_checks.append(check.name)
        elif check.status.upper() in PENDING_CHECK_STATUSES:
            summary.pending = True
            summary.pending_checks.append(check.name)
    summary.passing = not (summary.failing or summary.pending)
    return summary


def find_github_token(host: str = "github.com") -> Optional[str]:
    """Find GitHub token from env var or gh CLI config."""
    for var in ("GITHUB_TOKEN", "GH_TOKEN"):
        token = os.environ.get(var)
        if token:
            return token

    config_dir = os.environ.get("GH_CONFIG_DIR")
    gh_config_path = Path(config_dir) if config_dir else Path.home() / ".config" / "gh"
    gh_config_path = gh_config_path / "hosts.yml"
    try:
        if gh_config_path.exists():
            with open(gh_config_path, "r") as f:
                gh_config = yaml.safe_load(f)
            host_config = gh_config.get(host) if isinstance(gh_config, dict) else None
            if isinstance(host_config, dict):
                token = host_config.get("oauth_token")
                if isinstance(token, str) and token:
                    return token
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error reading gh CLI config: {e}")
    return None


def pr_url(config: StackerConfig, number: int) -> str:
    repo = config.repo
    return f"https://{repo.github_host}/{repo.github_repo_owner}/{repo.github_repo_name}/pull/{number}"


def graphql_url(host: str) -> str:
    if host == "github.com":
        return "https://api.github.com/graphql"
    return f"https://{host}/api/graphql"


def _error_text(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    parts = [str(data.get("message") or e)]
    for err in data.get("errors") or []:
        if isinstance(err, dict) and err.get("message"):
            parts.append(str(err["message"]))
        elif isinstance(err, str):
            parts.append(err)
    return ": ".join(parts)


def _is_service_error(e: GithubException) -> bool:
    """Auth, permission and rate-limit failures keep their generic hints."""
    return e.status in (401, 403, 429) or "rate limit" in str(e).lower()


class GitHubClient:
    """Review-service operations the stack engine needs, over PyGithub."""
    def __init__(self, config: StackerConfig, github_client: PyGithubProtocol):
        self.config = config
        self.client = github_client
        self._repo: Optional[GitHubRepoProtocol] = None

    @property
    def repo(self) -> GitHubRepoProtocol:
        """Get GitHub repository."""
        if self._repo is None:
            owner = self.config.repo.github_repo_owner
            name = self.config.repo.github_repo_name
            if not owner or not name:
                raise RepoNotConfiguredError()
            with self._api_errors(f"get repository {owner}/{name}"):
                self._repo = self.client.get_repo(f"{owner}/{name}")
        return self._repo

    @repo.setter
    def repo(self, value: GitHubRepoProtocol) -> None:
        self._repo = value

    @contextmanager
    def _api_errors(self, operation: str,
                    specific: Optional[Callable[[GithubException], StackerError]] = None) -> Iterator[None]:
        """Translate PyGithub and transport exceptions into stacker errors."""
        try:
            yield
        except StackerError:
            raise
        except GithubException as e:
            if specific is not None and not _is_service_error(e):
                raise specific(e) from e
            raise GitHubAPIError(operation, e, e.status) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(e) from e

    def _pull(self, number: int) -> GitHubPullRequestProtocol:
        def not_found(e: GithubException) -> StackerError:
            return PRNotFoundError(number, e) if e.status == 404 else GitHubAPIError(f"get PR #{number}", e, e.status)
        with self._api_errors(f"get PR #{number}", not_found):
            return self.repo.get_pull(number)

    def pr_url(self, number: int) -> str:
        return pr_url(self.config, number)

    def create_pull_request(self, head: str, base: str, title: str, body: str,
                            draft: bool = False, reviewers: Optional[List[str]] = None) -> PullRequestInfo:
        """Open a PR from head into base and return it."""
        logger.info(f"> github create {head} -> {base} : {title}")
        with self._api_errors(f"create PR for {head}",
                              lambda e: PRCreationError(head, _error_text(e), e)):
            pr = self.repo.create_pull(title=title, body=body, base=base, head=head, draft=draft)
        info = self._info(pr)
        if reviewers:
            self.add_reviewers(info.number, reviewers)
        return info

    def update_pull_request(self, number: int, title: Optional[str] = None,
                            body: Optional[str] = None, base: Optional[str] = None) -> None:
        """Edit the fields that are not None."""
        if title is None and body is None and base is None:
            return
        changes = ", ".join(k for k, v in (("title", title), ("body", body), ("base", base)) if v is not None)
        logger.info(f"> github update #{number} : {changes}" + (f" -> {base}" if base else ""))
        pr = self._pull(number)

        def update_failed(e: GithubException) -> StackerError:
            return PRNotFoundError(number, e) if e.status == 404 else PRUpdateError(number, e)
        with self._api_errors(f"update PR #{number}", update_failed):
            pr.edit(title=title, body=body, base=base)

    def find_pr_by_branch(self, branch: str) -> Optional[int]:
        """Number of the open PR whose head is branch, or None.

        A lookup failure is treated as "no PR"; nothing is retried.
        """
        owner = self.config.repo.github_repo_owner
        try:
            for pr in self.repo.get_pulls(state="open", head=f"{owner}:{branch}"):
                if pr.head.ref == branch:
                    logger.debug(f"Found PR #{pr.number} for branch {branch}")
                    return pr.number
        except Exception as e:
            logger.debug(f"PR lookup for branch {branch} failed: {e}")
        return None

    def get_pull_request(self, number: int) -> PullRequestInfo:
        return self._info(self._pull(number))

    def _info(self, pr: GitHubPullRequestProtocol) -> PullRequestInfo:
        return PullRequestInfo(
            number=pr.number,
            title=pr.title,
            body=pr.body or "",
            state=pr.state,
            head_ref=pr.head.ref,
            base_ref=pr.base.ref,
            url=pr.html_url or self.pr_url(pr.number),
        )

    def graphql(self, query: str, variables: Dict[str, object]) -> Dict[str, object]:
        """POST a GraphQL query through PyGithub's requester."""
        requester: GitHubRequester = getattr(self.client, '_Github__requester')
        result: GraphQLResponseType = requester.requestJsonAndCheck(
            "POST",
            graphql_url(self.config.repo.github_host),
            input={"query": query, "variables": variables},
        )
        _headers, data = result
        return data

    def get_pr_status(self, number: int) -> PRStatus:
        """Mergeability, review decision and checks of a PR."""
        logger.info(f"> github status #{number}")
        variables: Dict[str, object] = {
            "owner": self.config.repo.github_repo_owner,
            "name": self.config.repo.github_repo_name,
            "number": number,
        }
        with self._api_errors(f"get status of PR #{number}"):
            response = parse_graphql_response(self.graphql(PR_STATUS_QUERY, variables))
        node = response.data.repository.pullRequest if response.data and response.data.repository else None
        if node is None:
            cause = Exception("; ".join(e.message for e in response.errors or [])) if response.errors else None
            raise PRNotFoundError(number, cause)
        return node.to_status()

    def merge_pull_request(self, number: int, method: MergeMethod = "squash",
                           delete_branch: bool = True, title: Optional[str] = None,
                           body: Optional[str] = None) -> None:
        """Merge a PR, optionally overriding the merge commit title/body."""
        logger.info(f"> github merge #{number} ({method})")
        pr = self._pull(number)
        head_ref = pr.head.ref
        with self._api_errors(f"merge PR #{number}", lambda e: PRMergeError(number, e)):
            pr.merge(commit_title=title, commit_message=body, merge_method=method)
        if delete_branch:
            logger.info(f"> github delete branch {head_ref}")
            try:
                with self._api_errors(f"delete branch {head_ref}"):
                    self.repo.get_git_ref(f"heads/{head_ref}").delete()
            except StackerError as e:
                logger.warning(f"PR #{number} merged but branch {head_ref} was not deleted: {e.user_message}")

    def close_pull_request(self, number: int) -> None:
        logger.info(f"> github close #{number}")
        pr = self._pull(number)
        with self._api_errors(f"close PR #{number}", lambda e: PRUpdateError(number, e)):
            pr.edit(state="closed")

    def add_reviewers(self, number: int, reviewers: List[str]) -> None:
        logger.info(f"> github add reviewers #{number} : {reviewers}")
        pr = self._pull(number)
        with self._api_errors(f"request reviewers on PR #{number}"):
            pr.create_review_request(reviewers=reviewers)


def create_github_client(config: StackerConfig) -> GitHubClient:
    """GitHubClient backed by real PyGithub, authenticated from the environment."""
    from github import Auth, Github
    from .adapters import PyGithubAdapter

    host = config.repo.github_host
    token = find_github_token(host)
    if not token:
        raise GitHubTokenError()
    kwargs: Dict[str, object] = {"auth": Auth.Token(token), "timeout": config.tool.github_timeout}
    if host != "github.com":
        kwargs["base_url"] = f"https://{host}/api/v3"
    return GitHubClient(config, PyGithubAdapter(Github(**kwargs)))  # type: ignore[arg-type]
