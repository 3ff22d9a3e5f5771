"""Adapter classes to wrap PyGithub objects with our protocol interfaces."""

from typing import Dict, List, Optional
import logging

from github import Github
from github.GitRef import GitRef
from github.Repository import Repository
from github.PullRequest import PullRequest as PyGithubPullRequest
from github.GithubObject import NotSet

from . import (
    PyGithubProtocol,
    GitHubRepoProtocol,
    GitHubPullRequestProtocol,
    GitHubGitRefProtocol,
    GitHubRefProtocol,
)
from .types import GitHubRequester, GraphQLResponseType

logger = logging.getLogger(__name__)


def _or_not_set(value: Optional[str]) -> object:
    return value if value is not None else NotSet


class PyGithubPullRequestAdapter(GitHubPullRequestProtocol):
    """Adapter for PyGithub PullRequest objects."""

    def __init__(self, pr: PyGithubPullRequest) -> None:
        self._pr = pr

    @property
    def number(self) -> int:
        return self._pr.number

    @property
    def title(self) -> str:
        return self._pr.title

    @property
    def body(self) -> str:
        return self._pr.body or ""

    @property
    def state(self) -> str:
        return self._pr.state

    @property
    def base(self) -> GitHubRefProtocol:
        return self._pr.base

    @property
    def head(self) -> GitHubRefProtocol:
        return self._pr.head

    @property
    def html_url(self) -> str:
        return self._pr.html_url

    @property
    def merged(self) -> bool:
        return self._pr.merged

    def edit(self, title: Optional[str] = None, body: Optional[str] = None,
             state: Optional[str] = None, base: Optional[str] = None) -> None:
        """Edit the pull request."""
        # PyGithub uses NotSet for "leave unchanged"
        self._pr.edit(
            title=_or_not_set(title),
            body=_or_not_set(body),
            state=_or_not_set(state),
            base=_or_not_set(base),
        )

    def merge(self, commit_title: Optional[str] = None, commit_message: Optional[str] = None,
              merge_method: str = "merge") -> None:
        """Merge the pull request.

        An empty commit_message is sent as is, so GitHub does not fall back to
        the concatenated commit messages.
        """
        self._pr.merge(
            commit_title=_or_not_set(commit_title),
            commit_message=_or_not_set(commit_message),
            merge_method=merge_method,
        )

    def create_review_request(self, reviewers: List[str]) -> None:
        self._pr.create_review_request(reviewers=reviewers)


class PyGithubGitRefAdapter(GitHubGitRefProtocol):
    """Adapter for PyGithub GitRef objects."""

    def __init__(self, ref: GitRef) -> None:
        self._ref = ref

    def delete(self) -> None:
        self._ref.delete()


class PyGithubRepoAdapter(GitHubRepoProtocol):
    """Adapter for PyGithub Repository objects."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        return PyGithubPullRequestAdapter(self._repo.get_pull(number))

    def get_pulls(self, state: str = "open", head: str = "",
                  base: str = "") -> List[GitHubPullRequestProtocol]:
        """Get pull requests with optional filtering."""
        pulls = self._repo.get_pulls(
            state=state,
            head=head if head else NotSet,
            base=base if base else NotSet,
        )
        return [PyGithubPullRequestAdapter(pr) for pr in pulls]

    def create_pull(self, title: str, body: str, base: str, head: str,
                    draft: bool = False) -> GitHubPullRequestProtocol:
        pr = self._repo.create_pull(title=title, body=body, base=base, head=head, draft=draft)
        return PyGithubPullRequestAdapter(pr)

    def get_git_ref(self, ref: str) -> GitHubGitRefProtocol:
        return PyGithubGitRefAdapter(self._repo.get_git_ref(ref))


class PyGithubRequesterAdapter(GitHubRequester):
    """Adapter for PyGithub's requester to handle GraphQL."""

    def __init__(self, requester: GitHubRequester) -> None:
        self._requester = requester

    def requestJsonAndCheck(
        self, verb: str, url: str, parameters: Optional[Dict[str, object]] = None,
        headers: Optional[Dict[str, str]] = None, input: Optional[Dict[str, object]] = None
    ) -> GraphQLResponseType:
        response_headers, data = self._requester.requestJsonAndCheck(
            verb, url, parameters=parameters, headers=headers, input=input
        )
        return (response_headers or {}, data)


class PyGithubAdapter(PyGithubProtocol):
    """Adapter for the main PyGithub object."""

    def __init__(self, github: Github) -> None:
        self._github = github
        self._requester_adapter: Optional[PyGithubRequesterAdapter] = None

    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        return PyGithubRepoAdapter(self._github.get_repo(full_name_or_id))

    @property
    def _Github__requester(self) -> GitHubRequester:
        """Access the requester for GraphQL calls."""
        if self._requester_adapter is None:
            # Private attribute of the real PyGithub object
            real_requester = getattr(self._github, '_Github__requester')
            self._requester_adapter = PyGithubRequesterAdapter(real_requester)
        return self._requester_adapter
