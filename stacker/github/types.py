"""Type definitions for GitHub API responses."""

from typing import Dict, List, Optional, Protocol, Tuple, Union
from pydantic import BaseModel, Field

from ..typing import CheckRun, PRStatus

# Status query for one pull request: merge readiness plus the check rollup of
# its head commit.
PR_STATUS_QUERY = """
query PRStatus($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      number
      state
      mergeable
      mergeStateStatus
      reviewDecision
      commits(last: 1) {
        nodes {
          commit {
            statusCheckRollup {
              contexts(first: 100) {
                nodes {
                  __typename
                  ... on CheckRun {
                    name
                    status
                    conclusion
                  }
                  ... on StatusContext {
                    context
                    state
                  }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

# StatusContext states that mean the status has finished.
_FINISHED_STATUS_STATES = ("SUCCESS", "FAILURE", "ERROR")


class CheckContextNode(BaseModel):
    """A CheckRun or a legacy commit StatusContext."""
    typename: str = Field(default="CheckRun", alias="__typename")
    name: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    context: Optional[str] = None
    state: Optional[str] = None

    class Config:
        """Pydantic config."""
        extra = "allow"
        populate_by_name = True

    def to_check_run(self) -> CheckRun:
        if self.typename == "StatusContext":
            state = (self.state or "PENDING").upper()
            if state in _FINISHED_STATUS_STATES:
                return CheckRun(self.context or "Unknown", "COMPLETED", state)
            return CheckRun(self.context or "Unknown", "PENDING", None)
        return CheckRun(self.name or "Unknown", (self.status or "UNKNOWN").upper(),
                        self.conclusion.upper() if self.conclusion else None)


class CheckContexts(BaseModel):
    nodes: List[CheckContextNode] = Field(default_factory=list)


class StatusCheckRollup(BaseModel):
    contexts: CheckContexts = Field(default_factory=CheckContexts)


class StatusCommit(BaseModel):
    statusCheckRollup: Optional[StatusCheckRollup] = None


class StatusCommitNode(BaseModel):
    commit: StatusCommit


class StatusCommits(BaseModel):
    nodes: List[StatusCommitNode] = Field(default_factory=list)


class PRStatusNode(BaseModel):
    number: int
    state: str
    mergeable: Optional[str] = None
    mergeStateStatus: Optional[str] = None
    reviewDecision: Optional[str] = None
    commits: StatusCommits = Field(default_factory=StatusCommits)

    def to_status(self) -> PRStatus:
        checks: List[CheckRun] = []
        for node in self.commits.nodes:
            rollup = node.commit.statusCheckRollup
            if rollup:
                checks.extend(ctx.to_check_run() for ctx in rollup.contexts.nodes)
        review = self.reviewDecision if self.reviewDecision in (
            "APPROVED", "CHANGES_REQUESTED", "REVIEW_REQUIRED") else None
        return PRStatus(
            number=self.number,
            mergeable=self.mergeable == "MERGEABLE",
            merge_state=self.mergeStateStatus or "UNKNOWN",
            review_decision=review,  # type: ignore[arg-type]
            state=self.state,
            checks=checks,
        )


class StatusRepository(BaseModel):
    pullRequest: Optional[PRStatusNode] = None


class StatusData(BaseModel):
    repository: Optional[StatusRepository] = None


class GraphQLErrorLocation(BaseModel):
    line: int
    column: int


class GraphQLError(BaseModel):
    message: str
    type: Optional[str] = None
    locations: Optional[List[GraphQLErrorLocation]] = None
    path: Optional[List[Union[str, int]]] = None


class GraphQLResponse(BaseModel):
    data: Optional[StatusData] = None
    errors: Optional[List[GraphQLError]] = None


# Type for PyGithub GraphQL response
# First element is headers dict, second is the response data
GraphQLResponseType = Tuple[Dict[str, object], Dict[str, object]]


def parse_graphql_response(response: Dict[str, object]) -> GraphQLResponse:
    """Parse GraphQL response into Pydantic model."""
    try:
        return GraphQLResponse.model_validate(response)
    except Exception as e:
        raise TypeError(f"Invalid GraphQL response: {e}")


class GitHubRequester(Protocol):
    """PyGithub's private requester, the only way to reach the GraphQL endpoint."""
    def requestJsonAndCheck(
        self,
        verb: str,
        url: str,
        parameters: Optional[Dict[str, object]] = None,
        headers: Optional[Dict[str, str]] = None,
        input: Optional[Dict[str, object]] = None
    ) -> GraphQLResponseType:
        ...
