"""Stack builder.

A Stack is rebuilt from the commit range at the start of every command:
branch and PR identity come from each commit's Stacker trailers, with a
deterministic branch name and a best-effort PR lookup for commits that have
none yet.
"""

import re
import logging
from typing import List, Optional, Pattern, Protocol

from ..config.models import StackerConfig
from ..errors import StackerError
from ..github import pr_url
from ..typing import CommitHash, GitInterface, Stack, StackDependency, StackEntry

logger = logging.getLogger(__name__)

DEFAULT_BRANCH_TEMPLATE = "{stack}/{index}"


class PRLookup(Protocol):
    """The part of the review service the builder needs."""
    def find_pr_by_branch(self, branch: str) -> Optional[int]:
        ...


def branch_name(template: str, stack_name: str, index: int) -> str:
    """Branch for the entry at 1-based index."""
    return template.format(stack=stack_name, index=index)


def _template_pattern(template: str) -> Optional[Pattern[str]]:
    if "{stack}" not in template:
        return None
    pattern = re.escape(template)
    pattern = pattern.replace(re.escape("{stack}"), r"(?P<stack>.+)", 1)
    pattern = pattern.replace(re.escape("{index}"), r"\d+")
    return re.compile(f"^{pattern}$")


def extract_stack_name(branch: str, template: str = DEFAULT_BRANCH_TEMPLATE) -> str:
    """Invert the branch template: ``feature/2`` -> ``feature``.

    Names the template does not produce are returned as is.
    """
    pattern = _template_pattern(template)
    match = pattern.match(branch) if pattern else None
    return match.group("stack") if match else branch


def detect_dependency(git_cmd: GitInterface, base: str, stack_name: str,
                      template: str = DEFAULT_BRANCH_TEMPLATE) -> Optional[StackDependency]:
    """Dependency recorded in the base commit's trailers, if it belongs to another stack.

    Only the base commit is inspected. Accessor failures mean "no dependency".
    """
    try:
        commit = git_cmd.parse_commit(base)
    except StackerError as e:
        logger.debug(f"Could not inspect base commit {base[:8]} for a dependency: {e.user_message}")
        return None
    trailers = commit.stack_trailers
    if not trailers.branch:
        return None
    other = extract_stack_name(trailers.branch, template)
    if other == stack_name:
        return None
    logger.debug(f"Stack {stack_name} depends on {other} ({trailers.branch})")
    return StackDependency(other, trailers.branch, trailers.pr, True)


def build_stack(config: StackerConfig, git_cmd: GitInterface, github: Optional[PRLookup] = None,
                base: Optional[str] = None, head: str = "HEAD", target: Optional[str] = None,
                remote: Optional[str] = None, stack_name: Optional[str] = None) -> Stack:
    """Build the stack for base..head.

    Without an explicit base, the stack starts at the merge base of head and
    ``remote/target``. An empty range gives a stack with no entries.
    """
    remote = remote or config.repo.remote
    target = target or config.repo.target
    template = config.stack.branch_template
    name = stack_name or extract_stack_name(git_cmd.current_branch(), template)

    if base:
        base_sha = git_cmd.resolve_ref(base)
    else:
        base_sha = git_cmd.merge_base(head, f"{remote}/{target}")

    commits = git_cmd.commits_in_range(base_sha, head)
    if not commits:
        logger.debug(f"No commits between {base_sha[:8]} and {head}")
        return Stack(name, [], target, CommitHash(base_sha))

    depends_on = detect_dependency(git_cmd, base_sha, name, template)
    has_repo = bool(config.repo.github_repo_owner and config.repo.github_repo_name)

    entries: List[StackEntry] = []
    prev_branch = depends_on.top_branch if depends_on else target
    for index, commit in enumerate(commits, start=1):
        trailers = commit.stack_trailers
        branch = trailers.branch or branch_name(template, name, index)
        pr_number = trailers.pr
        if pr_number is None and github is not None:
            pr_number = github.find_pr_by_branch(branch)
        url = pr_url(config, pr_number) if pr_number is not None and has_repo else None
        entries.append(StackEntry(commit, branch, prev_branch, pr_number, url))
        prev_branch = branch

    logger.debug(f"Built stack {name}: {len(entries)} entries on {target}")
    return Stack(name, entries, target, CommitHash(base_sha), depends_on)


def stack_warnings(stack: Stack) -> List[str]:
    """Non-fatal problems worth showing next to a stack."""
    if not stack.entries:
        return ["No commits in stack range"]
    return [f"Commit {e.commit.short_sha} has no PR yet" for e in stack.entries if e.pr_number is None]
