"""Trailer synchronization.

Rewrites every commit of a stack so its Stacker trailers match the stack
model, by rewording the whole range in one scripted rebase. Only messages
change; trees and order are preserved, but every sha in the range does.
"""

import logging
from typing import Dict, List

from ..errors import (
    DirtyWorkingTreeError, RebaseInProgressError, RewriteError, RewritePausedError,
    StackerError,
)
from ..git.rewrite import PrecomputedMessages
from ..trailers import TrailerKind, set_trailers
from ..typing import GitInterface, Stack

logger = logging.getLogger(__name__)


def target_trailers(stack: Stack, index: int) -> Dict[str, str]:
    """Trailers the commit at index should carry."""
    entry = stack.entries[index]
    trailers = {TrailerKind.BRANCH.key: entry.branch_name}
    if entry.pr_number is not None:
        trailers[TrailerKind.PR.key] = str(entry.pr_number)
    if index == 0 and stack.depends_on:
        trailers[TrailerKind.DEPENDS_ON.key] = stack.depends_on.stack_name
    return trailers


def entry_needs_sync(stack: Stack, index: int) -> bool:
    entry = stack.entries[index]
    current = entry.commit.stack_trailers
    return current.branch != entry.branch_name or current.pr != entry.pr_number


def needs_sync(stack: Stack) -> bool:
    """True when some commit's branch or PR trailer is missing or stale."""
    return any(entry_needs_sync(stack, i) for i in range(len(stack.entries)))


def planned_messages(stack: Stack) -> List[str]:
    return [set_trailers(entry.commit.message, target_trailers(stack, i))
            for i, entry in enumerate(stack.entries)]


def sync_trailers(stack: Stack, git_cmd: GitInterface) -> bool:
    """Bring commit trailers in line with the stack, updating it in place.

    Returns False without touching the repository when nothing is stale.
    On success the entries hold the rewritten commits. If git stops
    mid-rewrite the rebase is left for the operator and RewritePausedError is
    raised.
    """
    if not needs_sync(stack):
        logger.debug("Commit trailers are up to date")
        return False

    if git_cmd.is_rebase_in_progress():
        raise RebaseInProgressError()
    if not git_cmd.is_working_tree_clean():
        raise DirtyWorkingTreeError()
    head = git_cmd.resolve_ref("HEAD")
    if stack.entries[-1].commit.sha != head:
        raise RewriteError("the top of the stack is not the checked out commit")

    commits = [entry.commit for entry in stack.entries]
    stale = sum(1 for i in range(len(stack.entries)) if entry_needs_sync(stack, i))
    logger.info(f"Updating trailers on {stale} of {len(commits)} commits")

    driver = PrecomputedMessages(planned_messages(stack))
    try:
        git_cmd.scripted_reword(stack.base, commits, driver)
    except StackerError as e:
        if git_cmd.is_rebase_in_progress():
            raise RewritePausedError(e) from e
        raise RewriteError(e.user_message, e) from e

    rewritten = git_cmd.commits_in_range(stack.base, "HEAD")
    if len(rewritten) != len(stack.entries):
        raise RewriteError(f"expected {len(stack.entries)} commits after rewrite, found {len(rewritten)}")
    for entry, commit in zip(stack.entries, rewritten):
        entry.commit = commit
    return True
