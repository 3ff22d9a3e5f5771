"""Scripted interactive rebase used to reword commit messages.

The core only sees ``RewriteDriver``: one call for the todo list, then one
call per commit for its new message, in commit order. ``run_scripted_rebase``
satisfies that contract on top of ``git rebase -i`` by materializing the
driver's answers into a scratch directory that the editor hooks in
``rewrite_hook`` read from.
"""

import os
import sys
import shlex
import logging
import tempfile
from typing import Dict, List, Protocol, Sequence

from ..typing import Commit
from .rewrite_hook import COUNTER_FILE, TODO_FILE, message_file

logger = logging.getLogger(__name__)

HOOK_MODULE = "stacker.git.rewrite_hook"

# Directory holding the stacker package, so the hook imports the same code.
PACKAGE_PARENT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class RewriteDriver(Protocol):
    """Supplies a rewrite plan.

    ``next_todo_list`` is called once with the commits oldest first and must
    return one instruction per commit in that order. ``next_message(i)`` is
    then called for i = 0..n-1 in order and returns the final message of the
    i-th commit.
    """

    def next_todo_list(self, commits: Sequence[Commit]) -> List[str]:
        ...

    def next_message(self, index: int) -> str:
        ...


class PrecomputedMessages:
    """Rewords every commit with a message computed before the rewrite starts."""

    def __init__(self, messages: Sequence[str]):
        self.messages = list(messages)

    def next_todo_list(self, commits: Sequence[Commit]) -> List[str]:
        if len(commits) != len(self.messages):
            raise ValueError(f"{len(self.messages)} messages prepared for {len(commits)} commits")
        return [f"reword {c.sha} {c.subject}" for c in commits]

    def next_message(self, index: int) -> str:
        return self.messages[index]


class GitExecutor(Protocol):
    def execute(self, args: List[str], env: Dict[str, str] = ...) -> str:
        ...


def write_plan(workdir: str, todo: Sequence[str], messages: Sequence[str]) -> None:
    """Lay out the files the hooks consume."""
    with open(os.path.join(workdir, TODO_FILE), "w") as f:
        f.write("\n".join(todo) + "\n")
    for i, message in enumerate(messages):
        with open(message_file(workdir, i), "w") as f:
            f.write(message if message.endswith("\n") else message + "\n")
    with open(os.path.join(workdir, COUNTER_FILE), "w") as f:
        f.write("0")


def hook_environment(workdir: str) -> Dict[str, str]:
    """Environment that routes git's editors to the hook module."""
    hook = f"{shlex.quote(sys.executable)} -m {HOOK_MODULE}"
    python_path = PACKAGE_PARENT
    if os.environ.get("PYTHONPATH"):
        python_path = os.pathsep.join([PACKAGE_PARENT, os.environ["PYTHONPATH"]])
    return {
        "GIT_SEQUENCE_EDITOR": f"{hook} todo {shlex.quote(workdir)}",
        "GIT_EDITOR": f"{hook} message {shlex.quote(workdir)}",
        "PYTHONPATH": python_path,
    }


def run_scripted_rebase(git_cmd: GitExecutor, base: str, commits: Sequence[Commit],
                        driver: RewriteDriver) -> None:
    """Reword commits (base..HEAD, oldest first) as the driver dictates.

    Raises the accessor's error if git stops; the caller decides whether the
    rebase was left paused. The scratch directory is always removed.
    """
    if not commits:
        return
    todo = driver.next_todo_list(commits)
    messages = [driver.next_message(i) for i in range(len(commits))]

    with tempfile.TemporaryDirectory(prefix="stacker-rewrite-") as workdir:
        write_plan(workdir, todo, messages)
        logger.debug(f"Rewording {len(commits)} commits onto {base[:8]}")
        git_cmd.execute(
            ["-c", "commit.cleanup=whitespace", "-c", "rebase.autoSquash=false",
             "rebase", "-i", base],
            env=hook_environment(workdir))
