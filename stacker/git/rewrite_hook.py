"""Editor hook git runs during a scripted rebase.

git invokes ``GIT_SEQUENCE_EDITOR`` once with the todo list path and
``GIT_EDITOR`` once per reworded commit with the message file path. Both point
here::

    python -m stacker.git.rewrite_hook todo <workdir> <path>
    python -m stacker.git.rewrite_hook message <workdir> <path>

``todo`` replaces git's list with the prepared one. ``message`` reads the
counter, writes ``message-<counter>`` over git's file and bumps the counter.
git calls the message editor serially in commit order, which is what makes the
counter sound.

The hook itself needs nothing beyond the standard library.
"""

import os
import sys
import shutil
from typing import List, Optional

TODO_FILE = "todo"
COUNTER_FILE = "counter"


def message_file(workdir: str, index: int) -> str:
    return os.path.join(workdir, f"message-{index}")


def _replace(source: str, target: str) -> None:
    tmp = f"{target}.stacker-tmp"
    shutil.copyfile(source, tmp)
    os.replace(tmp, target)


def write_todo(workdir: str, target: str) -> int:
    _replace(os.path.join(workdir, TODO_FILE), target)
    return 0


def write_message(workdir: str, target: str) -> int:
    counter_path = os.path.join(workdir, COUNTER_FILE)
    with open(counter_path) as f:
        index = int(f.read().strip() or "0")
    source = message_file(workdir, index)
    if not os.path.exists(source):
        sys.stderr.write(f"stacker: no prepared message for reword #{index}\n")
        return 1
    _replace(source, target)
    with open(counter_path, "w") as f:
        f.write(str(index + 1))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 3 or args[0] not in ("todo", "message"):
        sys.stderr.write("usage: rewrite_hook {todo|message} <workdir> <path>\n")
        return 2
    mode, workdir, target = args
    if mode == "todo":
        return write_todo(workdir, target)
    return write_message(workdir, target)


if __name__ == "__main__":
    sys.exit(main())
