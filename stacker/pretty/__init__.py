"""Pretty formatting utilities for CLI output."""

import shutil
from typing import List, Sequence

from ..typing import Stack


def get_term_width() -> int:
    """Get terminal width, default to 80 if can't detect."""
    try:
        return shutil.get_terminal_size().columns
    except Exception:
        return 80


def truncate(text: str, width: int) -> str:
    if width <= 1 or len(text) <= width:
        return text
    return text[:width - 1] + "…"


def table(rows: Sequence[Sequence[str]], last_column_width: int = 0) -> List[str]:
    """Left-aligned columns separated by two spaces."""
    if not rows:
        return []
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]) - 1)]
    lines = []
    for row in rows:
        cells = [cell.ljust(widths[i]) for i, cell in enumerate(row[:-1])]
        last = truncate(row[-1], last_column_width) if last_column_width else row[-1]
        lines.append("  ".join(cells + [last]).rstrip())
    return lines


def format_stack(stack: Stack) -> str:
    """Describe a stack, top entry first as in ``git log``."""
    count = len(stack.entries)
    lines = [f"Stack: {stack.name} ({count} commit{'s' if count != 1 else ''}) → {stack.landing_target()}"]
    dep = stack.depends_on
    if dep:
        dep_pr = f", #{dep.pr_number}" if dep.pr_number else ""
        lines.append(f"Depends on: {dep.stack_name} ({dep.top_branch}{dep_pr})")
    if not stack.entries:
        return "\n".join(lines)

    rows = [["#", "SHA", "PR", "Branch", "Subject"]]
    for i in range(count - 1, -1, -1):
        entry = stack.entries[i]
        pr = f"#{entry.pr_number}" if entry.pr_number else "(new)"
        rows.append([str(i + 1), entry.commit.short_sha, pr, entry.branch_name, entry.commit.subject])

    fixed = sum(max(len(r[i]) for r in rows) + 2 for i in range(4))
    lines.append("")
    lines += [f"  {line}" for line in table(rows, max(get_term_width() - fixed - 2, 20))]
    return "\n".join(lines)
