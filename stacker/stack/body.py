"""PR description rendering.

Each PR description starts with a delimited block that cross-links the whole
stack. Regeneration replaces only that block, so text a reviewer added outside
it survives, and composing twice yields the same description.
"""

from typing import List, Optional

from ..trailers import strip_trailers
from ..typing import Stack, StackEntry

START_MARKER = "<!-- stacker:start -->"
END_MARKER = "<!-- stacker:end -->"


def remove_stack_section(body: str) -> str:
    """Drop the stacker block from a PR description."""
    start = body.find(START_MARKER)
    end = body.find(END_MARKER)
    if start == -1 or end == -1 or end < start:
        return body
    return (body[:start] + body[end + len(END_MARKER):]).strip()


def commit_description(entry: StackEntry) -> str:
    """The commit body with stack trailers removed."""
    stripped = strip_trailers(entry.commit.message)
    _, _, body = stripped.partition("\n")
    return body.strip()


def _ref(entry: StackEntry) -> str:
    return f"#{entry.pr_number}" if entry.pr_number else entry.branch_name


def render_stack_section(stack: Stack, index: int) -> str:
    lines: List[str] = [START_MARKER, "## Stack", ""]

    dep = stack.depends_on
    if dep:
        dep_ref = f"#{dep.pr_number}" if dep.pr_number else dep.top_branch
        lines += [f"> This stack depends on **{dep.stack_name}** ({dep_ref})", ""]

    lines += ["| # | PR | Title |", "|---|-----|-------|"]
    for i, entry in enumerate(stack.entries):
        pr_ref = f"#{entry.pr_number}" if entry.pr_number else "(pending)"
        title = entry.commit.subject
        if i == index:
            lines.append(f"| {i + 1} | **{pr_ref}** | **{title} (this PR)** |")
        else:
            lines.append(f"| {i + 1} | {pr_ref} | {title} |")
    lines.append("")

    nav: List[str] = []
    if index > 0:
        nav.append(f"⬅️ Prev: {_ref(stack.entries[index - 1])}")
    if index < len(stack.entries) - 1:
        nav.append(f"Next: {_ref(stack.entries[index + 1])} ➡️")
    if nav:
        lines += [" | ".join(nav), ""]

    lines += ["---", END_MARKER]
    return "\n".join(lines)


def compose_body(stack: Stack, index: int, original_body: Optional[str] = None) -> str:
    """Description for the PR of stack.entries[index].

    Layout: stack block, commit description, then whatever the previous
    description held outside the block. A leading copy of the commit
    description in that remainder is dropped, since an earlier compose put it
    there.
    """
    description = commit_description(stack.entries[index])
    parts = [render_stack_section(stack, index)]
    if description:
        parts.append(description)

    if original_body:
        # descriptions edited on github.com come back with CRLF line endings
        original_body = original_body.replace("\r\n", "\n")
        remainder = remove_stack_section(original_body).strip()
        if description and (remainder == description or remainder.startswith(description + "\n")):
            remainder = remainder[len(description):].strip()
        if remainder:
            parts.append(remainder)

    return "\n\n".join(parts)
