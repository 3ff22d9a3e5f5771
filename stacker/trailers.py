"""Commit message trailer parsing and rewriting.

Trailers are ``Key: Value`` lines in the last paragraph of a commit message.
Stack identity lives in three of them::

    Stacker-Branch: feature/1
    Stacker-PR: 123
    Stacker-Depends-On: other-feature

Any other trailer (``Signed-off-by``, ``Reviewed-by``...) is left alone.
The first line of a message is the subject and is never a trailer.
"""

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

TRAILER_PREFIX = "Stacker-"

TRAILER_RE = re.compile(r'^([A-Za-z][A-Za-z0-9-]*): (.+)$')


class TrailerKind(enum.Enum):
    """Trailer keys stacker owns."""
    BRANCH = "Branch"
    PR = "PR"
    DEPENDS_ON = "Depends-On"

    @property
    def key(self) -> str:
        return f"{TRAILER_PREFIX}{self.value}"


_KINDS_BY_KEY = {kind.key: kind for kind in TrailerKind}


def _is_blank(line: str) -> bool:
    return not line.strip()


def _trailer_block_start(lines: List[str]) -> int:
    """Index of the first line of the trailer block, or len(lines) if none.

    Scans backward: trailing blank lines are skipped, trailer-shaped lines
    extend the block, and the first blank or non-trailer line above the block
    ends it. Line 0 is the subject and never belongs to the block.
    """
    start = len(lines)
    for i in range(len(lines) - 1, 0, -1):
        line = lines[i]
        if _is_blank(line):
            if start < len(lines):
                break
            continue
        if TRAILER_RE.match(line):
            start = i
        else:
            break
    return start


def parse_trailers(message: str) -> Dict[str, str]:
    """Parse the trailer block of a commit message.

    On duplicate keys the occurrence closest to the end of the message wins.
    """
    lines = message.split("\n")
    trailers: Dict[str, str] = {}
    for line in reversed(lines[_trailer_block_start(lines):]):
        match = TRAILER_RE.match(line)
        if match and match.group(1) not in trailers:
            trailers[match.group(1)] = match.group(2)
    return trailers


def filter_prefixed(trailers: Mapping[str, str], prefix: str = TRAILER_PREFIX) -> Dict[str, str]:
    """Keep only the trailers whose key starts with prefix."""
    return {k: v for k, v in trailers.items() if k.startswith(prefix)}


def get_stack_trailers(message: str) -> Dict[str, str]:
    """The Stacker-* trailers of a message."""
    return filter_prefixed(parse_trailers(message))


def _body_without_block(lines: List[str], start: int) -> List[str]:
    body = lines[:start]
    while body and _is_blank(body[-1]):
        body.pop()
    return body


def _join(body: List[str], trailer_lines: List[str]) -> str:
    if not trailer_lines:
        return "\n".join(body)
    if not body:
        return "\n".join(trailer_lines)
    return "\n".join(body + [""] + trailer_lines)


def set_trailers(message: str, new_trailers: Mapping[str, str]) -> str:
    """Merge new_trailers into the trailer block of message.

    New values win on key collisions; unrelated trailers keep their place.
    Trailing blank lines are dropped and the block is re-appended after a
    single blank line. No block is written if the merged result is empty.
    """
    for key, value in new_trailers.items():
        if not TRAILER_RE.match(f"{key}: {value}") or "\n" in value:
            raise ValueError(f"Invalid trailer {key!r}: {value!r}")

    lines = message.split("\n")
    start = _trailer_block_start(lines)

    merged: Dict[str, str] = {}
    for line in lines[start:]:
        match = TRAILER_RE.match(line)
        if match:
            merged[match.group(1)] = match.group(2)
    merged.update(new_trailers)

    trailer_lines = [f"{k}: {v}" for k, v in merged.items()]
    return _join(_body_without_block(lines, start), trailer_lines)


def strip_trailers(message: str, prefix: str = TRAILER_PREFIX) -> str:
    """Remove the trailers whose key starts with prefix.

    Other trailers stay as they were. When none remain, the block and the
    blank line before it go away too.
    """
    lines = message.split("\n")
    start = _trailer_block_start(lines)
    if start == len(lines):
        return message

    kept: List[str] = []
    for line in lines[start:]:
        match = TRAILER_RE.match(line)
        if match and not match.group(1).startswith(prefix):
            kept.append(line)
    return _join(_body_without_block(lines, start), kept)


@dataclass(frozen=True)
class StackTrailers:
    """Typed view of a commit's trailers.

    Known stack keys become fields. Everything else, including misspelled
    ``Stacker-`` keys, is kept verbatim in ``passthrough``.
    """
    branch: Optional[str] = None
    pr: Optional[int] = None
    depends_on: Optional[str] = None
    passthrough: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, trailers: Mapping[str, str]) -> 'StackTrailers':
        branch = None
        pr = None
        depends_on = None
        passthrough: Dict[str, str] = {}
        for key, value in trailers.items():
            kind = _KINDS_BY_KEY.get(key)
            if kind is TrailerKind.BRANCH:
                branch = value.strip()
            elif kind is TrailerKind.PR:
                try:
                    pr = int(value.strip().lstrip("#"))
                except ValueError:
                    logger.warning(f"Ignoring malformed {key} trailer: {value!r}")
                    passthrough[key] = value
            elif kind is TrailerKind.DEPENDS_ON:
                depends_on = value.strip()
            else:
                if key.startswith(TRAILER_PREFIX):
                    logger.warning(f"Unrecognized stack trailer {key!r} will be left untouched")
                passthrough[key] = value
        return cls(branch, pr, depends_on, passthrough)

    @classmethod
    def from_message(cls, message: str) -> 'StackTrailers':
        return cls.from_mapping(parse_trailers(message))

    def to_mapping(self) -> Dict[str, str]:
        """The known stack trailers that are set, keyed by trailer key."""
        mapping: Dict[str, str] = {}
        if self.branch is not None:
            mapping[TrailerKind.BRANCH.key] = self.branch
        if self.pr is not None:
            mapping[TrailerKind.PR.key] = str(self.pr)
        if self.depends_on is not None:
            mapping[TrailerKind.DEPENDS_ON.key] = self.depends_on
        return mapping

    def apply(self, message: str) -> str:
        """Write the set stack trailers into message."""
        return set_trailers(message, self.to_mapping())
