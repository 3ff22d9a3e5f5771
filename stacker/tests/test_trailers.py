"""Unit tests for commit message trailer parsing and rewriting."""

import logging

import pytest

from stacker.trailers import (
    StackTrailers, TrailerKind, get_stack_trailers, parse_trailers, set_trailers, strip_trailers,
)

REVIEWED = "Subject\n\nBody text\n\nReviewed-by: X <x@y.com>\nStacker-Branch: foo/1"


class TestParseTrailers:
    """Tests for reading the trailer block."""

    def test_parses_last_paragraph(self) -> None:
        assert parse_trailers(REVIEWED) == {
            "Reviewed-by": "X <x@y.com>",
            "Stacker-Branch": "foo/1",
        }

    def test_subject_is_never_a_trailer(self) -> None:
        assert parse_trailers("Fix: handle empty input") == {}

    def test_body_paragraph_with_prose_is_not_a_block(self) -> None:
        assert parse_trailers("Subject\n\nNote: this is prose\nand more prose") == {}

    def test_earlier_paragraph_is_ignored(self) -> None:
        message = "Subject\n\nStacker-Branch: old/1\n\nJust a closing paragraph."
        assert parse_trailers(message) == {}

    def test_last_duplicate_wins(self) -> None:
        assert parse_trailers("Subject\n\nStacker-PR: 1\nStacker-PR: 2") == {"Stacker-PR": "2"}

    def test_trailing_blank_lines_are_skipped(self) -> None:
        assert parse_trailers("Subject\n\nStacker-PR: 7\n\n\n") == {"Stacker-PR": "7"}

    def test_stack_trailers_only(self) -> None:
        assert get_stack_trailers(REVIEWED) == {"Stacker-Branch": "foo/1"}


class TestSetTrailers:
    """Tests for writing trailers into a message."""

    def test_adds_block_to_bare_subject(self) -> None:
        assert set_trailers("Subject", {"Stacker-Branch": "f/1"}) == "Subject\n\nStacker-Branch: f/1"

    def test_is_idempotent(self) -> None:
        trailers = {"Stacker-Branch": "f/1", "Stacker-PR": "4"}
        once = set_trailers("Subject\n\nSome body", trailers)
        assert set_trailers(once, trailers) == once

    def test_merges_into_single_paragraph(self) -> None:
        message = "Subject\n\nSigned-off-by: A <a@b.c>"
        result = set_trailers(message, {"Stacker-PR": "3"})
        assert result == "Subject\n\nSigned-off-by: A <a@b.c>\nStacker-PR: 3"
        assert result.count("\n\n") == 1

    def test_updates_in_place_and_keeps_other_trailers(self) -> None:
        message = "Subject\n\nSigned-off-by: A\nStacker-PR: 1"
        result = set_trailers(message, {"Stacker-PR": "2", "Stacker-Branch": "f/1"})
        assert result == "Subject\n\nSigned-off-by: A\nStacker-PR: 2\nStacker-Branch: f/1"

    def test_drops_trailing_whitespace(self) -> None:
        result = set_trailers("S\n\nbody\n\n\n", {"Stacker-Branch": "x"})
        assert result == "S\n\nbody\n\nStacker-Branch: x"

    def test_does_not_touch_body(self) -> None:
        message = "Subject\n\nFirst paragraph.\n\nSecond: paragraph\nwith prose."
        result = set_trailers(message, {"Stacker-Branch": "f/2"})
        assert result.startswith(message + "\n\n")

    @pytest.mark.parametrize("trailers", [
        {"Bad Key": "x"},
        {"Stacker-PR": ""},
        {"Stacker-Branch": "two\nlines"},
    ])
    def test_rejects_invalid_trailers(self, trailers: dict) -> None:
        with pytest.raises(ValueError):
            set_trailers("Subject", trailers)


class TestStripTrailers:
    """Tests for removing stack trailers."""

    def test_keeps_foreign_trailers(self) -> None:
        assert strip_trailers(REVIEWED) == "Subject\n\nBody text\n\nReviewed-by: X <x@y.com>"

    def test_removes_block_when_empty(self) -> None:
        message = "Subject\n\nBody\n\nStacker-Branch: a/1\nStacker-PR: 1"
        assert strip_trailers(message) == "Subject\n\nBody"

    def test_message_without_block_is_unchanged(self) -> None:
        assert strip_trailers("Subject\n\nBody") == "Subject\n\nBody"

    def test_set_then_strip_restores_message(self) -> None:
        message = "Subject\n\nBody text"
        assert strip_trailers(set_trailers(message, {"Stacker-PR": "9"})) == message


class TestStackTrailers:
    """Tests for the typed trailer view."""

    def test_known_keys_become_fields(self) -> None:
        trailers = StackTrailers.from_message(
            "Subject\n\nStacker-Branch: feat/2\nStacker-PR: #12\nStacker-Depends-On: base-feat")
        assert trailers.branch == "feat/2"
        assert trailers.pr == 12
        assert trailers.depends_on == "base-feat"
        assert trailers.passthrough == {}

    def test_malformed_pr_is_passed_through(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            trailers = StackTrailers.from_message("Subject\n\nStacker-PR: soon")
        assert trailers.pr is None
        assert trailers.passthrough == {"Stacker-PR": "soon"}
        assert "malformed" in caplog.text

    def test_unknown_stack_key_is_passed_through(self) -> None:
        trailers = StackTrailers.from_message("Subject\n\nStacker-Owner: me\nAcked-by: Y")
        assert trailers.passthrough == {"Stacker-Owner": "me", "Acked-by": "Y"}

    def test_apply_writes_set_fields(self) -> None:
        trailers = StackTrailers(branch="feat/1", pr=5)
        assert trailers.apply("Subject") == (
            f"Subject\n\n{TrailerKind.BRANCH.key}: feat/1\n{TrailerKind.PR.key}: 5")
