"""Unit tests for the stack builder, using a scripted git accessor."""

from typing import Dict, List, Optional
from unittest.mock import MagicMock

from stacker.config import Config
from stacker.errors import CommitNotFoundError
from stacker.pretty import format_stack
from stacker.stack import (
    branch_name, build_stack, detect_dependency, extract_stack_name, stack_warnings,
)
from stacker.stack.sync import needs_sync, target_trailers
from stacker.typing import Commit

BASE_SHA = "b" * 40


def make_commit(sha_char: str, subject: str, trailers: Optional[Dict[str, str]] = None) -> Commit:
    trailers = trailers or {}
    body = "\n".join(f"{k}: {v}" for k, v in trailers.items())
    return Commit.from_strings(sha_char * 40, subject, body, trailers)


def scripted_git(commits: List[Commit], branch: str = "feature",
                 base_commit: Optional[Commit] = None) -> MagicMock:
    git_cmd = MagicMock()
    git_cmd.current_branch.return_value = branch
    git_cmd.merge_base.return_value = BASE_SHA
    git_cmd.resolve_ref.side_effect = lambda ref: ref if len(ref) == 40 else BASE_SHA
    git_cmd.commits_in_range.return_value = commits
    git_cmd.parse_commit.return_value = base_commit or Commit.from_strings(BASE_SHA, "Initial commit")
    return git_cmd


def make_config() -> Config:
    return Config({'repo': {'github_repo_owner': 'octo', 'github_repo_name': 'widgets'}})


class TestNames:
    """Tests for branch naming helpers."""

    def test_branch_name_from_template(self) -> None:
        assert branch_name("{stack}/{index}", "feature", 2) == "feature/2"
        assert branch_name("stack/{stack}-{index}", "x", 1) == "stack/x-1"

    def test_extract_stack_name(self) -> None:
        assert extract_stack_name("feature/3") == "feature"
        assert extract_stack_name("team/feature/12") == "team/feature"
        assert extract_stack_name("feature") == "feature"

    def test_extract_stack_name_with_custom_template(self) -> None:
        assert extract_stack_name("stacks/foo/2", "stacks/{stack}/{index}") == "foo"
        assert extract_stack_name("stack/x-y-3", "stack/{stack}-{index}") == "x-y"
        assert extract_stack_name("foo", "stacks/{stack}/{index}") == "foo"
        assert extract_stack_name("foo/2", "fixed-name") == "foo/2"


class TestBuildStack:
    """Tests for build_stack."""

    def test_three_new_commits(self) -> None:
        commits = [make_commit("1", "A"), make_commit("2", "B"), make_commit("3", "C")]
        git_cmd = scripted_git(commits)

        stack = build_stack(make_config(), git_cmd)

        assert stack.name == "feature"
        assert stack.base == BASE_SHA
        assert [e.branch_name for e in stack.entries] == ["feature/1", "feature/2", "feature/3"]
        assert [e.target_branch for e in stack.entries] == ["main", "feature/1", "feature/2"]
        assert all(e.pr_number is None for e in stack.entries)
        assert stack.depends_on is None
        assert needs_sync(stack)
        git_cmd.merge_base.assert_called_once_with("HEAD", "origin/main")

    def test_trailers_win_over_generated_names(self) -> None:
        commits = [
            make_commit("1", "A", {"Stacker-Branch": "renamed/7", "Stacker-PR": "41"}),
            make_commit("2", "B"),
        ]
        stack = build_stack(make_config(), scripted_git(commits))

        assert stack.entries[0].branch_name == "renamed/7"
        assert stack.entries[0].pr_number == 41
        assert stack.entries[0].pr_url == "https://github.com/octo/widgets/pull/41"
        assert stack.entries[1].target_branch == "renamed/7"

    def test_missing_pr_is_looked_up(self) -> None:
        github = MagicMock()
        github.find_pr_by_branch.side_effect = lambda branch: 9 if branch == "feature/2" else None
        commits = [make_commit("1", "A", {"Stacker-PR": "8"}), make_commit("2", "B")]

        stack = build_stack(make_config(), scripted_git(commits), github)

        assert [e.pr_number for e in stack.entries] == [8, 9]
        github.find_pr_by_branch.assert_called_once_with("feature/2")

    def test_dependency_on_other_stack(self) -> None:
        base_commit = Commit.from_strings(BASE_SHA, "Other top", "",
                                          {"Stacker-Branch": "other-feature/2", "Stacker-PR": "12"})
        git_cmd = scripted_git([make_commit("1", "A"), make_commit("2", "B")], base_commit=base_commit)

        stack = build_stack(make_config(), git_cmd, base="other-feature/2")

        dep = stack.depends_on
        assert dep is not None
        assert (dep.stack_name, dep.top_branch, dep.pr_number) == ("other-feature", "other-feature/2", 12)
        assert stack.entries[0].target_branch == "other-feature/2"
        assert stack.landing_target() == "other-feature/2"
        assert target_trailers(stack, 0)["Stacker-Depends-On"] == "other-feature"
        assert "Stacker-Depends-On" not in target_trailers(stack, 1)

    def test_own_stack_base_is_not_a_dependency(self) -> None:
        base_commit = Commit.from_strings(BASE_SHA, "Landed", "", {"Stacker-Branch": "feature/1"})
        git_cmd = scripted_git([make_commit("2", "B")], base_commit=base_commit)
        assert detect_dependency(git_cmd, BASE_SHA, "feature") is None

    def test_own_stack_base_with_custom_template(self) -> None:
        config = Config({'repo': {'github_repo_owner': 'octo', 'github_repo_name': 'widgets'},
                         'stack': {'branch_template': 'stacks/{stack}/{index}'}})
        base_commit = Commit.from_strings(BASE_SHA, "Landed", "", {"Stacker-Branch": "stacks/feature/1"})
        commits = [make_commit("2", "B", {"Stacker-Branch": "stacks/feature/2"})]
        git_cmd = scripted_git(commits, base_commit=base_commit)

        stack = build_stack(config, git_cmd)

        assert stack.depends_on is None
        assert stack.entries[0].branch_name == "stacks/feature/2"
        assert stack.entries[0].target_branch == "main"

    def test_unreadable_base_is_not_a_dependency(self) -> None:
        git_cmd = scripted_git([])
        git_cmd.parse_commit.side_effect = CommitNotFoundError(BASE_SHA)
        assert detect_dependency(git_cmd, BASE_SHA, "feature") is None

    def test_empty_range(self) -> None:
        stack = build_stack(make_config(), scripted_git([]))
        assert stack.entries == []
        assert stack.top_branch() == "main"
        assert stack_warnings(stack) == ["No commits in stack range"]

    def test_rebuild_of_synced_stack_is_stable(self) -> None:
        commits = [
            make_commit("1", "A", {"Stacker-Branch": "feature/1", "Stacker-PR": "1"}),
            make_commit("2", "B", {"Stacker-Branch": "feature/2", "Stacker-PR": "2"}),
        ]
        first = build_stack(make_config(), scripted_git(commits))
        second = build_stack(make_config(), scripted_git(commits))

        assert first.entries == second.entries
        assert not needs_sync(first)
        assert stack_warnings(first) == []

    def test_config_overrides(self) -> None:
        config = Config({'repo': {'remote': 'upstream', 'target': 'develop'},
                         'stack': {'branch_template': 'stack/{stack}-{index}'}})
        git_cmd = scripted_git([make_commit("1", "A")])

        stack = build_stack(config, git_cmd)

        git_cmd.merge_base.assert_called_once_with("HEAD", "upstream/develop")
        assert stack.entries[0].branch_name == "stack/feature-1"
        assert stack.entries[0].target_branch == "develop"
        assert stack.entries[0].pr_url is None


class TestFormatStack:
    """Tests for the view table."""

    def test_lists_top_entry_first(self) -> None:
        commits = [make_commit("1", "First change", {"Stacker-PR": "4"}), make_commit("2", "Second change")]
        text = format_stack(build_stack(make_config(), scripted_git(commits)))
        lines = text.splitlines()

        assert lines[0] == "Stack: feature (2 commits) → main"
        assert "Second change" in lines[3]
        assert "(new)" in lines[3]
        assert "#4" in lines[4]
