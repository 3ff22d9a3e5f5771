"""Shared fixtures: a bare remote plus a working clone, and a fake GitHub."""

import os
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, List

import pytest

from stacker.commands import StackCommands
from stacker.config import Config
from stacker.git import RealGit
from stacker.github import GitHubClient
from stacker.tests.fake_github import FakeGithub, FakeRepo

logger = logging.getLogger(__name__)

OWNER = "octo"
REPO_NAME = "widgets"


def run_git(cwd: str, *args: str) -> str:
    """Run git in cwd and return stripped stdout."""
    logger.debug(f"Running: git {' '.join(args)}")
    result = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    return result.stdout.strip()


def make_config(**repo: object) -> Config:
    repo_section = {'github_repo_owner': OWNER, 'github_repo_name': REPO_NAME}
    repo_section.update(repo)
    return Config({'repo': repo_section, 'stack': {}, 'user': {}, 'tool': {}})


@dataclass
class RepoContext:
    """A working repository on branch ``feature`` with an ``origin`` bare remote."""
    path: str
    bare: str
    github: FakeGithub
    config: Config
    git_cmd: RealGit
    client: GitHubClient
    commands: StackCommands

    @property
    def fake_repo(self) -> FakeRepo:
        return self.github.get_repo(f"{OWNER}/{REPO_NAME}")

    def git(self, *args: str) -> str:
        return run_git(self.path, *args)

    def commit(self, subject: str, body: str = "") -> str:
        """Commit a new file named after the subject and return the sha."""
        filename = subject.lower().replace(" ", "_") + ".txt"
        Path(self.path, filename).write_text(f"{subject}\n")
        self.git("add", filename)
        message = f"{subject}\n\n{body}" if body else subject
        self.git("commit", "-q", "-m", message)
        return self.git("rev-parse", "HEAD")

    def messages(self, base: str = "origin/main") -> List[str]:
        """Full messages of base..HEAD, oldest first."""
        shas = self.git("rev-list", "--reverse", f"{base}..HEAD").split()
        return [self.git("log", "-1", "--format=%B", sha) for sha in shas]

    def remote_sha(self, branch: str) -> str:
        return run_git(self.bare, "rev-parse", f"refs/heads/{branch}")


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """The CLI reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def git_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate git from the user's configuration and identity."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("HOME", str(tmp_path))
    for var in ("STACKER_CONFIG", "GITHUB_TOKEN", "GH_TOKEN", "GH_CONFIG_DIR"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def repo_ctx(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, git_env: None) -> RepoContext:
    """Working clone with one commit on main, checked out on ``feature``."""
    bare = str(tmp_path / "remote.git")
    work = str(tmp_path / "work")
    run_git(str(tmp_path), "init", "-q", "--bare", "--initial-branch=main", bare)
    run_git(str(tmp_path), "init", "-q", "--initial-branch=main", work)
    run_git(work, "config", "commit.gpgsign", "false")
    run_git(work, "remote", "add", "origin", bare)
    Path(work, "README.md").write_text("# widgets\n")
    run_git(work, "add", "README.md")
    run_git(work, "commit", "-q", "-m", "Initial commit")
    run_git(work, "push", "-q", "-u", "origin", "main")
    run_git(work, "checkout", "-q", "-b", "feature")
    monkeypatch.chdir(work)

    github = FakeGithub(bare_path=bare)
    config = make_config()
    git_cmd = RealGit(config, path=work)
    client = GitHubClient(config, github)
    commands = StackCommands(config, git_cmd, client)
    return RepoContext(work, bare, github, config, git_cmd, client, commands)
