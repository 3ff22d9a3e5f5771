"""Stack workflows behind the CLI commands."""

import logging
from typing import List, Optional, Sequence, Tuple

import click

from ..config.models import StackerConfig
from ..errors import (
    BranchNameConflictError, ChangesRequestedError, CIFailedError, CIPendingError,
    DirtyWorkingTreeError, NoCommitsError, NoPRForCommitError, NoRemoteError, PRNotMergeableError,
    RebaseInProgressError, ReviewRequiredError, StackerError,
)
from ..github import CISummary, GitHubClient, ci_summary
from ..pretty import format_stack
from ..stack import build_stack, stack_warnings
from ..stack.body import compose_body
from ..stack.sync import sync_trailers
from ..trailers import filter_prefixed, parse_trailers, set_trailers, strip_trailers
from ..typing import GitInterface, MergeMethod, PRStatus, Stack, StackEntry

# Get module logger
logger = logging.getLogger(__name__)


class StackCommands:
    """Runs stack workflows against injected git and GitHub collaborators."""

    def __init__(self, config: StackerConfig, git_cmd: GitInterface,
                 github: Optional[GitHubClient] = None,
                 base: Optional[str] = None, head: str = "HEAD"):
        self.config = config
        self.git_cmd = git_cmd
        self.github = github
        self.base = base
        self.head = head

    @property
    def remote(self) -> str:
        return self.config.repo.remote

    @property
    def target(self) -> str:
        return self.config.repo.target

    def _require_github(self) -> GitHubClient:
        if self.github is None:
            raise StackerError("GitHub is not available for this command",
                               "Set GITHUB_TOKEN, or log in with `gh auth login`.")
        return self.github

    def validate_prerequisites(self, require_commits: bool = True, require_remote: bool = True,
                               require_clean: bool = False, allow_rebase: bool = False) -> None:
        """Fail before any mutation if the repository is not usable."""
        self.git_cmd.git_dir()
        if not allow_rebase and self.git_cmd.is_rebase_in_progress():
            raise RebaseInProgressError()
        if require_commits and not self.git_cmd.has_commits():
            raise NoCommitsError()
        if require_remote and not self.git_cmd.remote_exists(self.remote):
            raise NoRemoteError(self.remote)
        if require_clean and not self.git_cmd.is_working_tree_clean():
            raise DirtyWorkingTreeError()

    def _require_checked_out_head(self) -> None:
        if self.git_cmd.resolve_ref(self.head) != self.git_cmd.resolve_ref("HEAD"):
            raise StackerError(f"'{self.head}' is not the checked out commit",
                               "Check out the top of the stack before running this command.")

    def build(self, base: Optional[str] = None) -> Stack:
        logger.info("Building stack...")
        return build_stack(self.config, self.git_cmd, self.github,
                           base=base or self.base, head=self.head,
                           target=self.target, remote=self.remote)

    def check_local_branch_names(self, entries: Sequence[StackEntry]) -> None:
        """Fail if a local branch to be created would nest under an existing branch."""
        if not self.config.stack.create_local_branches:
            return
        for entry in entries:
            parts = entry.branch_name.split("/")
            for i in range(1, len(parts)):
                prefix = "/".join(parts[:i])
                if self.git_cmd.branch_exists(prefix):
                    raise BranchNameConflictError(entry.branch_name, prefix)

    def publish(self, entries: Sequence[StackEntry]) -> None:
        """Push each entry's commit to its branch, guarded by a lease."""
        for entry in entries:
            if self.config.stack.create_local_branches:
                self.git_cmd.create_branch(entry.branch_name, entry.commit.sha)
                self.git_cmd.push_branch(self.remote, entry.branch_name, force=True)
            else:
                self.git_cmd.push_branch(self.remote, entry.branch_name, force=True,
                                         sha=entry.commit.sha)

    def refresh_bodies(self, stack: Stack) -> None:
        """Rewrite the stack block of every PR description that changed."""
        github = self._require_github()
        for i, entry in enumerate(stack.entries):
            if entry.pr_number is None:
                continue
            existing = github.get_pull_request(entry.pr_number)
            body = compose_body(stack, i, existing.body)
            if body != existing.body:
                github.update_pull_request(entry.pr_number, body=body)

    # view

    def view(self) -> Stack:
        self.validate_prerequisites()
        stack = self.build()
        click.echo(format_stack(stack))
        for warning in stack_warnings(stack):
            click.secho(f"! {warning}", fg="yellow")
        return stack

    # submit

    def submit(self, draft: bool = False, reviewers: Optional[List[str]] = None,
               keep_body: bool = False, update_title: bool = False) -> Stack:
        """Create or update one PR per commit, then record PR numbers in trailers."""
        self.validate_prerequisites(require_clean=True)
        github = self._require_github()
        self._require_checked_out_head()

        stack = self.build()
        if not stack.entries:
            logger.warning("No commits found in stack range")
            return stack
        logger.info(f"Found {len(stack.entries)} commits in stack {stack.name}")
        if stack.depends_on:
            logger.info(f"Depends on stack: {stack.depends_on.stack_name}")
        reviewers = list(reviewers) if reviewers else list(self.config.repo.reviewers)
        self.check_local_branch_names(stack.entries)

        sync_trailers(stack, self.git_cmd)
        self.publish(stack.entries)

        created = False
        for i, entry in enumerate(stack.entries):
            subject = entry.commit.subject
            if entry.pr_number is None:
                info = github.create_pull_request(
                    head=entry.branch_name, base=entry.target_branch, title=subject,
                    body=compose_body(stack, i), draft=draft, reviewers=reviewers)
                entry.pr_number = info.number
                entry.pr_url = info.url
                created = True
                continue

            existing = github.get_pull_request(entry.pr_number)
            entry.pr_url = existing.url
            body = None if keep_body else compose_body(stack, i, existing.body)
            github.update_pull_request(
                entry.pr_number,
                title=subject if update_title and existing.title != subject else None,
                body=body if body != existing.body else None,
                base=entry.target_branch if existing.base_ref != entry.target_branch else None)

        if sync_trailers(stack, self.git_cmd):
            self.publish(stack.entries)
        if created and not keep_body:
            logger.info("Updating PR cross-links...")
            self.refresh_bodies(stack)

        click.secho(f"✓ Submitted {len(stack.entries)} PRs", fg="green")
        for i, entry in enumerate(stack.entries):
            click.echo(f"  {i + 1}. #{entry.pr_number} {entry.commit.short_sha} - "
                       f"{entry.commit.subject}  {entry.pr_url or ''}".rstrip())
        return stack

    # land

    def land(self, land_all: bool = False, dry_run: bool = False, force: bool = False,
             method: Optional[MergeMethod] = None) -> None:
        """Merge the bottom PR and restack the rest; with land_all, repeat until empty.

        Each iteration rebuilds the stack from scratch. If one fails, PRs
        landed by earlier iterations stay landed.
        """
        while True:
            remaining = self._land_bottom(dry_run, force, method)
            if not land_all or dry_run or remaining == 0:
                return
            logger.info("Landing next PR...")

    def check_landable(self, status: PRStatus, ci: CISummary, force: bool) -> None:
        """Raise unless the PR may be merged; force downgrades CI gates to warnings."""
        number = status.number
        if not status.mergeable:
            raise PRNotMergeableError(
                number, status.merge_state,
                "This could be due to merge conflicts, required reviews, or branch protection rules.")
        if status.review_decision == "CHANGES_REQUESTED":
            raise ChangesRequestedError(number)
        if status.review_decision == "REVIEW_REQUIRED":
            raise ReviewRequiredError(number)
        if ci.failing:
            if not force:
                raise CIFailedError(number, ci.failed_checks)
            checks = "\n".join(f"  - {c}" for c in ci.failed_checks)
            logger.warning(f"CI checks are failing:\n{checks}\nProceeding anyway due to --force.")
        if ci.pending:
            if not force:
                raise CIPendingError(number)
            logger.warning("CI checks are still running. Proceeding anyway due to --force.")

    def _print_dry_run(self, stack: Stack, status: PRStatus, ci: CISummary) -> None:
        bottom = stack.entries[0]
        click.echo("Dry run - would land:")
        click.echo(f"  PR #{bottom.pr_number}: {bottom.commit.subject}")
        click.echo(f"  Mergeable: {status.mergeable}")
        click.echo(f"  Review: {status.review_decision or 'none'}")
        click.echo(f"  State: {status.merge_state}")
        click.echo(f"  CI: {ci.describe()}")
        if len(stack.entries) > 1:
            click.echo(f"  Remaining: {len(stack.entries) - 1} PRs to rebase")

    def _merge_message(self, entry: StackEntry, method: MergeMethod) -> Tuple[Optional[str], Optional[str]]:
        """Title and body for the landed commit, free of stack trailers."""
        if method == "rebase":
            return None, None
        subject, _, body = strip_trailers(entry.commit.message).partition("\n")
        title = subject.strip()
        if method == "squash":
            title = f"{title} (#{entry.pr_number})"
        return title, body.strip()

    def _push_clean_commit(self, entry: StackEntry, branch: str) -> None:
        """Re-push entry's branch with the stack trailers removed from its commit."""
        cleaned = strip_trailers(entry.commit.message)
        if cleaned == entry.commit.message:
            return
        logger.info("Cleaning commit metadata...")
        self.git_cmd.checkout(entry.commit.sha, detach=True)
        try:
            self.git_cmd.amend_message(cleaned)
            self.git_cmd.push_branch(self.remote, entry.branch_name, force=True,
                                     sha=self.git_cmd.resolve_ref("HEAD"))
        finally:
            self.git_cmd.checkout(branch)

    def _land_bottom(self, dry_run: bool, force: bool, method: Optional[MergeMethod]) -> int:
        """Land the bottom entry. Returns the number of entries left."""
        self.validate_prerequisites(require_clean=not dry_run)
        github = self._require_github()

        stack = self.build()
        if not stack.entries:
            logger.warning("No PRs in stack to land")
            return 0
        bottom = stack.entries[0]
        if bottom.pr_number is None:
            raise NoPRForCommitError(bottom.commit.sha)
        number = bottom.pr_number

        logger.info(f"Checking PR #{number}...")
        status = github.get_pr_status(number)
        ci = ci_summary(status)
        if dry_run:
            self._print_dry_run(stack, status, ci)
            return len(stack.entries) - 1
        self.check_landable(status, ci, force)
        self.check_local_branch_names(stack.entries)
        self._require_checked_out_head()

        method = method or self.config.repo.merge_method
        landing = stack.landing_target()
        branch = self.git_cmd.current_branch()

        if method == "rebase":
            self._push_clean_commit(bottom, branch)
        title, body = self._merge_message(bottom, method)
        logger.info(f"Landing PR #{number}: {bottom.commit.subject}")
        github.merge_pull_request(number, method, delete_branch=True, title=title, body=body)
        click.secho(f"✓ Merged PR #{number}: {bottom.commit.subject}", fg="green")

        self.git_cmd.fetch(self.remote, landing)
        if len(stack.entries) == 1:
            return 0

        logger.info(f"Rebasing {len(stack.entries) - 1} remaining PRs...")
        self.git_cmd.rebase_onto(f"{self.remote}/{landing}", upstream=bottom.commit.sha)

        remaining = self.build(base=f"{self.remote}/{landing}")
        self.publish(remaining.entries)
        if remaining.entries and remaining.entries[0].pr_number is not None:
            github.update_pull_request(remaining.entries[0].pr_number,
                                       base=remaining.entries[0].target_branch)
        self.refresh_bodies(remaining)

        click.echo("Remaining PRs:")
        for entry in remaining.entries:
            pr = f"#{entry.pr_number}" if entry.pr_number else "(new)"
            click.echo(f"  {pr} - {entry.commit.subject}")
        return len(remaining.entries)

    # edit

    def edit(self, continue_rebase: bool = False, abort_rebase: bool = False) -> None:
        """Continue or abort a paused rewrite, or explain how to edit the stack."""
        in_progress = self.git_cmd.is_rebase_in_progress()
        if continue_rebase or abort_rebase:
            if not in_progress:
                logger.warning("No rebase in progress")
                return
            if continue_rebase:
                logger.info("Continuing rebase...")
                self.git_cmd.continue_rebase()
                click.secho("✓ Rebase continued successfully", fg="green")
            else:
                logger.info("Aborting rebase...")
                self.git_cmd.abort_rebase()
                click.secho("✓ Rebase aborted", fg="green")
            return

        self.validate_prerequisites()
        stack = self.build()
        if not stack.entries:
            logger.warning("No commits found in stack range")
            return
        click.echo(format_stack(stack))
        click.echo("")
        click.echo("To edit the stack, run:")
        click.echo(f"  git rebase -i {stack.base}")
        click.echo("Mark commits with 'edit', make your changes, then run:")
        click.echo("  stacker amend            # to amend the current commit")
        click.echo("  stacker edit --continue  # to continue the rebase")

    # amend

    def amend(self, message: Optional[str] = None, edit: bool = False) -> None:
        """Stage everything and amend HEAD, keeping its Stacker trailers.

        Allowed while a rebase is paused, since that is how a commit under
        ``edit`` gets changed.
        """
        self.validate_prerequisites(require_remote=False, allow_rebase=True)
        logger.info("Staging all changes...")
        self.git_cmd.stage_all()

        current = self.git_cmd.commit_message("HEAD")
        kept = filter_prefixed(parse_trailers(current))
        if message is None and edit:
            message = click.edit(strip_trailers(current) + "\n")
            if message is None:
                raise StackerError("Amend cancelled", "Save the message in your editor to amend.")

        if message is None:
            logger.info("Amending commit...")
            self.git_cmd.amend_no_edit()
        else:
            message = message.strip()
            if not message:
                raise StackerError("Aborting amend due to empty commit message")
            logger.info("Amending commit with new message...")
            self.git_cmd.amend_message(set_trailers(message, kept) if kept else message)

        click.secho("✓ Commit amended", fg="green")
        click.echo("Run 'stacker submit' to update the PR")
