"""CLI entry point."""

import os
import sys
import functools
import logging
import traceback
from typing import Any, Callable, Dict, List, Literal, Optional, TypeVar, cast

import click
from click import Context

from ... import __version__, setup_logging
from ...commands import StackCommands
from ...config import Config, default_config
from ...config.config_parser import parse_config
from ...errors import GitHubTokenError, StackerError
from ...git import RealGit
from ...github import GitHubClient, create_github_client

# Get module logger
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])
GitHubMode = Literal['required', 'optional', 'none']


class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None,
                 **attrs: Any) -> None:
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def get_command(self, ctx: Context, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases."""
        if cmd_name in self.aliases:
            cmd_name = self.aliases[cmd_name]
        return super().get_command(ctx, cmd_name)


def handle_error(err: BaseException, verbose: int = 0) -> None:
    """Print an error for the user and exit with status 1."""
    if isinstance(err, StackerError):
        click.secho(f"✗ {err.user_message}", fg="red", err=True)
        if err.suggestion:
            click.echo(f"  {err.suggestion}", err=True)
        if verbose and err.cause is not None:
            click.echo("", err=True)
            for line in str(err.cause).strip().splitlines():
                click.echo(f"  {line}", err=True)
    else:
        click.secho(f"✗ {err}", fg="red", err=True)
        if verbose:
            click.echo("", err=True)
            click.echo("".join(traceback.format_exception(type(err), err, err.__traceback__)), err=True)
    sys.exit(1)


def reports_errors(f: F) -> F:
    """Route exceptions from a command through handle_error."""
    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except (click.exceptions.ClickException, click.exceptions.Exit, click.exceptions.Abort):
            raise
        except Exception as e:
            handle_error(e, click.get_current_context().obj.get('verbose', 0))
    return cast(F, wrapper)


def setup_stack(ctx: Context, github_mode: GitHubMode = 'required') -> StackCommands:
    """Load config once and wire the collaborators for a command."""
    obj = ctx.obj
    if obj.get('directory'):
        os.chdir(obj['directory'])

    git_cmd = RealGit(default_config())
    git_cmd.git_dir()
    config = Config(parse_config(git_cmd, obj.get('overrides')))
    git_cmd = RealGit(config)

    github: Optional[GitHubClient] = None
    factory: Callable[[Config], GitHubClient] = obj.get('github_factory') or create_github_client
    if github_mode == 'required':
        github = factory(config)
    elif github_mode == 'optional':
        try:
            github = factory(config)
        except GitHubTokenError:
            logger.debug("No GitHub token; PR lookups are skipped")

    return StackCommands(config, git_cmd, github, base=obj.get('base'), head=obj.get('head') or "HEAD")


@click.group(cls=AliasedGroup)
@click.version_option(version=__version__, prog_name="stacker")
@click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
              help='Run as if stacker was started in DIRECTORY instead of the current working directory')
@click.option('-R', '--remote', help="Remote name (default: repo.remote, origin)")
@click.option('-T', '--target', help="Target branch on the remote (default: repo.target, main)")
@click.option('-B', '--base', help="Base branch/commit (defaults to merge-base with target)")
@click.option('-H', '--head', default="HEAD", show_default=True, help="Head commit")
@click.option('-v', '--verbose', count=True,
              help="Increase verbosity: -v shows error causes, -vv enables debug logging")
@click.pass_context
def cli(ctx: Context, directory: Optional[str], remote: Optional[str], target: Optional[str],
        base: Optional[str], head: str, verbose: int) -> None:
    """Stacker - stacked pull requests on GitHub."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.update({
        'directory': directory,
        'base': base,
        'head': head,
        'verbose': verbose,
        'overrides': {'repo': {'remote': remote, 'target': target}},
    })


@cli.command(name="view", help="View the current stack of commits and PRs")
@click.pass_context
@reports_errors
def view(ctx: Context) -> None:
    setup_stack(ctx, 'optional').view()


@cli.command(name="submit", help="Create or update PRs for the current stack")
@click.option('-d', '--draft', is_flag=True, help="Create PRs as drafts")
@click.option('-r', '--reviewer', multiple=True,
              help="Reviewer for new PRs; repeat or separate with commas (default: repo.reviewers)")
@click.option('--keep-body', is_flag=True, help="Leave existing PR descriptions untouched")
@click.option('--update-title', is_flag=True, help="Update PR titles from commit subjects")
@click.pass_context
@reports_errors
def submit(ctx: Context, draft: bool, reviewer: List[str], keep_body: bool, update_title: bool) -> None:
    reviewers = [r.strip() for value in reviewer for r in value.split(",") if r.strip()]
    setup_stack(ctx).submit(draft=draft, reviewers=reviewers or None,
                            keep_body=keep_body, update_title=update_title)


@cli.command(name="land", help="Merge the bottom PR and rebase the remaining stack")
@click.option('--all', 'land_all', is_flag=True, help="Land all PRs in sequence")
@click.option('--dry-run', is_flag=True, help="Show what would be landed without making changes")
@click.option('-f', '--force', is_flag=True, help="Land even if CI checks are failing or pending")
@click.option('--method', type=click.Choice(['squash', 'merge', 'rebase']),
              help="Merge method (default: repo.merge_method)")
@click.pass_context
@reports_errors
def land(ctx: Context, land_all: bool, dry_run: bool, force: bool, method: Optional[str]) -> None:
    setup_stack(ctx).land(land_all=land_all, dry_run=dry_run, force=force,
                          method=method)  # type: ignore[arg-type]


@cli.command(name="edit", help="Edit commits in the stack, or continue/abort a paused rewrite")
@click.option('--continue', 'continue_rebase', is_flag=True, help="Continue an in-progress rebase")
@click.option('--abort', 'abort_rebase', is_flag=True, help="Abort an in-progress rebase")
@click.pass_context
@reports_errors
def edit(ctx: Context, continue_rebase: bool, abort_rebase: bool) -> None:
    if continue_rebase and abort_rebase:
        raise click.UsageError("--continue and --abort are mutually exclusive")
    setup_stack(ctx, 'none').edit(continue_rebase=continue_rebase, abort_rebase=abort_rebase)


@cli.command(name="amend", help="Stage all changes and amend the current commit")
@click.option('-m', '--message', help="New commit message (Stacker trailers are kept)")
@click.option('--edit', 'edit_message', is_flag=True, help="Open an editor for the commit message")
@click.pass_context
@reports_errors
def amend(ctx: Context, message: Optional[str], edit_message: bool) -> None:
    setup_stack(ctx, 'none').amend(message=message, edit=edit_message)


cli.aliases["ls"] = "view"
cli.aliases["up"] = "submit"


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
