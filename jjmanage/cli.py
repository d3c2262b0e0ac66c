"""
jj-manage CLI - manage a tree of jj checkouts laid out as forge/user/repo.

Commands:
1. get: clone a repository into the managed tree
2. list: print the path of every managed repository
3. resolve: print the path of one repository given its name
4. update: run `jj git fetch` in every (matching) repository concurrently
5. config: show the effective configuration
"""

import asyncio
from typing import List, Optional

import tomli_w
import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console

from jjmanage import __version__
from jjmanage.config import ConfigManager
from jjmanage.pipeline import RefreshPipeline
from jjmanage.repository import RepositoryManager
from jjmanage.schemas import Config, RefreshSummary, SelectionCriteria
from jjmanage.utils import configure_logging

load_dotenv(find_dotenv(usecwd=True))

app = typer.Typer(
    name="jj-manage",
    help="Manage a tree of jj repositories organized by forge/user/repo",
    add_completion=False,
)

console = Console()


def _fail(e: Exception) -> None:
    console.print(f"[red]❌ Error: {e}[/red]")
    raise typer.Exit(1)


def _load_config() -> Config:
    try:
        return ConfigManager().load()
    except Exception as e:
        _fail(e)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging"),
):
    """Manage a tree of jj repositories organized by forge/user/repo."""
    configure_logging(verbose=verbose)


@app.command()
def get(
    repo: str = typer.Argument(..., help="Repository as user/repo, or a bare name owned by the configured user"),
    forge: Optional[str] = typer.Option(None, "--forge", "-f", help="Forge to clone from (default: config default-forge)"),
    https: bool = typer.Option(False, "--https", help="Force cloning with https. Overrides the config value `get.clone-kind`."),
    ssh: bool = typer.Option(False, "--ssh", help="Force cloning with ssh. Overrides the config value `get.clone-kind`."),
):
    """
    Clone a repository into <root>/<forge>/<user>/<repo>.
    """
    config = _load_config()

    try:
        target = RepositoryManager(config).clone_repository(repo, forge=forge, https=https, ssh=ssh)
    except Exception as e:
        _fail(e)

    console.print(f"[green]✅ Cloned into[/green] [cyan]{target}[/cyan]")


@app.command("list")
def list_repos():
    """Print the path of every managed repository."""
    config = _load_config()

    try:
        repos = RepositoryManager(config).list_repositories()
    except Exception as e:
        _fail(e)

    for path in repos:
        typer.echo(str(path))


@app.command()
def resolve(
    target: str = typer.Argument(..., help="Repository name, optionally prefixed with a user or forge/user path"),
    long: bool = typer.Option(False, "--long", "-l", help="Print absolute paths"),
):
    """
    Print the path to a repo given its name.

    If there is exactly one match, print it. Otherwise, fail.

    If the name contains no path separators, it is matched against the
    repository name and then every other path segment.
    """
    config = _load_config()

    try:
        path = RepositoryManager(config).resolve(target, long=long)
    except Exception as e:
        _fail(e)

    typer.echo(str(path))


@app.command()
def update(
    forge: Optional[List[str]] = typer.Option(None, "--forge", "-f", help="Only update repositories on this forge"),
    user: Optional[List[str]] = typer.Option(None, "--user", "-u", help="Only update repositories of this user"),
    repo: Optional[List[str]] = typer.Option(None, "--repo", "-r", help="Only update repositories with this name"),
):
    """
    Run `jj git fetch` in all repositories.

    If any of forge, user, or repo are passed, only matching repositories are
    updated. Multiple filters of the same level are ORed together, while
    separate levels are ANDed.
    """
    config = _load_config()
    criteria = SelectionCriteria.build(forges=forge, users=user, repos=repo)

    try:
        pipeline = RefreshPipeline(config.root(), criteria)
        summary = asyncio.run(pipeline.run())
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Update interrupted by user[/yellow]")
        raise typer.Exit(1)
    except Exception as e:
        _fail(e)

    _print_summary(summary)


def _print_summary(summary: RefreshSummary) -> None:
    if summary.selected == 0:
        console.print("[yellow]No repositories matched[/yellow]")
        return

    if summary.spawned == 0:
        console.print(f"[yellow]⚠️  No repositories updated ({summary.selected} selected, none could be started)[/yellow]")
        return

    failed = summary.failed
    console.print(
        f"[bold]📊 Updated[/bold] [green]{summary.spawned - len(failed)}[/green]/{summary.selected}"
        + (f", [red]{len(failed)} failed[/red]" if failed else "")
    )
    for result in failed:
        console.print(f"   • [red]{result.name}[/red] (exit status {result.returncode})")


@app.command("config")
def show_config():
    """Show the effective configuration."""
    config = _load_config()
    typer.echo(tomli_w.dumps(config.model_dump(by_alias=True, mode="json")))


@app.command()
def version():
    """Show the version of jj-manage."""
    console.print(f"[bold cyan]jj-manage[/bold cyan] v{__version__}")


if __name__ == "__main__":
    app()
