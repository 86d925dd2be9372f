"""Command-line interface for commitlog."""

import asyncio
import json
import logging
from pathlib import Path

import click
import polars as pl
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from commitlog.config import ProviderFamily, get_settings
from commitlog.provider_client import ProviderAPIError, SyncCancelledError
from commitlog.service import CommitLogService
from commitlog.sync import RECENT_WINDOWS
from commitlog.tokens import resolve_token

console = Console()

token_option = click.option(
    "--token", "-t", help="Access token (overrides the configured default)"
)


def _configure_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _service(ctx: click.Context) -> CommitLogService:
    """Service for the provider family chosen on the group."""
    return CommitLogService(ctx.obj["settings"], ctx.obj["provider"])


def _token(ctx: click.Context, token: str | None) -> str | None:
    """Resolve the --token flag over the configured default."""
    settings = ctx.obj["settings"]
    return resolve_token(token, settings.token_for(ctx.obj["provider"]))


def _run_sync(coro):
    """Run a sync coroutine, turning provider failures into exit status 1."""
    try:
        return asyncio.run(coro)
    except ProviderAPIError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1) from e
    except SyncCancelledError as e:
        console.print(f"[yellow]Cancelled: {e}[/yellow]")
        raise SystemExit(1) from e


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--provider",
    "-p",
    type=click.Choice([p.value for p in ProviderFamily]),
    default=None,
    help="Provider family (default from COMMITLOG_PROVIDER)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, provider: str | None) -> None:
    """Commit activity heatmaps from GitHub and GitLab."""
    settings = get_settings()
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["settings"] = settings
    ctx.obj["provider"] = ProviderFamily(provider) if provider else settings.provider
    _configure_logging("DEBUG" if verbose else settings.log_level)


@main.command()
@token_option
@click.pass_context
def fetch(ctx: click.Context, token: str | None) -> None:
    """Sync the last year of commits unless data is already cached.

    Examples:
        commitlog fetch                       # Token from COMMITLOG_GITHUB_TOKEN
        commitlog -p gitlab fetch -t glpat-x  # Explicit GitLab token
    """
    service = _service(ctx)
    result = _run_sync(service.fetch(_token(ctx, token)))

    if result.status == "cached":
        console.print("[green]Cached data found, nothing synced[/green]")
    else:
        console.print(f"[green]Synced {result.days} days with commits[/green]")


@main.command()
@token_option
@click.option(
    "--range",
    "-r",
    "window",
    type=click.Choice(list(RECENT_WINDOWS)),
    default="week",
    help="Recent window to re-sync",
)
@click.pass_context
def sync(ctx: click.Context, token: str | None, window: str) -> None:
    """Re-sync a recent window, even if data is cached.

    Examples:
        commitlog sync                # Last 7 days
        commitlog sync -r month       # Last 30 days
    """
    service = _service(ctx)
    result = _run_sync(service.sync_recent(_token(ctx, token), window))
    console.print(f"[green]Synced {result.days} days with commits (window: {window})[/green]")


@main.command()
@token_option
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "csv", "json"]),
    default="table",
)
@click.option("--output", "-o", type=click.Path(), help="Output file path")
@click.pass_context
def heatmap(
    ctx: click.Context, token: str | None, output_format: str, output: str | None
) -> None:
    """Show daily commit counts for the trailing year.

    Examples:
        commitlog heatmap                         # Active days in terminal
        commitlog heatmap -f csv -o heatmap.csv   # Every day, CSV export
    """
    service = _service(ctx)
    days = service.heatmap(_token(ctx, token))

    if not days:
        console.print("[yellow]No token given. Set one with --token.[/yellow]")
        return

    if output_format == "table":
        active = [d for d in days if d.count > 0]
        table = Table(title=f"Commits per day ({days[0].day} ~ {days[-1].day})")
        table.add_column("Date", style="cyan")
        table.add_column("Commits", justify="right")
        for d in active:
            table.add_row(d.day.isoformat(), str(d.count))
        console.print(table)
        console.print(
            f"{len(active)} active days, {sum(d.count for d in days)} commits in total"
        )
        return

    df = pl.DataFrame(
        {"date": [d.day for d in days], "count": [d.count for d in days]},
        schema={"date": pl.Date, "count": pl.Int64},
    )
    output_path = Path(output or f"reports/heatmap.{output_format}")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_format == "csv":
        df.write_csv(output_path)
    else:
        df.write_json(output_path)
    console.print(f"[green]Exported to {output_path}[/green]")


@main.command()
@token_option
@click.option("--project", help="Filter by repository (substring, case-insensitive)")
@click.option("--branch", help="Filter by branch (substring, case-insensitive)")
@click.option("--page", default=1, help="Page number")
@click.option("--size", default=20, help="Records per page")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def commits(
    ctx: click.Context,
    token: str | None,
    project: str | None,
    branch: str | None,
    page: int,
    size: int,
    as_json: bool,
) -> None:
    """List stored commits, newest first.

    Examples:
        commitlog commits --project widgets --branch main
        commitlog commits --page 2 --size 50
    """
    service = _service(ctx)
    result = service.commits(_token(ctx, token), project, branch, page, size)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title=f"Commits (page {result.page}, {result.total} total)")
    table.add_column("Committed", style="cyan")
    table.add_column("Repository", style="green")
    table.add_column("Branch")
    table.add_column("SHA")
    table.add_column("Author")
    table.add_column("Message")

    for record in result.records:
        table.add_row(
            record.committed_at,
            record.repository,
            record.branch or "",
            record.sha[:8],
            record.author or "",
            (record.message or "").splitlines()[0] if record.message else "",
        )

    console.print(table)


@main.command()
@token_option
@click.option("--details", is_flag=True, help="Show visibility and top language")
@click.pass_context
def projects(ctx: click.Context, token: str | None, details: bool) -> None:
    """List projects that have stored commits."""
    service = _service(ctx)
    resolved = _token(ctx, token)

    if details:
        infos = service.project_details(resolved)
        if not infos:
            console.print("[yellow]No data found. Run 'commitlog fetch' first.[/yellow]")
            return
        table = Table(title="Projects")
        table.add_column("Project", style="cyan")
        table.add_column("Visibility")
        table.add_column("Language", style="green")
        for info in infos:
            table.add_row(info.name, info.visibility, info.language or "")
        console.print(table)
        return

    names = service.projects(resolved)
    if not names:
        console.print("[yellow]No data found. Run 'commitlog fetch' first.[/yellow]")
        return
    for name in names:
        console.print(name)


@main.command()
@token_option
@click.option("--project", required=True, help="Exact repository name")
@click.pass_context
def branches(ctx: click.Context, token: str | None, project: str) -> None:
    """List branches of a project that have stored commits."""
    service = _service(ctx)
    names = service.branches(_token(ctx, token), project)

    if not names:
        console.print(f"[yellow]No branches found for {project}[/yellow]")
        return
    for name in names:
        console.print(name)


if __name__ == "__main__":
    main()
