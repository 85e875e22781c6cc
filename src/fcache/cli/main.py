"""Main CLI entry point for fcache.

Provides command-line inspection and cleanup of cache directories.
"""

import sys
from datetime import timedelta
from pathlib import Path
from typing import Iterator, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from fcache.cache import FileCache
from fcache.config import CacheConfig
from fcache.errors import CacheSystemTimeError, PathTraversalError
from fcache.paths import remove_and_prune
from fcache.validation import (
    NEVER_EXPIRES,
    get_modified_time,
    get_ttl_remaining,
    get_valid_until,
)

# Global console for Rich output
console = Console()


def find_cache_dir(ctx_dir: Optional[str] = None, allow_cwd: bool = True) -> Path:
    """Find cache directory from multiple sources.

    Priority:
    1. Explicit --dir/-C flag
    2. FCACHE_DIR environment variable
    3. Current working directory (read-only commands only)

    Args:
        ctx_dir: Cache directory from CLI context
        allow_cwd: Whether to fall back to the current directory

    Returns:
        Path to cache directory

    Raises:
        click.ClickException: If the directory cannot be found
    """
    if ctx_dir:
        path = Path(ctx_dir)
        if path.is_dir():
            return path
        raise click.ClickException(f"Cache directory not found: {ctx_dir}")

    env_dir = CacheConfig.from_env().cache_dir
    if env_dir:
        if env_dir.is_dir():
            return env_dir
        raise click.ClickException(
            f"Cache directory not found (from FCACHE_DIR): {env_dir}"
        )

    if not allow_cwd:
        raise click.ClickException(
            "No cache directory given: use --dir/-C or set FCACHE_DIR"
        )
    return Path.cwd()


def open_cache(ctx, allow_cwd: bool = True) -> FileCache:
    cache = FileCache.with_directory(find_cache_dir(ctx.obj.get("dir"), allow_cwd))
    refresh_interval = ctx.obj.get("refresh_interval")
    if refresh_interval is None:
        refresh_interval = CacheConfig.from_env().refresh_interval
    return cache.with_refresh_interval(refresh_interval)


def iter_cache_files(root: Path) -> Iterator[Path]:
    """Yield every regular file below ``root`` in sorted order."""
    for path in sorted(root.rglob("*")):
        if path.is_file():
            yield path


def file_status(
    path: Path, refresh_interval: timedelta
) -> Tuple[str, Optional[timedelta]]:
    """Classify a cached file as valid, stale or future.

    Files modified after the current time (clock skew, copies from other
    machines) are reported as ``"future"`` and have no remaining time.

    Returns:
        Status name and remaining time until the file becomes stale
    """
    try:
        remaining = get_ttl_remaining(path, refresh_interval)
    except CacheSystemTimeError:
        return "future", None
    return ("valid" if remaining > timedelta(0) else "stale"), remaining


def format_remaining(remaining: Optional[timedelta]) -> str:
    if remaining is None:
        return "-"
    if remaining >= NEVER_EXPIRES - timedelta(days=1):
        return "never"
    return f"{int(remaining.total_seconds())}s"


def format_filesize(size_bytes: int) -> str:
    """Format file size in bytes to human-readable string.

    Examples:
        >>> format_filesize(1024)
        '1.0 KB'
    """
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    return f"{size:.1f} {units[unit_index]}"


@click.group()
@click.option(
    "--dir",
    "-C",
    "cache_dir",
    type=click.Path(),
    help=(
        "Cache directory (default: FCACHE_DIR env var, or the current "
        "directory for info and list; rm and prune require one of the two)"
    ),
)
@click.option(
    "--refresh-interval",
    "-r",
    type=float,
    help="Refresh interval in seconds (default: FCACHE_REFRESH_INTERVAL or 5)",
)
@click.pass_context
def cli(ctx, cache_dir, refresh_interval):
    """fcache CLI - Inspect and clean up file cache directories.

    Use --dir/-C to specify the cache directory, or set FCACHE_DIR environment variable.
    """
    ctx.ensure_object(dict)
    ctx.obj["dir"] = cache_dir
    ctx.obj["refresh_interval"] = refresh_interval


@cli.command("info")
@click.pass_context
def info(ctx):
    """Show the cache directory, refresh interval and usage.

    Example:
        fcache -C ~/.cache/reports info
    """
    try:
        cache = open_cache(ctx)
        files = list(iter_cache_files(cache.path))
        total = sum(path.stat().st_size for path in files)

        console.print(f"[bold]Cache directory:[/bold] {cache.path}")
        console.print(
            f"[bold]Refresh interval:[/bold] {cache.refresh_interval.total_seconds():g}s"
        )
        console.print(f"[bold]Files:[/bold] {len(files)}")
        console.print(f"[bold]Total size:[/bold] {format_filesize(total)}")

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("list")
@click.option("--stale", is_flag=True, help="Only show stale files")
@click.pass_context
def list_files(ctx, stale):
    """List cached files with their validity.

    Example:
        fcache list
        fcache -r 60 list --stale
    """
    try:
        cache = open_cache(ctx)
        interval = cache.refresh_interval

        rows = []
        for path in iter_cache_files(cache.path):
            status, remaining = file_status(path, interval)
            if stale and status != "stale":
                continue
            rows.append((path, status, remaining))

        if not rows:
            console.print("[yellow]No cached files found[/yellow]")
            return

        table = Table(title=f"Cached files ({len(rows)})")
        table.add_column("Path", style="cyan", no_wrap=True)
        table.add_column("Size", justify="right", style="green")
        table.add_column("Modified", style="blue")
        table.add_column("Valid until", style="blue")
        table.add_column("Remaining", justify="right", no_wrap=True)
        table.add_column("Status", no_wrap=True)

        status_styles = {"valid": "green", "stale": "yellow", "future": "magenta"}
        for path, status, remaining in rows:
            modified = get_modified_time(path).astimezone()
            valid_until = get_valid_until(path, interval)
            style = status_styles[status]
            table.add_row(
                path.relative_to(cache.path).as_posix(),
                format_filesize(path.stat().st_size),
                modified.strftime("%Y-%m-%d %H:%M:%S"),
                valid_until.strftime("%Y-%m-%d %H:%M:%S"),
                format_remaining(remaining),
                f"[{style}]{status}[/{style}]",
            )

        console.print(table)

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("rm")
@click.argument("path")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def remove(ctx, path, yes):
    """Remove a cached file and the directories it leaves empty.

    Example:
        fcache rm reports/daily.csv -y
    """
    try:
        cache = open_cache(ctx, allow_cwd=False)
        target = (cache.path / path).resolve()
        if not target.is_relative_to(cache.path):
            raise PathTraversalError(target, cache.path)
        if not target.is_file():
            console.print(f"[red]✗[/red] File '{path}' not found", style="red")
            sys.exit(1)

        if not yes:
            if not click.confirm(f"Remove '{path}'?"):
                console.print("[yellow]Cancelled[/yellow]")
                return

        remove_and_prune(target, cache.path)
        console.print(f"[green]✓[/green] Removed '{path}'")

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("prune")
@click.option(
    "--dry-run", is_flag=True, help="Show what would be removed without removing"
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def prune(ctx, dry_run, yes):
    """Remove stale files (garbage collection).

    Files with a modification time in the future are kept.

    Example:
        fcache -C ~/.cache/app prune --dry-run
        fcache -C ~/.cache/app -r 3600 prune -y
    """
    try:
        cache = open_cache(ctx, allow_cwd=False)
        stale = [
            path
            for path in iter_cache_files(cache.path)
            if file_status(path, cache.refresh_interval)[0] == "stale"
        ]

        if not stale:
            console.print("[green]No stale files found[/green]")
            return

        names = [path.relative_to(cache.path).as_posix() for path in stale]
        if dry_run:
            console.print(f"[yellow]Would remove {len(stale)} stale file(s):[/yellow]")
            for name in names[:10]:
                console.print(f"  • {name}")
            if len(names) > 10:
                console.print(f"  ... and {len(names) - 10} more")
            return

        if not yes:
            if not click.confirm(f"Remove {len(stale)} stale file(s)?"):
                console.print("[yellow]Cancelled[/yellow]")
                return

        for path in stale:
            remove_and_prune(path, cache.path)
        console.print(f"[green]✓[/green] Removed {len(stale)} stale file(s)")

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


if __name__ == "__main__":
    cli()
