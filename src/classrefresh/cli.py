"""classrefresh CLI entry point."""

import asyncio
import importlib
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from classrefresh.config import RefreshConfig, load_config
from classrefresh.engine import RefreshEngine, RefreshReport, RefreshStatus
from classrefresh.errors import ConfigError, RefreshError
from classrefresh.identity import module_to_file
from classrefresh.runtime import PythonRuntime

console = Console()

STATUS_STYLES = {
    RefreshStatus.SUCCESS: "green",
    RefreshStatus.SKIPPED: "dim",
    RefreshStatus.FAILED_LOAD: "red",
    RefreshStatus.FAILED_RESOLUTION: "red",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def _load_settings(config_path: str | None) -> RefreshConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise SystemExit(1) from e


def _import_targets(modules: tuple[str, ...], paths: tuple[str, ...]) -> None:
    """Put ``paths`` on sys.path and import every module named on the command line."""
    for path in reversed(paths):
        resolved = str(Path(path).resolve())
        if resolved not in sys.path:
            sys.path.insert(0, resolved)

    for name in modules:
        try:
            importlib.import_module(name)
        except Exception as e:
            console.print(f"[red]✗[/red] Cannot import {name}: {escape(str(e))}")
            raise SystemExit(1) from e


def _build_engine(config: RefreshConfig) -> RefreshEngine:
    engine = PythonRuntime(config).create_engine()
    # The first pass only records the baseline
    engine.refresh()
    return engine


def print_report(report: RefreshReport) -> None:
    """Render one refresh pass as a table."""
    table = Table(title=f"Refresh at {report.timestamp.strftime('%H:%M:%S')}")
    table.add_column("Module", style="cyan")
    table.add_column("Status")
    table.add_column("Reloaded")
    table.add_column("Error", style="dim")

    for result in report.results:
        style = STATUS_STYLES[result.status]
        table.add_row(
            result.identity,
            f"[{style}]{result.status.value}[/{style}]",
            ", ".join(result.loaded) if result.loaded else "-",
            escape(result.error_message or ""),
        )

    console.print(table)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """classrefresh - dependency-aware live reload for Python modules."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("modules", nargs=-1, required=True)
@click.option("--path", "-p", "paths", multiple=True, default=["."], help="Directories to add to sys.path")
@click.option("--config", "-c", "config_path", type=click.Path(), help="classrefresh.toml or pyproject.toml")
@click.option("--interval", "-i", type=float, help="Seconds between scans")
@click.option("--debounce", "-d", type=float, help="Seconds edits must settle before reloading")
def watch(
    modules: tuple[str, ...],
    paths: tuple[str, ...],
    config_path: str | None,
    interval: float | None,
    debounce: float | None,
) -> None:
    """Import MODULES and reload them whenever their sources change."""
    from classrefresh.watch import ConfigWatcher, watch_loop

    config = _load_settings(config_path)
    _import_targets(modules, paths)
    engine = _build_engine(config)

    config_watcher = ConfigWatcher(config_path) if config_path else None
    poll_interval = interval if interval is not None else config.poll_interval
    debounce_seconds = debounce if debounce is not None else config.debounce_seconds

    console.print(
        f"[bold green]Watching {len(engine.tracker)} source files "
        f"(every {poll_interval}s)[/bold green]"
    )

    try:
        asyncio.run(
            watch_loop(
                engine,
                callback=print_report,
                poll_interval=poll_interval,
                debounce_seconds=debounce_seconds,
                config_watcher=config_watcher,
                config=config,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Watcher stopped[/yellow]")


@cli.command()
@click.argument("module")
@click.option("--path", "-p", "paths", multiple=True, default=["."], help="Directories to add to sys.path")
@click.option("--config", "-c", "config_path", type=click.Path(), help="classrefresh.toml or pyproject.toml")
def closure(module: str, paths: tuple[str, ...], config_path: str | None) -> None:
    """Show which modules reload together with MODULE."""
    config = _load_settings(config_path)
    _import_targets((module,), paths)
    engine = PythonRuntime(config).create_engine()

    try:
        names = engine.resolver.closure_of(module)
    except RefreshError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise SystemExit(1) from e

    table = Table(title=f"Closure of {module}")
    table.add_column("#", style="dim")
    table.add_column("Module", style="cyan")
    table.add_column("Loaded")

    for position, name in enumerate(names, start=1):
        loaded = module_to_file(name) in engine.files
        table.add_row(str(position), name, "[green]yes[/green]" if loaded else "[dim]no[/dim]")

    console.print(table)


@cli.command()
@click.argument("modules", nargs=-1, required=True)
@click.option("--path", "-p", "paths", multiple=True, default=["."], help="Directories to add to sys.path")
@click.option("--config", "-c", "config_path", type=click.Path(), help="classrefresh.toml or pyproject.toml")
def scan(modules: tuple[str, ...], paths: tuple[str, ...], config_path: str | None) -> None:
    """Import MODULES and list the source files that would be tracked."""
    config = _load_settings(config_path)
    _import_targets(modules, paths)
    engine = _build_engine(config)

    tracked = engine.tracker.tracked()
    if not tracked:
        console.print("[yellow]No source files in scope[/yellow]")
        return

    table = Table(title="Tracked source files")
    table.add_column("Key", style="cyan")
    table.add_column("Size")
    table.add_column("Modified (ns)", style="dim")

    for key, fingerprint in sorted(tracked.items()):
        table.add_row(key, str(fingerprint.size), str(fingerprint.mtime_ns))

    console.print(table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
