"""Typer-based CLI for ImpactGraph change-impact analysis."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .cli_watch import watch_app
from .config_manager import RunOptions, load_run_options
from .diff_engine import summarize
from .errors import ConfigLoadError, PersistenceError
from .graph import roots
from .graph_export import export_dot, export_html
from .models import DiffEntry, ImpactReport
from .orchestrator import ImpactAnalyzer, RunResult

console = Console()

app = typer.Typer(
    help="ImpactGraph CLI: find which exports of a JS/TS/Vue project a change reaches.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register watch mode
app.add_typer(watch_app, name="watch")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"ImpactGraph CLI v{__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log per-file progress."),
):
    """ImpactGraph CLI: declaration-level impact analysis for JS/TS/Vue projects."""
    configure_logging(verbose)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _options(project_root: Path, **overrides) -> RunOptions:
    try:
        return load_run_options(project_root, **overrides)
    except ConfigLoadError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)


def _rel(path: str, root: Path) -> str:
    try:
        return os.path.relpath(path, str(root))
    except ValueError:
        return path


def _report_table(report: ImpactReport, root: Path) -> Table:
    table = Table(title="Impact", show_lines=False)
    table.add_column("Changed file", style="cyan")
    table.add_column("Impact chain")
    table.add_column("Declarations", style="green")
    for result in report:
        if not result.effect_paths:
            table.add_row(_rel(result.path, root), "[dim]no impact[/dim]", "")
            continue
        for chain in result.effect_paths:
            table.add_row(
                _rel(result.path, root),
                " → ".join(_rel(p, root) for p in chain.paths),
                ", ".join(chain.declarations),
            )
    return table


def _print_report(report: ImpactReport, root: Path, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps([r.to_dict() for r in report], indent=2))
        return
    if not report:
        console.print("[yellow]No impact recorded.[/yellow]")
        return
    console.print(_report_table(report, root))


def _run(analyzer: ImpactAnalyzer, modified: Optional[List[str]] = None) -> RunResult:
    """Run the analyzer, turning pipeline errors into exit codes."""
    try:
        if modified is None:
            return analyzer.run_full()
        return analyzer.run_incremental(modified)
    except ConfigLoadError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    except PersistenceError as exc:
        console.print(f"[red]✗[/red] {exc}")
        if exc.result is not None and exc.result.report:
            console.print(_report_table(exc.result.report, analyzer.options.project_root))
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

@app.command("analyze")
def analyze(
    project_root: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
    parallel: Optional[bool] = typer.Option(None, "--parallel/--sequential", help="Analyze files in worker processes."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Number of worker processes."),
):
    """Run a full analysis and save the snapshot.

    Example:
      ig analyze ./web
      ig analyze ./web --parallel --workers 4
    """
    options = _options(project_root, parallel=parallel, workers=workers)
    result = _run(ImpactAnalyzer(options))

    records = result.snapshot.values()
    composite = sum(1 for r in records if r.is_composite)
    declarations = sum(len(r.declarations) for r in records)
    exported = sum(len(r.exported()) for r in records)
    imported = sum(len(r.imported()) for r in records)
    console.print(f"[green]✓[/green] Analyzed {len(result.snapshot)} files ({composite} Vue)")
    console.print(f"  Declarations: {declarations} ({exported} exported, {imported} imports)")
    console.print(f"  Entry points: {len(roots(result.snapshot))}")
    console.print(f"  Snapshot:     {options.analyze_path}")


@app.command("impact")
def impact(
    project_root: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root."),
    files: List[str] = typer.Argument(..., help="Modified files (absolute or relative to the project root)."),
    parallel: Optional[bool] = typer.Option(None, "--parallel/--sequential", help="Analyze files in worker processes."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Number of worker processes."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
):
    """Re-analyze modified files and show which exports they impact.

    Example:
      ig impact ./web src/utils/date.ts
      ig impact ./web src/App.vue --json
    """
    options = _options(project_root, parallel=parallel, workers=workers)
    result = _run(ImpactAnalyzer(options), files)
    _print_report(result.report, options.project_root, as_json)


@app.command("diff")
def diff(
    project_root: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root."),
    file: str = typer.Argument(..., help="File to compare against the saved snapshot."),
):
    """Show declaration changes of a file since the last run, without saving."""
    options = _options(project_root)
    analyzer = ImpactAnalyzer(options)
    try:
        entries: List[DiffEntry] = analyzer.preview_diff(file)
    except (ConfigLoadError, PersistenceError) as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)

    if not entries:
        console.print("[dim]No declaration changes.[/dim]")
        return

    colors: Dict[str, str] = {"add": "green", "change": "yellow", "remove": "red"}
    table = Table(title=f"Changes in {file}")
    table.add_column("Declaration", style="cyan")
    table.add_column("Kind")
    table.add_column("Exported")
    table.add_column("Change")
    for entry in entries:
        color = colors[entry.diff_type]
        table.add_row(
            entry.name,
            entry.declaration.kind,
            "yes" if entry.declaration.is_exported else "",
            f"[{color}]{entry.diff_type}[/{color}]",
        )
    console.print(table)
    counts = summarize(entries)
    console.print(f"  {counts['add']} added, {counts['change']} changed, {counts['remove']} removed")


@app.command("show")
def show(
    project_root: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
):
    """Print the impact report saved by the last incremental run."""
    options = _options(project_root)
    try:
        report = ImpactAnalyzer(options).store.load_report()
    except PersistenceError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    _print_report(report, options.project_root, as_json)


@app.command("export")
def export_graph(
    project_root: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
    format: str = typer.Option("html", "--format", "-f", help="Export format: dot or html."),
    output: Path = typer.Option(..., "--output", "-o", help="Output file path."),
    focus: str = typer.Option("", "--focus", help="Only files whose path contains this text, plus their neighbours."),
):
    """Export the file dependency graph, highlighting the last impact report."""
    fmt = format.lower()
    if fmt not in {"dot", "html"}:
        raise typer.BadParameter("Format must be one of: dot, html")

    options = _options(project_root)
    store = ImpactAnalyzer(options).store
    try:
        if not store.has_snapshot():
            console.print("[red]✗[/red] No snapshot found. Run 'ig analyze' first.")
            raise typer.Exit(1)
        snapshot = store.load_snapshot()
        report = store.load_report()
    except PersistenceError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)

    if fmt == "dot":
        export_dot(snapshot, output, focus=focus, report=report, project_root=options.project_root)
    else:
        export_html(snapshot, output, focus=focus, report=report, project_root=options.project_root)
    console.print(f"[green]✓[/green] Exported {fmt.upper()} to {output}")


if __name__ == "__main__":
    app()
