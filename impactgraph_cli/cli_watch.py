"""Watch mode: re-run incremental impact analysis on file changes."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set

import typer
from rich.console import Console

from .config import DEFAULT_EXCLUDE_DIRS

console = Console()

watch_app = typer.Typer(help="👀 Watch mode for incremental impact analysis")

WATCHED_EVENTS = {"created", "modified", "deleted", "moved"}


class ChangeCollector:
    """Collect changed paths and hand them over in debounced batches.

    ``add`` runs on the observer thread and ``flush`` on the main loop, so
    the pending set and timestamp are only touched under ``_lock``.
    """

    def __init__(
        self,
        on_batch: Callable[[List[str]], None],
        extensions: Sequence[str],
        exclude_dirs: Sequence[str] = DEFAULT_EXCLUDE_DIRS,
        debounce_seconds: float = 2.0,
    ):
        self.on_batch = on_batch
        self.extensions = list(extensions)
        self.exclude_dirs = set(exclude_dirs)
        self.debounce_seconds = debounce_seconds
        self.last_change = 0.0
        self._pending: Set[str] = set()
        self._lock = threading.Lock()

    def add(self, src_path: str, now: Optional[float] = None) -> bool:
        """Queue *src_path* if it is an analyzed file outside excluded dirs."""
        file_path = Path(src_path)
        if not any(file_path.name.endswith(ext) for ext in self.extensions):
            return False
        if any(part in self.exclude_dirs for part in file_path.parts):
            return False
        with self._lock:
            self._pending.add(str(file_path))
            self.last_change = time.time() if now is None else now
        return True

    def flush(self, now: Optional[float] = None) -> List[str]:
        """Run the callback once the last change is older than the debounce window."""
        current = time.time() if now is None else now
        with self._lock:
            if not self._pending or current - self.last_change < self.debounce_seconds:
                return []
            taken, self._pending = self._pending, set()
        files = sorted(taken)
        self.on_batch(files)
        return files


@watch_app.command("start")
def watch(
    path: Path = typer.Argument(Path("."), help="Project root to watch."),
    interval: float = typer.Option(2.0, "--interval", "-i", help="Debounce interval in seconds."),
    parallel: bool = typer.Option(False, "--parallel", help="Analyze changed files in worker processes."),
):
    """👀 Watch mode: rerun impact analysis when files change.

    Needs a snapshot from 'ig analyze'. Each batch of changes is analyzed
    incrementally and the snapshot and report are updated.

    Example:
      ig watch start ./web
      ig watch start ./web --interval 5
    """
    try:
        from watchdog.events import FileSystemEventHandler
        from watchdog.observers import Observer
    except ImportError:
        console.print("[red]✗[/red] watchdog is not installed.")
        console.print("[dim]Install with: pip install watchdog[/dim]")
        raise typer.Exit(1)

    from .config_manager import load_run_options
    from .errors import ConfigLoadError, PersistenceError
    from .orchestrator import ImpactAnalyzer

    watch_path = path.resolve()
    if not watch_path.is_dir():
        console.print(f"[red]✗[/red] Path not found: {path}")
        raise typer.Exit(1)

    try:
        options = load_run_options(watch_path, parallel=parallel)
    except ConfigLoadError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)

    analyzer = ImpactAnalyzer(options)
    if not analyzer.store.has_snapshot():
        console.print("[red]✗[/red] No snapshot found. Run 'ig analyze' first.")
        raise typer.Exit(1)

    run_count = 0
    ignored = {str(options.analyze_path), str(options.result_path)}

    def run_batch(files: List[str]) -> None:
        nonlocal run_count
        try:
            result = analyzer.run_incremental(files)
        except (ConfigLoadError, PersistenceError) as exc:
            console.print(f"  [red]✗[/red] Impact run failed: {exc}")
            return
        chains = sum(len(r.effect_paths) for r in result.report)
        names = ", ".join(Path(f).name for f in files)
        console.print(f"  [green]✓[/green] {names}: {chains} impact chain(s)")
        run_count += 1

    collector = ChangeCollector(
        run_batch,
        extensions=options.include_extensions,
        exclude_dirs=options.exclude_dirs,
        debounce_seconds=interval,
    )

    class WatchdogAdapter(FileSystemEventHandler):
        def on_any_event(self, event):
            if event.is_directory or event.event_type not in WATCHED_EVENTS:
                return
            if event.src_path in ignored:
                return
            collector.add(event.src_path)
            dest = getattr(event, "dest_path", "")
            if dest:
                collector.add(dest)

    console.print(f"\n[bold green]👀 Watching[/bold green] [cyan]{watch_path}[/cyan] for changes...")
    console.print(f"[dim]  Debounce:  {interval}s")
    console.print(f"  Snapshot:  {options.analyze_path}")
    console.print("  Press Ctrl+C to stop[/dim]\n")

    observer = Observer()
    observer.schedule(WatchdogAdapter(), str(watch_path), recursive=True)
    observer.start()

    try:
        while True:
            time.sleep(0.5)
            collector.flush()
    except KeyboardInterrupt:
        observer.stop()
        console.print(f"\n[yellow]Stopped watching.[/yellow] Ran {run_count} incremental analysis(es).")

    observer.join()
