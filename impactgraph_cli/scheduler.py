"""Run the front-end over a batch of files, sequentially or in worker processes.

Parallel runs use a pull-based worker group: every worker takes the next
``(index, path)`` task from a shared queue, analyzes it and writes the
record to its own slot file ``result-<index>.json`` in a temporary
directory. Once all workers have joined, the slots are merged into one
path-keyed snapshot and the directory is removed.
"""

from __future__ import annotations

import json
import logging
import multiprocessing
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import WORKER_TIMEOUT, default_worker_count
from .models import AnalysisSnapshot, CompilerOptions, FileRecord
from .parser import analyze_file, file_type_for
from .resolver import canonical_path

logger = logging.getLogger(__name__)

Analyzer = Callable[[str, CompilerOptions, Sequence[str]], FileRecord]

SLOT_PREFIX = "result-"


def _analyze_one(
    path: str,
    compiler_options: CompilerOptions,
    dependencies: Sequence[str],
    analyzer: Analyzer,
) -> FileRecord:
    """Analyze one file; a failing front-end degrades to an empty record."""
    try:
        return analyzer(path, compiler_options, dependencies)
    except Exception as exc:
        logger.warning("Failed to analyze %s: %s", path, exc)
        return FileRecord.empty(path, file_type_for(path))


def _slot_path(slot_dir: Path, index: int) -> Path:
    return slot_dir / f"{SLOT_PREFIX}{index}.json"


def _write_slot(slot_dir: Path, index: int, record: FileRecord) -> None:
    target = _slot_path(slot_dir, index)
    partial = target.with_suffix(".tmp")
    partial.write_text(json.dumps(record.to_dict()), encoding="utf-8")
    os.replace(partial, target)


def _read_slot(slot_dir: Path, index: int) -> Optional[FileRecord]:
    slot = _slot_path(slot_dir, index)
    if not slot.exists():
        return None
    try:
        return FileRecord.from_dict(json.loads(slot.read_text(encoding="utf-8")))
    except (OSError, ValueError, KeyError) as exc:
        logger.warning("Discarding unreadable worker result %s: %s", slot.name, exc)
        return None


def _worker_main(
    tasks: "multiprocessing.Queue",
    slot_dir: str,
    compiler_options: CompilerOptions,
    dependencies: List[str],
    analyzer: Analyzer,
) -> None:
    """Worker loop: pull tasks until the stop sentinel arrives."""
    slots = Path(slot_dir)
    while True:
        task = tasks.get()
        if task is None:
            break
        index, path = task
        record = _analyze_one(path, compiler_options, dependencies, analyzer)
        _write_slot(slots, index, record)


def _unique_paths(files: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for file_path in files:
        seen.setdefault(canonical_path(str(file_path)), None)
    return list(seen)


def analyze_sequential(
    files: List[str],
    compiler_options: CompilerOptions,
    dependencies: Sequence[str],
    analyzer: Analyzer = analyze_file,
) -> AnalysisSnapshot:
    snapshot: AnalysisSnapshot = {}
    for path in files:
        snapshot[path] = _analyze_one(path, compiler_options, dependencies, analyzer)
    return snapshot


def analyze_parallel(
    files: List[str],
    compiler_options: CompilerOptions,
    dependencies: Sequence[str],
    workers: int,
    analyzer: Analyzer = analyze_file,
    timeout: Optional[float] = None,
) -> AnalysisSnapshot:
    """Analyze *files* with *workers* processes sharing one task queue.

    The analyzer must be a module-level callable so it can be handed to
    the worker processes. All workers share one *timeout* window; those
    still running when it closes are terminated and their unfinished files
    become empty records.
    """
    deadline = WORKER_TIMEOUT if timeout is None else timeout
    ctx = multiprocessing.get_context()
    tasks = ctx.Queue()
    for index, path in enumerate(files):
        tasks.put((index, path))
    for _ in range(workers):
        tasks.put(None)

    slot_dir = Path(tempfile.mkdtemp(prefix="impactgraph-"))
    try:
        procs = [
            ctx.Process(
                target=_worker_main,
                args=(tasks, str(slot_dir), compiler_options, list(dependencies), analyzer),
                daemon=True,
            )
            for _ in range(workers)
        ]
        for proc in procs:
            proc.start()
        logger.debug("Started %d analysis workers for %d files", workers, len(files))

        end = time.monotonic() + deadline
        for proc in procs:
            proc.join(max(0.0, end - time.monotonic()))
        for proc in procs:
            if proc.is_alive():
                logger.warning("Analysis worker %s exceeded %.0fs; terminating", proc.pid, deadline)
                proc.terminate()
                proc.join()

        snapshot: AnalysisSnapshot = {}
        saved = 0
        for index, path in enumerate(files):
            record = _read_slot(slot_dir, index)
            if record is None:
                logger.warning("No analysis result for %s; recording it as empty", path)
                record = FileRecord.empty(path, file_type_for(path))
            else:
                saved += 1
            snapshot[record.path] = record
        logger.debug("Merged %d/%d worker results", saved, len(files))
        return snapshot
    finally:
        tasks.close()
        # Workers are gone; undelivered sentinels must not block shutdown
        tasks.cancel_join_thread()
        shutil.rmtree(slot_dir, ignore_errors=True)


def analyze_files(
    files: Iterable[str],
    compiler_options: CompilerOptions,
    dependencies: Sequence[str] = (),
    *,
    parallel: bool = False,
    workers: Optional[int] = None,
    analyzer: Analyzer = analyze_file,
    timeout: Optional[float] = None,
) -> AnalysisSnapshot:
    """Analyze every file in *files* and return a path-keyed snapshot.

    Args:
        files: Paths to analyze; they are canonicalized and de-duplicated.
        compiler_options: Resolution settings passed to the front-end.
        dependencies: Installed package names (left unresolved).
        parallel: Use worker processes instead of the calling process.
        workers: Worker count; defaults to half the CPUs. Never more than
            the number of files.
        analyzer: Front-end entry point, ``analyze_file`` by default.
        timeout: Seconds to wait for each worker before terminating it.

    Returns:
        One record per requested file. Missing files are ``not_exist``
        records; files whose analysis failed are empty records.
    """
    paths = _unique_paths(files)
    if not paths:
        return {}

    if not parallel:
        return analyze_sequential(paths, compiler_options, dependencies, analyzer)

    count = min(workers, len(paths)) if workers else default_worker_count(len(paths))
    return analyze_parallel(paths, compiler_options, dependencies, max(1, count), analyzer, timeout)
