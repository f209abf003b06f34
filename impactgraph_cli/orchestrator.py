"""Coordinates full and incremental analysis runs of one project."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .config_manager import RunOptions, load_compiler_options, load_dependencies
from .diff_engine import diff_declarations
from .errors import PersistenceError
from .graph import build_parent_modules
from .impact import propagate
from .models import AnalysisSnapshot, CompilerOptions, DiffEntry, ImpactReport
from .project_files import filter_modified, traverse_files
from .scheduler import analyze_files
from .storage import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """In-memory outcome of a run, available even when persisting it failed."""
    snapshot: AnalysisSnapshot
    report: ImpactReport = field(default_factory=list)
    diffs: Dict[str, List[DiffEntry]] = field(default_factory=dict)
    changed_files: List[str] = field(default_factory=list)


def merge_snapshots(prior: AnalysisSnapshot, fresh: AnalysisSnapshot) -> AnalysisSnapshot:
    """Overlay *fresh* records on a copy of *prior*.

    A fresh record replaces the prior one for its path; a ``not_exist``
    record removes the path. *prior* itself is left untouched so it can
    still be diffed against.
    """
    merged = copy.deepcopy(prior)
    for path, record in fresh.items():
        if record.not_exist:
            merged.pop(path, None)
        else:
            merged[path] = record
    return merged


class ImpactAnalyzer:
    """Runs the analysis pipeline for one project.

    Example:
        >>> analyzer = ImpactAnalyzer(load_run_options(Path("web")))
        >>> analyzer.run_full()
        >>> result = analyzer.run_incremental(["web/src/utils.ts"])
    """

    def __init__(self, options: RunOptions, store: Optional[SnapshotStore] = None):
        self.options = options
        self.store = store or SnapshotStore(options.analyze_path, options.result_path)
        self._compiler_options: Optional[CompilerOptions] = None
        self._dependencies: Optional[List[str]] = None

    @property
    def compiler_options(self) -> CompilerOptions:
        if self._compiler_options is None:
            self._compiler_options = load_compiler_options(self.options.project_root, self.options.tsconfig)
        return self._compiler_options

    @property
    def dependencies(self) -> List[str]:
        if self._dependencies is None:
            self._dependencies = load_dependencies(self.options.project_root)
        return self._dependencies

    def _analyze(self, files: List[str]) -> AnalysisSnapshot:
        return analyze_files(
            files,
            self.compiler_options,
            self.dependencies,
            parallel=self.options.parallel,
            workers=self.options.workers,
            timeout=self.options.worker_timeout,
        )

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run_full(self) -> RunResult:
        """Analyze every project file and persist the snapshot."""
        # Load config first so a broken tsconfig fails before any work
        compiler_options = self.compiler_options
        logger.debug("Resolving aliases against %s", compiler_options.base_dir)

        files = traverse_files(
            self.options.project_root,
            self.options.include_extensions,
            self.options.exclude_extensions,
            self.options.exclude_dirs,
        )
        logger.info("Analyzing %d files under %s", len(files), self.options.project_root)

        snapshot = build_parent_modules(self._analyze(files))
        result = RunResult(snapshot=snapshot)
        try:
            self.store.save_snapshot(snapshot)
        except PersistenceError as exc:
            exc.result = result
            raise
        return result

    # ------------------------------------------------------------------
    # Incremental run
    # ------------------------------------------------------------------

    def changed_paths(self, modified_files: Iterable[str]) -> List[str]:
        return filter_modified(modified_files, self.options.include_extensions, self.options.project_root)

    def compute(self, prior: AnalysisSnapshot, changed: List[str]) -> RunResult:
        """Re-analyze *changed*, merge it into *prior* and propagate the diffs.

        Nothing is persisted.
        """
        fresh = self._analyze(changed)
        merged = build_parent_modules(merge_snapshots(prior, fresh))

        report: ImpactReport = []
        diffs: Dict[str, List[DiffEntry]] = {}
        for path in fresh:
            old = prior.get(path)
            new = merged.get(path)
            entries = diff_declarations(old, new)
            diffs[path] = entries

            source = new if new is not None else old
            if source is None:
                logger.debug("Skipping %s: neither analyzed before nor present now", path)
                continue
            report.append(propagate(merged, source, entries))

        return RunResult(snapshot=merged, report=report, diffs=diffs, changed_files=list(fresh))

    def run_incremental(self, modified_files: Optional[Iterable[str]] = None) -> RunResult:
        """Re-analyze modified files and report which exports they impact.

        Modified files are filtered to the analyzed extensions first; when
        none remain the run is a no-op and nothing is written.

        Raises:
            ConfigLoadError: tsconfig or package.json cannot be loaded.
            PersistenceError: The artifacts could not be written. The
                computed RunResult is attached as ``exc.result``.
        """
        requested = self.options.modified_files if modified_files is None else modified_files
        changed = self.changed_paths(requested)
        prior = self.store.load_snapshot()
        if not changed:
            logger.info("No analyzable files among the modified files; nothing to do")
            return RunResult(snapshot=prior)

        result = self.compute(prior, changed)
        chain_count = sum(len(r.effect_paths) for r in result.report)
        logger.info("Incremental run: %d changed files, %d impact chains", len(changed), chain_count)

        try:
            self.store.save_snapshot(result.snapshot)
            self.store.save_report(result.report)
        except PersistenceError as exc:
            exc.result = result
            raise
        return result

    def run(self) -> RunResult:
        """Full or incremental, depending on ``options.modified_files``."""
        if self.options.is_incremental:
            return self.run_incremental()
        return self.run_full()

    def preview_diff(self, file_path: str) -> List[DiffEntry]:
        """Declaration diff of *file_path* against the saved snapshot, without saving."""
        changed = self.changed_paths([file_path])
        if not changed:
            return []
        prior = self.store.load_snapshot()
        return self.compute(prior, changed).diffs.get(changed[0], [])
