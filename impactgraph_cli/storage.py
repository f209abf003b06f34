"""Persistence of the analysis snapshot (``analyze.json``) and impact report (``result.json``).

Both artifacts are indented JSON arrays so they diff well under version
control: the snapshot holds one object per FileRecord, the report one
object per EffectResult.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List

from .models import AnalysisSnapshot, EffectResult, FileRecord, ImpactReport, snapshot_from_records
from .errors import PersistenceError

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Reads and writes the two run artifacts of one project."""

    def __init__(self, analyze_path: Path, result_path: Path) -> None:
        self.analyze_path = Path(analyze_path)
        self.result_path = Path(result_path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _write_json(path: Path, payload: Any) -> None:
        partial = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            partial.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(partial, path)
        except OSError as exc:
            raise PersistenceError(str(path), exc.strerror or str(exc)) from exc

    @staticmethod
    def _read_json_array(path: Path) -> List[Any]:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise PersistenceError(str(path), exc.strerror or str(exc)) from exc
        except json.JSONDecodeError as exc:
            raise PersistenceError(str(path), f"invalid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise PersistenceError(str(path), "expected a JSON array")
        return payload

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def has_snapshot(self) -> bool:
        return self.analyze_path.exists()

    def load_snapshot(self) -> AnalysisSnapshot:
        """Load the previous snapshot; a missing file counts as empty."""
        if not self.analyze_path.exists():
            logger.warning("No previous analysis at %s; starting from an empty snapshot", self.analyze_path)
            return {}
        try:
            records = [FileRecord.from_dict(item) for item in self._read_json_array(self.analyze_path)]
        except (KeyError, TypeError) as exc:
            raise PersistenceError(str(self.analyze_path), f"malformed record: {exc}") from exc
        return snapshot_from_records(records)

    def save_snapshot(self, snapshot: AnalysisSnapshot) -> None:
        self._write_json(self.analyze_path, [snapshot[path].to_dict() for path in sorted(snapshot)])
        logger.info("Saved %d file records to %s", len(snapshot), self.analyze_path)

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def load_report(self) -> ImpactReport:
        """Load the last impact report; a missing file counts as empty."""
        if not self.result_path.exists():
            return []
        try:
            return [EffectResult.from_dict(item) for item in self._read_json_array(self.result_path)]
        except (KeyError, TypeError) as exc:
            raise PersistenceError(str(self.result_path), f"malformed result: {exc}") from exc

    def save_report(self, report: ImpactReport) -> None:
        self._write_json(self.result_path, [result.to_dict() for result in report])
        logger.info("Saved impact of %d changed files to %s", len(report), self.result_path)
