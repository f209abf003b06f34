"""File-level dependency graph derived from a snapshot's module specifiers."""

from __future__ import annotations

import logging
from typing import Dict, List, Set, Tuple

from .models import AnalysisSnapshot

logger = logging.getLogger(__name__)


def build_parent_modules(snapshot: AnalysisSnapshot) -> AnalysisSnapshot:
    """Recompute every record's ``parent_modules`` from scratch.

    For each file F and each specifier S that F imports, F becomes a
    parent of S when S is a file in *snapshot*. Existing parent lists are
    discarded first, so the result only reflects the current records.
    Mutates and returns *snapshot*.
    """
    parents: Dict[str, Set[str]] = {path: set() for path in snapshot}
    edge_count = 0
    for path, record in snapshot.items():
        for specifier in record.module_specifiers:
            if specifier in parents:
                parents[specifier].add(path)
                edge_count += 1

    for path, record in snapshot.items():
        record.parent_modules = sorted(parents[path])

    logger.debug("Built dependency graph: %d files, %d edges", len(snapshot), edge_count)
    return snapshot


def file_graph_edges(snapshot: AnalysisSnapshot) -> List[Tuple[str, str]]:
    """``(importer, imported)`` pairs for every in-project import edge."""
    edges: List[Tuple[str, str]] = []
    for path in sorted(snapshot):
        for parent in snapshot[path].parent_modules:
            edges.append((parent, path))
    return edges


def roots(snapshot: AnalysisSnapshot) -> List[str]:
    """Files nothing else in the project imports (impact chain terminals)."""
    return sorted(path for path, record in snapshot.items() if not record.parent_modules)
