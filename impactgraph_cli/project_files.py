"""Project traversal: which files of a project take part in the analysis."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import DEFAULT_EXCLUDE_DIRS, DEFAULT_INCLUDE_EXTENSIONS
from .resolver import canonical_path

logger = logging.getLogger(__name__)


def _matches(name: str, extensions: Iterable[str]) -> bool:
    return any(name.endswith(ext) for ext in extensions)


def traverse_files(
    project_root: Path,
    include_extensions: Optional[Sequence[str]] = None,
    exclude_extensions: Sequence[str] = (),
    exclude_dirs: Optional[Sequence[str]] = None,
) -> List[str]:
    """Collect analyzable files under *project_root*, sorted by path.

    A directory whose name is in *exclude_dirs* is skipped anywhere in the
    tree. A file is kept when its name ends with one of the included
    extensions and none of the excluded ones (so ``.d.ts`` can be dropped
    while ``.ts`` is kept).
    """
    include = list(include_extensions if include_extensions is not None else DEFAULT_INCLUDE_EXTENSIONS)
    skip_dirs = set(exclude_dirs if exclude_dirs is not None else DEFAULT_EXCLUDE_DIRS)
    root = Path(project_root)

    files: List[str] = []
    for file_path in sorted(root.rglob("*")):
        rel_parts = file_path.relative_to(root).parts
        if any(part in skip_dirs for part in rel_parts[:-1]):
            continue
        if not file_path.is_file():
            continue
        if not _matches(file_path.name, include) or _matches(file_path.name, exclude_extensions):
            continue
        files.append(canonical_path(str(file_path)))

    logger.debug("Found %d files under %s", len(files), root)
    return files


def filter_modified(
    files: Iterable[str],
    include_extensions: Optional[Sequence[str]] = None,
    project_root: Optional[Path] = None,
) -> List[str]:
    """Canonicalize modified paths and keep only analyzable extensions.

    Relative paths are taken relative to *project_root* when given. The
    files do not have to exist: a deleted file is still a change.
    """
    include = list(include_extensions if include_extensions is not None else DEFAULT_INCLUDE_EXTENSIONS)
    kept: List[str] = []
    for raw in files:
        candidate = Path(raw)
        if project_root is not None and not candidate.is_absolute():
            candidate = Path(project_root) / candidate
        path = canonical_path(str(candidate))
        if not _matches(path, include):
            logger.debug("Ignoring %s: extension not analyzed", path)
            continue
        if path not in kept:
            kept.append(path)
    return kept
