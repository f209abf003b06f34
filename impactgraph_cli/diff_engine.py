"""Declaration-level diff between two analyses of the same file."""

from __future__ import annotations

from typing import Dict, List, Optional

from .models import Declaration, DiffEntry, FileRecord


def _by_name(record: Optional[FileRecord]) -> Dict[str, Declaration]:
    if record is None:
        return {}
    return record.declaration_map()


def diff_declarations(
    old_file: Optional[FileRecord],
    new_file: Optional[FileRecord],
) -> List[DiffEntry]:
    """Classify each declaration name as added, changed or removed.

    Names are compared through last-wins maps on both sides. Hashes are
    compared as exact strings, so two empty hashes count as unchanged.

    Args:
        old_file: Previous record, or ``None`` for a file that is new.
        new_file: Current record, or ``None`` for a file that was deleted.

    Returns:
        ``add``/``change`` entries in *new_file* declaration order,
        followed by ``remove`` entries in *old_file* declaration order.
    """
    old_map = _by_name(old_file)
    new_map = _by_name(new_file)

    diffs: List[DiffEntry] = []
    for name, new_decl in new_map.items():
        old_decl = old_map.get(name)
        if old_decl is None:
            diffs.append(DiffEntry(declaration=new_decl, diff_type="add"))
        elif (new_decl.content_hash or "") != (old_decl.content_hash or ""):
            diffs.append(DiffEntry(declaration=new_decl, diff_type="change"))

    for name, old_decl in old_map.items():
        if name not in new_map:
            diffs.append(DiffEntry(declaration=old_decl, diff_type="remove"))

    return diffs


def summarize(entries: List[DiffEntry]) -> Dict[str, int]:
    """Count entries per diff type."""
    counts = {"add": 0, "change": 0, "remove": 0}
    for entry in entries:
        counts[entry.diff_type] += 1
    return counts
