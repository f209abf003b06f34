"""Impact propagation: which downstream exports does a change reach?

Starting at a changed file, a depth-first search walks the *parent* graph
(files that import the current one). At every hop only the names that are
still relevant are carried forward:

- a script parent is followed when it imports one of the relevant names
  from the current file and at least one of its exported declarations
  (transitively, through ``dependencies``) uses such an import. The
  parent's affected exports become the relevant names of the next hop;
- a composite document is opaque: every parent importing it is followed
  without looking at names.

A file with no parents ends a chain and the chain is recorded. A file that
has parents, none of which qualify, ends the branch without recording it.
A parent already on the current chain is never re-entered.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from .models import AnalysisSnapshot, Declaration, DiffEntry, EffectPath, EffectResult, FileRecord

logger = logging.getLogger(__name__)


def _unique(names: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    ordered: List[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


def seed_names(diff_entries: Iterable[DiffEntry]) -> List[str]:
    """Names of the exported declarations that were added, changed or removed."""
    return _unique(entry.name for entry in diff_entries if entry.declaration.is_exported)


def matching_imports(
    parent: FileRecord,
    child_path: str,
    names: Optional[Iterable[str]],
) -> List[str]:
    """Local names of *parent*'s imports that pull a relevant name from *child_path*.

    ``names=None`` matches every import of *child_path* (opaque hop). A
    namespace or star import of the child matches any non-empty name set.
    Imports without a recorded module specifier are matched by name alone.
    """
    wanted = None if names is None else set(names)
    matched: List[str] = []
    for decl in parent.declaration_map().values():
        if not decl.is_imported:
            continue
        if decl.module_specifier is not None and decl.module_specifier != child_path:
            continue
        if wanted is None:
            matched.append(decl.name)
        elif decl.source_name == "*":
            if wanted:
                matched.append(decl.name)
        elif decl.source_name in wanted:
            matched.append(decl.name)
    return matched


def _reaches(start: str, decls: Dict[str, Declaration], targets: Set[str], memo: Dict[str, bool]) -> bool:
    """Whether *start* or anything it transitively depends on is in *targets*."""
    if start in memo:
        return memo[start]
    stack = [start]
    seen = {start}
    found = False
    while stack:
        name = stack.pop()
        if name in targets:
            found = True
            break
        decl = decls.get(name)
        if decl is None:
            continue
        for dep in decl.dependencies:
            if dep not in seen:
                seen.add(dep)
                stack.append(dep)
    memo[start] = found
    return found


def affected_exports(
    parent: FileRecord,
    matched_imports: Iterable[str],
    incoming_names: Iterable[str] = (),
) -> List[str]:
    """Exported declarations of *parent* that use one of *matched_imports*.

    A re-exported import counts as using itself. ``export * from`` forwards
    the incoming names unchanged, since the parent re-exports them under
    the same names.
    """
    targets = set(matched_imports)
    if not targets:
        return []
    decls = parent.declaration_map()
    memo: Dict[str, bool] = {}
    affected: List[str] = []
    for decl in decls.values():
        if not decl.is_exported or not _reaches(decl.name, decls, targets, memo):
            continue
        if decl.is_star_export:
            affected.extend(incoming_names)
        else:
            affected.append(decl.name)
    return _unique(affected)


class ImpactPropagator:
    """Runs the parent-graph DFS for one changed file over a snapshot."""

    def __init__(self, snapshot: AnalysisSnapshot, changed: FileRecord):
        self.snapshot = snapshot
        self.changed = changed
        self.chains: List[EffectPath] = []

    def _record(self, path: str) -> Optional[FileRecord]:
        record = self.snapshot.get(path)
        if record is None and path == self.changed.path:
            # Deleted files are gone from the snapshot but keep their prior parents
            return self.changed
        return record

    def run(self, names: List[str]) -> List[EffectPath]:
        self.chains = []
        self._visit(self.changed.path, [self.changed.path], names)
        return self.chains

    def _visit(self, path: str, chain: List[str], names: List[str]) -> None:
        record = self._record(path)
        parents = sorted(set(record.parent_modules)) if record is not None else []
        if not parents:
            self.chains.append(EffectPath(name=path, paths=list(chain), declarations=list(names)))
            return

        opaque = record is not None and record.is_composite
        for parent_path in parents:
            if parent_path in chain:
                continue
            parent = self.snapshot.get(parent_path)
            if parent is None:
                continue

            if opaque:
                next_names = affected_exports(parent, matching_imports(parent, path, None))
            else:
                matched = matching_imports(parent, path, names)
                if not matched:
                    continue
                next_names = affected_exports(parent, matched, names)
                if not next_names:
                    continue

            self._visit(parent_path, chain + [parent_path], next_names)


def propagate(
    snapshot: AnalysisSnapshot,
    changed: FileRecord,
    diff_entries: List[DiffEntry],
) -> EffectResult:
    """Find every impact chain that starts at *changed*.

    Args:
        snapshot: Graph to walk, with ``parent_modules`` already built.
        changed: Record of the changed file (its prior record when the
            file was deleted).
        diff_entries: Declaration diff of the changed file.

    Returns:
        An EffectResult listing one EffectPath per recorded chain. A file
        whose diff is empty has no impact at all.
    """
    if not diff_entries:
        return EffectResult(path=changed.path)

    chains = ImpactPropagator(snapshot, changed).run(seed_names(diff_entries))
    logger.debug("Impact of %s: %d chain(s)", changed.path, len(chains))
    return EffectResult(path=changed.path, effect_paths=chains)


def affected_files(result: EffectResult) -> List[str]:
    """Every downstream file on any chain, excluding the changed file."""
    return sorted({p for chain in result.effect_paths for p in chain.paths[1:]})
