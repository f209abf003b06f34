"""Module specifier resolution (relative paths, tsconfig aliases, bare packages)."""

from __future__ import annotations

import os
from typing import Dict, Iterable, List, Optional

from .config import BUILTIN_MODULES, INDEX_CANDIDATES, PROBE_EXTENSIONS
from .models import CompilerOptions


def canonical_path(path: str) -> str:
    """Absolute, normalized form used as the key for every FileRecord."""
    return os.path.normpath(os.path.abspath(path))


def resolve_module_specifier(
    specifier: str,
    compiler_options: CompilerOptions,
    current_dir: str,
    dependencies: Iterable[str] = (),
) -> str:
    """Resolve *specifier* as written in a file living in *current_dir*.

    Built-in and installed package names come back unchanged, as do bare
    specifiers no alias matches. Relative specifiers and aliases resolve to
    an absolute path, probed for index files and common extensions.
    """
    if not specifier:
        return specifier

    if specifier in BUILTIN_MODULES or specifier in set(dependencies):
        return specifier

    paths = compiler_options.paths or {}

    if is_relative(specifier):
        return probe_path(os.path.join(current_dir, specifier))

    key = find_best_paths_key(specifier, paths)
    if key is None or specifier.startswith("node:"):
        # Bare package or unmatched specifier
        return specifier

    targets = paths[key]
    if not targets:
        return specifier
    replaced = targets[0].replace("*", extract_wildcard_value(key, specifier), 1)
    return probe_path(os.path.join(compiler_options.base_dir, replaced))


def probe_path(candidate: str) -> str:
    """Return the first existing file for *candidate*, or *candidate* itself.

    Tries the exact file, then index files when *candidate* is a
    directory, then the candidate with each probe extension appended.
    """
    candidate = canonical_path(candidate)
    if os.path.isfile(candidate):
        return candidate
    if os.path.isdir(candidate):
        for index in INDEX_CANDIDATES:
            index_path = os.path.join(candidate, index)
            if os.path.isfile(index_path):
                return index_path
    for ext in PROBE_EXTENSIONS:
        with_ext = candidate + ext
        if os.path.isfile(with_ext):
            return with_ext
    return candidate


def is_relative(specifier: str) -> bool:
    return specifier.startswith(("./", "../", "/")) or specifier in (".", "..")


def _alias_prefix(key: str) -> str:
    return key[:-2] if key.endswith("/*") else key.rstrip("*")


def find_best_paths_key(specifier: str, paths: Dict[str, List[str]]) -> Optional[str]:
    """Longest-prefix match of *specifier* against the ``paths`` keys."""
    best_key: Optional[str] = None
    best_len = -1
    for key in paths:
        prefix = _alias_prefix(key)
        if key == "*":
            matched = True
        elif key.endswith("*"):
            matched = specifier == prefix or specifier.startswith(prefix if prefix.endswith("/") else prefix + "/")
        else:
            matched = specifier == key
        if matched and len(prefix) > best_len:
            best_key = key
            best_len = len(prefix)
    return best_key


def extract_wildcard_value(key: str, specifier: str) -> str:
    """The part of *specifier* that the ``*`` in *key* stands for."""
    if "*" not in key:
        return ""
    prefix = _alias_prefix(key)
    value = specifier[len(prefix):]
    return value.lstrip("/") if not prefix.endswith("/") else value
