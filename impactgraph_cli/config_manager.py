"""Load run settings and project metadata.

Three sources feed a run:

- ``impactgraph.toml`` (optional) with an ``[impactgraph]`` table of run
  options, read with ``toml``;
- ``tsconfig.json`` (JSON with comments, ``extends`` chains) for the
  resolver's ``baseUrl``/``paths``;
- ``package.json`` for the names of installed packages.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import toml

from .config import (
    ANALYZE_FILE_NAME,
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_INCLUDE_EXTENSIONS,
    DEFAULT_TSCONFIG,
    PACKAGE_JSON,
    PROJECT_CONFIG_FILE,
    RESULT_FILE_NAME,
    WORKER_TIMEOUT,
)
from .errors import ConfigLoadError
from .models import CompilerOptions

logger = logging.getLogger(__name__)

CONFIG_SECTION = "impactgraph"
DEPENDENCY_FIELDS = ("dependencies", "devDependencies", "peerDependencies")


@dataclass
class RunOptions:
    """Everything one analysis run needs to know."""
    project_root: Path
    include_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_EXTENSIONS))
    exclude_extensions: List[str] = field(default_factory=list)
    exclude_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    tsconfig: str = DEFAULT_TSCONFIG
    output_dir: str = "."
    analyze_file: str = ANALYZE_FILE_NAME
    result_file: str = RESULT_FILE_NAME
    modified_files: List[str] = field(default_factory=list)
    parallel: bool = False
    workers: Optional[int] = None
    worker_timeout: float = WORKER_TIMEOUT

    @property
    def is_incremental(self) -> bool:
        return bool(self.modified_files)

    @property
    def artifact_dir(self) -> Path:
        out = Path(self.output_dir)
        return out if out.is_absolute() else self.project_root / out

    @property
    def analyze_path(self) -> Path:
        return self.artifact_dir / self.analyze_file

    @property
    def result_path(self) -> Path:
        return self.artifact_dir / self.result_file


# Keys accepted in the [impactgraph] table
_OPTION_KEYS = {
    "include_extensions", "exclude_extensions", "exclude_dirs", "tsconfig",
    "output_dir", "analyze_file", "result_file", "parallel", "workers",
    "worker_timeout",
}


def load_project_config(project_root: Path) -> Dict[str, Any]:
    """Read the ``[impactgraph]`` table of ``impactgraph.toml``.

    Returns an empty dict when the file does not exist.
    """
    config_path = Path(project_root) / PROJECT_CONFIG_FILE
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        raise ConfigLoadError(str(config_path), str(exc)) from exc

    section = data.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        raise ConfigLoadError(str(config_path), f"[{CONFIG_SECTION}] must be a table")

    unknown = set(section) - _OPTION_KEYS
    if unknown:
        logger.warning("Ignoring unknown options in %s: %s", config_path, ", ".join(sorted(unknown)))
    return {k: v for k, v in section.items() if k in _OPTION_KEYS}


def load_run_options(project_root: Path, **overrides: Any) -> RunOptions:
    """Build RunOptions from defaults, ``impactgraph.toml`` and *overrides*.

    Overrides whose value is ``None`` are ignored, so CLI flags left unset
    keep the file's value.
    """
    root = Path(project_root).resolve()
    settings = load_project_config(root)
    settings.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return RunOptions(project_root=root, **settings)
    except TypeError as exc:
        raise ConfigLoadError(str(root / PROJECT_CONFIG_FILE), str(exc)) from exc


# ------------------------------------------------------------------
# tsconfig.json
# ------------------------------------------------------------------

# Strings are matched first so comment markers inside them survive
_JSONC_TOKEN = re.compile(
    r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/|,(?=\s*[}\]])',
    re.DOTALL,
)


def strip_jsonc(text: str) -> str:
    """Drop comments and trailing commas from JSON-with-comments text."""
    def _keep_strings(match: "re.Match[str]") -> str:
        token = match.group(0)
        return token if token.startswith('"') else ""

    return _JSONC_TOKEN.sub(_keep_strings, text)


def _read_json(path: Path, allow_comments: bool = False) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(str(path), exc.strerror or str(exc)) from exc
    if allow_comments:
        text = strip_jsonc(text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigLoadError(str(path), f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigLoadError(str(path), "expected a JSON object")
    return data


def _extends_target(config_path: Path, extends: str, project_root: Path) -> Optional[Path]:
    if extends.startswith("."):
        target = (config_path.parent / extends).resolve()
    else:
        target = project_root / "node_modules" / extends
    if target.suffix != ".json" and not target.exists():
        target = target.with_name(target.name + ".json")
    if target.is_dir():
        target = target / DEFAULT_TSCONFIG
    return target if target.exists() else None


def _load_tsconfig_chain(
    config_path: Path,
    project_root: Path,
    seen: Set[Path],
) -> Dict[str, Any]:
    """Merged ``compilerOptions`` of *config_path* and its ``extends`` chain.

    ``baseUrl`` and ``paths`` are stored together with the directory of the
    file that declared them, as ``_baseUrlDir`` and ``_pathsDir``.
    """
    if config_path in seen:
        raise ConfigLoadError(str(config_path), "circular 'extends' chain")
    seen.add(config_path)

    data = _read_json(config_path, allow_comments=True)
    merged: Dict[str, Any] = {}

    extends = data.get("extends")
    for parent in ([extends] if isinstance(extends, str) else extends or []):
        target = _extends_target(config_path, parent, project_root)
        if target is None:
            logger.warning("Cannot find tsconfig '%s' extended by %s; skipping", parent, config_path)
            continue
        merged.update(_load_tsconfig_chain(target, project_root, seen))

    options = data.get("compilerOptions") or {}
    merged.update(options)
    if "baseUrl" in options:
        merged["_baseUrlDir"] = str(config_path.parent)
    if "paths" in options:
        merged["_pathsDir"] = str(config_path.parent)
    return merged


def load_compiler_options(project_root: Path, tsconfig_name: str = DEFAULT_TSCONFIG) -> CompilerOptions:
    """Resolution settings from the project's tsconfig.

    ``base_dir`` is ``baseUrl`` taken relative to the tsconfig that set it;
    without a ``baseUrl`` alias targets resolve against the file that
    declared ``paths``, and failing that against the project root.

    Raises:
        ConfigLoadError: The tsconfig (or one it extends) is missing,
            unreadable or not valid JSON.
    """
    root = Path(project_root).resolve()
    config_path = (root / tsconfig_name).resolve()
    options = _load_tsconfig_chain(config_path, root, set())

    if "baseUrl" in options:
        base_dir = Path(options["_baseUrlDir"]) / options["baseUrl"]
    elif "_pathsDir" in options:
        base_dir = Path(options["_pathsDir"])
    else:
        base_dir = root

    paths = options.get("paths") or {}
    if not isinstance(paths, dict):
        raise ConfigLoadError(str(config_path), "'compilerOptions.paths' must be an object")

    return CompilerOptions(
        base_dir=str(base_dir.resolve()),
        paths={key: [str(t) for t in targets] for key, targets in paths.items() if isinstance(targets, list)},
    )


# ------------------------------------------------------------------
# package.json
# ------------------------------------------------------------------

def load_dependencies(project_root: Path) -> List[str]:
    """Names declared in package.json ``dependencies``, ``devDependencies`` and ``peerDependencies``."""
    package_path = Path(project_root).resolve() / PACKAGE_JSON
    data = _read_json(package_path)
    names: List[str] = []
    for key in DEPENDENCY_FIELDS:
        section = data.get(key) or {}
        if not isinstance(section, dict):
            raise ConfigLoadError(str(package_path), f"'{key}' must be an object")
        for name in section:
            if name not in names:
                names.append(name)
    return names
