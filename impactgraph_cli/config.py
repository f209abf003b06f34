"""Default settings and environment overrides for ImpactGraph runs."""

from __future__ import annotations

import os
from typing import Optional

# Files the front-end knows how to analyze
SCRIPT_EXTENSIONS = {".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs"}
COMPOSITE_EXTENSIONS = {".vue"}
SUPPORTED_EXTENSIONS = SCRIPT_EXTENSIONS | COMPOSITE_EXTENSIONS

DEFAULT_INCLUDE_EXTENSIONS = [".ts", ".tsx", ".js", ".jsx", ".vue"]

DEFAULT_EXCLUDE_DIRS = [
    "node_modules", ".git", "dist", "build", "coverage",
    ".vscode", ".idea", ".nuxt", ".next", ".output", ".cache",
]

# Persisted artifacts (relative to the project root unless configured)
ANALYZE_FILE_NAME = "analyze.json"
RESULT_FILE_NAME = "result.json"
PROJECT_CONFIG_FILE = "impactgraph.toml"
DEFAULT_TSCONFIG = "tsconfig.json"
PACKAGE_JSON = "package.json"

# Module resolution probes, tried in order
INDEX_CANDIDATES = ["index.ts", "index.tsx", "index.js", "index.jsx", "index.d.ts", "index.vue"]
PROBE_EXTENSIONS = [".ts", ".tsx", ".js", ".jsx", ".d.ts"]

# Bare names always returned unchanged by the resolver
BUILTIN_MODULES = {
    "assert", "buffer", "child_process", "cluster", "crypto", "dns", "events",
    "fs", "http", "http2", "https", "net", "os", "path", "perf_hooks",
    "process", "querystring", "readline", "stream", "string_decoder",
    "timers", "tls", "url", "util", "v8", "vm", "worker_threads", "zlib",
    "typescript",
}

DEFAULT_WORKER_TIMEOUT = 600.0


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return max(1, int(raw))
    except ValueError:
        return None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Worker pool overrides (set via environment, e.g. in CI)
WORKER_COUNT = _env_int("IMPACTGRAPH_WORKERS")
WORKER_TIMEOUT = _env_float("IMPACTGRAPH_WORKER_TIMEOUT", DEFAULT_WORKER_TIMEOUT)


def default_worker_count(file_count: int) -> int:
    """Half the available CPUs (at least one), never more than *file_count*."""
    if WORKER_COUNT is not None:
        count = WORKER_COUNT
    else:
        count = max(1, (os.cpu_count() or 1) // 2)
    return max(1, min(count, file_count)) if file_count else 1
