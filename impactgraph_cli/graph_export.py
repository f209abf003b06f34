"""Export the file dependency graph as Graphviz DOT or a standalone HTML page."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .graph import file_graph_edges
from .impact import affected_files
from .models import AnalysisSnapshot, ImpactReport


def _label(path: str, root: Optional[Path]) -> str:
    if root is None:
        return path
    try:
        return os.path.relpath(path, str(root))
    except ValueError:
        return path


def _impacted(report: Optional[ImpactReport]) -> Tuple[Set[str], Set[str]]:
    """Changed files and every file on one of their impact chains."""
    changed: Set[str] = set()
    reached: Set[str] = set()
    for result in report or []:
        changed.add(result.path)
        reached.update(affected_files(result))
    return changed, reached - changed


def _focused_subgraph(snapshot: AnalysisSnapshot, focus: str) -> Dict[str, List]:
    nodes = sorted(snapshot)
    edges = file_graph_edges(snapshot)
    if not focus:
        return {"nodes": nodes, "edges": edges}

    focus_ids = {path for path in nodes if focus in path}
    if not focus_ids:
        return {"nodes": nodes, "edges": edges}

    edge_subset = [e for e in edges if e[0] in focus_ids or e[1] in focus_ids]
    node_subset = set(focus_ids)
    for src, dst in edge_subset:
        node_subset.add(src)
        node_subset.add(dst)
    return {"nodes": sorted(node_subset), "edges": edge_subset}


def export_dot(
    snapshot: AnalysisSnapshot,
    output_file: Path,
    focus: str = "",
    report: Optional[ImpactReport] = None,
    project_root: Optional[Path] = None,
) -> None:
    """Write a DOT digraph with one edge per in-project import (importer -> imported)."""
    selected = _focused_subgraph(snapshot, focus)
    changed, reached = _impacted(report)

    lines = ["digraph ImpactGraph {"]
    lines.append("  rankdir=LR;")
    lines.append("  node [shape=box];")

    for path in selected["nodes"]:
        attrs = [f'label="{_esc(_label(path, project_root))}"']
        if snapshot[path].is_composite:
            attrs.append("shape=component")
        if path in changed:
            attrs.append('style=filled, fillcolor="#f8c9c4"')
        elif path in reached:
            attrs.append('style=filled, fillcolor="#fbe7a1"')
        lines.append(f'  "{_esc(path)}" [{", ".join(attrs)}];')

    for src, dst in selected["edges"]:
        lines.append(f'  "{_esc(src)}" -> "{_esc(dst)}";')

    lines.append("}")
    output_file.write_text("\n".join(lines) + "\n", encoding="utf-8")


def export_html(
    snapshot: AnalysisSnapshot,
    output_file: Path,
    focus: str = "",
    report: Optional[ImpactReport] = None,
    project_root: Optional[Path] = None,
) -> None:
    """Write a self-contained HTML page listing files, imports and impact chains."""
    selected = _focused_subgraph(snapshot, focus)
    changed, reached = _impacted(report)
    graph_payload = {
        "nodes": [
            {
                "id": path,
                "label": _label(path, project_root),
                "type": snapshot[path].file_type,
                "status": "changed" if path in changed else "impacted" if path in reached else "",
            }
            for path in selected["nodes"]
        ],
        "edges": [{"src": src, "dst": dst} for src, dst in selected["edges"]],
        "chains": [
            [_label(p, project_root) for p in chain.paths]
            for result in report or []
            for chain in result.effect_paths
        ],
    }
    output_file.write_text(_html_document(graph_payload), encoding="utf-8")


def _html_document(graph_payload: dict) -> str:
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>ImpactGraph Export</title>
  <style>
    body {{ font-family: ui-monospace, SFMono-Regular, Menlo, monospace; margin: 20px; }}
    #container {{ display: grid; grid-template-columns: 1fr 1fr; gap: 18px; }}
    .panel {{ border: 1px solid #ddd; border-radius: 8px; padding: 10px; }}
    ul {{ list-style: none; padding: 0; margin: 0; }}
    li {{ margin: 4px 0; }}
    .changed {{ color: #b3261e; font-weight: bold; }}
    .impacted {{ color: #8a6d00; }}
  </style>
</head>
<body>
  <h1>ImpactGraph Export</h1>
  <div id="container">
    <div class="panel">
      <h2>Files</h2>
      <ul id="nodes"></ul>
    </div>
    <div class="panel">
      <h2>Imports</h2>
      <ul id="edges"></ul>
    </div>
    <div class="panel">
      <h2>Impact chains</h2>
      <ul id="chains"></ul>
    </div>
  </div>
  <script>
    const graph = {json.dumps(graph_payload)};
    const labels = Object.fromEntries(graph.nodes.map(n => [n.id, n.label]));
    const nodesEl = document.getElementById('nodes');
    const edgesEl = document.getElementById('edges');
    const chainsEl = document.getElementById('chains');
    graph.nodes.forEach(n => {{
      const li = document.createElement('li');
      li.textContent = `${{n.label}} (${{n.type}})`;
      if (n.status) li.className = n.status;
      nodesEl.appendChild(li);
    }});
    graph.edges.forEach(e => {{
      const li = document.createElement('li');
      li.textContent = `${{labels[e.src] || e.src}} --imports--> ${{labels[e.dst] || e.dst}}`;
      edgesEl.appendChild(li);
    }});
    graph.chains.forEach(c => {{
      const li = document.createElement('li');
      li.textContent = c.join(' -> ');
      chainsEl.appendChild(li);
    }});
  </script>
</body>
</html>
"""


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
