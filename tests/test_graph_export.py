"""Tests for DOT and HTML graph export."""

import json
from pathlib import Path

from impactgraph_cli.graph import build_parent_modules
from impactgraph_cli.graph_export import export_dot, export_html
from impactgraph_cli.models import EffectPath, EffectResult

from conftest import make_import, make_record


def _snapshot():
    return build_parent_modules({
        "/p/src/a.ts": make_record("/p/src/a.ts"),
        "/p/src/B.vue": make_record("/p/src/B.vue", [make_import("a", "/p/src/a.ts")], file_type="composite"),
        "/p/src/main.ts": make_record("/p/src/main.ts", [make_import("B", "/p/src/B.vue", "default")]),
        "/p/src/lonely.ts": make_record("/p/src/lonely.ts"),
    })


def _report():
    return [EffectResult(path="/p/src/a.ts", effect_paths=[
        EffectPath(name="/p/src/main.ts", paths=["/p/src/a.ts", "/p/src/B.vue", "/p/src/main.ts"]),
    ])]


def test_export_dot(temp_dir: Path):
    output = temp_dir / "graph.dot"
    export_dot(_snapshot(), output, report=_report(), project_root=Path("/p"))
    text = output.read_text()

    assert text.startswith("digraph ImpactGraph {")
    assert '"/p/src/B.vue" -> "/p/src/a.ts";' in text
    assert '"/p/src/main.ts" -> "/p/src/B.vue";' in text
    assert 'label="src/B.vue", shape=component, style=filled, fillcolor="#fbe7a1"' in text
    assert 'label="src/a.ts", style=filled, fillcolor="#f8c9c4"' in text
    assert '"/p/src/lonely.ts" [label="src/lonely.ts"];' in text


def test_export_dot_focus(temp_dir: Path):
    output = temp_dir / "graph.dot"
    export_dot(_snapshot(), output, focus="main")
    text = output.read_text()

    assert '"/p/src/main.ts" -> "/p/src/B.vue";' in text
    assert "lonely" not in text
    assert '"/p/src/B.vue" -> "/p/src/a.ts";' not in text


def test_export_html(temp_dir: Path):
    output = temp_dir / "graph.html"
    export_html(_snapshot(), output, report=_report(), project_root=Path("/p"))
    text = output.read_text()

    assert "<title>ImpactGraph Export</title>" in text
    payload = json.loads(text.split("const graph = ", 1)[1].split(";\n", 1)[0])
    status = {node["label"]: node["status"] for node in payload["nodes"]}
    assert status == {
        "src/B.vue": "impacted",
        "src/a.ts": "changed",
        "src/lonely.ts": "",
        "src/main.ts": "impacted",
    }
    assert payload["chains"] == [["src/a.ts", "src/B.vue", "src/main.ts"]]
