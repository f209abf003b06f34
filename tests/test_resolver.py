"""Tests for module specifier resolution."""

import os
from pathlib import Path

import pytest

from impactgraph_cli.models import CompilerOptions
from impactgraph_cli.resolver import (
    canonical_path,
    extract_wildcard_value,
    find_best_paths_key,
    is_relative,
    probe_path,
    resolve_module_specifier,
)


@pytest.fixture
def project(temp_dir: Path) -> Path:
    root = temp_dir.resolve()
    (root / "src" / "utils").mkdir(parents=True)
    (root / "src" / "widgets").mkdir(parents=True)
    (root / "src" / "utils" / "format.ts").write_text("export const a = 1;\n")
    (root / "src" / "utils" / "index.ts").write_text("export * from './format';\n")
    (root / "src" / "widgets" / "Button.vue").write_text("<template><button /></template>\n")
    (root / "src" / "legacy.js").write_text("module.exports = {};\n")
    return root


class TestClassification:
    """Built-ins, installed packages and relative specifiers."""

    def test_builtin_unchanged(self, compiler_options: CompilerOptions, temp_dir: Path):
        assert resolve_module_specifier("fs", compiler_options, str(temp_dir)) == "fs"
        assert resolve_module_specifier("typescript", compiler_options, str(temp_dir)) == "typescript"

    def test_node_prefix_unchanged(self, compiler_options: CompilerOptions, temp_dir: Path):
        assert resolve_module_specifier("node:path", compiler_options, str(temp_dir)) == "node:path"

    def test_installed_dependency_unchanged(self, compiler_options: CompilerOptions, temp_dir: Path):
        resolved = resolve_module_specifier("vue", compiler_options, str(temp_dir), ["vue"])
        assert resolved == "vue"

    def test_unknown_bare_specifier_unchanged(self, compiler_options: CompilerOptions, temp_dir: Path):
        assert resolve_module_specifier("lodash-es", compiler_options, str(temp_dir)) == "lodash-es"

    def test_is_relative(self):
        assert is_relative("./a")
        assert is_relative("../a")
        assert is_relative("/abs/a")
        assert is_relative("..")
        assert not is_relative("@/a")
        assert not is_relative("vue")


class TestRelative:
    """Relative specifiers become probed absolute paths."""

    def test_extension_probe(self, project: Path, compiler_options: CompilerOptions):
        resolved = resolve_module_specifier("./format", compiler_options, str(project / "src" / "utils"))
        assert resolved == str(project / "src" / "utils" / "format.ts")

    def test_parent_directory(self, project: Path, compiler_options: CompilerOptions):
        resolved = resolve_module_specifier("../legacy", compiler_options, str(project / "src" / "utils"))
        assert resolved == str(project / "src" / "legacy.js")

    def test_directory_index(self, project: Path, compiler_options: CompilerOptions):
        resolved = resolve_module_specifier("./utils", compiler_options, str(project / "src"))
        assert resolved == str(project / "src" / "utils" / "index.ts")

    def test_exact_file_with_extension(self, project: Path, compiler_options: CompilerOptions):
        resolved = resolve_module_specifier("./widgets/Button.vue", compiler_options, str(project / "src"))
        assert resolved == str(project / "src" / "widgets" / "Button.vue")

    def test_unresolvable_falls_back_to_candidate(self, project: Path, compiler_options: CompilerOptions):
        resolved = resolve_module_specifier("./nope", compiler_options, str(project / "src"))
        assert resolved == str(project / "src" / "nope")


class TestAliases:
    """tsconfig ``paths`` aliases."""

    def test_wildcard_alias(self, project: Path):
        options = CompilerOptions(base_dir=str(project), paths={"@/*": ["src/*"]})
        resolved = resolve_module_specifier("@/utils/format", options, str(project / "src" / "widgets"))
        assert resolved == str(project / "src" / "utils" / "format.ts")

    def test_longest_prefix_wins(self, project: Path):
        options = CompilerOptions(
            base_dir=str(project),
            paths={"@/*": ["src/*"], "@/utils/*": ["src/widgets/*"]},
        )
        resolved = resolve_module_specifier("@/utils/Button.vue", options, str(project))
        assert resolved == str(project / "src" / "widgets" / "Button.vue")

    def test_exact_alias(self, project: Path):
        options = CompilerOptions(base_dir=str(project), paths={"legacy": ["src/legacy.js"]})
        assert resolve_module_specifier("legacy", options, str(project)) == str(project / "src" / "legacy.js")

    def test_find_best_paths_key(self):
        paths = {"@/*": ["src/*"], "@components/*": ["src/components/*"], "~": ["src"]}
        assert find_best_paths_key("@/a", paths) == "@/*"
        assert find_best_paths_key("@components/Button", paths) == "@components/*"
        assert find_best_paths_key("~", paths) == "~"
        assert find_best_paths_key("react", paths) is None

    def test_extract_wildcard_value(self):
        assert extract_wildcard_value("@/*", "@/utils/format") == "utils/format"
        assert extract_wildcard_value("legacy", "legacy") == ""


def test_probe_path_returns_canonical_candidate(temp_dir: Path):
    candidate = os.path.join(str(temp_dir), "a", "..", "b")
    assert probe_path(candidate) == canonical_path(os.path.join(str(temp_dir), "b"))
