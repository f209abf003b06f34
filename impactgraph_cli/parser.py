"""Source front-end built on Tree-sitter: turns one file into a FileRecord.

Scripts (TypeScript / JavaScript and their JSX flavours) are parsed with the
``tree-sitter-typescript`` grammars. Composite documents (Vue single-file
components) have their ``<script>`` blocks extracted and analyzed with the
same machinery, while ``<template>`` and ``<style>`` sections are
fingerprinted as whole units.

Only top-level bindings are recorded:

- imports become ``is_imported`` declarations pointing at a resolved
  module specifier;
- exported / local declarations carry a content hash of their normalized
  token stream and the names of the other top-level declarations they
  reference.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import tree_sitter_typescript
from tree_sitter import Language, Parser as TSParser

from .config import COMPOSITE_EXTENSIONS, SCRIPT_EXTENSIONS
from .errors import FrontEndError
from .models import STAR_EXPORT_PREFIX, CompilerOptions, Declaration, DeclarationKind, FileRecord, FileType
from .resolver import canonical_path, resolve_module_specifier

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Grammar selection
# ---------------------------------------------------------------------------
EXTENSION_GRAMMAR: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "tsx",
    ".jsx": "tsx",
    ".mjs": "tsx",
    ".cjs": "tsx",
}

# <script lang="..."> -> grammar
SCRIPT_LANG_GRAMMAR: Dict[str, str] = {
    "ts": "typescript",
    "typescript": "typescript",
    "tsx": "tsx",
    "js": "tsx",
    "jsx": "tsx",
    "javascript": "tsx",
}

_GRAMMAR_LOADERS = {
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
}

_ts_parsers: Dict[str, TSParser] = {}


def _get_ts_parser(grammar: str) -> TSParser:
    """Return a cached Tree-sitter parser for *grammar* (one per process)."""
    parser = _ts_parsers.get(grammar)
    if parser is None:
        loader = _GRAMMAR_LOADERS.get(grammar)
        if loader is None:
            raise FrontEndError("<grammar>", f"no grammar named '{grammar}'")
        parser = TSParser(Language(loader()))
        _ts_parsers[grammar] = parser
        logger.debug("Loaded tree-sitter grammar %s", grammar)
    return parser


def file_type_for(path: str) -> FileType:
    return "composite" if os.path.splitext(path)[1].lower() in COMPOSITE_EXTENSIONS else "script"


# ---------------------------------------------------------------------------
# Content hashing
# ---------------------------------------------------------------------------

def _iter_tokens(node: Any) -> Iterator[str]:
    """Yield leaf token texts in source order, skipping comments."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "comment":
            continue
        if current.child_count == 0:
            raw = current.text.decode("utf-8", errors="replace") if current.text else ""
            if current.type == "string_fragment":
                if raw:
                    yield raw
                continue
            text = " ".join(raw.split())
            if text:
                yield text
            continue
        stack.extend(reversed(current.children))


def content_hash(node: Any) -> str:
    """SHA-256 of *node*'s token stream; insensitive to formatting and comments."""
    tokens = list(_iter_tokens(node))
    if not tokens:
        return ""
    return hashlib.sha256(" ".join(tokens).encode("utf-8")).hexdigest()


def text_hash(text: str) -> str:
    """SHA-256 of *text* with whitespace runs collapsed."""
    normalized = " ".join(text.split())
    if not normalized:
        return ""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Abstract base class for every front-end parser."""

    def __init__(
        self,
        compiler_options: CompilerOptions,
        dependencies: Sequence[str] = (),
    ) -> None:
        self.compiler_options = compiler_options
        self.dependencies = list(dependencies)

    @abstractmethod
    def parse_file(self, file_path: str, source: Optional[str] = None) -> FileRecord:
        """Analyze a single file into a FileRecord."""
        ...

    @abstractmethod
    def supports_extension(self, ext: str) -> bool:
        """Return True if this parser can handle files ending in *ext*."""
        ...

    @staticmethod
    def _read(file_path: str) -> str:
        try:
            return Path(file_path).read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            raise FrontEndError(file_path, str(exc)) from exc


# ===================================================================
# Tree-sitter script parser
# ===================================================================

class TreeSitterParser(Parser):
    """TypeScript / JavaScript front-end.

    ``.ts`` files use the TypeScript grammar; everything else uses the TSX
    grammar, which also accepts plain JavaScript and JSX.
    """

    def supports_extension(self, ext: str) -> bool:
        return ext.lower() in SCRIPT_EXTENSIONS

    def parse_file(self, file_path: str, source: Optional[str] = None) -> FileRecord:
        file_path = canonical_path(file_path)
        if source is None:
            source = self._read(file_path)
        ext = os.path.splitext(file_path)[1].lower()
        grammar = EXTENSION_GRAMMAR.get(ext)
        if grammar is None:
            raise FrontEndError(file_path, f"unsupported extension '{ext}'")

        collector = _DeclarationCollector(file_path, self.compiler_options, self.dependencies)
        collector.visit_program(self.parse_tree(source, grammar).root_node)
        return collector.finish("script")

    @staticmethod
    def parse_tree(source: str, grammar: str) -> Any:
        return _get_ts_parser(grammar).parse(source.encode("utf-8"))


# ===================================================================
# Composite document parser (.vue)
# ===================================================================

_SCRIPT_RE = re.compile(r"<script\b([^>]*)>(.*?)</script\s*>", re.S | re.I)
_STYLE_RE = re.compile(r"<style\b([^>]*)>(.*?)</style\s*>", re.S | re.I)
_TEMPLATE_OPEN_RE = re.compile(r"<template\b[^>]*>", re.I)
_TEMPLATE_CLOSE = "</template>"
_LANG_RE = re.compile(r"""\blang\s*=\s*["']?([\w-]+)""", re.I)
_TEMPLATE_WORD_RE = re.compile(r"[A-Za-z_$][\w$-]*")

TEMPLATE_SECTION = "<template>"
STYLE_SECTION = "<style>"


def _kebab_to_pascal(word: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in word.split("-") if part)


def split_composite(source: str) -> Tuple[List[Tuple[str, str]], str, str]:
    """Split a composite document into ``(scripts, template, style)``.

    *scripts* is a list of ``(lang, content)`` pairs. The template runs
    from the first opening tag to the last closing tag so nested
    ``<template>`` elements stay inside it.
    """
    scripts: List[Tuple[str, str]] = []
    for match in _SCRIPT_RE.finditer(source):
        lang_match = _LANG_RE.search(match.group(1))
        lang = lang_match.group(1).lower() if lang_match else "js"
        scripts.append((lang, match.group(2)))

    template = ""
    opening = _TEMPLATE_OPEN_RE.search(source)
    closing = source.rfind(_TEMPLATE_CLOSE)
    if opening is not None and closing > opening.end():
        template = source[opening.end():closing]

    style = "\n".join(match.group(2) for match in _STYLE_RE.finditer(source))
    return scripts, template, style


class CompositeDocumentParser(Parser):
    """Vue single-file component front-end.

    Every ``<script>`` / ``<script setup>`` block is analyzed as script
    source. The template and styles become the exported pseudo
    declarations ``<template>`` and ``<style>`` so markup-only edits still
    register as changes.
    """

    def supports_extension(self, ext: str) -> bool:
        return ext.lower() in COMPOSITE_EXTENSIONS

    def parse_file(self, file_path: str, source: Optional[str] = None) -> FileRecord:
        file_path = canonical_path(file_path)
        if source is None:
            source = self._read(file_path)

        scripts, template, style = split_composite(source)
        collector = _DeclarationCollector(file_path, self.compiler_options, self.dependencies)
        for lang, content in scripts:
            grammar = SCRIPT_LANG_GRAMMAR.get(lang)
            if grammar is None:
                logger.warning("Skipping <script lang=%r> block in %s", lang, file_path)
                continue
            collector.visit_program(TreeSitterParser.parse_tree(content, grammar).root_node)

        if template.strip():
            words = set()
            for word in _TEMPLATE_WORD_RE.findall(template):
                words.add(word)
                if "-" in word:
                    words.add(_kebab_to_pascal(word))
            collector.add_section(TEMPLATE_SECTION, text_hash(template), words)
        if style.strip():
            collector.add_section(STYLE_SECTION, text_hash(style), ())

        return collector.finish("composite")


# ===================================================================
# Front-end entry point
# ===================================================================

def get_parser(
    file_path: str,
    compiler_options: CompilerOptions,
    dependencies: Sequence[str] = (),
) -> Parser:
    if file_type_for(file_path) == "composite":
        return CompositeDocumentParser(compiler_options, dependencies)
    return TreeSitterParser(compiler_options, dependencies)


def analyze_file(
    file_path: str,
    compiler_options: CompilerOptions,
    dependencies: Sequence[str] = (),
) -> FileRecord:
    """Analyze *file_path*; missing files yield a ``not_exist`` record.

    Raises:
        FrontEndError: the file exists but could not be analyzed.
    """
    file_path = canonical_path(file_path)
    if not os.path.exists(file_path):
        return FileRecord.missing(file_path, file_type_for(file_path))
    return get_parser(file_path, compiler_options, dependencies).parse_file(file_path)


# ===================================================================
# Declaration collection
# ===================================================================

_DECLARATION_KINDS: Dict[str, DeclarationKind] = {
    "function_declaration": "function",
    "generator_function_declaration": "function",
    "function_signature": "function",
    "class_declaration": "class",
    "abstract_class_declaration": "class",
    "interface_declaration": "interface",
    "type_alias_declaration": "type",
    "enum_declaration": "enum",
}
_VARIABLE_STATEMENTS = {"lexical_declaration", "variable_declaration"}
_FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}
_CLASS_VALUES = {"class"}
_TYPE_ONLY_KINDS = {"interface", "type"}
_REFERENCE_TYPES = {"identifier", "type_identifier", "shorthand_property_identifier"}


def _text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace") if node is not None and node.text else ""


def _string_value(node: Any) -> str:
    raw = _text(node).strip()
    if len(raw) >= 2 and raw[0] in "'\"`" and raw[-1] == raw[0]:
        return raw[1:-1]
    return raw


def _has_token(node: Any, token: str) -> bool:
    return any(child.type == token for child in node.children)


def _first_child(node: Any, node_type: str) -> Optional[Any]:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def _value_kind(value: Any, fallback: DeclarationKind) -> DeclarationKind:
    if value is None:
        return fallback
    if value.type in _FUNCTION_VALUES:
        return "function"
    if value.type in _CLASS_VALUES:
        return "class"
    return fallback


def _pattern_names(node: Any) -> List[str]:
    """Names bound by a destructuring pattern, in source order."""
    names: List[str] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in ("identifier", "shorthand_property_identifier_pattern"):
            names.append(_text(current))
            continue
        if current.type == "pair_pattern":
            value = current.child_by_field_name("value")
            if value is not None:
                stack.append(value)
            continue
        if current.type in ("assignment_pattern", "object_assignment_pattern"):
            left = current.child_by_field_name("left")
            if left is not None:
                stack.append(left)
            continue
        stack.extend(reversed(current.named_children))
    return names


class _DeclarationCollector:
    """Walks top-level statements and accumulates declarations for one file."""

    def __init__(
        self,
        file_path: str,
        compiler_options: CompilerOptions,
        dependencies: Sequence[str],
    ) -> None:
        self.file_path = file_path
        self.current_dir = os.path.dirname(file_path)
        self.compiler_options = compiler_options
        self.dependencies = list(dependencies)
        # name -> declaration; re-declaring a name replaces the earlier entry
        self.declarations: Dict[str, Declaration] = {}
        self.reference_roots: Dict[str, List[Any]] = {}
        self.template_words: Dict[str, Iterable[str]] = {}
        self.module_specifiers: Dict[str, None] = {}
        self.pending_exports: List[Tuple[str, str, Any, bool]] = []

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _add(self, decl: Declaration, reference_roots: Iterable[Any] = ()) -> None:
        self.declarations[decl.name] = decl
        self.reference_roots[decl.name] = [n for n in reference_roots if n is not None]
        self.template_words.pop(decl.name, None)

    def _resolve(self, specifier: str) -> str:
        resolved = resolve_module_specifier(
            specifier, self.compiler_options, self.current_dir, self.dependencies,
        )
        if resolved:
            self.module_specifiers[resolved] = None
        return resolved

    def add_section(self, name: str, digest: str, words: Iterable[str]) -> None:
        self._add(Declaration(name=name, kind="const", is_exported=True, content_hash=digest))
        self.template_words[name] = list(words)

    # ------------------------------------------------------------------
    # Statement walker
    # ------------------------------------------------------------------

    def visit_program(self, root: Any) -> None:
        for statement in root.named_children:
            self._visit_statement(statement)

    def _visit_statement(self, node: Any, exported: bool = False) -> List[str]:
        """Record the declaration(s) in *node*; returns the names bound."""
        if node.type == "import_statement":
            self._handle_import(node)
            return []
        if node.type == "export_statement":
            self._handle_export(node)
            return []
        if node.type == "ambient_declaration":
            names: List[str] = []
            for child in node.named_children:
                names.extend(self._visit_statement(child, exported))
            return names
        if node.type in _VARIABLE_STATEMENTS:
            return self._handle_variables(node, exported)
        kind = _DECLARATION_KINDS.get(node.type)
        if kind is not None:
            return self._handle_named_declaration(node, kind, exported)
        return []

    def _handle_named_declaration(self, node: Any, kind: DeclarationKind, exported: bool) -> List[str]:
        name = _text(node.child_by_field_name("name"))
        if not name:
            return []
        self._add(
            Declaration(
                name=name,
                kind=kind,
                is_exported=exported,
                is_type_only=kind in _TYPE_ONLY_KINDS,
                content_hash=content_hash(node),
            ),
            [node],
        )
        return [name]

    def _handle_variables(self, node: Any, exported: bool) -> List[str]:
        keyword = node.children[0].type if node.children else "var"
        fallback: DeclarationKind = keyword if keyword in ("const", "let") else "var"  # type: ignore[assignment]
        names: List[str] = []
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            if name_node is None:
                continue
            value = declarator.child_by_field_name("value")
            kind = _value_kind(value, fallback)
            digest = content_hash(declarator)
            roots = [c for c in declarator.named_children if c != name_node]
            bound = [_text(name_node)] if name_node.type == "identifier" else _pattern_names(name_node)
            for name in bound:
                self._add(
                    Declaration(name=name, kind=kind, is_exported=exported, content_hash=digest),
                    roots,
                )
                names.append(name)
        return names

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def _handle_import(self, node: Any) -> None:
        require = _first_child(node, "import_require_clause")
        source = node.child_by_field_name("source")
        if source is None and require is not None:
            source = require.child_by_field_name("source")
        if source is None:
            return
        resolved = self._resolve(_string_value(source))
        clause = _first_child(node, "import_clause")
        type_only = _has_token(node, "type")
        digest = content_hash(node)

        def add_import(local: str, imported: Optional[str], spec_type_only: bool = False) -> None:
            if not local:
                return
            self._add(Declaration(
                name=local,
                kind="const",
                is_imported=True,
                is_type_only=type_only or spec_type_only,
                content_hash=digest,
                module_specifier=resolved,
                imported_name=imported if imported != local else None,
            ))

        if require is not None:
            ident = _first_child(require, "identifier")
            add_import(_text(ident), "default")
            return
        if clause is None:
            # Side-effect import: edge only
            return

        for child in clause.named_children:
            if child.type == "identifier":
                add_import(_text(child), "default")
            elif child.type == "namespace_import":
                ident = _first_child(child, "identifier")
                add_import(_text(ident), "*")
            elif child.type == "named_imports":
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name_node = spec.child_by_field_name("name")
                    alias_node = spec.child_by_field_name("alias")
                    imported = _string_value(name_node)
                    local = _text(alias_node) if alias_node is not None else imported
                    add_import(local, imported, _has_token(spec, "type"))

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def _handle_export(self, node: Any) -> None:
        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")
        source = node.child_by_field_name("source")
        is_default = _has_token(node, "default")
        type_only = _has_token(node, "type")

        if declaration is not None:
            names = self._visit_statement(declaration, exported=True)
            if is_default and names:
                inner = self.declarations[names[0]]
                self._add(
                    Declaration(
                        name="default",
                        kind=inner.kind,
                        is_exported=True,
                        is_type_only=inner.is_type_only,
                        content_hash=inner.content_hash,
                    ),
                    [declaration],
                )
            return

        if is_default and value is not None:
            self._add(
                Declaration(
                    name="default",
                    kind=_value_kind(value, "const"),
                    is_exported=True,
                    content_hash=content_hash(value),
                ),
                [value],
            )
            return

        clause = _first_child(node, "export_clause")
        if source is not None:
            self._handle_reexport(node, clause, _string_value(source), type_only)
            return

        if clause is not None:
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                local = _string_value(spec.child_by_field_name("name"))
                alias_node = spec.child_by_field_name("alias")
                exported_as = _string_value(alias_node) if alias_node is not None else local
                self.pending_exports.append(
                    (local, exported_as, node, type_only or _has_token(spec, "type"))
                )

    def _handle_reexport(self, node: Any, clause: Optional[Any], specifier: str, type_only: bool) -> None:
        resolved = self._resolve(specifier)
        digest = content_hash(node)

        def add_reexport(name: str, imported: str) -> None:
            self._add(Declaration(
                name=name,
                kind="const",
                is_exported=True,
                is_imported=True,
                is_type_only=type_only,
                content_hash=digest,
                module_specifier=resolved,
                imported_name=imported if imported != name else None,
            ))

        if clause is not None:
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                imported = _string_value(spec.child_by_field_name("name"))
                alias_node = spec.child_by_field_name("alias")
                add_reexport(_string_value(alias_node) if alias_node is not None else imported, imported)
            return

        namespace = _first_child(node, "namespace_export")
        if namespace is not None and namespace.named_children:
            add_reexport(_string_value(namespace.named_children[-1]), "*")
            return

        # export * from '...'
        add_reexport(STAR_EXPORT_PREFIX + specifier, "*")

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def _apply_pending_exports(self) -> None:
        for local, exported_as, node, type_only in self.pending_exports:
            existing = self.declarations.get(local)
            if existing is not None and exported_as == local:
                existing.is_exported = True
                continue
            if existing is not None:
                self._add(Declaration(
                    name=exported_as,
                    kind=existing.kind,
                    is_exported=True,
                    is_type_only=existing.is_type_only or type_only,
                    content_hash=existing.content_hash,
                    dependencies=[local],
                ))
                continue
            self._add(Declaration(
                name=exported_as,
                kind="const",
                is_exported=True,
                is_type_only=type_only,
                content_hash=content_hash(node),
            ))

    def _collect_dependencies(self) -> None:
        known = set(self.declarations)
        for name, roots in self.reference_roots.items():
            decl = self.declarations[name]
            for root in roots:
                stack = [root]
                while stack:
                    current = stack.pop()
                    if current.type in _REFERENCE_TYPES:
                        ref = _text(current)
                        if ref in known:
                            decl.add_dependency(ref)
                        continue
                    stack.extend(reversed(current.children))
        for name, words in self.template_words.items():
            decl = self.declarations[name]
            for word in words:
                if word in known:
                    decl.add_dependency(word)

    def finish(self, file_type: FileType) -> FileRecord:
        self._apply_pending_exports()
        self._collect_dependencies()
        return FileRecord(
            path=self.file_path,
            file_type=file_type,
            module_specifiers=list(self.module_specifiers),
            declarations=list(self.declarations.values()),
        )
