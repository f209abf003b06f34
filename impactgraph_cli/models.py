"""Core data models shared by the front-end, graph and impact layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

DeclarationKind = Literal["function", "class", "const", "let", "var", "interface", "type", "enum"]
FileType = Literal["script", "composite"]
DiffType = Literal["add", "change", "remove"]

# Name prefix of the declaration recorded for ``export * from '...'``
STAR_EXPORT_PREFIX = "*:"


@dataclass
class Declaration:
    """One top-level named binding in a file.

    ``dependencies`` holds names of other declarations in the same file,
    never copies of them.
    """
    name: str
    kind: DeclarationKind
    is_exported: bool = False
    is_imported: bool = False
    is_type_only: bool = False
    content_hash: str = ""
    module_specifier: Optional[str] = None
    imported_name: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)

    @property
    def source_name(self) -> str:
        """Name of the binding on the exporting side of an import."""
        return self.imported_name or self.name

    @property
    def is_star_export(self) -> bool:
        """``export * from '...'``: forwards every name of the target module."""
        return self.is_imported and self.imported_name == "*" and self.name.startswith(STAR_EXPORT_PREFIX)

    def add_dependency(self, name: str) -> None:
        if name != self.name and name not in self.dependencies:
            self.dependencies.append(name)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind,
            "is_exported": self.is_exported,
            "is_imported": self.is_imported,
            "is_type_only": self.is_type_only,
            "content_hash": self.content_hash,
            "dependencies": list(self.dependencies),
        }
        if self.module_specifier is not None:
            data["module_specifier"] = self.module_specifier
        if self.imported_name is not None:
            data["imported_name"] = self.imported_name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Declaration":
        return cls(
            name=data["name"],
            kind=data.get("kind", "const"),
            is_exported=bool(data.get("is_exported", False)),
            is_imported=bool(data.get("is_imported", False)),
            is_type_only=bool(data.get("is_type_only", False)),
            content_hash=data.get("content_hash") or "",
            module_specifier=data.get("module_specifier"),
            imported_name=data.get("imported_name"),
            dependencies=list(data.get("dependencies", [])),
        )


@dataclass
class FileRecord:
    """Analysis result for a single file.

    ``parent_modules`` is derived state: it is rebuilt from every file's
    ``module_specifiers`` by :func:`impactgraph_cli.graph.build_parent_modules`.
    """
    path: str
    file_type: FileType = "script"
    module_specifiers: List[str] = field(default_factory=list)
    declarations: List[Declaration] = field(default_factory=list)
    parent_modules: List[str] = field(default_factory=list)
    not_exist: bool = False

    @classmethod
    def missing(cls, path: str, file_type: FileType = "script") -> "FileRecord":
        return cls(path=path, file_type=file_type, not_exist=True)

    @classmethod
    def empty(cls, path: str, file_type: FileType = "script") -> "FileRecord":
        return cls(path=path, file_type=file_type)

    @property
    def is_composite(self) -> bool:
        return self.file_type == "composite"

    def declaration_map(self) -> Dict[str, Declaration]:
        """Name-keyed view of the declarations; later duplicates win."""
        return {decl.name: decl for decl in self.declarations}

    def get(self, name: str) -> Optional[Declaration]:
        return self.declaration_map().get(name)

    def exported(self) -> List[Declaration]:
        return [d for d in self.declarations if d.is_exported]

    def imported(self) -> List[Declaration]:
        return [d for d in self.declarations if d.is_imported]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "path": self.path,
            "file_type": self.file_type,
            "module_specifiers": list(self.module_specifiers),
            "declarations": [d.to_dict() for d in self.declarations],
            "parent_modules": list(self.parent_modules),
        }
        if self.not_exist:
            data["not_exist"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileRecord":
        return cls(
            path=data["path"],
            file_type=data.get("file_type", "script"),
            module_specifiers=list(data.get("module_specifiers", [])),
            declarations=[Declaration.from_dict(d) for d in data.get("declarations", [])],
            parent_modules=list(data.get("parent_modules", [])),
            not_exist=bool(data.get("not_exist", False)),
        )


# Path-keyed collection of every analyzed file
AnalysisSnapshot = Dict[str, FileRecord]


@dataclass
class DiffEntry:
    """A declaration that was added, changed or removed between two runs."""
    declaration: Declaration
    diff_type: DiffType

    @property
    def name(self) -> str:
        return self.declaration.name

    def to_dict(self) -> Dict[str, Any]:
        return {**self.declaration.to_dict(), "diff_type": self.diff_type}


@dataclass
class EffectPath:
    """One impact chain from a changed file up to a terminal ancestor."""
    name: str
    paths: List[str]
    declarations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "paths": list(self.paths),
            "declarations": list(self.declarations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EffectPath":
        return cls(
            name=data["name"],
            paths=list(data.get("paths", [])),
            declarations=list(data.get("declarations", [])),
        )


@dataclass
class EffectResult:
    path: str
    effect_paths: List[EffectPath] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "effect_paths": [p.to_dict() for p in self.effect_paths],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EffectResult":
        return cls(
            path=data["path"],
            effect_paths=[EffectPath.from_dict(p) for p in data.get("effect_paths", [])],
        )


ImpactReport = List[EffectResult]


@dataclass
class CompilerOptions:
    """Resolution settings taken from tsconfig ``compilerOptions``.

    ``base_dir`` is the absolute directory alias targets resolve against.
    """
    base_dir: str
    paths: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"base_dir": self.base_dir, "paths": {k: list(v) for k, v in self.paths.items()}}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompilerOptions":
        return cls(base_dir=data["base_dir"], paths={k: list(v) for k, v in data.get("paths", {}).items()})


def snapshot_from_records(records: List[FileRecord]) -> AnalysisSnapshot:
    """Key records by path; a later record for the same path wins."""
    return {record.path: record for record in records}
