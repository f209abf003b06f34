"""Pytest configuration and fixtures for ImpactGraph CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator, List, Optional

import pytest

from impactgraph_cli.models import CompilerOptions, Declaration, FileRecord


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp()).resolve()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the read-only sample web project."""
    return Path(__file__).parent / "fixtures" / "web"


@pytest.fixture
def sample_project(temp_dir: Path, sample_project_path: Path) -> Path:
    """A writable copy of the sample web project."""
    target = temp_dir / "web"
    shutil.copytree(sample_project_path, target)
    return target.resolve()


@pytest.fixture
def compiler_options(temp_dir: Path) -> CompilerOptions:
    """Compiler options with an ``@/*`` alias rooted at ``temp_dir/src``."""
    return CompilerOptions(base_dir=str(temp_dir.resolve()), paths={"@/*": ["src/*"]})


@pytest.fixture
def write_file(temp_dir: Path) -> Callable[[str, str], str]:
    """Write a file under ``temp_dir`` and return its absolute path."""
    def _write(relative: str, content: str) -> str:
        path = temp_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path.resolve())
    return _write


def make_export(name: str, digest: str = "h", dependencies: Optional[List[str]] = None) -> Declaration:
    return Declaration(
        name=name,
        kind="function",
        is_exported=True,
        content_hash=digest,
        dependencies=list(dependencies or []),
    )


def make_import(name: str, source: str, imported: Optional[str] = None) -> Declaration:
    return Declaration(
        name=name,
        kind="const",
        is_imported=True,
        content_hash=f"import:{source}:{imported or name}",
        module_specifier=source,
        imported_name=imported,
    )


def make_record(
    path: str,
    declarations: Optional[List[Declaration]] = None,
    parents: Optional[List[str]] = None,
    file_type: str = "script",
) -> FileRecord:
    decls = list(declarations or [])
    specifiers: List[str] = []
    for decl in decls:
        if decl.module_specifier and decl.module_specifier not in specifiers:
            specifiers.append(decl.module_specifier)
    return FileRecord(
        path=path,
        file_type=file_type,
        module_specifiers=specifiers,
        declarations=decls,
        parent_modules=list(parents or []),
    )
