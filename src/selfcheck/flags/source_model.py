"""Structural source model consumed by the flag reconciliation phases.

The reconciliation logic only needs a narrow view of a source file: which
symbols exist and whether they are documented, which calls are made and with
what literal arguments, which fields are read through a given receiver, and
which string literals appear. ``SourceModel`` is that view; ``PythonSourceModel``
builds it from Python source with ``ast``.
"""

from __future__ import annotations

import ast
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Symbol:
    """A declared top-level or class-level symbol."""

    name: str
    kind: str  # "function", "class", "method"
    exported: bool
    documented: bool
    lineno: int


@dataclass(frozen=True)
class CallShape:
    """Shape of a call expression.

    Attributes:
        member: Name of the called function or attribute (``add_flag`` in
            ``flags.add_flag(...)``).
        receiver: Dotted name the member was looked up on, if any.
        args: Positional arguments; string literals as their value, anything
            else as None.
        lineno: Line of the call.
    """

    member: str
    receiver: str | None
    args: tuple[str | None, ...]
    lineno: int


class SourceModel(Protocol):
    """Narrow structural view of one source file."""

    @property
    def symbols(self) -> list[Symbol]: ...

    @property
    def calls(self) -> list[CallShape]: ...

    @property
    def imports(self) -> list[str]: ...

    @property
    def string_literals(self) -> list[str]: ...

    def field_references(self, receivers: Iterable[str]) -> set[str]: ...


SourceModelProvider = Callable[[Path], SourceModel]


def _dotted_name(node: ast.AST) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = _dotted_name(node.value)
        return f"{base}.{node.attr}" if base else None
    return None


@dataclass
class PythonSourceModel:
    """SourceModel built from Python source text."""

    path: Path | None = None
    symbols: list[Symbol] = field(default_factory=list)
    calls: list[CallShape] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    string_literals: list[str] = field(default_factory=list)
    attribute_refs: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def from_source(cls, source: str, path: Path | None = None) -> PythonSourceModel:
        """Parse source text. Unparseable source yields an empty model."""
        model = cls(path=path)
        if not source:
            return model
        try:
            tree = ast.parse(source)
        except (SyntaxError, ValueError) as e:
            logger.debug(f"Could not parse {path or '<source>'}: {e}")
            return model
        model._collect(tree)
        return model

    @classmethod
    def from_path(cls, path: Path) -> PythonSourceModel:
        return cls.from_source(path.read_text(encoding="utf-8"), path)

    def field_references(self, receivers: Iterable[str]) -> set[str]:
        """Attribute names read or written through any of the given receivers."""
        wanted = set(receivers)
        return {attr for receiver, attr in self.attribute_refs if receiver in wanted}

    def _collect(self, tree: ast.Module) -> None:
        for node in tree.body:
            self._collect_symbol(node, parent=None)

        for node in ast.walk(tree):
            if isinstance(node, ast.Call):
                self._collect_call(node)
            elif isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
                self.attribute_refs.append((node.value.id, node.attr))
            elif isinstance(node, ast.Constant) and isinstance(node.value, str):
                self.string_literals.append(node.value)
            elif isinstance(node, ast.Import):
                self.imports.extend(alias.name for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.module:
                self.imports.append(node.module)

    def _collect_symbol(self, node: ast.stmt, parent: str | None) -> None:
        if isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef):
            kind = "method" if parent else "function"
        elif isinstance(node, ast.ClassDef):
            kind = "class"
        else:
            return

        self.symbols.append(
            Symbol(
                name=f"{parent}.{node.name}" if parent else node.name,
                kind=kind,
                exported=not node.name.startswith("_"),
                documented=ast.get_docstring(node) is not None,
                lineno=node.lineno,
            )
        )
        if isinstance(node, ast.ClassDef):
            for child in node.body:
                self._collect_symbol(child, parent=node.name)

    def _collect_call(self, node: ast.Call) -> None:
        func = node.func
        if isinstance(func, ast.Attribute):
            member, receiver = func.attr, _dotted_name(func.value)
        elif isinstance(func, ast.Name):
            member, receiver = func.id, None
        else:
            return

        args = tuple(
            arg.value if isinstance(arg, ast.Constant) and isinstance(arg.value, str) else None
            for arg in node.args
        )
        self.calls.append(CallShape(member=member, receiver=receiver, args=args, lineno=node.lineno))
