"""
goastdata_shims/astwalk.py
══════════════════════════

Traversal drivers that feed one checker's visitor over one file.

A checker factory returns one of three walker variants; the driver
(:func:`walk_file`) dispatches on the variant's ``kind`` tag:

    ┌───────────────────┬──────────────────────────────────────────────┐
    │ FuncDeclWalker    │ visit_func_decl(decl) per function with body │
    │ StmtWalker        │ visit_stmt(stmt) per statement in every      │
    │                   │ function body, nested ones included          │
    │ FileWalker        │ walk_file(file) once per file                │
    └───────────────────┴──────────────────────────────────────────────┘

``enter_func`` decides which function declarations are entered; the default
skips declarations without a body (external/assembly functions).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from goastdata_shims.ast_model import (
    File,
    FuncDecl,
    Node,
    Stmt,
    inspect,
)


class WalkerKind(Enum):
    FUNC_DECL = "funcDecl"
    STMT = "stmt"
    FILE = "file"


def has_body(decl: FuncDecl) -> bool:
    return decl.body is not None


@dataclass(frozen=True)
class FuncDeclWalker:
    visit_func_decl: Callable[[FuncDecl], None]
    enter_func: Callable[[FuncDecl], bool] = has_body

    @property
    def kind(self) -> WalkerKind:
        return WalkerKind.FUNC_DECL


@dataclass(frozen=True)
class StmtWalker:
    visit_stmt: Callable[[Stmt], None]
    enter_func: Callable[[FuncDecl], bool] = has_body

    @property
    def kind(self) -> WalkerKind:
        return WalkerKind.STMT


@dataclass(frozen=True)
class FileWalker:
    walk_file: Callable[[File], None]

    @property
    def kind(self) -> WalkerKind:
        return WalkerKind.FILE


Walker = Union[FuncDeclWalker, StmtWalker, FileWalker]


def walker_for_func_decl(visitor) -> FuncDeclWalker:
    """Bind ``visitor.visit_func_decl`` (and its optional ``enter_func``)."""
    return FuncDeclWalker(
        visit_func_decl=visitor.visit_func_decl,
        enter_func=getattr(visitor, "enter_func", has_body),
    )


def walker_for_stmt(visitor) -> StmtWalker:
    """Bind ``visitor.visit_stmt`` (and its optional ``enter_func``)."""
    return StmtWalker(
        visit_stmt=visitor.visit_stmt,
        enter_func=getattr(visitor, "enter_func", has_body),
    )


def walker_for_file(visitor) -> FileWalker:
    return FileWalker(walk_file=visitor.walk_file)


def walk_file(walker: Walker, file: File) -> None:
    """Drive ``walker`` over ``file``."""
    kind = walker.kind
    if kind is WalkerKind.FUNC_DECL:
        for decl in file.func_decls():
            if walker.enter_func(decl):
                walker.visit_func_decl(decl)
    elif kind is WalkerKind.STMT:
        def visit(node: Node) -> bool:
            if isinstance(node, Stmt):
                walker.visit_stmt(node)
            return True

        for decl in file.func_decls():
            if walker.enter_func(decl):
                inspect(decl.body, visit)
    elif kind is WalkerKind.FILE:
        walker.walk_file(file)
    else:
        raise TypeError(f"unknown walker kind: {kind!r}")


__all__ = [
    "WalkerKind", "Walker",
    "FuncDeclWalker", "StmtWalker", "FileWalker",
    "walker_for_func_decl", "walker_for_stmt", "walker_for_file",
    "walk_file", "has_body",
]
