# tests/conftest.py
"""
Shared builders for the test suite.

``GoBuilder`` assembles syntax trees together with a populated
``TypesInfo`` oracle, so tests can write the Go fragment they mean::

    b = GoBuilder()
    xs = b.declare("xs", Slice(Pointer(Named("", "T"))))
    ...
    unit = b.unit(b.func("f", body=[...]))
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Type

import pytest

from goastdata_shims.ast_model import (
    AssignStmt,
    BasicLit,
    BlockStmt,
    CallExpr,
    Comment,
    Expr,
    ExprStmt,
    Field,
    FieldList,
    File,
    FuncDecl,
    FuncType,
    Ident,
    ImportSpec,
    Position,
    SelectorExpr,
    Stmt,
)
from goastdata_shims.astwalk import walk_file
from goastdata_shims.checkers import Checker, CheckerContext, Diagnostic
from goastdata_shims.type_model import (
    AnalysisUnit,
    Basic,
    Named,
    Object,
    ObjectKind,
    Package,
    Pointer,
    Scope,
    Type as GoType,
    TypesInfo,
)

DATA_DIR = Path(__file__).parent / "data"

INT = Basic("int")
BOOL = Basic("bool")
STRING = Basic("string")
ERROR = Named("", "error")
ROWS_PTR = Pointer(Named("database/sql", "Rows"))
DB_PTR = Pointer(Named("database/sql", "DB"))

_DEFAULT_BODY: Sequence[Stmt] = ()


class GoBuilder:
    """Builds nodes with increasing line numbers and records oracle facts."""

    def __init__(
        self,
        pkg_path: str = "example.com/app",
        pkg_name: str = "app",
        imports: Sequence[tuple] = (),
    ) -> None:
        self.info = TypesInfo()
        self.pkg = Package(
            pkg_path, pkg_name, [Package(path, name) for path, name in imports]
        )
        self._line = 0

    # ── positions ────────────────────────────────────────────────────

    def pos(self) -> Position:
        self._line += 1
        return Position(self._line, 1)

    # ── identifiers ──────────────────────────────────────────────────

    def ident(self, name: str) -> Ident:
        """An identifier the oracle knows nothing about."""
        return Ident(name, pos=self.pos())

    def declare(
        self,
        name: str,
        typ: Optional[GoType] = None,
        kind: ObjectKind = ObjectKind.VAR,
        scope: Optional[Scope] = None,
    ) -> Ident:
        """A declaring identifier with a fresh object."""
        ident = Ident(name, pos=self.pos())
        self.info.new_object(name, kind=kind, type=typ, parent=scope, decl=ident)
        return ident

    def obj(self, decl: Ident) -> Object:
        return self.info.defs[decl]

    def use(self, decl: Ident) -> Ident:
        """A fresh occurrence of the object ``decl`` declares."""
        ident = Ident(decl.name, pos=self.pos())
        self.info.use(ident, self.obj(decl))
        return ident

    def type_name(self, name: str, typ: GoType) -> Ident:
        """A type expression (``bool``, ``int``...) with its recorded type."""
        ident = Ident(name, pos=self.pos())
        self.info.record_type(ident, typ)
        return ident

    # ── composite helpers ────────────────────────────────────────────

    def param(self, name: str, typ: GoType = INT) -> Field:
        ident = self.declare(name, typ, kind=ObjectKind.PARAM)
        return Field(self.type_name(str(typ), typ), [ident], pos=ident.pos)

    def call(self, recv: Expr, method: str, *args: Expr) -> CallExpr:
        return CallExpr(
            SelectorExpr(recv, Ident(method, pos=recv.pos), pos=recv.pos),
            list(args),
            pos=recv.pos,
        )

    def close_stmt(self, decl: Ident) -> ExprStmt:
        """``x.Close()`` for the object ``decl`` declares."""
        return ExprStmt(self.call(self.use(decl), "Close"))

    def assign(self, lhs: List[Expr], rhs: List[Expr], tok: str = ":=") -> AssignStmt:
        return AssignStmt(lhs, tok, rhs, pos=lhs[0].pos)

    def func(
        self,
        name: str,
        params: Optional[List[Field]] = None,
        results: Optional[List[Field]] = None,
        body: Optional[Sequence[Stmt]] = _DEFAULT_BODY,
        recv: Optional[FieldList] = None,
        func_type: Optional[FuncType] = None,
    ) -> FuncDecl:
        """
        A function declaration; ``body=None`` makes an external declaration.

        Pass ``func_type`` when scope nodes must be created before the
        declaration itself.
        """
        ftype = func_type or FuncType(pos=self.pos())
        ftype.params = FieldList(list(params or []))
        ftype.results = FieldList(list(results)) if results is not None else None
        block = BlockStmt(list(body), pos=self.pos()) if body is not None else None
        return FuncDecl(
            Ident(name, pos=ftype.pos), ftype, recv=recv, body=block, pos=ftype.pos,
        )

    def import_spec(self, path: str, alias: Optional[str] = None) -> ImportSpec:
        pos = self.pos()
        return ImportSpec(
            BasicLit("STRING", f'"{path}"', pos=pos),
            Ident(alias, pos=pos) if alias is not None else None,
            pos=pos,
        )

    def file(
        self,
        *decls: FuncDecl,
        filename: str = "main.go",
        imports: Sequence[ImportSpec] = (),
        comments: Sequence[Comment] = (),
    ) -> File:
        return File(
            Ident(self.pkg.name),
            filename=filename,
            imports=list(imports),
            decls=list(decls),
            comments=list(comments),
        )

    def unit(self, *decls: FuncDecl, **file_kwargs) -> AnalysisUnit:
        """A single-file unit."""
        return AnalysisUnit(self.pkg, (self.file(*decls, **file_kwargs),), self.info)

    def unit_of(self, *files: File) -> AnalysisUnit:
        return AnalysisUnit(self.pkg, tuple(files), self.info)


def run_checker(checker_cls: Type[Checker], unit: AnalysisUnit) -> List[Diagnostic]:
    """Walk every file of ``unit`` with one checker, no runner involved."""
    diags: List[Diagnostic] = []
    for file in unit.files:
        ctx = CheckerContext(info=checker_cls.info, unit=unit, file=file)
        walk_file(checker_cls.factory(ctx), file)
        diags.extend(ctx.sink)
    return diags


@pytest.fixture
def b() -> GoBuilder:
    return GoBuilder()


@pytest.fixture
def sql_builder() -> GoBuilder:
    return GoBuilder(imports=[("database/sql", "sql")])
