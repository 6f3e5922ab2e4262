# tests/test_astwalk.py
"""
Tests for goastdata_shims.astwalk: the three walker variants and the
driver.
"""

from types import SimpleNamespace

import pytest

from goastdata_shims.ast_model import (
    BlockStmt,
    BranchStmt,
    CaseClause,
    CommClause,
    DeclStmt,
    EmptyStmt,
    ExprStmt,
    GenDecl,
    IfStmt,
    LabeledStmt,
    RangeStmt,
    ReturnStmt,
    SelectStmt,
    SwitchStmt,
)
from goastdata_shims.astwalk import (
    FileWalker,
    FuncDeclWalker,
    StmtWalker,
    WalkerKind,
    walk_file,
    walker_for_func_decl,
    walker_for_stmt,
)


class TestFuncDeclWalker:

    def test_skips_declarations_without_body(self, b):
        with_body = b.func("f")
        external = b.func("g", body=None)
        seen = []
        walk_file(FuncDeclWalker(seen.append), b.file(with_body, external))
        assert seen == [with_body]

    def test_custom_enter_func(self, b):
        decls = [b.func("f"), b.func("g", body=None), b.func("h")]
        seen = []
        walker = FuncDeclWalker(seen.append, enter_func=lambda d: d.name.name != "h")
        walk_file(walker, b.file(*decls))
        assert [d.name.name for d in seen] == ["f", "g"]

    def test_visitor_binding(self, b):
        class Visitor:
            def __init__(self):
                self.names = []

            def visit_func_decl(self, decl):
                self.names.append(decl.name.name)

            def enter_func(self, decl):
                return True

        visitor = Visitor()
        walker = walker_for_func_decl(visitor)
        assert walker.kind is WalkerKind.FUNC_DECL
        walk_file(walker, b.file(b.func("f"), b.func("g", body=None)))
        assert visitor.names == ["f", "g"]


class TestStmtWalker:

    def test_visits_nested_statements_in_order(self, b):
        ret = ReturnStmt()
        inner = ExprStmt(b.ident("x"))
        branch = IfStmt(b.ident("ok"), BlockStmt([inner]))
        loop = RangeStmt(b.ident("xs"), BlockStmt([branch]))
        fn = b.func("f", body=[loop, ret])
        seen = []
        walk_file(StmtWalker(seen.append), b.file(fn))
        assert seen == [fn.body, loop, loop.body, branch, branch.body, inner, ret]

    def test_visits_switch_and_select_clauses(self, b):
        brk = BranchStmt("break")
        case = CaseClause([b.ident("a")], [brk])
        switch = SwitchStmt(BlockStmt([case]), tag=b.ident("x"))
        comm = CommClause(None, [EmptyStmt()])
        select = LabeledStmt(b.ident("outer"), SelectStmt(BlockStmt([comm])))
        decl = DeclStmt(GenDecl("var"))
        fn = b.func("f", body=[switch, select, decl])
        seen = []
        walk_file(StmtWalker(seen.append), b.file(fn))
        assert [type(s).__name__ for s in seen] == [
            "BlockStmt", "SwitchStmt", "BlockStmt", "CaseClause", "BranchStmt",
            "LabeledStmt", "SelectStmt", "BlockStmt", "CommClause", "EmptyStmt",
            "DeclStmt",
        ]

    def test_statements_of_external_functions_not_visited(self, b):
        seen = []
        walk_file(StmtWalker(seen.append), b.file(b.func("g", body=None)))
        assert seen == []

    def test_visitor_without_enter_func(self, b):
        visitor = SimpleNamespace(stmts=[])
        visitor.visit_stmt = visitor.stmts.append
        walker = walker_for_stmt(visitor)
        walk_file(walker, b.file(b.func("f", body=[ReturnStmt()]),
                                 b.func("g", body=None)))
        assert len(visitor.stmts) == 2


class TestFileWalker:

    def test_called_once_per_file(self, b):
        seen = []
        file = b.file(b.func("f"), b.func("g"))
        walk_file(FileWalker(seen.append), file)
        assert seen == [file]


def test_unknown_walker_kind():
    with pytest.raises(TypeError, match="unknown walker kind"):
        walk_file(SimpleNamespace(kind="bogus"), None)
