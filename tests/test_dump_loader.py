# tests/test_dump_loader.py
"""
Tests for goastdata_shims.dump_loader: decoding JSON dumps into analysis
units, and the error paths for malformed documents.
"""

import json

import pytest

from goastdata_shims.ast_model import (
    BasicLit,
    BranchStmt,
    CaseClause,
    CommClause,
    FuncType,
    Ident,
    ImportSpec,
    RangeStmt,
    SwitchStmt,
    ValueSpec,
)
from goastdata_shims.checkers import CheckerRunner
from goastdata_shims.dump_loader import (
    DumpFormatError,
    decode_type,
    load_dump,
    load_dump_data,
)
from goastdata_shims.type_model import (
    Array,
    Basic,
    Named,
    ObjectKind,
    Pointer,
    Signature,
    Slice,
)
from tests.conftest import DATA_DIR

STORE_DUMP = DATA_DIR / "store.dump.json"


def _doc(decls=(), objects=(), **file_extra):
    """A minimal one-file document."""
    file = {"filename": "main.go", "package": "app", "decls": list(decls)}
    file.update(file_extra)
    return {
        "package": {"path": "example.com/app", "name": "app"},
        "objects": list(objects),
        "files": [file],
    }


def _func(body, name="f", label=None, params=()):
    ftype = {"node": "FuncType",
             "params": {"node": "FieldList", "list": list(params)}}
    if label is not None:
        ftype["label"] = label
    return {
        "node": "FuncDecl", "pos": [3, 1],
        "name": {"node": "Ident", "name": name},
        "type": ftype,
        "body": {"node": "BlockStmt", "list": list(body)},
    }


# ═════════════════════════════════════════════════════════════════════════
#  Types
# ═════════════════════════════════════════════════════════════════════════

class TestDecodeType:

    def test_string_shorthand(self):
        assert decode_type("bool") == Basic("bool")

    def test_composites(self):
        rows = {"kind": "named", "pkg": "database/sql", "name": "Rows"}
        assert decode_type({"kind": "pointer", "elem": rows}) == Pointer(
            Named("database/sql", "Rows")
        )
        assert str(decode_type({"kind": "slice", "elem": "int"})) == "[]int"
        assert decode_type({"kind": "array", "elem": "byte", "len": 4}) == Array(
            Basic("byte"), 4
        )

    def test_named_underlying(self):
        typ = decode_type({
            "kind": "named", "pkg": "example.com/app", "name": "IDs",
            "underlying": {"kind": "slice", "elem": "int"},
        })
        assert str(typ) == "example.com/app.IDs"
        assert typ.underlying() == Slice(Basic("int"))

    def test_signature(self):
        typ = decode_type({"kind": "signature", "params": ["int"],
                           "results": ["bool"]})
        assert typ == Signature((Basic("int"),), (Basic("bool"),))
        assert str(typ) == "func(int) bool"

    def test_unknown_kind(self):
        with pytest.raises(DumpFormatError, match="unknown type kind 'chan'") as exc:
            decode_type({"kind": "pointer", "elem": {"kind": "chan"}}, "objects[0].type")
        assert exc.value.path == "objects[0].type.elem"

    def test_array_needs_length(self):
        with pytest.raises(DumpFormatError, match="expected int"):
            decode_type({"kind": "array", "elem": "int"})


# ═════════════════════════════════════════════════════════════════════════
#  Fixture file
# ═════════════════════════════════════════════════════════════════════════

class TestStoreFixture:

    @pytest.fixture
    def unit(self):
        return load_dump(str(STORE_DUMP))

    def test_package_and_imports(self, unit):
        assert unit.pkg.path == "example.com/store"
        assert unit.pkg.imported("database/sql").name == "sql"
        assert unit.file_names() == ["store.go"]
        spec = unit.files[0].imports[0]
        assert isinstance(spec, ImportSpec)
        assert spec.path.value == '"database/sql"'
        assert spec.name is None

    def test_objects_resolve(self, unit):
        info = unit.info
        assert len(info.objects) == 5
        leak = unit.files[0].decls[0]
        db_param = leak.type.params.list[0].names[0]
        db = info.object_of(db_param)
        assert db.kind is ObjectKind.PARAM
        assert db.decl is db_param
        assert db.parent.node is leak.type
        assert str(info.type_of(db_param)) == "*database/sql.DB"

        uses = [ident for ident, obj in info.iter_uses() if obj == db]
        assert len(uses) == 1
        assert uses[0].pos.line == 6

    def test_scope_shared_per_label(self, unit):
        objs = unit.info.objects
        assert objs[0].parent is objs[1].parent
        assert objs[0].parent is not objs[3].parent

    def test_static_type_annotation(self, unit):
        owned = unit.files[0].decls[1]
        result_type = owned.type.results.list[0].type
        assert unit.info.type_string(result_type) == "*database/sql.Rows"

    def test_single_unclosed_rows_finding(self, unit):
        results = CheckerRunner().run(unit)
        assert results.to_gcc_format() == (
            "store.go:5:1: warning: local variable db.Rows have not Close call "
            "[sqlRowsClose]"
        )
        assert isinstance(results.diagnostics[0].node, FuncType)
        assert results.diagnostics[0].node is unit.files[0].decls[0].type


# ═════════════════════════════════════════════════════════════════════════
#  Inline documents
# ═════════════════════════════════════════════════════════════════════════

class TestLoadDumpData:

    def test_node_fields_and_positions(self):
        loop = {
            "node": "RangeStmt", "pos": [4, 2],
            "key": {"node": "Ident", "name": "i", "pos": [4, 6]},
            "x": {"node": "Ident", "name": "xs"},
            "body": {"node": "BlockStmt"},
        }
        unit = load_dump_data(_doc([_func([loop])]))
        stmt = unit.files[0].decls[0].body.list[0]
        assert isinstance(stmt, RangeStmt)
        assert stmt.pos.line == 4
        assert stmt.key.name == "i"
        assert stmt.value is None
        assert stmt.tok == ":="

    def test_package_clause_as_node(self):
        doc = _doc()
        doc["files"][0]["package"] = {"node": "Ident", "name": "app", "pos": [1, 9]}
        name = load_dump_data(doc).files[0].name
        assert isinstance(name, Ident)
        assert name.pos.column == 9

    def test_import_and_comment_nodes(self):
        doc = _doc(
            imports=[{"node": "ImportSpec",
                      "path": {"node": "BasicLit", "kind": "STRING",
                               "value": "\"fmt\""},
                      "name": {"node": "Ident", "name": "f"}}],
            comments=[{"node": "Comment", "text": "//nolint", "pos": [2, 1]}],
        )
        file = load_dump_data(doc).files[0]
        assert isinstance(file.imports[0].path, BasicLit)
        assert file.imports[0].name.name == "f"
        assert file.comments[0].pos.line == 2

    def test_shorthand_import_alias(self):
        doc = _doc(imports=[{"path": "database/sql", "name": "db", "pos": [3, 8]}])
        spec = load_dump_data(doc).files[0].imports[0]
        assert spec.name.name == "db"
        assert spec.path.value == '"database/sql"'
        assert spec.pos.line == 3

    def test_object_without_decl(self):
        use = {"node": "ExprStmt",
               "x": {"node": "Ident", "name": "g", "use": 7}}
        unit = load_dump_data(_doc([_func([use])], objects=[
            {"id": 7, "name": "g", "kind": "var", "type": "int"},
        ]))
        obj = unit.info.objects[0]
        assert obj.decl is None
        assert obj.anchor() is None
        ident = unit.files[0].decls[0].body.list[0].x
        assert unit.info.object_of(ident) is obj


# ═════════════════════════════════════════════════════════════════════════
#  Statement kinds
# ═════════════════════════════════════════════════════════════════════════

def _id(name, **annotations):
    return {"node": "Ident", "name": name, **annotations}


def _xs_at_i(method):
    """``xs[i].method()`` with ``xs`` = object 1 and ``i`` = object 2."""
    index = {"node": "IndexExpr", "x": _id("xs", use=1), "index": _id("i", use=2)}
    return {"node": "ExprStmt",
            "x": {"node": "CallExpr",
                  "fun": {"node": "SelectorExpr", "x": index,
                          "sel": _id(method)}}}


_XS_PARAM = {"node": "Field", "names": [_id("xs", **{"def": 1})],
             "type": {"node": "ArrayType",
                      "elt": {"node": "StarExpr", "x": _id("T")}}}

_LOOP_OBJECTS = [
    {"id": 1, "name": "xs", "kind": "param",
     "type": {"kind": "slice",
              "elem": {"kind": "pointer",
                       "elem": {"kind": "named", "pkg": "example.com/app",
                                "name": "T"}}}},
    {"id": 2, "name": "i", "kind": "var", "type": "int"},
]


def _range(body, pos=(4, 2)):
    return {"node": "RangeStmt", "pos": list(pos),
            "key": _id("i", **{"def": 2}), "x": _id("xs", use=1),
            "body": {"node": "BlockStmt", "list": list(body)}}


class TestStatementKinds:

    def test_continue_inside_range_loop(self):
        guard = {"node": "IfStmt",
                 "cond": {"node": "BinaryExpr",
                          "x": {"node": "IndexExpr", "x": _id("xs", use=1),
                                "index": _id("i", use=2)},
                          "op": "==", "y": _id("nil")},
                 "body": {"node": "BlockStmt",
                          "list": [{"node": "BranchStmt", "tok": "continue"}]}}
        doc = _doc([_func([_range([guard, _xs_at_i("Close")])],
                          params=[_XS_PARAM])], objects=_LOOP_OBJECTS)
        unit = load_dump_data(doc)
        branch = unit.files[0].decls[0].body.list[0].body.list[0].body.list[0]
        assert isinstance(branch, BranchStmt)
        assert branch.tok == "continue"
        assert branch.label is None

        results = CheckerRunner().run(unit, checkers=["indexOnlyLoop"])
        assert [d.error_id for d in results.diagnostics] == ["indexOnlyLoop"]

    def test_range_loop_inside_switch_case(self):
        loop = _range([_xs_at_i("A"), _xs_at_i("B")], pos=(6, 3))
        switch = {"node": "SwitchStmt", "tag": _id("mode"),
                  "body": {"node": "BlockStmt", "list": [
                      {"node": "CaseClause",
                       "list": [{"node": "BasicLit", "kind": "INT", "value": "1"}],
                       "body": [{"node": "BranchStmt", "tok": "fallthrough"}]},
                      {"node": "CaseClause", "body": [loop]},
                  ]}}
        doc = _doc([_func([switch], params=[_XS_PARAM])], objects=_LOOP_OBJECTS)
        unit = load_dump_data(doc)
        stmt = unit.files[0].decls[0].body.list[0]
        assert isinstance(stmt, SwitchStmt)
        assert isinstance(stmt.body.list[1], CaseClause)
        assert stmt.body.list[1].list == []

        results = CheckerRunner().run(unit, checkers=["indexOnlyLoop"])
        assert [d.location.line for d in results.diagnostics] == [6]
        assert results.diagnostics[0].node is stmt.body.list[1].body[0]

    def test_declarations_select_and_labels(self):
        var_rows = {"node": "DeclStmt", "decl": {
            "node": "GenDecl", "tok": "var",
            "specs": [{"node": "ValueSpec", "names": [_id("rows")],
                       "type": {"node": "StarExpr",
                                "x": {"node": "SelectorExpr", "x": _id("sql"),
                                      "sel": _id("Rows")}}}]}}
        select = {"node": "SelectStmt", "body": {"node": "BlockStmt", "list": [
            {"node": "CommClause",
             "comm": {"node": "SendStmt", "chan": _id("ch"), "value": _id("v")},
             "body": [{"node": "BranchStmt", "tok": "break", "label": _id("outer")}]},
            {"node": "CommClause"},
        ]}}
        labeled = {"node": "LabeledStmt", "label": _id("outer"), "stmt": select}
        type_switch = {"node": "TypeSwitchStmt",
                       "assign": {"node": "ExprStmt",
                                  "x": {"node": "TypeAssertExpr", "x": _id("v")}},
                       "body": {"node": "BlockStmt"}}
        point = {"node": "GenDecl", "tok": "type", "specs": [
            {"node": "TypeSpec", "name": _id("Point"),
             "type": {"node": "StructType", "fields": {"node": "FieldList"}}}]}
        body = [var_rows, labeled, type_switch, {"node": "EmptyStmt"}]
        file = load_dump_data(_doc([point, _func(body)])).files[0]

        assert [type(d).__name__ for d in file.decls] == ["GenDecl", "FuncDecl"]
        assert [d.name.name for d in file.func_decls()] == ["f"]
        stmts = file.decls[1].body.list
        assert [type(s).__name__ for s in stmts] == [
            "DeclStmt", "LabeledStmt", "TypeSwitchStmt", "EmptyStmt",
        ]
        spec = stmts[0].decl.specs[0]
        assert isinstance(spec, ValueSpec)
        assert spec.values == []
        clauses = stmts[1].stmt.body.list
        assert isinstance(clauses[0], CommClause)
        assert clauses[0].body[0].label.name == "outer"
        assert clauses[1].comm is None


class TestMalformedDumps:

    def _error(self, doc):
        with pytest.raises(DumpFormatError) as exc:
            load_dump_data(doc)
        return exc.value

    def test_not_an_object(self):
        assert "expected dict" in str(self._error([]))

    def test_unknown_node_class(self):
        err = self._error(_doc([_func([{"node": "WhileStmt"}])]))
        assert err.path == "files[0].decls[0].body.list[0]"
        assert "WhileStmt" in str(err)

    def test_unknown_field(self):
        stmt = {"node": "ReturnStmt", "value": 1}
        err = self._error(_doc([_func([stmt])]))
        assert "unknown field(s) for ReturnStmt: value" in str(err)

    def test_missing_required_field(self):
        err = self._error(_doc([_func([{"node": "ExprStmt"}])]))
        assert "missing field 'x'" in str(err)

    def test_bad_position(self):
        stmt = {"node": "ReturnStmt", "pos": [1]}
        err = self._error(_doc([_func([stmt])]))
        assert err.path == "files[0].decls[0].body.list[0].pos"

    def test_def_only_on_identifiers(self):
        stmt = {"node": "ReturnStmt", "def": 1}
        assert "only valid on Ident" in str(self._error(_doc([_func([stmt])])))

    def test_duplicate_label(self):
        doc = _doc([_func([], name="f", label="s"), _func([], name="g", label="s")])
        assert "duplicate label 's'" in str(self._error(doc))

    def test_unknown_scope_label(self):
        doc = _doc(objects=[{"id": 1, "name": "x", "scope": "nowhere"}])
        err = self._error(doc)
        assert err.path == "objects[0].scope"

    def test_duplicate_object_id(self):
        doc = _doc(objects=[{"id": 1, "name": "x"}, {"id": 1, "name": "y"}])
        assert "duplicate object id 1" in str(self._error(doc))

    def test_unknown_object_kind(self):
        doc = _doc(objects=[{"id": 1, "name": "x", "kind": "label"}])
        assert self._error(doc).path == "objects[0].kind"

    def test_use_of_unknown_object(self):
        stmt = {"node": "ExprStmt", "x": {"node": "Ident", "name": "g", "use": 9}}
        err = self._error(_doc([_func([stmt])]))
        assert err.path == "files[0].decls[0].body.list[0].x.use"
        assert "unknown object id 9" in str(err)

    def test_deeply_nested_document(self, tmp_path):
        path = tmp_path / "deep.json"
        path.write_text("[" * 200000 + "]" * 200000, encoding="utf-8")
        with pytest.raises(DumpFormatError, match="nested too deeply"):
            load_dump(str(path))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DumpFormatError, match="invalid JSON"):
            load_dump(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_dump(str(tmp_path / "absent.json"))

    def test_round_trip_through_json_text(self, tmp_path):
        path = tmp_path / "app.json"
        path.write_text(json.dumps(_doc([_func([])])), encoding="utf-8")
        unit = load_dump(str(path))
        assert unit.files[0].decls[0].name.name == "f"
