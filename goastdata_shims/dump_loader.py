"""
goastdata_shims/dump_loader.py
══════════════════════════════

Load an :class:`~goastdata_shims.type_model.AnalysisUnit` from a JSON dump
written by a Go front end.

Document layout
───────────────

    {
      "package": {"path": "example.com/app", "name": "app"},
      "imports": [{"path": "database/sql", "name": "sql"}, ...],
      "objects": [
        {"id": 1, "name": "rows", "kind": "var",
         "type": {"kind": "pointer",
                  "elem": {"kind": "named", "pkg": "database/sql",
                           "name": "Rows"}},
         "scope": "f1"},
        ...
      ],
      "files": [
        {"filename": "main.go", "package": "app",
         "imports":  [ImportSpec node | {"path": ..., "name": ...}],
         "decls":    [FuncDecl or GenDecl node, ...],
         "comments": [{"text": "//nolint", "pos": [3, 1]}, ...]}
      ]
    }

A node is an object whose ``node`` key names a class of
:mod:`goastdata_shims.ast_model`; its remaining keys are the class's fields
plus these annotations:

    pos          [line, column]
    label        name under which an object's ``scope`` refers to this node
                 (a field, not an annotation, on BranchStmt and LabeledStmt)
    def / use    object id (identifiers only)
    static_type  type of the expression

Types are ``{"kind": basic|pointer|slice|array|named|signature, ...}``; a
bare string is shorthand for a basic type (``"bool"``).

Every malformed document raises :class:`DumpFormatError` naming the path of
the offending value, e.g. ``files[0].decls[1].body.list[2]: ...``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import MISSING, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

from goastdata_shims.ast_model import (
    NODE_TYPES,
    BasicLit,
    Comment,
    File,
    Ident,
    ImportSpec,
    Node,
    Position,
)
from goastdata_shims.type_model import (
    AnalysisUnit,
    Array,
    Basic,
    Named,
    Object,
    ObjectKind,
    Package,
    Pointer,
    Scope,
    Signature,
    Slice,
    Type,
    TypesInfo,
)

_log = logging.getLogger(__name__)

# keys of a node object that are not dataclass fields
_ANNOTATIONS = frozenset({"node", "pos", "label", "def", "use", "static_type"})


class DumpFormatError(ValueError):
    """The dump is not a well-formed analysis unit."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


def _child(path: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{path}[{key}]"
    return f"{path}.{key}" if path else str(key)


def _expect(value: Any, kind: type, path: str) -> Any:
    if not isinstance(value, kind):
        raise DumpFormatError(
            path, f"expected {kind.__name__}, got {type(value).__name__}"
        )
    return value


# ═════════════════════════════════════════════════════════════════════════
#  TYPES
# ═════════════════════════════════════════════════════════════════════════

def decode_type(data: Any, path: str = "type") -> Type:
    """Decode one type term."""
    if isinstance(data, str):
        return Basic(data)
    data = _expect(data, dict, path)
    kind = data.get("kind")
    if kind == "basic":
        return Basic(_expect(data.get("name"), str, _child(path, "name")))
    if kind == "pointer":
        return Pointer(decode_type(data.get("elem"), _child(path, "elem")))
    if kind == "slice":
        return Slice(decode_type(data.get("elem"), _child(path, "elem")))
    if kind == "array":
        return Array(
            decode_type(data.get("elem"), _child(path, "elem")),
            _expect(data.get("len"), int, _child(path, "len")),
        )
    if kind == "named":
        base = data.get("underlying")
        return Named(
            pkg=_expect(data.get("pkg", ""), str, _child(path, "pkg")),
            name=_expect(data.get("name"), str, _child(path, "name")),
            base=decode_type(base, _child(path, "underlying")) if base is not None else None,
        )
    if kind == "signature":
        params = _expect(data.get("params", []), list, _child(path, "params"))
        results = _expect(data.get("results", []), list, _child(path, "results"))
        return Signature(
            params=tuple(
                decode_type(p, _child(_child(path, "params"), i))
                for i, p in enumerate(params)
            ),
            results=tuple(
                decode_type(r, _child(_child(path, "results"), i))
                for i, r in enumerate(results)
            ),
        )
    raise DumpFormatError(path, f"unknown type kind {kind!r}")


# ═════════════════════════════════════════════════════════════════════════
#  NODES
# ═════════════════════════════════════════════════════════════════════════

class _NodeDecoder:
    """
    Decodes node objects and remembers the oracle annotations met on the
    way; objects are created once every file has been decoded.
    """

    def __init__(self) -> None:
        self.labels: Dict[str, Node] = {}
        self.defs: List[Tuple[Ident, int, str]] = []
        self.uses: List[Tuple[Ident, int, str]] = []
        self.types: List[Tuple[Node, Type]] = []

    def decode(self, data: Any, path: str) -> Node:
        data = _expect(data, dict, path)
        cls_name = data.get("node")
        cls = NODE_TYPES.get(cls_name) if isinstance(cls_name, str) else None
        if cls is None:
            raise DumpFormatError(path, f"unknown node class {cls_name!r}")

        known = {f.name: f for f in fields(cls) if f.name != "pos"}
        unknown = set(data) - set(known) - _ANNOTATIONS
        if unknown:
            raise DumpFormatError(
                path, f"unknown field(s) for {cls_name}: {', '.join(sorted(unknown))}"
            )

        kwargs: Dict[str, Any] = {}
        for name, f in known.items():
            if name in data:
                kwargs[name] = self._value(data[name], _child(path, name))
            elif f.default is MISSING and f.default_factory is MISSING:
                raise DumpFormatError(path, f"{cls_name} is missing field {name!r}")
        kwargs["pos"] = self._position(data.get("pos"), _child(path, "pos"))
        node = cls(**kwargs)

        self._annotate(node, data, path, scope_label="label" not in known)
        return node

    def _value(self, value: Any, path: str) -> Any:
        if isinstance(value, dict):
            return self.decode(value, path)
        if isinstance(value, list):
            return [self._value(v, _child(path, i)) for i, v in enumerate(value)]
        return value

    @staticmethod
    def _position(value: Any, path: str) -> Position:
        if value is None:
            return Position()
        if (not isinstance(value, list) or len(value) != 2
                or not all(isinstance(v, int) for v in value)):
            raise DumpFormatError(path, "expected [line, column]")
        return Position(value[0], value[1])

    def _annotate(
        self,
        node: Node,
        data: Mapping[str, Any],
        path: str,
        scope_label: bool = True,
    ) -> None:
        # BranchStmt and LabeledStmt carry a ``label`` field of their own
        label = data.get("label") if scope_label else None
        if label is not None:
            label = _expect(label, str, _child(path, "label"))
            if label in self.labels:
                raise DumpFormatError(_child(path, "label"), f"duplicate label {label!r}")
            self.labels[label] = node

        for key, into in (("def", self.defs), ("use", self.uses)):
            if key not in data:
                continue
            if not isinstance(node, Ident):
                raise DumpFormatError(path, f"{key!r} is only valid on Ident nodes")
            into.append((node, _expect(data[key], int, _child(path, key)), path))

        if "static_type" in data:
            self.types.append(
                (node, decode_type(data["static_type"], _child(path, "static_type")))
            )

    # ── file-level shapes ────────────────────────────────────────────

    def decode_import(self, data: Any, path: str) -> ImportSpec:
        data = _expect(data, dict, path)
        if "node" in data:
            spec = self.decode(data, path)
            if not isinstance(spec, ImportSpec):
                raise DumpFormatError(path, "expected an ImportSpec node")
            return spec
        # shorthand: {"path": "database/sql", "name": "sql", "pos": [l, c]}
        import_path = _expect(data.get("path"), str, _child(path, "path"))
        pos = self._position(data.get("pos"), _child(path, "pos"))
        name = data.get("name")
        return ImportSpec(
            path=BasicLit("STRING", f'"{import_path}"', pos=pos),
            name=Ident(_expect(name, str, _child(path, "name")), pos=pos)
            if name is not None else None,
            pos=pos,
        )

    def decode_comment(self, data: Any, path: str) -> Comment:
        data = _expect(data, dict, path)
        if "node" in data:
            node = self.decode(data, path)
            if not isinstance(node, Comment):
                raise DumpFormatError(path, "expected a Comment node")
            return node
        return Comment(
            _expect(data.get("text"), str, _child(path, "text")),
            pos=self._position(data.get("pos"), _child(path, "pos")),
        )

    def decode_file(self, data: Any, path: str) -> File:
        data = _expect(data, dict, path)
        pkg_name = data.get("package", "")
        if isinstance(pkg_name, dict):
            name = self.decode(pkg_name, _child(path, "package"))
        else:
            name = Ident(_expect(pkg_name, str, _child(path, "package")))
        imports_path = _child(path, "imports")
        decls_path = _child(path, "decls")
        comments_path = _child(path, "comments")
        return File(
            name=name,
            filename=_expect(data.get("filename", ""), str, _child(path, "filename")),
            imports=[
                self.decode_import(d, _child(imports_path, i))
                for i, d in enumerate(_expect(data.get("imports", []), list, imports_path))
            ],
            decls=[
                self.decode(d, _child(decls_path, i))
                for i, d in enumerate(_expect(data.get("decls", []), list, decls_path))
            ],
            comments=[
                self.decode_comment(d, _child(comments_path, i))
                for i, d in enumerate(_expect(data.get("comments", []), list, comments_path))
            ],
        )


# ═════════════════════════════════════════════════════════════════════════
#  UNIT
# ═════════════════════════════════════════════════════════════════════════

def _decode_package(data: Any, path: str) -> Package:
    data = _expect(data, dict, path)
    return Package(
        path=_expect(data.get("path", ""), str, _child(path, "path")),
        name=_expect(data.get("name", ""), str, _child(path, "name")),
    )


def load_dump_data(data: Any) -> AnalysisUnit:
    """
    Build an analysis unit from an already parsed JSON document.

    Raises
    ------
    DumpFormatError
        If the document is malformed or refers to unknown objects/labels.
    """
    data = _expect(data, dict, "")
    try:
        return _build_unit(data)
    except RecursionError:
        raise DumpFormatError("", "document is nested too deeply") from None


def _build_unit(data: Dict[str, Any]) -> AnalysisUnit:
    pkg = _decode_package(data.get("package", {}), "package")
    imports = _expect(data.get("imports", []), list, "imports")
    pkg.imports = [
        _decode_package(p, _child("imports", i)) for i, p in enumerate(imports)
    ]

    decoder = _NodeDecoder()
    files = tuple(
        decoder.decode_file(f, _child("files", i))
        for i, f in enumerate(_expect(data.get("files", []), list, "files"))
    )

    # first declaring identifier per object id
    decl_of: Dict[int, Ident] = {}
    for ident, obj_id, _path in decoder.defs:
        decl_of.setdefault(obj_id, ident)

    info = TypesInfo()
    objects: Dict[int, Object] = {}
    scopes: Dict[str, Scope] = {}
    raw_objects = _expect(data.get("objects", []), list, "objects")
    for i, raw in enumerate(raw_objects):
        path = _child("objects", i)
        raw = _expect(raw, dict, path)
        obj_id = _expect(raw.get("id"), int, _child(path, "id"))
        if obj_id in objects:
            raise DumpFormatError(_child(path, "id"), f"duplicate object id {obj_id}")
        try:
            kind = ObjectKind(raw.get("kind", "var"))
        except ValueError:
            raise DumpFormatError(
                _child(path, "kind"), f"unknown object kind {raw.get('kind')!r}"
            ) from None

        parent: Optional[Scope] = None
        label = raw.get("scope")
        if label is not None:
            label = _expect(label, str, _child(path, "scope"))
            if label not in decoder.labels:
                raise DumpFormatError(_child(path, "scope"), f"unknown label {label!r}")
            parent = scopes.setdefault(label, Scope(node=decoder.labels[label]))

        typ = raw.get("type")
        objects[obj_id] = info.new_object(
            name=_expect(raw.get("name", ""), str, _child(path, "name")),
            kind=kind,
            type=decode_type(typ, _child(path, "type")) if typ is not None else None,
            parent=parent,
            decl=decl_of.get(obj_id),
        )

    for ident, obj_id, path in decoder.defs:
        if obj_id not in objects:
            raise DumpFormatError(_child(path, "def"), f"unknown object id {obj_id}")
        info.define(ident, objects[obj_id])
    for ident, obj_id, path in decoder.uses:
        if obj_id not in objects:
            raise DumpFormatError(_child(path, "use"), f"unknown object id {obj_id}")
        info.use(ident, objects[obj_id])
    for node, typ in decoder.types:
        info.record_type(node, typ)

    _log.debug(
        "loaded package %s: %d files, %d objects, %d uses",
        pkg.path, len(files), len(objects), len(info.uses),
    )
    return AnalysisUnit(pkg=pkg, files=files, info=info)


def load_dump(path: str) -> AnalysisUnit:
    """
    Read a JSON dump file.

    Raises
    ------
    OSError
        If the file cannot be read.
    DumpFormatError
        If it is not valid JSON or not a well-formed dump.
    """
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise DumpFormatError("", f"invalid JSON: {exc}") from exc
        except RecursionError:
            raise DumpFormatError("", "document is nested too deeply") from None
    return load_dump_data(data)


__all__ = [
    "DumpFormatError",
    "decode_type",
    "load_dump",
    "load_dump_data",
]
