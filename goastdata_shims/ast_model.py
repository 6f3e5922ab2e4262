"""
goastdata_shims/ast_model.py
════════════════════════════

In-memory syntax tree model for Go source files.

The checkers never parse Go themselves: a host front end (or the JSON dump
loader in :mod:`goastdata_shims.dump_loader`) builds these nodes and hands
them over together with a :class:`goastdata_shims.type_model.TypesInfo`
oracle.  The node set mirrors ``go/ast``: each node kind a Go front end
produces has a class here, so any parsed function body can be represented
and walked.

    ┌─────────────────────────────────────────────────────────────────┐
    │  Nodes                                                          │
    │    • Expr  — Ident, SelectorExpr, IndexExpr, CallExpr, ...      │
    │    • Stmt  — BlockStmt, AssignStmt, SwitchStmt, BranchStmt, ... │
    │    • Decl  — FuncDecl, GenDecl                                  │
    │    • File, ImportSpec, Field, FieldList, Comment                │
    ├─────────────────────────────────────────────────────────────────┤
    │  Traversal                                                      │
    │    • Node.children()  — children in source order                │
    │    • iter_preorder()  — depth-first, parent before children     │
    │    • inspect()        — pre-order with a "descend?" callback    │
    ├─────────────────────────────────────────────────────────────────┤
    │  Queries                                                        │
    │    • expr_equal()     — structural equality, positions ignored  │
    │    • ident_of()       — identifier an expression names          │
    └─────────────────────────────────────────────────────────────────┘

Design Principles
─────────────────
1. **Identity hashing**: every node class is declared with ``eq=False`` so
   nodes can key the oracle's maps.  Structural comparison goes through
   :func:`expr_equal` instead.

2. **Read-only**: nothing in this package mutates a tree once built.

License: MIT
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import (
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Type,
)


# ═══════════════════════════════════════════════════════════════════════════
#  POSITIONS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Position:
    """1-based line/column of a node's first character (0 = unknown)."""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.line}:{self.column}"
        return str(self.line)


NO_POS = Position()


# ═══════════════════════════════════════════════════════════════════════════
#  NODE BASE CLASSES
# ═══════════════════════════════════════════════════════════════════════════

# Node class name → class, filled by the decorator below.  Used by the dump
# loader to decode ``{"node": "RangeStmt", ...}`` objects.
NODE_TYPES: Dict[str, Type["Node"]] = {}


def _node(cls):
    """Declare a node dataclass (identity-hashed) and index it by name."""
    cls = dataclass(eq=False)(cls)
    NODE_TYPES[cls.__name__] = cls
    return cls


@dataclass(eq=False)
class Node:
    """Base class for every syntax node."""

    pos: Position = field(default=NO_POS, kw_only=True, repr=False)

    # Classes whose constructor order differs from source order override this.
    _source_order = ()

    def children(self) -> Iterator[Node]:
        """Yield direct child nodes in source order."""
        names = self._source_order or [
            f.name for f in fields(self) if f.name != "pos"
        ]
        for name in names:
            value = getattr(self, name)
            if isinstance(value, Node):
                yield value
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, Node):
                        yield item


class Expr(Node):
    """Marker base for expressions (including type expressions)."""


class Stmt(Node):
    """Marker base for statements."""


class Decl(Node):
    """Marker base for top-level declarations."""


# ═══════════════════════════════════════════════════════════════════════════
#  EXPRESSIONS
# ═══════════════════════════════════════════════════════════════════════════

@_node
class Ident(Expr):
    name: str

    @property
    def is_blank(self) -> bool:
        return self.name == "_"

    def __str__(self) -> str:
        return self.name


@_node
class BasicLit(Expr):
    """A literal: ``kind`` is INT, FLOAT, IMAG, CHAR or STRING."""
    kind: str
    value: str


@_node
class SelectorExpr(Expr):
    x: Expr
    sel: Ident


@_node
class IndexExpr(Expr):
    x: Expr
    index: Expr


@_node
class SliceExpr(Expr):
    x: Expr
    low: Optional[Expr] = None
    high: Optional[Expr] = None
    max: Optional[Expr] = None


@_node
class CallExpr(Expr):
    fun: Expr
    args: List[Expr] = field(default_factory=list)


@_node
class StarExpr(Expr):
    x: Expr


@_node
class UnaryExpr(Expr):
    op: str
    x: Expr


@_node
class BinaryExpr(Expr):
    x: Expr
    op: str
    y: Expr


@_node
class ParenExpr(Expr):
    x: Expr


@_node
class TypeAssertExpr(Expr):
    x: Expr
    type: Optional[Expr] = None       # None for x.(type)


@_node
class KeyValueExpr(Expr):
    key: Expr
    value: Expr


@_node
class CompositeLit(Expr):
    type: Optional[Expr] = None
    elts: List[Expr] = field(default_factory=list)


@_node
class ArrayType(Expr):
    """``[len]elt``; ``len`` is None for slice types."""
    elt: Expr
    len: Optional[Expr] = None


@_node
class MapType(Expr):
    key: Expr
    value: Expr


@_node
class IndexListExpr(Expr):
    """Generic instantiation ``x[A, B]``."""
    x: Expr
    indices: List[Expr] = field(default_factory=list)


@_node
class Ellipsis(Expr):
    """``...`` in a parameter list or array literal length."""
    elt: Optional[Expr] = None


@_node
class ChanType(Expr):
    """``chan T``; ``dir`` is "send", "recv" or "both"."""
    value: Expr
    dir: str = "both"


@_node
class StructType(Expr):
    fields: Optional[FieldList] = None


@_node
class InterfaceType(Expr):
    methods: Optional[FieldList] = None


@_node
class BadExpr(Expr):
    """Placeholder for an expression the front end could not parse."""


@_node
class Field(Node):
    """One entry of a parameter/result list; ``names`` may be empty."""
    type: Expr
    names: List[Ident] = field(default_factory=list)

    _source_order = ("names", "type")


@_node
class FieldList(Node):
    list: List[Field] = field(default_factory=list)

    def num_fields(self) -> int:
        """Number of declared entries; an unnamed field counts as one."""
        n = 0
        for f in self.list:
            n += len(f.names) if f.names else 1
        return n


@_node
class FuncType(Expr):
    params: Optional[FieldList] = None
    results: Optional[FieldList] = None


@_node
class FuncLit(Expr):
    type: FuncType
    body: BlockStmt


# ═══════════════════════════════════════════════════════════════════════════
#  STATEMENTS
# ═══════════════════════════════════════════════════════════════════════════

@_node
class BlockStmt(Stmt):
    list: List[Stmt] = field(default_factory=list)


@_node
class ExprStmt(Stmt):
    x: Expr


@_node
class AssignStmt(Stmt):
    """``lhs tok rhs`` where ``tok`` is ``=``, ``:=``, ``+=`` ..."""
    lhs: List[Expr]
    tok: str
    rhs: List[Expr]


@_node
class IncDecStmt(Stmt):
    x: Expr
    tok: str


@_node
class ReturnStmt(Stmt):
    results: List[Expr] = field(default_factory=list)


@_node
class DeferStmt(Stmt):
    call: CallExpr


@_node
class GoStmt(Stmt):
    call: CallExpr


@_node
class IfStmt(Stmt):
    cond: Expr
    body: BlockStmt
    init: Optional[Stmt] = None
    orelse: Optional[Stmt] = None

    _source_order = ("init", "cond", "body", "orelse")


@_node
class ForStmt(Stmt):
    body: BlockStmt
    init: Optional[Stmt] = None
    cond: Optional[Expr] = None
    post: Optional[Stmt] = None

    _source_order = ("init", "cond", "post", "body")


@_node
class RangeStmt(Stmt):
    """``for key, value := range x { body }``; key/value may be None."""
    x: Expr
    body: BlockStmt
    key: Optional[Expr] = None
    value: Optional[Expr] = None
    tok: str = ":="

    _source_order = ("key", "value", "x", "body")


@_node
class SendStmt(Stmt):
    chan: Expr
    value: Expr


@_node
class BranchStmt(Stmt):
    """``break``, ``continue``, ``goto`` or ``fallthrough``."""
    tok: str
    label: Optional[Ident] = None


@_node
class LabeledStmt(Stmt):
    label: Ident
    stmt: Stmt


@_node
class EmptyStmt(Stmt):
    pass


@_node
class BadStmt(Stmt):
    """Placeholder for a statement the front end could not parse."""


@_node
class DeclStmt(Stmt):
    """A ``var``/``const``/``type`` declaration inside a function body."""
    decl: Decl


@_node
class CaseClause(Stmt):
    """``case list...: body``; an empty ``list`` is the default clause."""
    list: List[Expr] = field(default_factory=list)
    body: List[Stmt] = field(default_factory=list)


@_node
class SwitchStmt(Stmt):
    body: BlockStmt
    init: Optional[Stmt] = None
    tag: Optional[Expr] = None

    _source_order = ("init", "tag", "body")


@_node
class TypeSwitchStmt(Stmt):
    """``switch init; assign.(type) { body }``."""
    assign: Stmt
    body: BlockStmt
    init: Optional[Stmt] = None

    _source_order = ("init", "assign", "body")


@_node
class CommClause(Stmt):
    """``case comm: body``; ``comm`` is None for the default clause."""
    comm: Optional[Stmt] = None
    body: List[Stmt] = field(default_factory=list)


@_node
class SelectStmt(Stmt):
    body: BlockStmt


# ═══════════════════════════════════════════════════════════════════════════
#  DECLARATIONS & FILES
# ═══════════════════════════════════════════════════════════════════════════

@_node
class FuncDecl(Decl):
    """A function or method; ``body`` is None for external declarations."""
    name: Ident
    type: FuncType
    recv: Optional[FieldList] = None
    body: Optional[BlockStmt] = None

    _source_order = ("recv", "name", "type", "body")


@_node
class ValueSpec(Node):
    """``names [type] [= values]`` inside a ``var`` or ``const`` group."""
    names: List[Ident]
    type: Optional[Expr] = None
    values: List[Expr] = field(default_factory=list)


@_node
class TypeSpec(Node):
    name: Ident
    type: Expr
    assign: bool = False


@_node
class GenDecl(Decl):
    """``import``, ``const``, ``type`` or ``var`` declaration group."""
    tok: str
    specs: List[Node] = field(default_factory=list)


@_node
class BadDecl(Decl):
    """Placeholder for a declaration the front end could not parse."""


@_node
class ImportSpec(Node):
    """``import name "path"``; ``path.value`` keeps its quotes."""
    path: BasicLit
    name: Optional[Ident] = None

    _source_order = ("name", "path")


@_node
class Comment(Node):
    text: str


@_node
class File(Node):
    name: Ident
    filename: str = ""
    imports: List[ImportSpec] = field(default_factory=list)
    decls: List[Decl] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)

    def func_decls(self) -> Iterator[FuncDecl]:
        for decl in self.decls:
            if isinstance(decl, FuncDecl):
                yield decl


# ═══════════════════════════════════════════════════════════════════════════
#  TRAVERSAL
# ═══════════════════════════════════════════════════════════════════════════

def iter_preorder(root: Optional[Node]) -> Iterator[Node]:
    """Depth-first pre-order iteration (parent before children)."""
    if root is None:
        return
    stack: List[Node] = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(node.children())))


def inspect(root: Optional[Node], fn: Callable[[Node], bool]) -> None:
    """
    Pre-order traversal; children of ``node`` are visited only when
    ``fn(node)`` returns True.  Same contract as Go's ``ast.Inspect``
    minus the trailing ``nil`` call.
    """
    if root is None:
        return
    stack: List[Node] = [root]
    while stack:
        node = stack.pop()
        if fn(node):
            stack.extend(reversed(list(node.children())))


# ═══════════════════════════════════════════════════════════════════════════
#  QUERIES
# ═══════════════════════════════════════════════════════════════════════════

def expr_equal(a: Optional[Node], b: Optional[Node]) -> bool:
    """
    Structural equality of two subtrees.

    Node classes and every non-position field must match; identifiers are
    compared by name, not by what they resolve to.  Pairs are compared off an
    explicit stack, so tree depth is not bounded by the recursion limit.
    """
    pending: List[tuple] = [(a, b)]
    while pending:
        a, b = pending.pop()
        if a is None or b is None:
            if a is not b:
                return False
            continue
        if a is b:
            continue
        if type(a) is not type(b):
            return False
        for f in fields(a):
            if f.name == "pos":
                continue
            va = getattr(a, f.name)
            vb = getattr(b, f.name)
            if isinstance(va, Node) or isinstance(vb, Node):
                pending.append((va, vb))
            elif isinstance(va, list) and isinstance(vb, list):
                if len(va) != len(vb):
                    return False
                pending.extend(zip(va, vb))
            elif va != vb:
                return False
    return True


def ident_of(x: Optional[Node]) -> Optional[Ident]:
    """
    The identifier an expression names.

    ``a`` → a, ``s.f`` → f, and for ``x[i]``, ``x[:]``, ``*x``, ``(x)`` and
    ``x.(T)`` the identifier of ``x``.  None for anything else.
    """
    while x is not None:
        if isinstance(x, Ident):
            return x
        if isinstance(x, SelectorExpr):
            return x.sel
        if isinstance(x, (IndexExpr, SliceExpr, StarExpr, ParenExpr,
                          TypeAssertExpr)):
            x = x.x
            continue
        return None
    return None


def qualified_name(x: Optional[Node]) -> str:
    """Name of an identifier or ``pkg.Name`` for a selector; "" otherwise."""
    if isinstance(x, Ident):
        return x.name
    if isinstance(x, SelectorExpr):
        prefix = qualified_name(x.x)
        return f"{prefix}.{x.sel.name}" if prefix else x.sel.name
    return ""


def expr_to_string(x: Optional[Node]) -> str:
    """Render a (small) expression back to Go-like source text."""
    if x is None:
        return ""
    if isinstance(x, Ident):
        return x.name
    if isinstance(x, BasicLit):
        return x.value
    if isinstance(x, SelectorExpr):
        return f"{expr_to_string(x.x)}.{x.sel.name}"
    if isinstance(x, IndexExpr):
        return f"{expr_to_string(x.x)}[{expr_to_string(x.index)}]"
    if isinstance(x, SliceExpr):
        parts = [expr_to_string(x.low), expr_to_string(x.high)]
        if x.max is not None:
            parts.append(expr_to_string(x.max))
        return f"{expr_to_string(x.x)}[{':'.join(parts)}]"
    if isinstance(x, CallExpr):
        args = ", ".join(expr_to_string(a) for a in x.args)
        return f"{expr_to_string(x.fun)}({args})"
    if isinstance(x, StarExpr):
        return f"*{expr_to_string(x.x)}"
    if isinstance(x, UnaryExpr):
        return f"{x.op}{expr_to_string(x.x)}"
    if isinstance(x, BinaryExpr):
        return f"{expr_to_string(x.x)} {x.op} {expr_to_string(x.y)}"
    if isinstance(x, ParenExpr):
        return f"({expr_to_string(x.x)})"
    if isinstance(x, TypeAssertExpr):
        inner = expr_to_string(x.type) if x.type is not None else "type"
        return f"{expr_to_string(x.x)}.({inner})"
    if isinstance(x, ArrayType):
        return f"[{expr_to_string(x.len)}]{expr_to_string(x.elt)}"
    if isinstance(x, MapType):
        return f"map[{expr_to_string(x.key)}]{expr_to_string(x.value)}"
    if isinstance(x, FuncLit):
        return "func literal"
    return type(x).__name__


# ═══════════════════════════════════════════════════════════════════════════
#  PUBLIC API
# ═══════════════════════════════════════════════════════════════════════════

__all__ = [
    "Position", "NO_POS", "NODE_TYPES",
    "Node", "Expr", "Stmt", "Decl",
    "Ident", "BasicLit", "SelectorExpr", "IndexExpr", "SliceExpr",
    "CallExpr", "StarExpr", "UnaryExpr", "BinaryExpr", "ParenExpr",
    "TypeAssertExpr", "KeyValueExpr", "CompositeLit", "ArrayType",
    "MapType", "IndexListExpr", "Ellipsis", "ChanType", "StructType",
    "InterfaceType", "BadExpr", "Field", "FieldList", "FuncType", "FuncLit",
    "BlockStmt", "ExprStmt", "AssignStmt", "IncDecStmt", "ReturnStmt",
    "DeferStmt", "GoStmt", "IfStmt", "ForStmt", "RangeStmt",
    "SendStmt", "BranchStmt", "LabeledStmt", "EmptyStmt", "BadStmt",
    "DeclStmt", "CaseClause", "SwitchStmt", "TypeSwitchStmt", "CommClause",
    "SelectStmt",
    "FuncDecl", "ValueSpec", "TypeSpec", "GenDecl", "BadDecl",
    "ImportSpec", "Comment", "File",
    "iter_preorder", "inspect", "expr_equal", "ident_of",
    "qualified_name", "expr_to_string",
]
