"""
goastdata_shims/type_model.py
═════════════════════════════

Static types, declarations and the symbol/type oracle for one Go package.

Theory
──────
The model follows ``go/types`` closely enough for idiom checkers:

    τ ::= basic(name)                 bool, int, string, untyped nil, ...
        | ptr(τ)                      *τ
        | slice(τ)                    []τ
        | array(τ, n)                 [n]τ
        | named(pkgpath, name, τ?)    database/sql.Rows
        | signature([τ…], [τ…])       func(τ…) (τ…)

Declarations ("objects") are identified by an integer **handle** assigned by
:meth:`TypesInfo.new_object` at creation time.  Two identifiers spelled the
same may resolve to different handles; one handle may have many occurrence
identifiers.  Every map in the oracle that is keyed by a declaration is keyed
by its handle, never by name.

Two layers:

  1. **Type terms** — immutable, compared structurally, printed in Go's
     type-string form.

  2. **TypesInfo** — the oracle: identifier → object (``defs`` for declaring
     occurrences, ``uses`` for every other resolved occurrence) and
     expression → type.

License: MIT — same as goastdata-shims.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Dict,
    Iterator,
    List,
    Optional,
    Tuple,
)

from goastdata_shims.ast_model import File, Ident, Node


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — TYPE REPRESENTATION
# ═════════════════════════════════════════════════════════════════════════

class Type:
    """Base class of the type term algebra."""

    def underlying(self) -> Type:
        return self


@dataclass(frozen=True)
class Basic(Type):
    """A predeclared type: ``bool``, ``int``, ``string``, ``untyped bool`` …"""
    name: str

    @property
    def is_boolean(self) -> bool:
        return self.name == "bool"

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Pointer(Type):
    elem: Type

    def __str__(self) -> str:
        return f"*{self.elem}"


@dataclass(frozen=True)
class Slice(Type):
    elem: Type

    def __str__(self) -> str:
        return f"[]{self.elem}"


@dataclass(frozen=True)
class Array(Type):
    elem: Type
    length: int

    def __str__(self) -> str:
        return f"[{self.length}]{self.elem}"


@dataclass(frozen=True)
class Named(Type):
    """A defined type; ``pkg`` is the import path ("" for the universe)."""
    pkg: str
    name: str
    base: Optional[Type] = field(default=None, compare=False)

    def underlying(self) -> Type:
        if self.base is None:
            return self
        return self.base.underlying()

    def __str__(self) -> str:
        if self.pkg:
            return f"{self.pkg}.{self.name}"
        return self.name


@dataclass(frozen=True)
class Signature(Type):
    params: Tuple[Type, ...] = ()
    results: Tuple[Type, ...] = ()

    def __str__(self) -> str:
        ps = ", ".join(str(p) for p in self.params)
        if not self.results:
            return f"func({ps})"
        if len(self.results) == 1:
            return f"func({ps}) {self.results[0]}"
        rs = ", ".join(str(r) for r in self.results)
        return f"func({ps}) ({rs})"


BOOL = Basic("bool")


def is_pointer(t: Optional[Type]) -> bool:
    """True only for a pointer type itself (named pointer types excluded)."""
    return isinstance(t, Pointer)


def elem_type(t: Optional[Type]) -> Optional[Type]:
    """Element type of a slice or array; None for anything else."""
    if isinstance(t, (Slice, Array)):
        return t.elem
    return None


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — DECLARATIONS, SCOPES, PACKAGES
# ═════════════════════════════════════════════════════════════════════════

class ObjectKind(Enum):
    VAR = "var"
    PARAM = "param"
    CONST = "const"
    TYPE = "type"
    FUNC = "func"
    PKG_NAME = "pkgname"
    FIELD = "field"


@dataclass(eq=False)
class Scope:
    """
    A lexical scope.

    ``node`` is the syntax node that opens the scope (a FuncType for a
    function's parameters and top-level locals, a BlockStmt, ...).
    """
    node: Optional[Node] = None
    parent: Optional[Scope] = None


@dataclass(frozen=True)
class Object:
    """
    A declared entity.  Equality and hashing use ``handle`` only.

    Attributes
    ----------
    handle : stable integer identity within one :class:`TypesInfo`
    name   : declared name (``_`` for blank declarations)
    kind   : ObjectKind
    type   : static type, None when unknown
    parent : enclosing scope, None when unknown
    decl   : declaring identifier, None when not in the analysed files
    """
    handle: int
    name: str = field(default="", compare=False)
    kind: ObjectKind = field(default=ObjectKind.VAR, compare=False)
    type: Optional[Type] = field(default=None, compare=False)
    parent: Optional[Scope] = field(default=None, compare=False, repr=False)
    decl: Optional[Ident] = field(default=None, compare=False, repr=False)

    @property
    def is_blank(self) -> bool:
        return self.name == "_"

    def anchor(self) -> Optional[Node]:
        """Node to report at: the enclosing scope's node, else the decl."""
        if self.parent is not None and self.parent.node is not None:
            return self.parent.node
        return self.decl


@dataclass(eq=False)
class Package:
    """A Go package: resolved name, import path, and what it imports."""
    path: str
    name: str
    imports: List[Package] = field(default_factory=list)

    def imported(self, path: str) -> Optional[Package]:
        """The imported package with import path ``path``, if any."""
        for pkg in self.imports:
            if pkg.path == path:
                return pkg
        return None


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — THE ORACLE
# ═════════════════════════════════════════════════════════════════════════

class TypesInfo:
    """
    Symbol/type oracle for one package.

    Populate with :meth:`new_object`, :meth:`define`, :meth:`use` and
    :meth:`record_type`; checkers only call the query methods.  Queries never
    raise for unknown nodes, they return None.
    """

    def __init__(self) -> None:
        self.types: Dict[Node, Type] = {}
        self.defs: Dict[Ident, Object] = {}
        self.uses: Dict[Ident, Object] = {}
        self._objects: Dict[int, Object] = {}
        self._handles = itertools.count(1)

    # ── population ───────────────────────────────────────────────────

    def new_object(
        self,
        name: str,
        kind: ObjectKind = ObjectKind.VAR,
        type: Optional[Type] = None,
        parent: Optional[Scope] = None,
        decl: Optional[Ident] = None,
    ) -> Object:
        """Create a declaration with a fresh handle."""
        obj = Object(
            handle=next(self._handles),
            name=name,
            kind=kind,
            type=type,
            parent=parent,
            decl=decl,
        )
        self._objects[obj.handle] = obj
        if decl is not None:
            self.defs[decl] = obj
        return obj

    def define(self, ident: Ident, obj: Object) -> None:
        """Record ``ident`` as a declaring occurrence of ``obj``."""
        self.defs[ident] = obj

    def use(self, ident: Ident, obj: Object) -> None:
        """Record ``ident`` as a (non-declaring) occurrence of ``obj``."""
        self.uses[ident] = obj

    def record_type(self, expr: Node, typ: Type) -> None:
        self.types[expr] = typ

    # ── queries ──────────────────────────────────────────────────────

    def object_of(self, ident: Optional[Ident]) -> Optional[Object]:
        """The declaration ``ident`` declares or refers to."""
        if ident is None:
            return None
        obj = self.defs.get(ident)
        if obj is not None:
            return obj
        return self.uses.get(ident)

    def type_of(self, expr: Optional[Node]) -> Optional[Type]:
        """
        Static type of an expression.

        Recorded expression types win; an identifier without one falls back
        to the type of the object it resolves to.
        """
        if expr is None:
            return None
        typ = self.types.get(expr)
        if typ is not None:
            return typ
        if isinstance(expr, Ident):
            obj = self.object_of(expr)
            if obj is not None:
                return obj.type
        return None

    def type_string(self, expr: Optional[Node]) -> str:
        typ = self.type_of(expr)
        return str(typ) if typ is not None else ""

    def iter_uses(self) -> Iterator[Tuple[Ident, Object]]:
        """Every resolved non-declaring occurrence, in insertion order."""
        return iter(self.uses.items())

    def object_by_handle(self, handle: int) -> Optional[Object]:
        return self._objects.get(handle)

    @property
    def objects(self) -> List[Object]:
        return list(self._objects.values())


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — ANALYSIS UNIT
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AnalysisUnit:
    """
    A frozen unit of analysis: one package, its files and its oracle.

    The host builds it once and must not mutate it while checkers run.
    """
    pkg: Package
    files: Tuple[File, ...]
    info: TypesInfo

    def file_names(self) -> List[str]:
        return [f.filename for f in self.files]


__all__ = [
    "Type", "Basic", "Pointer", "Slice", "Array", "Named", "Signature",
    "BOOL", "is_pointer", "elem_type",
    "ObjectKind", "Scope", "Object", "Package",
    "TypesInfo", "AnalysisUnit",
]
