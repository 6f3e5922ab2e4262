"""
goastdata_shims/checkers.py
═══════════════════════════

Idiom checkers for Go packages, run over the tree/oracle model of
:mod:`goastdata_shims.ast_model` and :mod:`goastdata_shims.type_model`.

Architecture
────────────

  ┌──────────────────────────────────────────────────────────────┐
  │                       CheckerRunner                          │
  │                                                              │
  │   CheckerRegistry (frozen)  ──►  (CheckerInfo, factory)      │
  │                                        │                     │
  │                      factory(CheckerContext) → Walker        │
  │                                        │                     │
  │  ┌─────────────────────────────────────▼──────────────────┐  │
  │  │  astwalk.walk_file:  FuncDeclWalker │ StmtWalker │ File │  │
  │  └─────────────────────────────────────┬──────────────────┘  │
  │                                        │ ctx.warn(node, msg) │
  │  ┌─────────────────────────────────────▼──────────────────┐  │
  │  │  SuppressionManager   //nolint │ file-level │ global    │  │
  │  └─────────────────────────────────────┬──────────────────┘  │
  │                                        │                     │
  │  ┌─────────────────────────────────────▼──────────────────┐  │
  │  │  Output: JSON lines │ GCC one-liners │ Reporter │ SARIF │  │
  │  └────────────────────────────────────────────────────────┘  │
  └──────────────────────────────────────────────────────────────┘

Built-in checkers
─────────────────
  blankParam         unused parameters that could be named ``_``
  boolFuncPrefix     nullary bool functions without an Is/Has/... prefix
  importPackageName  import aliases equal to the package's own name
  indexOnlyLoop      ``for i := range xs`` re-deriving ``xs[i]`` repeatedly
  sqlRowsClose       local ``*sql.Rows`` neither closed nor returned

Checkers keep no state between visited nodes: a fresh checker instance is
bound to a fresh :class:`CheckerContext` for every (checker, file) pair.

License: MIT — same as goastdata-shims.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum, auto
from fnmatch import fnmatch
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from goastdata_shims.ast_model import (
    AssignStmt,
    CallExpr,
    DeferStmt,
    ExprStmt,
    File,
    FuncDecl,
    FuncLit,
    Ident,
    IndexExpr,
    Node,
    RangeStmt,
    ReturnStmt,
    SelectorExpr,
    Stmt,
    expr_equal,
    expr_to_string,
    ident_of,
    iter_preorder,
)
from goastdata_shims.astwalk import (
    Walker,
    walk_file,
    walker_for_file,
    walker_for_func_decl,
    walker_for_stmt,
)
from goastdata_shims.type_model import (
    AnalysisUnit,
    Basic,
    Object,
    Package,
    TypesInfo,
    elem_type,
    is_pointer,
)

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DIAGNOSTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """Severity levels, derived from a checker's tags."""
    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    PERFORMANCE = "performance"
    PORTABILITY = "portability"
    INFORMATION = "information"


class Confidence(Enum):
    """
    How certain we are that the diagnostic is a true positive.

    HIGH   — the pattern is unambiguous
    MEDIUM — the rule is a matter of taste (``opinionated`` checkers)
    LOW    — heuristic, may misfire (``experimental`` checkers)
    """
    HIGH = auto()
    MEDIUM = auto()
    LOW = auto()


def severity_for_tags(tags: Iterable[str]) -> DiagnosticSeverity:
    """``diagnostic`` → WARNING, ``performance`` → PERFORMANCE, ``style`` → STYLE."""
    tags = set(tags)
    if "diagnostic" in tags:
        return DiagnosticSeverity.WARNING
    if "performance" in tags:
        return DiagnosticSeverity.PERFORMANCE
    if "style" in tags:
        return DiagnosticSeverity.STYLE
    return DiagnosticSeverity.INFORMATION


def confidence_for_tags(tags: Iterable[str]) -> Confidence:
    tags = set(tags)
    if "experimental" in tags:
        return Confidence.LOW
    if "opinionated" in tags:
        return Confidence.MEDIUM
    return Confidence.HIGH


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class Diagnostic:
    """
    A single finding.

    Attributes
    ----------
    error_id     : checker name, or ``checkerInternalError``
    message      : human-readable description
    severity     : DiagnosticSeverity
    location     : position of the anchor node
    confidence   : Confidence
    checker_name : name of the checker that produced this
    tags         : the checker's tags
    addon        : tool name reported in JSON output
    extra        : suggested rewrite (the checker's "after" example)
    node         : the anchor node inside the analysed tree
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    confidence: Confidence = Confidence.HIGH
    checker_name: str = ""
    tags: Tuple[str, ...] = ()
    addon: str = "goastdata-shims"
    extra: str = ""
    node: Optional[Node] = field(default=None, compare=False, repr=False)

    def to_json(self) -> Dict[str, Any]:
        return {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.error_id,
            "tags": list(self.tags),
            "extra": self.extra,
        }

    def to_json_str(self) -> str:
        """Single-line JSON string."""
        return json.dumps(self.to_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message."""
        sev = self.severity.value
        return f"{self.location}: {sev}: {self.message} [{self.error_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

_NOLINT_RE = re.compile(r"^//\s*nolint(?::\s*([\w\-]+(?:\s*,\s*[\w\-]+)*))?\b")


class SuppressionManager:
    """
    Manages diagnostic suppressions from multiple sources.

    Sources:
      1. Inline comments:  ``//nolint`` or ``//nolint:name1,name2`` on the
         diagnostic's line or the line above
      2. File-level suppressions (passed programmatically)
      3. Global suppressions (command-line); ``*`` suppresses everything

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.load_inline_suppressions(file)
    >>> sm.add_file_suppression("blankParam", "*_test.go")
    >>> sm.add_global_suppression("boolFuncPrefix")
    >>> kept = sm.filter_diagnostics(diagnostics)
    """

    def __init__(self) -> None:
        # (file, line) → names suppressed at that location
        self._inline: Dict[Tuple[str, int], Set[str]] = defaultdict(set)
        # file pattern → names
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        self._global: Set[str] = set()

    def load_inline_suppressions(self, file: File) -> None:
        """Scan ``file.comments`` for ``//nolint`` directives."""
        for comment in file.comments:
            m = _NOLINT_RE.match(comment.text.strip())
            if m is None:
                continue
            key = (file.filename, comment.pos.line)
            if m.group(1):
                names = [n.strip() for n in m.group(1).split(",")]
                self._inline[key].update(n for n in names if n)
            else:
                self._inline[key].add("*")

    def add_inline_suppression(self, name: str, file: str, line: int) -> None:
        self._inline[(file, line)].add(name)

    def add_file_suppression(self, name: str, file_pattern: str) -> None:
        """Suppress ``name`` in files matching ``file_pattern``."""
        self._file_level[file_pattern].add(name)

    def add_global_suppression(self, name: str) -> None:
        self._global.add(name)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        eid = diag.error_id

        if eid in self._global or "*" in self._global:
            return True

        loc = diag.location

        # same line, or a directive on the line above
        for line_offset in (0, 1):
            ids = self._inline.get((loc.file, loc.line - line_offset), set())
            if eid in ids or "*" in ids:
                return True

        for pattern, ids in self._file_level.items():
            if eid not in ids and "*" not in ids:
                continue
            if pattern == loc.file or loc.file.endswith(pattern):
                return True
            if fnmatch(loc.file, pattern):
                return True

        return False

    def filter_diagnostics(
        self, diagnostics: Iterable[Diagnostic]
    ) -> List[Diagnostic]:
        """Return only non-suppressed diagnostics."""
        return [d for d in diagnostics if not self.is_suppressed(d)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — CHECKER BASE CLASS & CONTEXT
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CheckerInfo:
    """
    Static description of a checker.

    Attributes
    ----------
    name    : unique checker name, also the diagnostics' error id
    tags    : e.g. ``("style", "experimental")``
    summary : one-line description
    details : longer explanation (may be empty)
    before  : example code that triggers the checker
    after   : the same example rewritten
    """
    name: str
    tags: Tuple[str, ...] = ()
    summary: str = ""
    details: str = ""
    before: str = ""
    after: str = ""

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    @property
    def severity(self) -> DiagnosticSeverity:
        return severity_for_tags(self.tags)

    @property
    def confidence(self) -> Confidence:
        return confidence_for_tags(self.tags)


@dataclass
class CheckerContext:
    """
    Per (checker, file) handle passed to a checker factory.

    Attributes
    ----------
    info : CheckerInfo of the running checker
    unit : the frozen AnalysisUnit being analysed
    file : the file currently walked
    sink : diagnostics emitted so far, in emission order
    """
    info: CheckerInfo
    unit: AnalysisUnit
    file: File
    sink: List[Diagnostic] = field(default_factory=list)
    _file_nodes: Optional[Set[Node]] = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def types_info(self) -> TypesInfo:
        return self.unit.info

    @property
    def pkg(self) -> Package:
        return self.unit.pkg

    def in_file(self, node: Optional[Node]) -> bool:
        """True when ``node`` belongs to the tree of the current file."""
        if node is None:
            return False
        if self._file_nodes is None:
            self._file_nodes = set(iter_preorder(self.file))
        return node in self._file_nodes

    def warn(self, node: Node, fmt: str, *args: Any) -> None:
        """Append a diagnostic anchored at ``node``; ``fmt`` uses %-style."""
        message = fmt % args if args else fmt
        self.sink.append(Diagnostic(
            error_id=self.info.name,
            message=message,
            severity=self.info.severity,
            location=SourceLocation(
                file=self.file.filename,
                line=node.pos.line,
                column=node.pos.column,
            ),
            confidence=self.info.confidence,
            checker_name=self.info.name,
            tags=self.info.tags,
            extra=self.info.after.strip(),
            node=node,
        ))


CheckerFactory = Callable[[CheckerContext], Walker]


class Checker(ABC):
    """
    Base class for the built-in checkers.

    Subclass Contract
    ─────────────────
      - Set ``info`` to the checker's :class:`CheckerInfo`
      - Implement ``walker()`` returning the walker variant bound to
        ``self`` (``walker_for_func_decl``, ``walker_for_stmt`` or
        ``walker_for_file``) and the matching visit method
    """

    info: ClassVar[CheckerInfo] = CheckerInfo(name="base-checker")

    def __init__(self, ctx: CheckerContext) -> None:
        self.ctx = ctx

    @abstractmethod
    def walker(self) -> Walker:
        ...

    @classmethod
    def factory(cls, ctx: CheckerContext) -> Walker:
        """Registry factory: a fresh checker bound to ``ctx``."""
        return cls(ctx).walker()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.info.name}'>"


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CHECKER REGISTRY
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RegistryEntry:
    info: CheckerInfo
    factory: CheckerFactory

    @property
    def name(self) -> str:
        return self.info.name


class CheckerRegistryBuilder:
    """
    Accumulates checker entries, then freezes them with :meth:`build`.

    Usage
    -----
    >>> builder = CheckerRegistryBuilder()
    >>> builder.register(BlankParamChecker)
    >>> builder.add_checker(info, my_factory)
    >>> registry = builder.build()
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RegistryEntry] = {}
        self._disabled: Set[str] = set()

    def add_checker(
        self, info: CheckerInfo, factory: CheckerFactory
    ) -> CheckerRegistryBuilder:
        if info.name in self._entries:
            raise ValueError(f"checker {info.name!r} is already registered")
        self._entries[info.name] = RegistryEntry(info, factory)
        return self

    def register(self, checker_cls: Type[Checker]) -> CheckerRegistryBuilder:
        """Register a :class:`Checker` subclass by its ``info``."""
        return self.add_checker(checker_cls.info, checker_cls.factory)

    def disable(self, name: str) -> CheckerRegistryBuilder:
        self._disabled.add(name)
        return self

    def build(self) -> CheckerRegistry:
        return CheckerRegistry(dict(self._entries), frozenset(self._disabled))


class CheckerRegistry:
    """
    Immutable lookup table of checkers, in registration order.

    Built by :class:`CheckerRegistryBuilder`; a host builds one and passes
    it to the :class:`CheckerRunner`.
    """

    def __init__(
        self,
        entries: Mapping[str, RegistryEntry],
        disabled: Iterable[str] = (),
    ) -> None:
        self._entries = MappingProxyType(dict(entries))
        self._disabled = frozenset(disabled)

    def get_all(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def get_enabled(self) -> List[RegistryEntry]:
        return [
            entry for name, entry in self._entries.items()
            if name not in self._disabled
        ]

    def get_by_name(self, name: str) -> Optional[RegistryEntry]:
        return self._entries.get(name)

    def filter_by_tag(self, tag: str) -> List[RegistryEntry]:
        return [e for e in self._entries.values() if e.info.has_tag(tag)]

    def is_enabled(self, name: str) -> bool:
        return name in self._entries and name not in self._disabled

    @property
    def names(self) -> List[str]:
        return sorted(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self._entries.values())


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — HELPERS
# ═════════════════════════════════════════════════════════════════════════

def _object_of_expr(info: TypesInfo, x: Optional[Node]) -> Optional[Object]:
    """Declaration named by ``x`` (see :func:`ident_of`), if resolved."""
    return info.object_of(ident_of(x))


def _close_selector(x: Optional[Node]) -> Optional[SelectorExpr]:
    """The ``recv.Close`` selector when ``x`` is a call ``recv.Close(...)``."""
    if not isinstance(x, CallExpr):
        return None
    fun = x.fun
    if isinstance(fun, SelectorExpr) and fun.sel.name == "Close":
        return fun
    return None


# ═════════════════════════════════════════════════════════════════════════
#  PART 6 — BUILT-IN CHECKERS
# ═════════════════════════════════════════════════════════════════════════

class BlankParamChecker(Checker):
    """
    Flags parameters that are never used and could be named ``_``.

    Every non-blank parameter declaration is collected; the package-wide
    usage index is then scanned and each declaration that shows up is
    dropped.  Whatever remains is unused.  The scan covers the whole index
    rather than the function body: a declaration's scope already limits
    which occurrences can resolve to it.
    """

    info: ClassVar[CheckerInfo] = CheckerInfo(
        name="blankParam",
        tags=("style", "opinionated", "experimental"),
        summary="Detects unused params and suggests to name them as `_` (blank)",
        before="func f(a int, b float64) // b isn't used inside function body",
        after="func f(a int, _ float64) // everything is cool",
    )

    def walker(self) -> Walker:
        return walker_for_func_decl(self)

    def visit_func_decl(self, decl: FuncDecl) -> None:
        params = decl.type.params
        if decl.body is None or params is None or params.num_fields() == 0:
            return

        info = self.ctx.types_info
        # handle → declaring identifier, in parameter order
        unused: Dict[int, Ident] = {}
        for param in params.list:
            if not param.names:
                self.ctx.warn(param, "consider to name parameters as `_`")
                return
            for ident in param.names:
                if ident.is_blank:
                    continue
                obj = info.object_of(ident)
                if obj is None or obj.is_blank:
                    continue
                unused[obj.handle] = ident

        for _ident, obj in info.iter_uses():
            if not unused:
                return
            unused.pop(obj.handle, None)

        for ident in unused.values():
            self.ctx.warn(ident, "rename `%s` to `_`", ident.name)


class BoolFuncPrefixChecker(Checker):
    """Nullary functions returning ``bool`` should read as predicates."""

    info: ClassVar[CheckerInfo] = CheckerInfo(
        name="boolFuncPrefix",
        tags=("style", "experimental", "opinionated"),
        summary=(
            "Detects function returning only bool and suggests to add "
            "Is/Has/Contains prefix to it's name"
        ),
        before="func Enabled() bool",
        after="func IsEnabled() bool",
    )

    PREFIXES: ClassVar[Tuple[str, ...]] = (
        "is", "has", "contains", "check", "get", "should", "need", "may",
    )
    EXEMPT_NAMES: ClassVar[frozenset] = frozenset({"exit", "quit"})

    def walker(self) -> Walker:
        return walker_for_func_decl(self)

    def visit_func_decl(self, decl: FuncDecl) -> None:
        params = decl.type.params
        results = decl.type.results
        if params is not None and params.num_fields() != 0:
            return
        if results is None or results.num_fields() != 1:
            return
        typ = self.ctx.types_info.type_of(results.list[0].type)
        # named types with an underlying bool do not count
        if not (isinstance(typ, Basic) and typ.is_boolean):
            return
        if self.has_accepted_prefix(decl.name.name):
            return
        self.ctx.warn(decl, "consider to add Is/Has/Contains prefix to function name")

    @classmethod
    def has_accepted_prefix(cls, name: str) -> bool:
        lowered = name.lower()
        if lowered in cls.EXEMPT_NAMES:
            return True
        return lowered.startswith(cls.PREFIXES)


class ImportPackageNameChecker(Checker):
    """Flags ``import name "path"`` where ``name`` is the package's own name."""

    info: ClassVar[CheckerInfo] = CheckerInfo(
        name="importPackageName",
        tags=("style",),
        summary="Detects when imported package names are unnecessary renamed",
        before='import lint "github.com/go-critic/go-critic/lint"',
        after='import "github.com/go-critic/go-critic/lint"',
    )

    def walker(self) -> Walker:
        return walker_for_file(self)

    def walk_file(self, file: File) -> None:
        for spec in file.imports:
            if spec.name is None:
                continue
            path = spec.path.value.strip('"')
            imported = self.ctx.pkg.imported(path)
            if imported is None:
                _log.debug("%s: unresolved import %r", file.filename, path)
                continue
            if imported.name == spec.name.name:
                self.ctx.warn(spec, "unnecessary rename of import package")


class IndexOnlyLoopChecker(Checker):
    """
    Flags ``for i := range xs`` loops that re-derive ``xs[i]`` more than
    once when the elements of ``xs`` are pointers.

    Only slices and arrays of pointer type qualify.  An occurrence counts
    when its index is structurally equal to the loop key and its operand
    resolves to the same declaration as the ranged expression.
    """

    info: ClassVar[CheckerInfo] = CheckerInfo(
        name="indexOnlyLoop",
        tags=("style", "experimental"),
        summary="Detects for loops that can benefit from rewrite to range loop",
        details="Suggests to use for key, v := range container form.",
        before=(
            "for i := range files {\n"
            "\tif files[i] != nil {\n"
            "\t\tfiles[i].Close()\n"
            "\t}\n"
            "}"
        ),
        after=(
            "for _, f := range files {\n"
            "\tif f != nil {\n"
            "\t\tf.Close()\n"
            "\t}\n"
            "}"
        ),
    )

    # counting stops as soon as this many occurrences are seen
    LIMIT: ClassVar[int] = 2

    def walker(self) -> Walker:
        return walker_for_stmt(self)

    def visit_stmt(self, stmt: Stmt) -> None:
        if not isinstance(stmt, RangeStmt):
            return
        if stmt.key is None or stmt.value is not None:
            return
        info = self.ctx.types_info
        iterated = _object_of_expr(info, stmt.x)
        if iterated is None or not is_pointer(elem_type(iterated.type)):
            return

        count = self._count_rederivations(stmt.body, stmt.key, iterated, 0)
        if count > 1:
            self.ctx.warn(
                stmt,
                "%s occurs more than once in the loop; "
                "consider using for _, value := range %s",
                expr_to_string(stmt.key), iterated.name,
            )

    def _count_rederivations(
        self, node: Node, key: Node, iterated: Object, count: int = 0
    ) -> int:
        """
        Return ``count`` plus the matches under ``node``, capped at LIMIT.

        The subtree is walked off an explicit stack and the walk stops as
        soon as the cap is reached.
        """
        pending: List[Node] = [node]
        while pending and count < self.LIMIT:
            current = pending.pop()
            if isinstance(current, IndexExpr) and expr_equal(current.index, key):
                if _object_of_expr(self.ctx.types_info, current.x) == iterated:
                    count += 1
            pending.extend(reversed(list(current.children())))
        return count


class SqlRowsCloseChecker(Checker):
    """
    Flags local ``*sql.Rows`` cursors that are neither closed nor returned.

    Only the top-level statements of a function body are classified:

      ``rows, err := ...``       local cursor (every lhs of the Rows type)
      ``return rows``            returned, the caller owns it
      ``rows.Close()``           closed
      ``defer rows.Close()``     closed
      ``defer func() {...}()``   closed for each direct ``x.Close()`` inside

    Branches and helper functions are not followed.  Statements of any
    other kind are ignored.

    A finding is anchored at the node of the cursor's enclosing scope.  When
    that node is not part of the current file, the first assignment target
    in the function is used instead.
    """

    info: ClassVar[CheckerInfo] = CheckerInfo(
        name="sqlRowsClose",
        tags=("diagnostic", "experimental"),
        summary="Detects uses of *sql.Rows without call Close method",
        before=(
            "rows, _ := db.Query( /**/ )\n"
            "for rows.Next {\n"
            "}"
        ),
        after=(
            "rows, _ := db.Query( /**/ )\n"
            "for rows.Next {\n"
            "}\n"
            "rows.Close()"
        ),
    )

    ROWS_TYPE: ClassVar[str] = "*database/sql.Rows"

    def walker(self) -> Walker:
        return walker_for_func_decl(self)

    def visit_func_decl(self, decl: FuncDecl) -> None:
        if decl.body is None:
            return
        # first assignment target per cursor declaration
        local: Dict[Object, Node] = {}
        returned: Set[Object] = set()
        closed: Set[Object] = set()

        for stmt in decl.body.list:
            if isinstance(stmt, AssignStmt):
                for lhs in stmt.lhs:
                    obj = self._rows_object(lhs)
                    if obj is not None:
                        local.setdefault(obj, lhs)
            elif isinstance(stmt, ReturnStmt):
                for result in stmt.results:
                    obj = self._rows_object(result)
                    if obj is not None:
                        returned.add(obj)
            elif isinstance(stmt, ExprStmt):
                sel = _close_selector(stmt.x)
                if sel is not None:
                    closed.update(self._objects(sel.x))
            elif isinstance(stmt, DeferStmt):
                closed.update(self._deferred_closes(stmt))

        for obj, lhs in local.items():
            if obj in returned or obj in closed:
                continue
            anchor = obj.anchor()
            if not self.ctx.in_file(anchor):
                # declared outside this file, e.g. a package-level var
                anchor = lhs
            self.ctx.warn(anchor, "local variable db.Rows have not Close call")

    def _deferred_closes(self, stmt: DeferStmt) -> Iterator[Object]:
        fun = stmt.call.fun
        if isinstance(fun, SelectorExpr):
            if fun.sel.name == "Close":
                yield from self._objects(fun.x)
        elif isinstance(fun, FuncLit) and fun.body is not None:
            for inner in fun.body.list:
                if not isinstance(inner, ExprStmt):
                    continue
                sel = _close_selector(inner.x)
                if sel is not None:
                    yield from self._objects(sel.x)

    def _rows_object(self, x: Node) -> Optional[Object]:
        """Declaration of ``x`` when its static type is ``*database/sql.Rows``."""
        if self.ctx.types_info.type_string(x) != self.ROWS_TYPE:
            return None
        return next(self._objects(x), None)

    def _objects(self, x: Node) -> Iterator[Object]:
        """Zero or one non-blank declaration named by ``x``."""
        obj = _object_of_expr(self.ctx.types_info, x)
        if obj is not None and not obj.is_blank:
            yield obj


BUILTIN_CHECKERS: Tuple[Type[Checker], ...] = (
    BlankParamChecker,
    BoolFuncPrefixChecker,
    ImportPackageNameChecker,
    IndexOnlyLoopChecker,
    SqlRowsCloseChecker,
)


def build_default_registry(
    disabled: Sequence[str] = (),
) -> CheckerRegistry:
    """A fresh registry holding the built-in checkers."""
    builder = CheckerRegistryBuilder()
    for cls in BUILTIN_CHECKERS:
        builder.register(cls)
    for name in disabled:
        builder.disable(name)
    return builder.build()


# ═════════════════════════════════════════════════════════════════════════
#  PART 7 — CHECKER RUNNER
# ═════════════════════════════════════════════════════════════════════════

INTERNAL_ERROR_ID = "checkerInternalError"


@dataclass
class CheckerRunResults:
    """
    Aggregate results from running a suite of checkers.

    Attributes
    ----------
    diagnostics            : all kept diagnostics, in run order
    diagnostics_by_checker : diagnostics grouped by checker name
    stats                  : timing statistics (``<name>_elapsed_ms``)
    checker_names          : names of checkers that were run
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    diagnostics_by_checker: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    checker_names: List[str] = field(default_factory=list)

    @property
    def warning_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.WARNING
        )

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_severity(self, severity: DiagnosticSeverity) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == severity]

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def by_checker(self, name: str) -> List[Diagnostic]:
        return list(self.diagnostics_by_checker.get(name, []))

    def by_tag(self, tag: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if tag in d.tags]

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Checker run complete: {self.total_count} diagnostics "
            f"({self.warning_count} warnings)",
        ]
        for name in self.checker_names:
            count = len(self.diagnostics_by_checker.get(name, []))
            elapsed = self.stats.get(f"{name}_elapsed_ms", 0)
            lines.append(f"  {name}: {count} findings ({elapsed:.1f}ms)")
        return "\n".join(lines)


class CheckerRunner:
    """
    Runs a suite of checkers over every file of an :class:`AnalysisUnit`.

    Usage
    -----
    >>> runner = CheckerRunner()
    >>> results = runner.run(unit)
    >>> print(results.summary())

    >>> results = runner.run(unit, checkers=["blankParam"])
    >>> results = runner.run(unit, tags=["diagnostic"])

    Parameters for constructor
    ─────────────────────────
    registry    : CheckerRegistry (default: :func:`build_default_registry`)
    suppressions: SuppressionManager — pre-loaded suppression rules
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        suppressions: Optional[SuppressionManager] = None,
    ) -> None:
        self.registry = registry if registry is not None else build_default_registry()
        self.suppressions = suppressions or SuppressionManager()

    def select(
        self,
        checkers: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> List[RegistryEntry]:
        """
        Entries to run: explicit names (disabled ones included), else the
        enabled entries carrying any of ``tags``, else all enabled entries.
        """
        if checkers is not None:
            selected: List[RegistryEntry] = []
            for name in checkers:
                entry = self.registry.get_by_name(name)
                if entry is None:
                    _log.warning("unknown checker %r skipped", name)
                    continue
                selected.append(entry)
            return selected
        enabled = self.registry.get_enabled()
        if tags:
            wanted = set(tags)
            return [e for e in enabled if wanted.intersection(e.info.tags)]
        return enabled

    def run(
        self,
        unit: AnalysisUnit,
        checkers: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """
        Run the selected checkers over ``unit``.

        Parameters
        ----------
        unit     : AnalysisUnit (must not change while checkers run)
        checkers : checker names to run (None = selection by ``tags``)
        tags     : run enabled checkers having any of these tags

        Returns
        -------
        CheckerRunResults
        """
        results = CheckerRunResults()

        for file in unit.files:
            self.suppressions.load_inline_suppressions(file)

        for entry in self.select(checkers, tags):
            name = entry.name
            results.checker_names.append(name)

            t0 = time.monotonic()
            diags: List[Diagnostic] = []
            for file in unit.files:
                diags.extend(self._run_on_file(entry, unit, file))
            elapsed_ms = (time.monotonic() - t0) * 1000.0

            kept = self.suppressions.filter_diagnostics(diags)
            _log.debug(
                "%s: %d diagnostics, %d suppressed, %.1fms",
                name, len(diags), len(diags) - len(kept), elapsed_ms,
            )
            results.diagnostics.extend(kept)
            results.diagnostics_by_checker[name] = kept
            results.stats[f"{name}_elapsed_ms"] = elapsed_ms

        return results

    @staticmethod
    def _run_on_file(
        entry: RegistryEntry, unit: AnalysisUnit, file: File
    ) -> List[Diagnostic]:
        ctx = CheckerContext(info=entry.info, unit=unit, file=file)
        try:
            walk_file(entry.factory(ctx), file)
        except Exception as exc:
            _log.warning(
                "checker %s failed on %s: %s", entry.name, file.filename, exc,
                exc_info=True,
            )
            return [Diagnostic(
                error_id=INTERNAL_ERROR_ID,
                message=f"Checker '{entry.name}' failed: {exc}",
                severity=DiagnosticSeverity.INFORMATION,
                location=SourceLocation(file=file.filename),
                checker_name=entry.name,
                tags=entry.info.tags,
            )]
        return ctx.sink


# ═════════════════════════════════════════════════════════════════════════
#  PART 8 — CONVENIENCE ENTRY POINT FOR DUMP FILES
# ═════════════════════════════════════════════════════════════════════════

OUTPUT_FORMATS = ("json", "gcc", "summary", "text")


def run_dump(
    dump_file: str,
    checkers: Optional[Sequence[str]] = None,
    tags: Optional[Sequence[str]] = None,
    output: str = "json",
    suppress: Optional[Sequence[str]] = None,
    sarif: Optional[str] = None,
    stream: Any = None,
) -> int:
    """
    Load a JSON dump and run the checker suite over it.

    Parameters
    ----------
    dump_file : path to the JSON dump (see :mod:`goastdata_shims.dump_loader`)
    checkers  : checker names to run (None = all enabled)
    tags      : run enabled checkers with any of these tags
    output    : "json", "gcc", "summary" or "text" (Reporter rendering)
    suppress  : checker names to suppress globally
    sarif     : optional SARIF 2.1.0 output path (default: $GOASTDATA_SARIF)
    stream    : output stream (default: stdout)

    Returns
    -------
    Exit code (0 = no diagnostics, 1 = diagnostics found, 2 = bad dump)
    """
    from goastdata_shims.dump_loader import DumpFormatError, load_dump
    from goastdata_shims.reporter import SARIF_ENV_VAR, Reporter, write_sarif

    out = stream if stream is not None else sys.stdout
    sarif = sarif or os.environ.get(SARIF_ENV_VAR) or None

    try:
        unit = load_dump(dump_file)
    except (OSError, DumpFormatError) as exc:
        _log.error("cannot load %s: %s", dump_file, exc)
        sys.stderr.write(f"ERROR: cannot load {dump_file}: {exc}\n")
        return 2

    sm = SuppressionManager()
    for name in suppress or ():
        sm.add_global_suppression(name)

    runner = CheckerRunner(suppressions=sm)
    results = runner.run(unit, checkers=checkers, tags=tags)

    if output == "text":
        with Reporter(stream=out, sarif_path=sarif) as rep:
            for diag in results.diagnostics:
                rep.report(diag)
    else:
        if output == "json":
            for diag in results.diagnostics:
                out.write(diag.to_json_str() + "\n")
        elif output == "gcc":
            for diag in results.diagnostics:
                out.write(diag.to_gcc_format() + "\n")
        else:
            out.write(results.summary() + "\n")
        if sarif:
            write_sarif(results.diagnostics, sarif)

    return 1 if results.total_count > 0 else 0


# ═════════════════════════════════════════════════════════════════════════
#  PART 9 — MODULE MAIN
# ═════════════════════════════════════════════════════════════════════════

def _name_list(value: str) -> List[str]:
    """Split a comma-separated option value, dropping empty items."""
    return [name.strip() for name in value.split(",") if name.strip()]


def _main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for ``goastdata-lint`` / ``python -m goastdata_shims.checkers``."""
    import argparse

    parser = argparse.ArgumentParser(
        description="goastdata-shims checker suite",
        prog="goastdata-lint",
    )
    parser.add_argument("dump_file", nargs="?", help="Path to JSON dump file")
    parser.add_argument(
        "--checkers", action="extend", type=_name_list, default=None,
        metavar="NAME[,NAME...]",
        help="Checker names to run, comma-separated; repeatable "
             "(default: all enabled)",
    )
    parser.add_argument(
        "--tags", action="extend", type=_name_list, default=None,
        metavar="TAG[,TAG...]",
        help="Run enabled checkers having any of these tags",
    )
    parser.add_argument(
        "--output", choices=OUTPUT_FORMATS,
        default="json", help="Output format",
    )
    parser.add_argument(
        "--suppress", action="extend", type=_name_list, default=None,
        metavar="NAME[,NAME...]",
        help="Checker names to suppress",
    )
    parser.add_argument(
        "--sarif", default=None,
        help="Write SARIF 2.1.0 to this path ($GOASTDATA_SARIF)",
    )
    parser.add_argument(
        "--list-checkers", action="store_true",
        help="List available checkers and exit",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )

    if args.list_checkers:
        registry = build_default_registry()
        for name in registry.names:
            entry = registry.get_by_name(name)
            tags = ", ".join(entry.info.tags)
            print(f"  {name:20s} {entry.info.summary}")
            print(f"  {'':20s} tags: {tags}")
            print()
        return

    if args.dump_file is None:
        parser.error("the following arguments are required: dump_file")

    exit_code = run_dump(
        dump_file=args.dump_file,
        checkers=args.checkers,
        tags=args.tags,
        output=args.output,
        suppress=args.suppress,
        sarif=args.sarif,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    _main()


# ═════════════════════════════════════════════════════════════════════════
#  PART 10 — PUBLIC API
# ═════════════════════════════════════════════════════════════════════════

__all__ = [
    # Diagnostic model
    "Diagnostic",
    "DiagnosticSeverity",
    "Confidence",
    "SourceLocation",
    "severity_for_tags",
    "confidence_for_tags",
    # Suppression
    "SuppressionManager",
    # Checker framework
    "Checker",
    "CheckerInfo",
    "CheckerContext",
    "CheckerFactory",
    "RegistryEntry",
    "CheckerRegistryBuilder",
    "CheckerRegistry",
    "build_default_registry",
    # Built-in checkers
    "BlankParamChecker",
    "BoolFuncPrefixChecker",
    "ImportPackageNameChecker",
    "IndexOnlyLoopChecker",
    "SqlRowsCloseChecker",
    "BUILTIN_CHECKERS",
    # Runner
    "CheckerRunner",
    "CheckerRunResults",
    "INTERNAL_ERROR_ID",
    # Entry point
    "run_dump",
    "OUTPUT_FORMATS",
]
