"""
goastdata_shims — Go idiom checkers over a syntax-tree/type-oracle model
=======================================================================

Static-analysis checkers that read a parsed Go package together with its
resolved symbol and type information and flag idiom violations and likely
bugs: unused parameters, misleadingly named boolean functions, redundant
import aliases, index-only range loops and unclosed ``*sql.Rows`` cursors.

Core modules
------------
ast_model
    Syntax tree nodes, pre-order inspection and structural equality.
type_model
    Types, declarations with stable handles, scopes and the ``TypesInfo``
    oracle; ``AnalysisUnit`` bundles one package.
astwalk
    Walker variants (per function, per statement, per file) and the driver.
checkers
    Diagnostics, suppressions, the registry, the built-in checkers, the
    runner and the ``goastdata-lint`` entry point.
dump_loader
    Builds an ``AnalysisUnit`` from a JSON dump.
reporter
    Coloured terminal / plain / SARIF rendering of diagnostics.

Quick start
-----------
>>> from goastdata_shims import load_dump, CheckerRunner
>>> unit = load_dump("app.dump.json")
>>> results = CheckerRunner().run(unit)
>>> print(results.summary())

Package layout
--------------
::

    goastdata_shims/
    ├── __init__.py            ← this file
    ├── ast_model.py
    ├── type_model.py
    ├── astwalk.py
    ├── checkers.py
    ├── dump_loader.py
    └── reporter.py
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.2.0"
__license__ = "MIT"
__all__: List[str] = []          # populated incrementally below

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal registry: module_name → names re-exported at package level
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "ast_model": [
        "Position",
        "Node",
        "Ident",
        "FuncDecl",
        "File",
        "inspect",
        "iter_preorder",
        "expr_equal",
        "ident_of",
    ],
    "type_model": [
        "TypesInfo",
        "AnalysisUnit",
        "Package",
        "Object",
        "ObjectKind",
        "Scope",
    ],
    "astwalk": [
        "FuncDeclWalker",
        "StmtWalker",
        "FileWalker",
        "walk_file",
    ],
    "checkers": [
        "Diagnostic",
        "DiagnosticSeverity",
        "SuppressionManager",
        "CheckerInfo",
        "CheckerContext",
        "CheckerRegistryBuilder",
        "CheckerRegistry",
        "build_default_registry",
        "CheckerRunner",
        "CheckerRunResults",
        "run_dump",
    ],
    "dump_loader": [
        "DumpFormatError",
        "load_dump",
        "load_dump_data",
    ],
    "reporter": [
        "Reporter",
        "ReporterStats",
        "write_sarif",
    ],
}

# ---------------------------------------------------------------------------
# Import helper
# ---------------------------------------------------------------------------

def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace.

    Parameters
    ----------
    module_rel_name:
        Module name relative to this package (e.g. ``"checkers"``).
    names:
        Public symbols to re-export.
    """
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"goastdata_shims: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            raise AttributeError(
                f"goastdata_shims.{module_rel_name} does not export '{name}'"
            )
        setattr(current_module, name, obj)
        __all__.append(name)

    # goastdata_shims.checkers.CheckerRunner works as well as
    # goastdata_shims.CheckerRunner
    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names

# ---------------------------------------------------------------------------
# Package-level utilities
# ---------------------------------------------------------------------------

def list_submodules() -> List[str]:
    """Return the names of all submodules in the package."""
    return sorted(_CORE_MODULES)


def package_info() -> dict:
    """Return a dict of metadata about the package and its checkers.

    Useful for logging from host front ends.
    """
    registry = build_default_registry()  # noqa: F821  (bound dynamically above)
    return {
        "package": __name__,
        "version": __version__,
        "python": sys.version,
        "loaded_submodules": [
            m for m in list_submodules() if f"{__name__}.{m}" in sys.modules
        ],
        "checkers": registry.names,
        "all_exports": list(__all__),
    }


__all__ += ["list_submodules", "package_info", "__version__"]

# ---------------------------------------------------------------------------
# Static re-export declarations for type checkers
# ---------------------------------------------------------------------------

if TYPE_CHECKING:
    from .ast_model import (
        Position as Position,
        Node as Node,
        Ident as Ident,
        FuncDecl as FuncDecl,
        File as File,
        inspect as inspect,
        iter_preorder as iter_preorder,
        expr_equal as expr_equal,
        ident_of as ident_of,
    )
    from .type_model import (
        TypesInfo as TypesInfo,
        AnalysisUnit as AnalysisUnit,
        Package as Package,
        Object as Object,
        ObjectKind as ObjectKind,
        Scope as Scope,
    )
    from .astwalk import (
        FuncDeclWalker as FuncDeclWalker,
        StmtWalker as StmtWalker,
        FileWalker as FileWalker,
        walk_file as walk_file,
    )
    from .checkers import (
        Diagnostic as Diagnostic,
        DiagnosticSeverity as DiagnosticSeverity,
        SuppressionManager as SuppressionManager,
        CheckerInfo as CheckerInfo,
        CheckerContext as CheckerContext,
        CheckerRegistryBuilder as CheckerRegistryBuilder,
        CheckerRegistry as CheckerRegistry,
        build_default_registry as build_default_registry,
        CheckerRunner as CheckerRunner,
        CheckerRunResults as CheckerRunResults,
        run_dump as run_dump,
    )
    from .dump_loader import (
        DumpFormatError as DumpFormatError,
        load_dump as load_dump,
        load_dump_data as load_dump_data,
    )
    from .reporter import (
        Reporter as Reporter,
        ReporterStats as ReporterStats,
        write_sarif as write_sarif,
    )
