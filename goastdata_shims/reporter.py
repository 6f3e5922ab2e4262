"""
goastdata_shims/reporter.py
═══════════════════════════

Rust-style colourful diagnostic reporter for checker results.

Output formats
──────────────
  • Terminal : colourful Rust-style rendering (default on a TTY)
  • Plain    : ``file:line:col: checker: message`` (non-TTY)
  • SARIF    : if ``sarif_path`` is given or $GOASTDATA_SARIF is set

Usage
─────
    from goastdata_shims.reporter import Reporter

    with Reporter() as rep:
        for diag in results.diagnostics:
            rep.report(diag)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    TextIO,
    Union,
)

from termcolor import colored

from goastdata_shims.ast_model import Ident
from goastdata_shims.checkers import Diagnostic, DiagnosticSeverity

_log = logging.getLogger(__name__)

SARIF_ENV_VAR = "GOASTDATA_SARIF"

# severity → (termcolor colour, SARIF level)
_SEVERITY_STYLE: Dict[DiagnosticSeverity, tuple] = {
    DiagnosticSeverity.ERROR: ("red", "error"),
    DiagnosticSeverity.WARNING: ("yellow", "warning"),
    DiagnosticSeverity.STYLE: ("cyan", "note"),
    DiagnosticSeverity.PERFORMANCE: ("magenta", "warning"),
    DiagnosticSeverity.PORTABILITY: ("blue", "warning"),
    DiagnosticSeverity.INFORMATION: ("white", "note"),
}


def severity_color(severity: DiagnosticSeverity) -> str:
    return _SEVERITY_STYLE[severity][0]


def sarif_level(severity: DiagnosticSeverity) -> str:
    return _SEVERITY_STYLE[severity][1]


_SUMMARY_LABELS = {DiagnosticSeverity.INFORMATION: "info"}
_PLURAL_LABELS = frozenset({DiagnosticSeverity.ERROR, DiagnosticSeverity.WARNING})


# ═════════════════════════════════════════════════════════════════════════
#  STATISTICS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class ReporterStats:
    """Diagnostics seen by a :class:`Reporter`, counted per severity."""
    counts: Counter = field(default_factory=Counter)

    def record(self, severity: DiagnosticSeverity) -> None:
        self.counts[severity] += 1

    def count(self, severity: DiagnosticSeverity) -> int:
        return self.counts[severity]

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def summary_line(self) -> str:
        """``2 warnings; 1 style (3 total)``, in severity order."""
        parts: List[str] = []
        for severity in DiagnosticSeverity:
            n = self.counts[severity]
            if not n:
                continue
            label = _SUMMARY_LABELS.get(severity, severity.value)
            if severity in _PLURAL_LABELS and n != 1:
                label += "s"
            parts.append(f"{n} {label}")
        if not parts:
            return "no diagnostics emitted"
        return "; ".join(parts) + f" ({self.total} total)"


def plain_line(diag: Diagnostic) -> str:
    """``file:line:col: checker: message``."""
    return f"{diag.location}: {diag.error_id}: {diag.message}"


# ═════════════════════════════════════════════════════════════════════════
#  TERMINAL RENDERER  (Rust-style colourful output)
# ═════════════════════════════════════════════════════════════════════════

class _TerminalRenderer:
    """Render diagnostics to a terminal with colours."""

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        self._stream = stream
        self._sources: Dict[str, List[str]] = {}

    def render(self, diag: Diagnostic) -> None:
        color = severity_color(diag.severity)
        lines: List[str] = []

        # ── header: severity[checker]: message ───────────────────────
        sev_str = colored(
            f"{diag.severity.value}[{diag.error_id}]", color, attrs=["bold"],
        )
        lines.append(f"{sev_str}: {colored(diag.message, 'white', attrs=['bold'])}")

        loc = diag.location
        arrow = colored("-->", "blue", attrs=["bold"])
        lines.append(f"  {arrow} {loc}")

        # ── source line with caret ───────────────────────────────────
        src = self._source_line(loc.file, loc.line)
        if src is not None:
            gutter_w = len(str(loc.line)) + 1
            pipe = colored("|", "blue", attrs=["bold"])
            line_no = colored(str(loc.line).rjust(gutter_w), "blue", attrs=["bold"])
            lines.append(f" {line_no} {pipe} {src}")
            pad = " " * (loc.column - 1) if loc.column > 0 else ""
            marker = colored("^" * self._span_len(diag), color, attrs=["bold"])
            lines.append(f" {' ' * gutter_w} {pipe} {pad}{marker}")

        # ── tags ─────────────────────────────────────────────────────
        if diag.tags:
            prefix = colored("note", "cyan", attrs=["bold"])
            lines.append(f"  = {prefix}: tags: {', '.join(diag.tags)}")

        # ── suggested rewrite ────────────────────────────────────────
        if diag.extra:
            prefix = colored("help", "green", attrs=["bold"])
            rewrite = diag.extra.splitlines()
            lines.append(f"  = {prefix}: {rewrite[0]}")
            for more in rewrite[1:]:
                lines.append(f"          {more}")

        lines.append("")
        self._stream.write("\n".join(lines) + "\n")
        self._stream.flush()

    @staticmethod
    def _span_len(diag: Diagnostic) -> int:
        if isinstance(diag.node, Ident):
            return max(len(diag.node.name), 1)
        return 1

    def _source_line(self, filepath: str, line: int) -> Optional[str]:
        """Read one source line; None when the file is not readable."""
        if not filepath or line <= 0:
            return None
        if filepath not in self._sources:
            try:
                text = Path(filepath).read_text(errors="replace")
            except OSError:
                text = ""
            self._sources[filepath] = text.splitlines()
        source = self._sources[filepath]
        if line > len(source):
            return None
        return source[line - 1]


# ═════════════════════════════════════════════════════════════════════════
#  PLAIN RENDERER  (for log files / non-TTY)
# ═════════════════════════════════════════════════════════════════════════

class _PlainRenderer:
    """Non-coloured renderer, one line per diagnostic."""

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        self._stream.write(plain_line(diag) + "\n")
        self._stream.flush()


# ═════════════════════════════════════════════════════════════════════════
#  SARIF 2.1.0 BUILDER
# ═════════════════════════════════════════════════════════════════════════

class _SarifBuilder:
    """Accumulates diagnostics and writes a SARIF 2.1.0 JSON file."""

    SARIF_VERSION = "2.1.0"
    SARIF_SCHEMA = (
        "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/"
        "Schemata/sarif-schema-2.1.0.json"
    )

    def __init__(self) -> None:
        self._results: List[Dict[str, Any]] = []
        self._rules: Dict[str, Dict[str, Any]] = {}  # error id → rule obj

    def add(self, diag: Diagnostic) -> None:
        if diag.error_id not in self._rules:
            rule: Dict[str, Any] = {
                "id": diag.error_id,
                "shortDescription": {"text": diag.message},
            }
            if diag.tags:
                rule["properties"] = {"tags": list(diag.tags)}
            self._rules[diag.error_id] = rule

        loc = diag.location
        region: Dict[str, Any] = {"startLine": max(loc.line, 1)}
        if loc.column:
            region["startColumn"] = loc.column
        result: Dict[str, Any] = {
            "ruleId": diag.error_id,
            "level": sarif_level(diag.severity),
            "message": {"text": diag.message},
            "locations": [{
                "physicalLocation": {
                    "artifactLocation": {"uri": loc.file},
                    "region": region,
                },
            }],
        }
        if diag.extra:
            result["properties"] = {"suggestion": diag.extra}
        self._results.append(result)

    def to_json(self, tool_name: str = "goastdata-shims", version: str = "") -> str:
        sarif: Dict[str, Any] = {
            "$schema": self.SARIF_SCHEMA,
            "version": self.SARIF_VERSION,
            "runs": [
                {
                    "tool": {
                        "driver": {
                            "name": tool_name,
                            "version": version,
                            "rules": list(self._rules.values()),
                        }
                    },
                    "results": self._results,
                }
            ],
        }
        return json.dumps(sarif, indent=2)

    def write(self, path: str, tool_name: str = "goastdata-shims", version: str = "") -> None:
        Path(path).write_text(self.to_json(tool_name, version), encoding="utf-8")


def write_sarif(
    diagnostics: Iterable[Diagnostic],
    path: str,
    tool_name: str = "goastdata-shims",
    version: str = "",
) -> None:
    """Write ``diagnostics`` as a SARIF 2.1.0 log to ``path``."""
    builder = _SarifBuilder()
    for diag in diagnostics:
        builder.add(diag)
    builder.write(path, tool_name=tool_name, version=version)


# ═════════════════════════════════════════════════════════════════════════
#  REPORTER
# ═════════════════════════════════════════════════════════════════════════

class Reporter:
    """
    Central diagnostic dispatcher.

    Use as a context manager::

        with Reporter() as rep:
            rep.report(diag)
        # finish() is called automatically

    Parameters
    ----------
    stream     : where diagnostics and the summary are written
    colour     : force colour on/off (default: ``stream.isatty()``)
    sarif_path : SARIF output path (default: $GOASTDATA_SARIF, if set)
    """

    def __init__(
        self,
        stream: TextIO = sys.stderr,
        colour: Optional[bool] = None,
        tool_name: str = "goastdata-shims",
        tool_version: str = "",
        sarif_path: Optional[str] = None,
    ) -> None:
        self.tool_name = tool_name
        self.tool_version = tool_version
        self.stats = ReporterStats()
        self.diagnostics: List[Diagnostic] = []
        self._stream = stream

        use_colour = colour if colour is not None else hasattr(stream, "isatty") and stream.isatty()
        if use_colour:
            self._renderer: Union[_TerminalRenderer, _PlainRenderer] = _TerminalRenderer(stream)
        else:
            self._renderer = _PlainRenderer(stream)

        self._sarif_path = sarif_path or os.environ.get(SARIF_ENV_VAR, "")
        self._sarif: Optional[_SarifBuilder] = _SarifBuilder() if self._sarif_path else None

    @property
    def colour(self) -> bool:
        return isinstance(self._renderer, _TerminalRenderer)

    def __enter__(self) -> Reporter:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.finish()

    def report(self, diag: Diagnostic) -> None:
        """Route ``diag`` to the renderer and SARIF builder, counting it."""
        self.stats.record(diag.severity)
        self.diagnostics.append(diag)
        self._renderer.render(diag)
        if self._sarif is not None:
            self._sarif.add(diag)

    def finish(self) -> ReporterStats:
        """
        Print the summary line and write SARIF if configured.

        Returns the final :class:`ReporterStats`.
        """
        summary = self.stats.summary_line()
        if self.colour:
            if self.stats.count(DiagnosticSeverity.ERROR):
                color = "red"
            elif self.stats.total:
                color = "yellow"
            else:
                color = "green"
            self._stream.write(colored(f"  ╰─ {summary}", color, attrs=["bold"]) + "\n")
        else:
            self._stream.write(f"  {summary}\n")

        if self._sarif is not None:
            try:
                self._sarif.write(
                    self._sarif_path,
                    tool_name=self.tool_name,
                    version=self.tool_version,
                )
            except OSError as exc:
                _log.error("failed to write SARIF to %s: %s", self._sarif_path, exc)

        return self.stats


__all__ = [
    "Reporter",
    "ReporterStats",
    "write_sarif",
    "plain_line",
    "severity_color",
    "sarif_level",
    "SARIF_ENV_VAR",
]
