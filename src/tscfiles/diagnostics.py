# Copyright 2025 CrownOps Engineering
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""Parse TypeScript compiler text output into ``Diagnostic`` records.

The compiler is invoked with ``--pretty false`` and reports one diagnostic per
primary line::

    src/app.ts(12,5): error TS2322: Type 'string' is not assignable to type 'number'.

Indented lines (and lines without that prefix) continue the previous message.
Summary banners are discarded. Anything else is kept as a low-confidence
warning so that unexpected compiler output is never hidden.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Final

from tscfiles.core.model_types import SeverityLevel
from tscfiles.core.type_aliases import DiagnosticCode
from tscfiles.core.types import Diagnostic

if TYPE_CHECKING:
    from collections.abc import Iterable

UNCLASSIFIED_CODE: Final[DiagnosticCode] = DiagnosticCode("TS????")

_PRIMARY_LINE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<column>\d+)\):\s+"
    r"(?P<severity>error|warning)\s+(?P<code>TS\d+):\s*(?P<message>.*)$"
)
_GLOBAL_LINE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<severity>error|warning)\s+(?P<code>TS\d+):\s*(?P<message>.*)$"
)
_BANNER_LINES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^Found \d+ errors?\b"),
    re.compile(r"^Version \d+\.\d+"),
    re.compile(
        r"^(?:\[?[\d:.\sAPM]+\]?\s*-?\s*)?"
        r"(?:Starting compilation|Starting incremental compilation|File change detected|Watching for file changes)"
    ),
)
_TABLE_HEADER: Final[re.Pattern[str]] = re.compile(r"^Errors\s+Files$")
_TABLE_ROW: Final[re.Pattern[str]] = re.compile(r"^\s*\d+\s+\S")
_ANSI_ESCAPE: Final[re.Pattern[str]] = re.compile(r"\x1b\[[0-9;]*m")


@dataclass(slots=True)
class _Pending:
    file: Path
    line: int
    column: int
    code: DiagnosticCode
    severity: SeverityLevel
    lines: list[str] = field(default_factory=list)
    low_confidence: bool = False

    def freeze(self) -> Diagnostic:
        return Diagnostic(
            file=self.file,
            line=self.line,
            column=self.column,
            code=self.code,
            severity=self.severity,
            message="\n".join(self.lines).strip(),
            low_confidence=self.low_confidence,
        )


def _diagnostic_path(raw: str, base_dir: Path | None) -> Path:
    path = Path(raw.strip())
    if base_dir is None or path.is_absolute():
        return path
    return Path(os.path.normpath(base_dir / path))


def _is_banner(line: str) -> bool:
    return any(pattern.match(line) for pattern in _BANNER_LINES)


def parse_diagnostics(raw: str, base_dir: Path | None = None) -> list[Diagnostic]:
    """Parse raw compiler output.

    Args:
        raw: Combined stdout/stderr text of one compiler run.
        base_dir: Directory relative file paths are resolved against
            (the compiler's working directory).

    Returns:
        Diagnostics in output order. Global diagnostics (``error TS5083: ...``)
        carry an empty path and position ``0, 0``.
    """
    pending: list[_Pending] = []
    current: _Pending | None = None
    in_table = False
    for raw_line in _ANSI_ESCAPE.sub("", raw).splitlines():
        line = raw_line.rstrip()
        if not line.strip():
            continue
        if in_table:
            if _TABLE_ROW.match(line):
                continue
            in_table = False
        if match := _PRIMARY_LINE.match(line):
            current = _Pending(
                file=_diagnostic_path(match["file"], base_dir),
                line=int(match["line"]),
                column=int(match["column"]),
                code=DiagnosticCode(match["code"]),
                severity=SeverityLevel.from_str(match["severity"]),
                lines=[match["message"]],
            )
            pending.append(current)
        elif match := _GLOBAL_LINE.match(line.strip()):
            current = _Pending(
                file=Path(),
                line=0,
                column=0,
                code=DiagnosticCode(match["code"]),
                severity=SeverityLevel.from_str(match["severity"]),
                lines=[match["message"]],
            )
            pending.append(current)
        elif _TABLE_HEADER.match(line.strip()):
            in_table = True
            current = None
        elif _is_banner(line.strip()):
            current = None
        elif current is not None:
            current.lines.append(line.strip() if not line[:1].isspace() else line)
        else:
            current = _Pending(
                file=Path(),
                line=0,
                column=0,
                code=UNCLASSIFIED_CODE,
                severity=SeverityLevel.WARNING,
                lines=[line.strip()],
                low_confidence=True,
            )
            pending.append(current)
    return [item.freeze() for item in pending]


def has_confident_diagnostics(diagnostics: Iterable[Diagnostic]) -> bool:
    """Return ``True`` when at least one diagnostic was parsed from a known line shape."""
    return any(not diag.low_confidence for diag in diagnostics)


def sort_diagnostics(diagnostics: Iterable[Diagnostic]) -> list[Diagnostic]:
    """Return `diagnostics` ordered by ``(file, line, column)``."""
    return sorted(diagnostics, key=Diagnostic.sort_key)


__all__ = ["UNCLASSIFIED_CODE", "has_confident_diagnostics", "parse_diagnostics", "sort_diagnostics"]
