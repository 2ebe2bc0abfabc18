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

"""Core data classes for diagnostics, file groups and check results.

These are the values that flow between the pipeline stages: the grouper
produces ``FileGroup`` instances, each group run produces a ``GroupResult``
and the aggregator folds all group results into a single ``CheckResult``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .model_types import SeverityLevel

if TYPE_CHECKING:
    from pathlib import Path

    from tscfiles._internal.exceptions import TscFilesError

    from .model_types import CompilerKind, ExitCode
    from .type_aliases import DiagnosticCode


@dataclass(slots=True, frozen=True)
class Diagnostic:
    """Immutable dataclass representing a single compiler diagnostic.

    Attributes:
        file: File the diagnostic points at. Global diagnostics (no file
            position) use an empty path.
        line: Line number (1-indexed, ``0`` for global diagnostics).
        column: Column number (1-indexed, ``0`` for global diagnostics).
        code: Compiler diagnostic code such as ``TS2322``.
        severity: Error or warning.
        message: Human readable message including continuation lines.
        low_confidence: ``True`` when the line could not be classified and
            was preserved verbatim so it is never hidden.
    """

    file: Path
    line: int
    column: int
    code: DiagnosticCode
    severity: SeverityLevel
    message: str
    low_confidence: bool = False

    def sort_key(self) -> tuple[str, int, int]:
        """Return the deterministic ordering key ``(file, line, column)``."""
        return (str(self.file), self.line, self.column)


@dataclass(slots=True, frozen=True)
class FileGroup:
    """Requested files that share one resolved project configuration.

    Attributes:
        config_path: Absolute path of the governing ``tsconfig.json``.
        files: Ordered, de-duplicated member files (absolute paths).
    """

    config_path: Path
    files: tuple[Path, ...]


@dataclass(slots=True, frozen=True)
class GroupResult:
    """Outcome of type checking a single configuration group.

    Attributes:
        group: The group that was checked.
        diagnostics: Parsed diagnostics for the group.
        compiler: Compiler implementation that produced the output, if any ran.
        command: Argument vector of the final compiler invocation.
        exit_code: Compiler exit status, ``None`` when no process completed.
        duration_ms: Wall time spent on the group.
        error: System or filesystem fault that aborted the group.
    """

    group: FileGroup
    diagnostics: tuple[Diagnostic, ...] = ()
    compiler: CompilerKind | None = None
    command: tuple[str, ...] = ()
    exit_code: int | None = None
    duration_ms: float = 0.0
    error: TscFilesError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def _empty_groups() -> tuple[GroupResult, ...]:
    return ()


@dataclass(slots=True, frozen=True)
class CheckResult:
    """Aggregated result of a type-check run across all groups.

    Attributes:
        success: ``True`` when no error diagnostics and no group faults exist.
        error_count: Number of error-severity diagnostics.
        warning_count: Number of warning-severity diagnostics.
        diagnostics: All diagnostics ordered by ``(file, line, column)``.
        duration_ms: Total wall time for the run.
        checked_files: The original input file set, independent of grouping.
        exit_code: Exit code a CLI layer should report for this run.
        groups: Per-group outcomes in configuration order.
    """

    success: bool
    error_count: int
    warning_count: int
    diagnostics: tuple[Diagnostic, ...]
    duration_ms: float
    checked_files: tuple[Path, ...]
    exit_code: ExitCode
    groups: tuple[GroupResult, ...] = field(default_factory=_empty_groups)

    @property
    def errors(self) -> tuple[Diagnostic, ...]:
        return tuple(diag for diag in self.diagnostics if diag.severity is SeverityLevel.ERROR)

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        return tuple(diag for diag in self.diagnostics if diag.severity is SeverityLevel.WARNING)

    @property
    def failures(self) -> tuple[GroupResult, ...]:
        """Groups aborted by a system or filesystem fault."""
        return tuple(group for group in self.groups if group.failed)

    def severity_counts(self) -> Counter[SeverityLevel]:
        """Calculate the count of diagnostics by severity level.

        Returns:
            Counter mapping each severity level to its diagnostic count.
        """
        counts: Counter[SeverityLevel] = Counter()
        for diag in self.diagnostics:
            counts[diag.severity] += 1
        return counts


__all__ = ["CheckResult", "Diagnostic", "FileGroup", "GroupResult"]
