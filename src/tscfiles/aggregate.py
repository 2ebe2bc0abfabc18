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


"""Fold per-group outcomes into one ``CheckResult``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tscfiles._internal.error_codes import exit_code_for
from tscfiles.core.model_types import ExitCode, SeverityLevel
from tscfiles.core.types import CheckResult
from tscfiles.diagnostics import sort_diagnostics

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from tscfiles.core.types import Diagnostic, GroupResult


def exit_code_for_result(
    diagnostics: Sequence[Diagnostic],
    group_results: Sequence[GroupResult] = (),
) -> ExitCode:
    """Map diagnostics and group faults to an exit code.

    Group faults win over type errors: a check that could not run for some
    files cannot vouch for them.

    Args:
        diagnostics: All diagnostics of the run.
        group_results: Per-group outcomes.

    Returns:
        ``SUCCESS``, ``TYPE_ERRORS`` or the fault's exit code.
    """
    faults = [exit_code_for(result.error) for result in group_results if result.error is not None]
    if faults:
        return max(faults)
    if any(diag.severity is SeverityLevel.ERROR for diag in diagnostics):
        return ExitCode.TYPE_ERRORS
    return ExitCode.SUCCESS


def aggregate_results(
    group_results: Iterable[GroupResult],
    all_input_files: Iterable[Path],
    duration_ms: float,
) -> CheckResult:
    """Merge group results into a single, deterministic result.

    Args:
        group_results: Outcomes of every group, in any order.
        all_input_files: The original requested files.
        duration_ms: Wall time of the whole run.

    Returns:
        Result with diagnostics ordered by ``(file, line, column)``.
    """
    groups = tuple(sorted(group_results, key=lambda item: str(item.group.config_path)))
    diagnostics = tuple(sort_diagnostics(diag for result in groups for diag in result.diagnostics))
    error_count = sum(1 for diag in diagnostics if diag.severity is SeverityLevel.ERROR)
    warning_count = len(diagnostics) - error_count
    exit_code = exit_code_for_result(diagnostics, groups)
    return CheckResult(
        success=exit_code is ExitCode.SUCCESS,
        error_count=error_count,
        warning_count=warning_count,
        diagnostics=diagnostics,
        duration_ms=duration_ms,
        checked_files=tuple(all_input_files),
        exit_code=exit_code,
        groups=groups,
    )


__all__ = ["aggregate_results", "exit_code_for_result"]
