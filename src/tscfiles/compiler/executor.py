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


"""Run the compiler for one ephemeral configuration, with fallback."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tscfiles._internal.exceptions import CompilerSpawnError, CompilerTimeoutError
from tscfiles._internal.process import run_command
from tscfiles.core.model_types import LogComponent, ProgressEventKind
from tscfiles.diagnostics import has_confident_diagnostics, parse_diagnostics
from tscfiles.events import ProgressEvent
from tscfiles.logging import structured_extra

from .locator import CompilerLocator

if TYPE_CHECKING:
    from tscfiles._internal.process import CommandOutput, ProcessRegistry
    from tscfiles.config.project import ProjectConfig
    from tscfiles.core.model_types import CompilerKind
    from tscfiles.ephemeral import EphemeralConfig
    from tscfiles.events import EventSink
    from tscfiles.options import CheckOptions

    from .locator import CompilerCandidate

logger: logging.Logger = logging.getLogger("tscfiles.compiler")


@dataclass(slots=True, frozen=True)
class ExecutionOutput:
    """Captured result of the compiler run that was kept.

    Attributes:
        stdout: Standard output.
        stderr: Standard error.
        exit_code: Process exit status.
        compiler: Implementation that produced the output.
        command: Argument vector that was executed.
        duration_ms: Wall time of this run.
        attempts: Implementations tried, in order, including this one.
    """

    stdout: str
    stderr: str
    exit_code: int
    compiler: CompilerKind
    command: tuple[str, ...]
    duration_ms: float
    attempts: tuple[CompilerKind, ...] = ()

    @property
    def output(self) -> str:
        if self.stdout and self.stderr:
            head = self.stdout.rstrip("\n")
            return f"{head}\n{self.stderr}"
        return self.stdout or self.stderr


def compiler_arguments(ephemeral: EphemeralConfig) -> tuple[str, ...]:
    return ("--project", str(ephemeral.path), "--pretty", "false")


class CompilerExecutor:
    """Try compiler candidates in order until one produces a usable result.

    A candidate is abandoned for the next one when it cannot be started, or
    when it exits non-zero without a single recognisable diagnostic. The last
    candidate's outcome is always returned as is; crashes are never retried.
    A timeout stops the group immediately.

    Args:
        locator: Candidate discovery.
        registry: Registry for live processes, so a run can be cancelled.
        events: Sink receiving ``COMPILER_FALLBACK`` events.
    """

    def __init__(
        self,
        locator: CompilerLocator | None = None,
        *,
        registry: ProcessRegistry | None = None,
        events: EventSink | None = None,
    ) -> None:
        self.locator = locator or CompilerLocator()
        self._registry = registry
        self._events = events

    def execute(
        self,
        ephemeral: EphemeralConfig,
        options: CheckOptions,
        project: ProjectConfig,
    ) -> ExecutionOutput:
        """Run the compiler against `ephemeral`.

        Args:
            ephemeral: Live ephemeral configuration.
            options: Run options (compiler selection and timeout).
            project: Project the ephemeral configuration extends; its
                directory is the working directory of the compiler.

        Returns:
            Output of the run that was kept.

        Raises:
            CompilerNotFoundError: If no compiler candidate exists.
            CompilerSpawnError: If the last candidate cannot be started.
            CompilerTimeoutError: If a run exceeds ``options.timeout_seconds``.
        """
        candidates = self.locator.candidates(project, options.compiler)
        attempts: list[CompilerKind] = []
        for index, candidate in enumerate(candidates):
            is_last = index == len(candidates) - 1
            argv = candidate.argv(*compiler_arguments(ephemeral))
            attempts.append(candidate.kind)
            try:
                result = run_command(
                    argv,
                    cwd=project.directory,
                    timeout=options.timeout_seconds,
                    registry=self._registry,
                )
            except subprocess.TimeoutExpired as exc:
                raise CompilerTimeoutError(argv, options.timeout_seconds or 0.0) from exc
            except OSError as exc:
                error = CompilerSpawnError(str(candidate.executable), exc)
                if is_last:
                    raise error from exc
                self._fall_back(project, candidate, candidates[index + 1], str(error))
                continue
            if not is_last and self._unusable(result, project):
                reason = f"exit code {result.exit_code} without diagnostics"
                self._fall_back(project, candidate, candidates[index + 1], reason)
                continue
            logger.debug(
                "%s finished for %s (exit=%s)",
                candidate.kind,
                project.path,
                result.exit_code,
                extra=structured_extra(
                    component=LogComponent.COMPILER,
                    compiler=candidate.kind,
                    config=project.path,
                    exit_code=result.exit_code,
                    duration_ms=result.duration_ms,
                ),
            )
            return ExecutionOutput(
                stdout=result.stdout,
                stderr=result.stderr,
                exit_code=result.exit_code,
                compiler=candidate.kind,
                command=tuple(argv),
                duration_ms=result.duration_ms,
                attempts=tuple(attempts),
            )
        # candidates() never returns an empty list
        raise AssertionError(candidates)

    @staticmethod
    def _unusable(result: CommandOutput, project: ProjectConfig) -> bool:
        if result.exit_code == 0:
            return False
        return not has_confident_diagnostics(parse_diagnostics(result.combined, project.directory))

    def _fall_back(
        self,
        project: ProjectConfig,
        failed: CompilerCandidate,
        following: CompilerCandidate,
        reason: str,
    ) -> None:
        logger.warning(
            "%s failed for %s (%s); falling back to %s",
            failed.kind,
            project.path,
            reason,
            following.kind,
            extra=structured_extra(
                component=LogComponent.COMPILER,
                compiler=failed.kind,
                config=project.path,
                details={"reason": reason, "next": following.kind.value},
            ),
        )
        if self._events is not None:
            self._events.emit(
                ProgressEvent(
                    kind=ProgressEventKind.COMPILER_FALLBACK,
                    config_path=project.path,
                    compiler=failed.kind,
                    details={"reason": reason, "next": following.kind.value},
                ),
            )


__all__ = ["CompilerExecutor", "ExecutionOutput", "compiler_arguments"]
