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

"""Common exception hierarchy for tscfiles.

The hierarchy mirrors the failure classes a type-check run can end in:

- configuration problems (``ConfigError`` and subclasses) are raised
  immediately and never retried;
- temp-file problems (``FileSystemError``) and compiler problems
  (``CompilerSystemError`` and subclasses) abort a single configuration group
  while independent groups keep running;
- ``TypeCheckFailure`` is not a fault at all: it is only raised when a caller
  explicitly asks for type errors to be reported as an exception.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from tscfiles.core.types import CheckResult

__all__ = [
    "CircularExtendsError",
    "CompilerCrashError",
    "CompilerNotFoundError",
    "CompilerSpawnError",
    "CompilerSystemError",
    "CompilerTimeoutError",
    "ConfigError",
    "ConfigInvalidError",
    "ConfigNotFoundError",
    "FileSystemError",
    "SettingsError",
    "TscFilesError",
    "TypeCheckFailure",
]


class TscFilesError(Exception):
    """Base error for all tscfiles exceptions."""


class ConfigError(TscFilesError):
    """Base class for project configuration failures."""


class ConfigNotFoundError(ConfigError):
    """Raised when no project configuration governs a file."""

    def __init__(self, target: Path, searched: Sequence[Path] = ()) -> None:
        """Initialise the error with the lookup target and searched locations.

        Args:
            target: File or explicit configuration path that was looked up.
            searched: Directories or files inspected before giving up.
        """
        self.target = target
        self.searched = tuple(searched)
        if self.searched:
            message = (
                f"No tsconfig.json found for {target} "
                f"(searched {len(self.searched)} location(s) up to {self.searched[-1]}). "
                "Use an explicit project path to select one."
            )
        else:
            message = f"TypeScript config not found: {target}"
        super().__init__(message)


class ConfigInvalidError(ConfigError):
    """Raised when a project configuration cannot be read or merged."""

    def __init__(self, path: Path, reason: str | BaseException) -> None:
        """Initialise the error with the offending path and a reason.

        Args:
            path: Configuration file (or extends link) that failed.
            reason: Human readable reason or the underlying exception.
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid TypeScript config {path}: {reason}")


class CircularExtendsError(ConfigInvalidError):
    """Raised when an ``extends`` chain references itself."""

    def __init__(self, chain: Sequence[Path]) -> None:
        """Initialise the error with the cycle that was detected.

        Args:
            chain: Configuration paths in visiting order, ending with the
                repeated entry.
        """
        self.chain = tuple(chain)
        rendered = " -> ".join(str(item) for item in self.chain)
        super().__init__(self.chain[0], f"circular extends chain: {rendered}")


class SettingsError(ConfigInvalidError):
    """Raised when the tscfiles settings file is unreadable or invalid."""

    def __init__(self, path: Path, reason: str | BaseException) -> None:
        """Initialise the error with the settings file and a reason.

        Args:
            path: Settings file that failed to load.
            reason: Human readable reason or the underlying exception.
        """
        self.path = path
        self.reason = reason
        ConfigError.__init__(self, f"Invalid tscfiles settings in {path}: {reason}")


class FileSystemError(TscFilesError):
    """Raised when an ephemeral configuration cannot be written or removed."""

    def __init__(self, path: Path, error: BaseException) -> None:
        """Initialise the error with the path and the underlying I/O error.

        Args:
            path: Temp location that could not be used.
            error: Original exception raised by the filesystem call.
        """
        self.path = path
        self.error = error
        super().__init__(f"Unable to write temporary config in {path}: {error}")


class CompilerSystemError(TscFilesError):
    """Raised when the compiler cannot be located, started or completed."""


class CompilerNotFoundError(CompilerSystemError):
    """Raised when every compiler search location has been exhausted."""

    def __init__(self, searched: Sequence[str], detail: str | None = None) -> None:
        """Initialise the error with the locations that were tried.

        Args:
            searched: Candidate executables and directories inspected.
            detail: Optional extra context (for example a forced selection).
        """
        self.searched = tuple(searched)
        message = "TypeScript compiler not found"
        if detail:
            message = f"{message}: {detail}"
        if self.searched:
            message = f"{message} (searched: {', '.join(self.searched)})"
        super().__init__(message)


class CompilerSpawnError(CompilerSystemError):
    """Raised when the operating system refuses to start the compiler."""

    def __init__(self, executable: str, error: OSError) -> None:
        """Initialise the error with the executable and the OS error.

        Args:
            executable: Executable that failed to start.
            error: ``OSError`` raised by the process spawn.
        """
        self.executable = executable
        self.error = error
        super().__init__(f"Unable to start {executable}: {error.strerror or error}")


class CompilerTimeoutError(CompilerSystemError):
    """Raised when a compiler process exceeds the configured timeout."""

    def __init__(self, command: Sequence[str], timeout: float) -> None:
        """Initialise the error with the cancelled command and the limit.

        Args:
            command: Argument vector of the cancelled process.
            timeout: Timeout in seconds that was exceeded.
        """
        self.command = tuple(command)
        self.timeout = timeout
        super().__init__(f"TypeScript compiler timed out after {timeout:g}s: {' '.join(self.command)}")


class CompilerCrashError(CompilerSystemError):
    """Raised when the compiler exits non-zero without reporting diagnostics."""

    def __init__(self, compiler: str, exit_code: int, output: str) -> None:
        """Initialise the error with the compiler exit details.

        Args:
            compiler: Compiler kind or executable that crashed.
            exit_code: Process exit status.
            output: Captured output, trimmed for the message.
        """
        self.compiler = compiler
        self.exit_code = exit_code
        self.output = output
        excerpt = output.strip().splitlines()[-1] if output.strip() else "no output"
        super().__init__(f"TypeScript compiler failed ({compiler}, exit={exit_code}): {excerpt}")


class TypeCheckFailure(TscFilesError):
    """Raised on request when a completed check reported type errors."""

    def __init__(self, result: CheckResult) -> None:
        """Initialise the failure with the aggregated result.

        Args:
            result: Completed check result containing the diagnostics.
        """
        self.result = result
        super().__init__(
            f"Type checking failed: {result.error_count} error(s), {result.warning_count} warning(s)",
        )
