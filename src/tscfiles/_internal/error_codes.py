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


"""Stable error code registry used across tscfiles.

Every exception class maps to a ``TFxxx`` code for log records and
documentation, and to the ``ExitCode`` a CLI layer should report.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tscfiles.core.model_types import ExitCode
from tscfiles.core.type_aliases import ErrorCode

from .exceptions import (
    CircularExtendsError,
    CompilerCrashError,
    CompilerNotFoundError,
    CompilerSpawnError,
    CompilerSystemError,
    CompilerTimeoutError,
    ConfigError,
    ConfigInvalidError,
    ConfigNotFoundError,
    FileSystemError,
    SettingsError,
    TscFilesError,
    TypeCheckFailure,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

_ERROR_CODES: dict[type[BaseException], ErrorCode] = {
    TscFilesError: ErrorCode("TF000"),
    ConfigError: ErrorCode("TF100"),
    ConfigNotFoundError: ErrorCode("TF101"),
    ConfigInvalidError: ErrorCode("TF102"),
    CircularExtendsError: ErrorCode("TF103"),
    SettingsError: ErrorCode("TF104"),
    FileSystemError: ErrorCode("TF200"),
    CompilerSystemError: ErrorCode("TF300"),
    CompilerNotFoundError: ErrorCode("TF301"),
    CompilerSpawnError: ErrorCode("TF302"),
    CompilerTimeoutError: ErrorCode("TF303"),
    CompilerCrashError: ErrorCode("TF304"),
    TypeCheckFailure: ErrorCode("TF400"),
}

_EXIT_CODES: dict[type[BaseException], ExitCode] = {
    ConfigError: ExitCode.CONFIG_ERROR,
    FileSystemError: ExitCode.SYSTEM_ERROR,
    CompilerSystemError: ExitCode.SYSTEM_ERROR,
    TypeCheckFailure: ExitCode.TYPE_ERRORS,
}


def error_code_for(exc: BaseException) -> ErrorCode:
    """Return a stable error code for a structured tscfiles exception.

    Args:
        exc: Exception instance raised by tscfiles code paths.

    Returns:
        Error code mapped from the exception's class hierarchy.
    """
    for cls in type(exc).__mro__:
        code = _ERROR_CODES.get(cls)
        if code:
            return code
    return ErrorCode("TF000")


def exit_code_for(exc: BaseException) -> ExitCode:
    """Return the process exit code a CLI layer should use for `exc`.

    Unknown exceptions are treated as system errors.

    Args:
        exc: Exception that terminated a check run.

    Returns:
        Exit code mapped from the exception's class hierarchy.
    """
    for cls in type(exc).__mro__:
        exit_code = _EXIT_CODES.get(cls)
        if exit_code is not None:
            return exit_code
    return ExitCode.SYSTEM_ERROR


def error_code_catalog() -> Mapping[str, ErrorCode]:
    """Return a stable mapping of fully-qualified exception names to error codes.

    Returns:
        Mapping of ``<module>.<ExceptionName>`` strings to error codes.
    """
    result: dict[str, ErrorCode] = {}
    for exc_type, code in _ERROR_CODES.items():
        key = f"{exc_type.__module__}.{exc_type.__name__}"
        result[key] = code
    return result


__all__ = ["error_code_catalog", "error_code_for", "exit_code_for"]
