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


"""tscfiles: type-check selected TypeScript files with their project settings."""

from __future__ import annotations

from tscfiles._internal.error_codes import error_code_catalog, error_code_for, exit_code_for
from tscfiles._internal.exceptions import (
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

from .aggregate import aggregate_results, exit_code_for_result
from .checker import check_files, run_check
from .config import ConfigResolver, ProjectConfig
from .core.model_types import CompilerKind, ExitCode, PackageManagerKind, ProgressEventKind, SeverityLevel
from .core.types import CheckResult, Diagnostic, FileGroup, GroupResult
from .detectors import PackageManagerInfo, detect_package_manager
from .diagnostics import UNCLASSIFIED_CODE, parse_diagnostics
from .ephemeral import EphemeralConfig, EphemeralConfigStore, EphemeralConfigSynthesizer
from .events import EventSink, LoggingEventSink, ProgressEvent
from .grouping import group_files
from .logging import configure_logging
from .options import CheckOptions, CompilerSelection
from .settings import SettingsModel, load_settings

__all__ = [
    "UNCLASSIFIED_CODE",
    "__version__",
    "CheckOptions",
    "CheckResult",
    "CircularExtendsError",
    "CompilerCrashError",
    "CompilerKind",
    "CompilerNotFoundError",
    "CompilerSelection",
    "CompilerSpawnError",
    "CompilerSystemError",
    "CompilerTimeoutError",
    "ConfigError",
    "ConfigInvalidError",
    "ConfigNotFoundError",
    "ConfigResolver",
    "Diagnostic",
    "EphemeralConfig",
    "EphemeralConfigStore",
    "EphemeralConfigSynthesizer",
    "EventSink",
    "ExitCode",
    "FileGroup",
    "FileSystemError",
    "GroupResult",
    "LoggingEventSink",
    "PackageManagerInfo",
    "PackageManagerKind",
    "ProgressEvent",
    "ProgressEventKind",
    "ProjectConfig",
    "SettingsError",
    "SettingsModel",
    "SeverityLevel",
    "TscFilesError",
    "TypeCheckFailure",
    "aggregate_results",
    "check_files",
    "configure_logging",
    "detect_package_manager",
    "error_code_catalog",
    "error_code_for",
    "exit_code_for",
    "exit_code_for_result",
    "group_files",
    "load_settings",
    "parse_diagnostics",
    "run_check",
]

__version__ = "0.1.0"
