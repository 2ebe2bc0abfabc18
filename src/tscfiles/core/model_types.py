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

"""Enumerations shared by the tscfiles engine."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class SeverityLevel(StrEnum):
    ERROR = "error"
    WARNING = "warning"

    @classmethod
    def from_str(cls, raw: str) -> SeverityLevel:
        value = raw.strip().lower()
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown severity '{raw}'") from exc

    @classmethod
    def coerce(cls, raw: object) -> SeverityLevel:
        if isinstance(raw, SeverityLevel):
            return raw
        if isinstance(raw, str):
            token = raw.strip().lower()
            if token.endswith("s") and token[:-1] in cls._value2member_map_:
                token = token[:-1]
            try:
                return cls.from_str(token)
            except ValueError:
                return cls.WARNING
        return cls.WARNING


class CompilerKind(StrEnum):
    """Interchangeable TypeScript compiler implementations."""

    TSC = "tsc"
    TSGO = "tsgo"

    @classmethod
    def from_str(cls, raw: str) -> CompilerKind:
        value = raw.strip().lower()
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown compiler '{raw}'") from exc

    @property
    def is_alternate(self) -> bool:
        return self is CompilerKind.TSGO


class CompilerPreference(StrEnum):
    AUTO = "auto"
    TSC = "tsc"
    TSGO = "tsgo"

    @classmethod
    def from_str(cls, raw: str) -> CompilerPreference:
        value = raw.strip().lower()
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown compiler preference '{raw}'") from exc


class PackageManagerKind(StrEnum):
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"
    BUN = "bun"
    UNKNOWN = "unknown"


class ProgressEventKind(StrEnum):
    GROUP_STARTED = "group_started"
    GROUP_COMPLETED = "group_completed"
    DIAGNOSTIC_FOUND = "diagnostic_found"
    COMPILER_FALLBACK = "compiler_fallback"


class LogFormat(StrEnum):
    TEXT = "text"
    JSON = "json"

    @classmethod
    def from_str(cls, raw: str) -> LogFormat:
        value = raw.strip().lower()
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown log format '{raw}'") from exc


class LogComponent(StrEnum):
    CONFIG = "config"
    EPHEMERAL = "ephemeral"
    COMPILER = "compiler"
    CHECKER = "checker"
    EVENTS = "events"
    SETTINGS = "settings"

    @classmethod
    def from_str(cls, raw: str) -> LogComponent:
        value = raw.strip().lower()
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown log component '{raw}'") from exc


class ExitCode(IntEnum):
    """Process exit codes a CLI layer reports for a check run."""

    SUCCESS = 0
    TYPE_ERRORS = 1
    CONFIG_ERROR = 2
    SYSTEM_ERROR = 3


__all__ = [
    "CompilerKind",
    "CompilerPreference",
    "ExitCode",
    "LogComponent",
    "LogFormat",
    "PackageManagerKind",
    "ProgressEventKind",
    "SeverityLevel",
]
