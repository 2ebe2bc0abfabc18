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

"""Structured logging for tscfiles.

Every record emitted by the package carries a ``component`` and optionally
the compiler, configuration, path, timing, exit code, counts and details of
the operation it describes. ``structured_extra`` builds that payload and the
JSON formatter writes it out as one object per line.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final, SupportsFloat, SupportsInt, TypedDict, Unpack, cast

from typing_extensions import override

from tscfiles.core.model_types import CompilerKind, LogComponent, LogFormat, SeverityLevel
from tscfiles.json import normalize_enums_for_json

_PACKAGE_LOGGER: Final[str] = "tscfiles"
_TEXT_FORMAT: Final[str] = "[%(levelname)s] %(message)s"
_LEVELS: Final[dict[str, int]] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(slots=True, frozen=True)
class LogConfig:
    """Logging setup selected by ``configure_logging``."""

    format: LogFormat
    level: int
    level_name: str


class StructuredLogExtra(TypedDict, total=False):
    """Structured fields attached to tscfiles log records."""

    component: LogComponent
    compiler: CompilerKind
    config: str
    path: str
    duration_ms: float
    exit_code: int
    counts: Mapping[SeverityLevel, int]
    details: Mapping[str, object]


class _StructuredLogKwargs(TypedDict, total=False):
    compiler: CompilerKind | str
    config: str | os.PathLike[str]
    path: str | os.PathLike[str]
    duration_ms: float
    exit_code: int
    counts: Mapping[SeverityLevel, int]
    details: Mapping[str, object]


class _JSONFormatter(logging.Formatter):
    @override
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }
        payload.update({key: getattr(record, key) for key in StructuredLogExtra.__annotations__ if hasattr(record, key)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(normalize_enums_for_json(payload), ensure_ascii=False)


def _resolve_level(level: str | int | None) -> tuple[int, str]:
    if level is None:
        level = os.getenv("TSCFILES_LOG_LEVEL") or "info"
    if isinstance(level, int):
        return level, logging.getLevelName(level).lower()
    name = level.strip().lower()
    return (_LEVELS[name], name) if name in _LEVELS else (logging.INFO, "info")


def configure_logging(
    log_format: LogFormat | str | None = None,
    *,
    log_level: str | int | None = None,
) -> LogConfig:
    """Send tscfiles logs to stderr in the requested format and level.

    Library calls never configure logging on their own; ``run_check`` does
    so from settings, and embedding applications may call this directly.
    Repeated calls replace the previous handler.

    Args:
        log_format: ``text`` or ``json``. ``None`` falls back to
            ``TSCFILES_LOG_FORMAT`` or ``text``.
        log_level: Level name or number. ``None`` falls back to
            ``TSCFILES_LOG_LEVEL`` or ``info``.

    Returns:
        The format and level that were applied.
    """
    if log_format is None:
        log_format = os.getenv("TSCFILES_LOG_FORMAT") or LogFormat.TEXT
    selected = log_format if isinstance(log_format, LogFormat) else LogFormat.from_str(log_format)
    level, level_name = _resolve_level(log_level)

    handler = logging.StreamHandler()
    handler.setFormatter(_JSONFormatter() if selected is LogFormat.JSON else logging.Formatter(_TEXT_FORMAT))
    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
    return LogConfig(format=selected, level=level, level_name=level_name)


def _as_compiler(value: object) -> CompilerKind:
    return value if isinstance(value, CompilerKind) else CompilerKind.from_str(str(value))


def _as_path(value: object) -> str:
    return os.fspath(cast("str | os.PathLike[str]", value))


_SCALAR_FIELDS: Final[dict[str, Callable[[object], object]]] = {
    "compiler": _as_compiler,
    "config": _as_path,
    "path": _as_path,
    "duration_ms": lambda value: float(cast("SupportsFloat | str", value)),
    "exit_code": lambda value: int(cast("SupportsInt | str", value)),
}


def structured_extra(
    component: LogComponent,
    **kwargs: Unpack[_StructuredLogKwargs],
) -> StructuredLogExtra:
    """Return a typed ``extra`` payload for a log call.

    ``None`` values and empty ``counts``/``details`` mappings are left out.
    Paths are stored as strings and compiler names as ``CompilerKind``.
    """
    extra: dict[str, object] = {"component": component}
    for key, value in cast("dict[str, object]", kwargs).items():
        if value is None:
            continue
        if key in _SCALAR_FIELDS:
            extra[key] = _SCALAR_FIELDS[key](value)
        elif isinstance(value, Mapping) and value:
            extra[key] = dict(cast("Mapping[object, object]", value))
    return cast("StructuredLogExtra", extra)


__all__ = ["LogConfig", "StructuredLogExtra", "configure_logging", "structured_extra"]
