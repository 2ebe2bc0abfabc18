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


"""Settings loading for tscfiles itself.

Settings live in ``tscfiles.toml``, ``.tscfiles.toml`` or the ``[tool.tscfiles]``
table of ``pyproject.toml``. The first file that carries tscfiles data wins,
searching from the starting directory upward to the filesystem root. Missing
settings fall back to the defaults declared on ``SettingsModel``.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Final, Literal, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tscfiles._internal.exceptions import SettingsError
from tscfiles.core.model_types import CompilerPreference, LogComponent, LogFormat
from tscfiles.logging import structured_extra

logger: logging.Logger = logging.getLogger("tscfiles.settings")

SETTINGS_FILENAMES: Final[tuple[str, ...]] = ("tscfiles.toml", ".tscfiles.toml", "pyproject.toml")


class SettingsModel(BaseModel):
    """Pydantic model validating tscfiles settings from TOML.

    Attributes:
        cache_dir: Directory for ephemeral configurations. Relative paths are
            resolved against the directory of the settings file.
        use_cache: When ``False`` ephemeral configurations go to the OS temp
            directory instead of the project cache.
        max_workers: Concurrent groups, or ``"auto"``.
        timeout_seconds: Per-group compiler timeout; ``None`` waits forever.
        fallback: Whether a failing alternate compiler falls back to ``tsc``.
        compiler: Compiler preference (``auto``, ``tsc`` or ``tsgo``).
        skip_lib_check: Optional ``skipLibCheck`` override for the check run.
        log_format: Log format applied by ``run_check``; ``None`` defers to
            ``TSCFILES_LOG_FORMAT`` or ``text``.
        log_level: Log level applied by ``run_check``; ``None`` defers to
            ``TSCFILES_LOG_LEVEL`` or ``info``.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", populate_by_name=True)

    cache_dir: Path | None = None
    use_cache: bool = True
    max_workers: int | Literal["auto"] = "auto"
    timeout_seconds: float | None = Field(default=None, gt=0)
    fallback: bool = True
    compiler: CompilerPreference = CompilerPreference.AUTO
    skip_lib_check: bool | None = None
    log_format: LogFormat | None = None
    log_level: Literal["debug", "info", "warning", "error"] | None = None

    @field_validator("max_workers", mode="before")
    @classmethod
    def _validate_workers(cls, value: object) -> int | str:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == "auto":
                return "auto"
            message = "max_workers must be a positive integer or 'auto'"
            raise ValueError(message)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            message = "max_workers must be a positive integer or 'auto'"
            raise ValueError(message)
        return value

    @field_validator("compiler", mode="before")
    @classmethod
    def _normalize_compiler(cls, value: object) -> object:
        return CompilerPreference.from_str(value) if isinstance(value, str) else value

    @field_validator("log_format", mode="before")
    @classmethod
    def _normalize_log_format(cls, value: object) -> object:
        return LogFormat.from_str(value) if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


@dataclass(slots=True, frozen=True)
class LoadedSettings:
    """Validated settings and the file they were read from.

    Attributes:
        settings: Parsed settings with ``cache_dir`` made absolute.
        path: Settings file, or ``None`` when defaults are used.
    """

    settings: SettingsModel
    path: Path | None


def load_settings(start: Path | None = None, *, explicit_path: Path | None = None) -> LoadedSettings:
    """Load tscfiles settings from disk or fall back to defaults.

    Args:
        start: Directory to start searching from; defaults to the working directory.
        explicit_path: Settings file to read instead of searching. It must
            exist and, for ``pyproject.toml``, contain ``[tool.tscfiles]``.

    Returns:
        LoadedSettings: Parsed settings and the path they originated from.

    Raises:
        SettingsError: If a settings file is unreadable, malformed or invalid.
    """
    if explicit_path is not None:
        candidate = explicit_path if explicit_path.is_absolute() else (Path.cwd() / explicit_path)
        loaded = _load_candidate(candidate.resolve(), explicit=True)
        if loaded is None:  # pragma: no cover - explicit loads always return or raise
            raise SettingsError(candidate, "no tscfiles settings found")
        return loaded
    base = (start or Path.cwd()).resolve()
    for directory in (base, *base.parents):
        for filename in SETTINGS_FILENAMES:
            loaded = _load_candidate(directory / filename, explicit=False)
            if loaded is not None:
                return loaded
    return LoadedSettings(settings=SettingsModel(), path=None)


def _load_candidate(candidate: Path, *, explicit: bool) -> LoadedSettings | None:
    if not candidate.is_file():
        if explicit:
            raise SettingsError(candidate, "file does not exist")
        return None
    try:
        raw_map: dict[str, object] = tomllib.loads(candidate.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise SettingsError(candidate, exc) from exc

    payload = _extract_payload(candidate, raw_map)
    if payload is None:
        if explicit:
            raise SettingsError(candidate, "no [tool.tscfiles] table")
        return None
    try:
        model = SettingsModel.model_validate(payload)
    except ValidationError as exc:
        raise SettingsError(candidate, exc) from exc

    root = candidate.parent
    if model.cache_dir is not None and not model.cache_dir.is_absolute():
        model = model.model_copy(update={"cache_dir": (root / model.cache_dir).resolve()})
    logger.debug(
        "Loaded settings from %s",
        candidate,
        extra=structured_extra(component=LogComponent.SETTINGS, path=candidate),
    )
    return LoadedSettings(settings=model, path=candidate)


def _extract_payload(candidate: Path, raw_map: dict[str, object]) -> dict[str, object] | None:
    """Extract the tscfiles payload from a TOML mapping.

    Args:
        candidate: Source settings path.
        raw_map: Data parsed from the TOML document.

    Returns:
        Mapping to validate, or ``None`` when a ``pyproject.toml`` has no
        tscfiles table.

    Raises:
        SettingsError: If ``[tool.tscfiles]`` exists but is not a table.
    """
    tool_section = raw_map.get("tool")
    is_pyproject = candidate.name == "pyproject.toml"
    if isinstance(tool_section, dict):
        section = cast("dict[str, object]", tool_section).get("tscfiles")
        if section is not None and not isinstance(section, dict):
            raise SettingsError(candidate, "[tool.tscfiles] must be a TOML table")
        if isinstance(section, dict):
            return cast("dict[str, object]", section)
    if is_pyproject:
        return None
    # standalone files ignore unrelated tool entries
    return {key: value for key, value in raw_map.items() if key != "tool"}


__all__ = ["SETTINGS_FILENAMES", "LoadedSettings", "SettingsModel", "load_settings"]
