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


"""Run options for a type-check invocation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Final, Literal

from tscfiles.core.model_types import CompilerPreference, LogComponent
from tscfiles.logging import structured_extra

if TYPE_CHECKING:
    from tscfiles.settings import SettingsModel

logger: logging.Logger = logging.getLogger("tscfiles.checker")

MAX_WORKERS_ENV: Final[str] = "TSCFILES_MAX_WORKERS"


@dataclass(slots=True, frozen=True)
class CompilerSelection:
    """Which compiler implementation(s) a run may use.

    Attributes:
        force_standard: Only ever run ``tsc``.
        force_alternate: Only ever run ``tsgo``, without fallback.
        fallback: Fall back to the next candidate when one fails to run.
        executable: Explicit compiler executable tried before discovery.
    """

    force_standard: bool = False
    force_alternate: bool = False
    fallback: bool = True
    executable: Path | None = None

    def __post_init__(self) -> None:
        if self.force_standard and self.force_alternate:
            message = "force_standard and force_alternate are mutually exclusive"
            raise ValueError(message)

    @classmethod
    def from_preference(
        cls,
        preference: CompilerPreference | str,
        *,
        fallback: bool = True,
        executable: Path | None = None,
    ) -> CompilerSelection:
        choice = preference if isinstance(preference, CompilerPreference) else CompilerPreference.from_str(preference)
        return cls(
            force_standard=choice is CompilerPreference.TSC,
            force_alternate=choice is CompilerPreference.TSGO,
            fallback=fallback,
            executable=executable,
        )

    @property
    def allows_fallback(self) -> bool:
        return self.fallback and not self.force_alternate


def _default_selection() -> CompilerSelection:
    return CompilerSelection()


@dataclass(slots=True, frozen=True)
class CheckOptions:
    """Options for one ``check_files`` call.

    Attributes:
        project: Explicit configuration (file or directory) for every file.
        cwd: Directory relative paths are resolved against.
        compiler: Compiler selection flags.
        cache_dir: Directory for ephemeral configurations.
        use_cache: ``False`` places ephemeral configurations in the OS temp dir.
        skip_lib_check: Optional ``skipLibCheck`` override.
        timeout_seconds: Per-group compiler timeout.
        max_workers: Concurrent groups, or ``"auto"``.
        raise_on_error: Raise ``TypeCheckFailure`` when errors are reported.
    """

    project: Path | None = None
    cwd: Path | None = None
    compiler: CompilerSelection = field(default_factory=_default_selection)
    cache_dir: Path | None = None
    use_cache: bool = True
    skip_lib_check: bool | None = None
    timeout_seconds: float | None = None
    max_workers: int | Literal["auto"] = "auto"
    raise_on_error: bool = False

    @classmethod
    def from_settings(cls, settings: SettingsModel, **overrides: object) -> CheckOptions:
        """Build options from loaded settings, then apply keyword overrides.

        Args:
            settings: Validated tscfiles settings.
            **overrides: Field values that take precedence over the settings.

        Returns:
            The combined options.
        """
        base = cls(
            compiler=CompilerSelection.from_preference(settings.compiler, fallback=settings.fallback),
            cache_dir=settings.cache_dir,
            use_cache=settings.use_cache,
            skip_lib_check=settings.skip_lib_check,
            timeout_seconds=settings.timeout_seconds,
            max_workers=settings.max_workers,
        )
        return replace(base, **overrides) if overrides else base

    def resolved_cwd(self) -> Path:
        return (self.cwd or Path.cwd()).resolve()

    def worker_count(self, groups: int) -> int:
        """Return the thread count for `groups` independent groups."""
        if groups <= 1:
            return 1
        return max(1, min(groups, _requested_workers(self.max_workers)))


def _cpu_workers() -> int:
    return max(1, os.cpu_count() or 1)


def _env_workers() -> int | None:
    raw = os.getenv(MAX_WORKERS_ENV)
    if raw is None or not raw.strip():
        return None
    value = raw.strip().lower()
    if value == "auto":
        return _cpu_workers()
    try:
        parsed = int(value)
    except ValueError:
        logger.debug(
            "Ignoring invalid %s=%s value",
            MAX_WORKERS_ENV,
            raw,
            extra=structured_extra(component=LogComponent.CHECKER, details={"env": MAX_WORKERS_ENV}),
        )
        return None
    return max(1, parsed)


def _requested_workers(value: int | Literal["auto"]) -> int:
    if value != "auto":
        return max(1, value)
    env_value = _env_workers()
    return env_value if env_value is not None else _cpu_workers()


__all__ = ["MAX_WORKERS_ENV", "CheckOptions", "CompilerSelection"]
