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


"""Compiler discovery.

``CompilerLocator`` turns a ``CompilerSelection`` into an ordered list of
``CompilerCandidate`` values. The executor tries them in order, so adding a
third implementation only means adding candidates here.

Search order:

1. an explicit executable, when given;
2. ``tsgo`` when installed, allowed and compatible with the project;
3. ``tsc`` from ``node_modules/.bin`` in any ancestor of the project, then
   the package manager's binary directory, then the ``typescript`` package
   run through ``node``, then ``PATH``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

from tscfiles._internal.exceptions import CompilerNotFoundError
from tscfiles.core.model_types import CompilerKind, LogComponent
from tscfiles.logging import structured_extra

from .platforms import PlatformAdapter, current_platform

if TYPE_CHECKING:
    from tscfiles.config.project import ProjectConfig
    from tscfiles.detectors import PackageManagerInfo
    from tscfiles.options import CompilerSelection

logger: logging.Logger = logging.getLogger("tscfiles.compiler")

BIN_DIR: Final[Path] = Path("node_modules", ".bin")
TYPESCRIPT_ENTRY: Final[Path] = Path("node_modules", "typescript", "bin", "tsc")


@dataclass(slots=True, frozen=True)
class CompilerCandidate:
    """One way of running a compiler.

    Attributes:
        kind: Compiler implementation.
        executable: Program to start.
        source: Where the candidate was found (for logs and errors).
        prefix_args: Arguments placed before the compiler arguments, for
            example the script path when ``executable`` is ``node``.
    """

    kind: CompilerKind
    executable: Path
    source: str
    prefix_args: tuple[str, ...] = ()

    def argv(self, *args: str) -> list[str]:
        return [str(self.executable), *self.prefix_args, *args]


def alternate_incompatibilities(project: ProjectConfig) -> list[str]:
    """Return project options ``tsgo`` cannot honour yet.

    ``baseUrl`` is only supported together with ``bundler`` module resolution.
    """
    issues: list[str] = []
    if project.base_url and project.module_resolution != "bundler":
        issues.append("baseUrl")
    return issues


def _infer_kind(executable: Path) -> CompilerKind:
    return CompilerKind.TSGO if executable.name.lower().startswith("tsgo") else CompilerKind.TSC


def _dedupe(candidates: list[CompilerCandidate]) -> list[CompilerCandidate]:
    seen: set[tuple[str, ...]] = set()
    unique: list[CompilerCandidate] = []
    for candidate in candidates:
        key = tuple(candidate.argv())
        if key not in seen:
            seen.add(key)
            unique.append(candidate)
    return unique


class CompilerLocator:
    """Find compiler candidates for a project.

    Args:
        platform: Platform adapter; defaults to the running platform.
        package_manager: Detected package manager, used for its binary hint.
        search_path: ``PATH`` override for the global lookup.
    """

    def __init__(
        self,
        *,
        platform: PlatformAdapter | None = None,
        package_manager: PackageManagerInfo | None = None,
        search_path: str | None = None,
    ) -> None:
        self.platform = platform or current_platform()
        self._package_manager = package_manager
        self._search_path = search_path

    def candidates(self, project: ProjectConfig, selection: CompilerSelection) -> list[CompilerCandidate]:
        """Return the ordered candidates for `project`.

        Args:
            project: Project the compiler will run for.
            selection: Caller's compiler flags.

        Returns:
            Candidates in the order they should be tried. When fallback is
            disabled only the first candidate is returned.

        Raises:
            CompilerNotFoundError: If no candidate exists, if an explicit
                executable is missing and fallback is disabled, or if
                ``tsgo`` is forced but not installed.
        """
        searched: list[str] = []
        found: list[CompilerCandidate] = []
        explicit = self._explicit(project, selection, searched)
        if explicit is not None:
            found.append(explicit)
        elif selection.executable is not None and not selection.allows_fallback:
            raise CompilerNotFoundError(searched, detail=f"{selection.executable} is not executable")

        if not selection.force_standard:
            alternate = self._find(CompilerKind.TSGO, project.directory, searched)
            if selection.force_alternate:
                if alternate is None:
                    raise CompilerNotFoundError(searched, detail="tsgo was requested but is not installed")
                return [*found, alternate][:1]
            issues = alternate_incompatibilities(project)
            if alternate is not None and not issues:
                found.append(alternate)
            elif alternate is not None:
                logger.info(
                    "Using tsc for %s: tsgo does not support %s",
                    project.path,
                    ", ".join(issues),
                    extra=structured_extra(
                        component=LogComponent.COMPILER,
                        config=project.path,
                        details={"incompatible": issues},
                    ),
                )

        standard = self._find(CompilerKind.TSC, project.directory, searched)
        if standard is not None:
            found.append(standard)
        if not found:
            raise CompilerNotFoundError(searched)
        unique = _dedupe(found)
        selected = unique if selection.allows_fallback else unique[:1]
        logger.debug(
            "Compiler candidates for %s: %s",
            project.path,
            ", ".join(f"{item.kind}@{item.source}" for item in selected),
            extra=structured_extra(component=LogComponent.COMPILER, config=project.path),
        )
        return selected

    def _explicit(
        self,
        project: ProjectConfig,
        selection: CompilerSelection,
        searched: list[str],
    ) -> CompilerCandidate | None:
        executable = selection.executable
        if executable is None:
            return None
        searched.append(str(executable))
        if executable.is_absolute() or len(executable.parts) > 1:
            path = executable if executable.is_absolute() else project.directory / executable
            resolved = path if self.platform.is_executable(path) else None
        else:
            resolved = self.platform.which(str(executable), self._search_path)
        if resolved is None:
            logger.warning(
                "Compiler executable %s is not available",
                executable,
                extra=structured_extra(component=LogComponent.COMPILER, path=executable),
            )
            return None
        return CompilerCandidate(kind=_infer_kind(resolved), executable=resolved, source="explicit")

    def _find(self, kind: CompilerKind, start: Path, searched: list[str]) -> CompilerCandidate | None:
        for directory in (start, *start.parents):
            bin_dir = directory / BIN_DIR
            if bin_dir.is_dir():
                searched.append(str(bin_dir))
                candidate = self._in_directory(kind, bin_dir, "local")
                if candidate is not None:
                    return candidate
        info = self._package_manager
        if info is not None and info.bin_dir_hint is not None:
            searched.append(str(info.bin_dir_hint))
            candidate = self._in_directory(kind, info.bin_dir_hint, str(info.kind))
            if candidate is not None:
                return candidate
        if kind is CompilerKind.TSC:
            candidate = self._typescript_package(start, searched)
            if candidate is not None:
                return candidate
        searched.append(f"PATH:{kind}")
        global_path = self.platform.which(kind.value, self._search_path)
        if global_path is not None:
            return CompilerCandidate(kind=kind, executable=global_path, source="global")
        return None

    def _in_directory(self, kind: CompilerKind, directory: Path, source: str) -> CompilerCandidate | None:
        for name in self.platform.executable_names(kind.value):
            path = directory / name
            if self.platform.is_executable(path):
                return CompilerCandidate(kind=kind, executable=path, source=source)
        return None

    def _typescript_package(self, start: Path, searched: list[str]) -> CompilerCandidate | None:
        """Run ``typescript/bin/tsc`` through ``node`` when no shim exists."""
        for directory in (start, *start.parents):
            entry = directory / TYPESCRIPT_ENTRY
            if entry.is_file():
                searched.append(str(entry))
                node = self.platform.which("node", self._search_path)
                if node is None:
                    return None
                return CompilerCandidate(
                    kind=CompilerKind.TSC,
                    executable=node,
                    source="typescript-package",
                    prefix_args=(str(entry),),
                )
        return None


__all__ = ["CompilerCandidate", "CompilerLocator", "alternate_incompatibilities"]
