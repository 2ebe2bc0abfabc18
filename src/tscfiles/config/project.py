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


"""Project configuration discovery and ``extends`` resolution.

``ConfigResolver`` maps a source file to the nearest ``tsconfig.json`` above it
and merges that document with everything it ``extends``:

- ``compilerOptions`` merge shallowly, child over parent;
- ``files``, ``include`` and ``exclude`` are replaced by the child when it
  declares them, as the compiler does.

A resolver memoizes lookups, documents and merged configurations for one
check run. Population is synchronized per path so concurrent workers never
walk the same directories or parse the same document twice.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Final

from tscfiles._internal.exceptions import CircularExtendsError, ConfigInvalidError, ConfigNotFoundError
from tscfiles.core.model_types import LogComponent
from tscfiles.json import as_str, read_json_file
from tscfiles.logging import structured_extra

from .models import read_tsconfig

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from pydantic import JsonValue

    from .models import TsconfigDocument

logger: logging.Logger = logging.getLogger("tscfiles.config")

CONFIG_FILENAME: Final[str] = "tsconfig.json"
_RELATIVE_PREFIXES: Final[tuple[str, ...]] = ("./", "../", ".\\", "..\\")
_MISSING: Final = object()


def _empty_options() -> dict[str, JsonValue]:
    return {}


@dataclass(slots=True, frozen=True)
class ProjectConfig:
    """A fully merged project configuration.

    Only the options the check engine reads have typed accessors; everything
    else stays in ``compiler_options`` and reaches the compiler through
    ``extends``.

    Attributes:
        path: Absolute path of the configuration file.
        compiler_options: Options merged along the ``extends`` chain.
        files: Explicit files (absolute) of the nearest config declaring them, or ``None``.
        include: Effective include patterns, or ``None``.
        exclude: Effective exclude patterns, or ``None``.
        build_info_file: Declared ``tsBuildInfoFile`` made absolute, or ``None``.
        extends_chain: Configuration files that were merged, this file first.
    """

    path: Path
    compiler_options: Mapping[str, JsonValue] = field(default_factory=_empty_options)
    files: tuple[Path, ...] | None = None
    include: tuple[str, ...] | None = None
    exclude: tuple[str, ...] | None = None
    build_info_file: Path | None = None
    extends_chain: tuple[Path, ...] = ()

    @property
    def directory(self) -> Path:
        return self.path.parent

    def _flag(self, name: str) -> bool:
        return self.compiler_options.get(name) is True

    @property
    def allows_javascript(self) -> bool:
        return self._flag("allowJs") or self._flag("checkJs")

    @property
    def is_incremental(self) -> bool:
        return self._flag("composite") or self._flag("incremental")

    @property
    def emits_declaration_only(self) -> bool:
        return self._flag("emitDeclarationOnly")

    @property
    def base_url(self) -> str | None:
        value = self.compiler_options.get("baseUrl")
        return value if isinstance(value, str) else None

    @property
    def module_resolution(self) -> str | None:
        value = self.compiler_options.get("moduleResolution")
        return value.lower() if isinstance(value, str) else None


@dataclass(slots=True)
class _Layer:
    """Intermediate merge state while walking an ``extends`` chain."""

    options: dict[str, JsonValue] = field(default_factory=_empty_options)
    files: list[Path] | None = None
    include: list[str] | None = None
    exclude: list[str] | None = None
    build_info_file: Path | None = None
    chain: list[Path] = field(default_factory=list)

    @classmethod
    def from_document(cls, path: Path, document: TsconfigDocument) -> _Layer:
        base = path.parent
        options = dict(document.compiler_options)
        build_info = options.get("tsBuildInfoFile")
        return cls(
            options=options,
            files=[_join(base, entry) for entry in document.files] if document.files is not None else None,
            include=list(document.include) if document.include is not None else None,
            exclude=list(document.exclude) if document.exclude is not None else None,
            build_info_file=_join(base, build_info) if isinstance(build_info, str) else None,
            chain=[path],
        )

    def overlay(self, child: _Layer) -> _Layer:
        """Return a new layer with `child` applied on top of this one."""
        return _Layer(
            options={**self.options, **child.options},
            files=child.files if child.files is not None else self.files,
            include=child.include if child.include is not None else self.include,
            exclude=child.exclude if child.exclude is not None else self.exclude,
            build_info_file=child.build_info_file or self.build_info_file,
            chain=[*child.chain, *self.chain],
        )


def _join(base: Path, entry: str) -> Path:
    return Path(os.path.normpath(base / entry))


def _absolute(path: Path, cwd: Path) -> Path:
    return (path if path.is_absolute() else cwd / path).resolve()


def _dedupe_paths(paths: list[Path]) -> tuple[Path, ...]:
    return tuple(dict.fromkeys(paths))


class ConfigResolver:
    """Resolve files to merged project configurations with per-run memoization."""

    def __init__(self, cwd: Path | None = None) -> None:
        self._cwd = (cwd or Path.cwd()).resolve()
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, Path], threading.Lock] = {}
        self._lookups: dict[Path, Path | None] = {}
        self._documents: dict[Path, TsconfigDocument] = {}
        self._configs: dict[Path, ProjectConfig] = {}

    @property
    def cwd(self) -> Path:
        return self._cwd

    def _lock_for(self, kind: str, path: Path) -> threading.Lock:
        key = (kind, path)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def resolve(self, file_path: Path, explicit_config: Path | None = None) -> ProjectConfig:
        """Return the merged configuration that governs `file_path`.

        Args:
            file_path: Source file to resolve, absolute or relative to ``cwd``.
            explicit_config: Configuration file (or directory containing one)
                that overrides discovery.

        Returns:
            The merged project configuration.

        Raises:
            ConfigNotFoundError: If no configuration exists.
            ConfigInvalidError: If a configuration in the chain is unreadable,
                malformed, unresolvable or circular.
        """
        if explicit_config is not None:
            config_path = self.locate_explicit(explicit_config)
        else:
            config_path = self.find_config(file_path)
        return self.load(config_path)

    def locate_explicit(self, explicit_config: Path) -> Path:
        """Validate an explicitly requested configuration path.

        Args:
            explicit_config: File or directory, absolute or relative to ``cwd``.

        Returns:
            Absolute path of the configuration file.

        Raises:
            ConfigNotFoundError: If no such file exists.
        """
        candidate = _absolute(explicit_config, self._cwd)
        if candidate.is_dir():
            candidate /= CONFIG_FILENAME
        if not candidate.is_file():
            raise ConfigNotFoundError(candidate)
        return candidate

    def find_config(self, file_path: Path) -> Path:
        """Return the nearest ``tsconfig.json`` above `file_path`.

        Args:
            file_path: Source file, absolute or relative to ``cwd``.

        Returns:
            Absolute path of the first configuration found walking upward.

        Raises:
            ConfigNotFoundError: If the filesystem root is reached first.
        """
        target = _absolute(file_path, self._cwd)
        start = target.parent
        with self._lock_for("dir", start):
            found = self._lookups.get(start, _MISSING)
            if found is _MISSING:
                found = self._walk_upward(start)
        if not isinstance(found, Path):
            raise ConfigNotFoundError(target, searched=[start, *start.parents])
        return found

    def _walk_upward(self, start: Path) -> Path | None:
        visited: list[Path] = []
        found: Path | None = None
        for directory in (start, *start.parents):
            with self._guard:
                memo = self._lookups.get(directory, _MISSING)
            if memo is not _MISSING:
                found = memo if isinstance(memo, Path) else None
                break
            visited.append(directory)
            candidate = directory / CONFIG_FILENAME
            if candidate.is_file():
                found = candidate
                break
        with self._guard:
            for directory in visited:
                self._lookups.setdefault(directory, found)
        logger.debug(
            "Config lookup from %s -> %s",
            start,
            found,
            extra=structured_extra(
                component=LogComponent.CONFIG,
                path=start,
                details={"visited": len(visited)},
            ),
        )
        return found

    def load(self, config_path: Path) -> ProjectConfig:
        """Return the merged configuration for an existing config file.

        Args:
            config_path: Absolute configuration path.

        Returns:
            The memoized merged configuration.

        Raises:
            ConfigInvalidError: If any document in the chain is invalid.
        """
        path = _absolute(config_path, self._cwd)
        with self._lock_for("config", path):
            cached = self._configs.get(path)
            if cached is None:
                cached = self._build(path)
                self._configs[path] = cached
            return cached

    def _build(self, path: Path) -> ProjectConfig:
        layer = self._merge(path, ())
        config = ProjectConfig(
            path=path,
            compiler_options=layer.options,
            files=_dedupe_paths(layer.files) if layer.files is not None else None,
            include=tuple(layer.include) if layer.include is not None else None,
            exclude=tuple(layer.exclude) if layer.exclude is not None else None,
            build_info_file=layer.build_info_file,
            extends_chain=tuple(layer.chain),
        )
        logger.debug(
            "Resolved %s (%d config(s) in chain)",
            path,
            len(config.extends_chain),
            extra=structured_extra(
                component=LogComponent.CONFIG,
                config=path,
                details={"extends": [str(item) for item in config.extends_chain[1:]]},
            ),
        )
        return config

    def _merge(self, path: Path, stack: tuple[Path, ...]) -> _Layer:
        if path in stack:
            raise CircularExtendsError([*stack, path])
        document = self._load_document(path)
        stack = (*stack, path)
        merged = _Layer(chain=[])
        for reference in document.extends_list:
            parent = self._resolve_extends(reference, path)
            merged = merged.overlay(self._merge(parent, stack))
        return merged.overlay(_Layer.from_document(path, document))

    def _load_document(self, path: Path) -> TsconfigDocument:
        with self._lock_for("document", path):
            document = self._documents.get(path)
            if document is None:
                document = read_tsconfig(path)
                self._documents[path] = document
            return document

    def _resolve_extends(self, reference: str, declaring: Path) -> Path:
        """Resolve one ``extends`` entry relative to the declaring config.

        Args:
            reference: Entry as written (relative path, absolute path or package).
            declaring: Configuration that contains the entry.

        Returns:
            Absolute path of the referenced configuration.

        Raises:
            ConfigInvalidError: If the reference cannot be resolved to a file.
        """
        base = declaring.parent
        if reference.startswith(_RELATIVE_PREFIXES) or Path(reference).is_absolute():
            resolved = _existing_json(_join(base, reference))
        else:
            resolved = _resolve_package_config(reference, base)
        if resolved is None:
            raise ConfigInvalidError(declaring, f"cannot resolve extends '{reference}'")
        return resolved.resolve()


def _existing_json(candidate: Path) -> Path | None:
    if candidate.is_file():
        return candidate
    if candidate.suffix != ".json":
        with_suffix = candidate.with_name(f"{candidate.name}.json")
        if with_suffix.is_file():
            return with_suffix
    return None


def _node_modules_dirs(start: Path) -> Iterator[Path]:
    for directory in (start, *start.parents):
        node_modules = directory / "node_modules"
        if node_modules.is_dir():
            yield node_modules


def _resolve_package_config(reference: str, base: Path) -> Path | None:
    """Resolve a package reference such as ``@tsconfig/node20/tsconfig.json``.

    A bare package name uses the ``tsconfig`` field of its ``package.json``,
    falling back to ``tsconfig.json`` in the package root.
    """
    for node_modules in _node_modules_dirs(base):
        candidate = node_modules / reference
        if candidate.is_dir():
            manifest = candidate / "package.json"
            entry = CONFIG_FILENAME
            if manifest.is_file():
                try:
                    entry = as_str(read_json_file(manifest).get("tsconfig"), CONFIG_FILENAME)
                except (OSError, ValueError):
                    logger.debug(
                        "Ignoring unreadable %s",
                        manifest,
                        extra=structured_extra(component=LogComponent.CONFIG, path=manifest),
                    )
            resolved = _existing_json(_join(candidate, entry))
        else:
            resolved = _existing_json(candidate)
        if resolved is not None:
            return resolved
    return None


__all__ = ["CONFIG_FILENAME", "ConfigResolver", "ProjectConfig"]
