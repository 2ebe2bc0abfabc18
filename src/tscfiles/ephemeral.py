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


"""Ephemeral check-only configurations.

Each file group is checked through a temporary ``tsconfig`` that ``extends``
the group's project configuration, lists exactly the requested files (plus
the project's own explicit ``files``), clears ``include``/``exclude`` and
forces ``noEmit``. Everything else the project declares reaches the compiler
unchanged through ``extends``.

Temporary files get a random name, owner-only permissions and are removed on
every exit path: ``EphemeralConfig`` is a context manager with idempotent
``dispose()``, and ``EphemeralConfigStore`` disposes whatever a run created.
"""

from __future__ import annotations

import atexit
import logging
import os
import secrets
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Final

from tscfiles._internal.exceptions import FileSystemError
from tscfiles.core.model_types import LogComponent
from tscfiles.json import dump_json
from tscfiles.logging import structured_extra

if TYPE_CHECKING:
    from types import TracebackType

    from pydantic import JsonValue
    from typing_extensions import Self

    from tscfiles.config.project import ProjectConfig
    from tscfiles.core.types import FileGroup
    from tscfiles.json import JSONMapping

logger: logging.Logger = logging.getLogger("tscfiles.ephemeral")

CACHE_SUBDIR: Final[Path] = Path("node_modules", ".cache", "tscfiles")
FILE_PREFIX: Final[str] = "tsconfig."
FILE_SUFFIX: Final[str] = ".json"
_NAME_ATTEMPTS: Final[int] = 8
_OPEN_FLAGS: Final[int] = os.O_CREAT | os.O_EXCL | os.O_WRONLY | getattr(os, "O_BINARY", 0)


def _portable(path: str) -> str:
    return path.replace("\\", "/")


def _relative_to(target: Path, base: Path) -> str:
    try:
        return _portable(os.path.relpath(target, base))
    except ValueError:
        # different drive on Windows
        return _portable(str(target))


def _render_document(
    location: Path,
    extends: Path,
    files: tuple[str, ...],
    compiler_options: dict[str, JsonValue],
) -> JSONMapping:
    """Build the document for a configuration written into `location`.

    ``files`` are given relative to the extended configuration and rebased
    onto `location`, because the compiler resolves them relative to the
    configuration declaring them.
    """
    base = extends.parent
    return {
        "extends": _portable(str(extends)),
        "compilerOptions": dict(compiler_options),
        "files": [_relative_to(Path(os.path.normpath(base / entry)), location) for entry in files],
        "include": [],
        "exclude": [],
    }


class EphemeralConfig:
    """Handle for one generated check-only configuration file.

    Attributes:
        path: Location of the generated file.
        extends: Project configuration the file extends.
        files: Member files relative to the project configuration directory.
        compiler_options: Options written on top of the inherited ones.
    """

    __slots__ = ("_disposed", "_lock", "compiler_options", "extends", "files", "path")

    def __init__(
        self,
        path: Path,
        *,
        extends: Path,
        files: tuple[str, ...],
        compiler_options: dict[str, JsonValue],
    ) -> None:
        self.path = path
        self.extends = extends
        self.files = files
        self.compiler_options = compiler_options
        self._disposed = False
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        """Directory the ``files`` entries are relative to."""
        return self.extends.parent

    @property
    def disposed(self) -> bool:
        return self._disposed

    def absolute_files(self) -> tuple[Path, ...]:
        return tuple(Path(os.path.normpath(self.base_dir / entry)) for entry in self.files)

    def document(self) -> JSONMapping:
        """Return the JSON document written to `path`."""
        return _render_document(self.path.parent, self.extends, self.files, self.compiler_options)

    def dispose(self) -> None:
        """Delete the generated file. Safe to call any number of times."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(
                "Unable to remove temporary config %s: %s",
                self.path,
                exc,
                extra=structured_extra(component=LogComponent.EPHEMERAL, path=self.path),
            )
            return
        logger.debug(
            "Removed temporary config %s",
            self.path,
            extra=structured_extra(component=LogComponent.EPHEMERAL, path=self.path),
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "live"
        return f"EphemeralConfig({str(self.path)!r}, files={len(self.files)}, {state})"


class EphemeralConfigStore:
    """Track every ephemeral configuration of a run and dispose them together."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handles: list[EphemeralConfig] = []
        self._exit_hook = False

    def track(self, handle: EphemeralConfig) -> EphemeralConfig:
        with self._lock:
            self._handles.append(handle)
            if not self._exit_hook:
                atexit.register(self.dispose_all)
                self._exit_hook = True
        return handle

    def dispose_all(self) -> int:
        """Dispose every tracked handle.

        Returns:
            Number of handles that were still live.
        """
        with self._lock:
            handles = self._handles
            self._handles = []
            if self._exit_hook:
                atexit.unregister(self.dispose_all)
                self._exit_hook = False
        live = [handle for handle in handles if not handle.disposed]
        for handle in live:
            handle.dispose()
        return len(live)

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for handle in self._handles if not handle.disposed)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.dispose_all()


class EphemeralConfigSynthesizer:
    """Build and write the check-only configuration for a file group.

    Args:
        cache_dir: Directory for generated files. Defaults to
            ``<project>/node_modules/.cache/tscfiles`` so that ``@types``
            resolution keeps walking up into the project's ``node_modules``.
        use_cache: ``False`` writes generated files to the OS temp directory.
        skip_lib_check: Optional ``skipLibCheck`` override; ``None`` inherits.
        store: Store that tracks created handles for bulk disposal.
    """

    def __init__(
        self,
        *,
        cache_dir: Path | None = None,
        use_cache: bool = True,
        skip_lib_check: bool | None = None,
        store: EphemeralConfigStore | None = None,
    ) -> None:
        self._cache_dir = cache_dir
        self._use_cache = use_cache
        self._skip_lib_check = skip_lib_check
        self._store = store

    def compiler_options_for(self, project: ProjectConfig) -> dict[str, JsonValue]:
        """Return the options written on top of the inherited project options."""
        options: dict[str, JsonValue] = {"noEmit": True}
        if project.emits_declaration_only:
            # conflicts with noEmit
            options["emitDeclarationOnly"] = False
        if project.compiler_options.get("composite") is True:
            # composite requires every imported file to be listed in files
            options["composite"] = False
            options["incremental"] = True
        if self._skip_lib_check is not None:
            options["skipLibCheck"] = self._skip_lib_check
        if project.is_incremental and project.build_info_file is None:
            build_dir = project.directory / CACHE_SUBDIR
            _ensure_directory(build_dir)
            options["tsBuildInfoFile"] = _portable(str(build_dir / f"{project.path.stem}.tsbuildinfo"))
        return options

    def member_files(self, group: FileGroup, project: ProjectConfig) -> tuple[str, ...]:
        """Return project explicit files plus group members, relative to the project."""
        members = dict.fromkeys([*(project.files or ()), *group.files])
        return tuple(_relative_to(item, project.directory) for item in members)

    def target_directory(self, project: ProjectConfig) -> Path:
        """Return the directory generated files for `project` are written to."""
        system_temp = Path(tempfile.gettempdir())
        if not self._use_cache:
            return system_temp
        target = self._cache_dir or (project.directory / CACHE_SUBDIR)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning(
                "Failed to create cache directory %s (%s); falling back to %s",
                target,
                exc,
                system_temp,
                extra=structured_extra(component=LogComponent.EPHEMERAL, path=target),
            )
            return system_temp
        return target

    def synthesize(self, group: FileGroup, project: ProjectConfig) -> EphemeralConfig:
        """Write the ephemeral configuration for `group`.

        Args:
            group: Files to check together.
            project: Merged configuration governing the group.

        Returns:
            A live handle; the caller (or the store) must dispose it.

        Raises:
            FileSystemError: If the document cannot be encoded or the file
                cannot be created or written. Nothing is left on disk when
                this propagates.
        """
        directory = self.target_directory(project)
        files = self.member_files(group, project)
        compiler_options = self.compiler_options_for(project)
        payload = _encode(_render_document(directory, project.path, files, compiler_options), directory)
        path = _write_exclusive(directory, payload)
        handle = EphemeralConfig(path, extends=project.path, files=files, compiler_options=compiler_options)
        if self._store is not None:
            self._store.track(handle)
        logger.debug(
            "Wrote temporary config %s (%d file(s))",
            path,
            len(handle.files),
            extra=structured_extra(
                component=LogComponent.EPHEMERAL,
                config=project.path,
                path=path,
                details={"files": len(handle.files)},
            ),
        )
        return handle


def _ensure_directory(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning(
            "Failed to create build info directory %s: %s",
            path,
            exc,
            extra=structured_extra(component=LogComponent.EPHEMERAL, path=path),
        )


def _encode(document: JSONMapping, directory: Path) -> bytes:
    """Return `document` as UTF-8 bytes.

    Raises:
        FileSystemError: If a path in the document has no UTF-8 form, such as
            an undecodable POSIX file name.
    """
    try:
        return dump_json(document).encode("utf-8")
    except ValueError as exc:
        raise FileSystemError(directory, exc) from exc


def _write_exclusive(directory: Path, payload: bytes) -> Path:
    """Write `payload` to a new owner-only file in `directory`.

    The file is removed again if writing fails for any reason.

    Raises:
        FileSystemError: If the file cannot be created or written.
    """
    path, fd = _create_exclusive(directory)
    try:
        with os.fdopen(fd, "wb") as stream:
            stream.write(payload)
    except OSError as exc:
        path.unlink(missing_ok=True)
        raise FileSystemError(path, exc) from exc
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return path


def _create_exclusive(directory: Path) -> tuple[Path, int]:
    """Create an empty owner-only file with a random name in `directory`.

    Raises:
        FileSystemError: If no file could be created.
    """
    last_error: OSError | None = None
    for _ in range(_NAME_ATTEMPTS):
        candidate = directory / f"{FILE_PREFIX}{secrets.token_hex(8)}{FILE_SUFFIX}"
        try:
            return candidate, os.open(candidate, _OPEN_FLAGS, 0o600)
        except FileExistsError as exc:
            last_error = exc
        except OSError as exc:
            raise FileSystemError(directory, exc) from exc
    raise FileSystemError(directory, last_error or FileExistsError(str(directory)))


__all__ = [
    "CACHE_SUBDIR",
    "EphemeralConfig",
    "EphemeralConfigStore",
    "EphemeralConfigSynthesizer",
]
