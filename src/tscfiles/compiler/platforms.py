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


"""Platform adapters isolating executable naming, lookup and quoting."""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence


class PlatformAdapter(Protocol):
    """Operating-system specific behaviour used by compiler discovery."""

    name: str

    def executable_names(self, base: str) -> tuple[str, ...]:
        """Return file names a binary called `base` may have on disk."""
        ...

    def is_executable(self, path: Path) -> bool: ...

    def which(self, name: str, search_path: str | None = None) -> Path | None: ...

    def format_command(self, argv: Sequence[str]) -> str:
        """Render `argv` for display only; execution always uses the list."""
        ...


class PosixPlatform:
    name: ClassVar[str] = "posix"

    def executable_names(self, base: str) -> tuple[str, ...]:
        return (base,)

    def is_executable(self, path: Path) -> bool:
        return path.is_file() and os.access(path, os.X_OK)

    def which(self, name: str, search_path: str | None = None) -> Path | None:
        found = shutil.which(name, path=search_path)
        return Path(found) if found else None

    def format_command(self, argv: Sequence[str]) -> str:
        return shlex.join(argv)


class WindowsPlatform:
    name: ClassVar[str] = "windows"
    # npm installs .cmd shims into node_modules/.bin; native binaries are .exe
    SUFFIXES: ClassVar[tuple[str, ...]] = (".exe", ".cmd", ".bat")

    def executable_names(self, base: str) -> tuple[str, ...]:
        if Path(base).suffix.lower() in self.SUFFIXES:
            return (base,)
        return tuple(f"{base}{suffix}" for suffix in self.SUFFIXES)

    def is_executable(self, path: Path) -> bool:
        return path.is_file() and path.suffix.lower() in self.SUFFIXES

    def which(self, name: str, search_path: str | None = None) -> Path | None:
        for candidate in self.executable_names(name):
            found = shutil.which(candidate, path=search_path)
            if found:
                return Path(found)
        return None

    def format_command(self, argv: Sequence[str]) -> str:
        return subprocess.list2cmdline(list(argv))


def current_platform() -> PlatformAdapter:
    """Return the adapter for the running interpreter."""
    return WindowsPlatform() if os.name == "nt" else PosixPlatform()


__all__ = ["PlatformAdapter", "PosixPlatform", "WindowsPlatform", "current_platform"]
