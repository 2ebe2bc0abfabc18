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


"""Package-manager detection used to bias compiler discovery."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final, Protocol

from tscfiles.core.model_types import PackageManagerKind

if TYPE_CHECKING:
    from collections.abc import Mapping

USER_AGENT_ENV: Final[str] = "npm_config_user_agent"

# Checked in this order; the first lock file found wins.
LOCK_FILES: Final[tuple[tuple[PackageManagerKind, str], ...]] = (
    (PackageManagerKind.PNPM, "pnpm-lock.yaml"),
    (PackageManagerKind.BUN, "bun.lockb"),
    (PackageManagerKind.BUN, "bun.lock"),
    (PackageManagerKind.NPM, "package-lock.json"),
    (PackageManagerKind.NPM, "npm-shrinkwrap.json"),
    (PackageManagerKind.YARN, "yarn.lock"),
)


@dataclass(slots=True, frozen=True)
class PackageManagerInfo:
    """Detected package manager and where it installs binaries.

    Attributes:
        kind: Package manager in use, or ``UNKNOWN``.
        bin_dir_hint: ``node_modules/.bin`` next to the lock file, when known.
            In workspaces this is the root install even for nested packages.
    """

    kind: PackageManagerKind = PackageManagerKind.UNKNOWN
    bin_dir_hint: Path | None = None


class PackageManagerDetector(Protocol):
    def __call__(self, cwd: Path) -> PackageManagerInfo: ...


def _kind_from_user_agent(agent: str) -> PackageManagerKind | None:
    # e.g. "pnpm/9.1.0 npm/? node/v20.11.0 linux x64"
    name = agent.strip().split("/", 1)[0].lower()
    try:
        kind = PackageManagerKind(name)
    except ValueError:
        return None
    return None if kind is PackageManagerKind.UNKNOWN else kind


def detect_package_manager(cwd: Path, env: Mapping[str, str] | None = None) -> PackageManagerInfo:
    """Detect the package manager for the project containing `cwd`.

    The ``npm_config_user_agent`` variable set by package-manager scripts
    decides the kind when present; otherwise the nearest lock file does. The
    binary hint always points at the directory holding the nearest lock file.

    Args:
        cwd: Directory to start searching from.
        env: Environment to read; defaults to ``os.environ``.

    Returns:
        Detected information; ``UNKNOWN`` with no hint when nothing matched.
    """
    environ = os.environ if env is None else env
    agent_kind = _kind_from_user_agent(environ.get(USER_AGENT_ENV, ""))
    start = cwd.resolve()
    for directory in (start, *start.parents):
        for kind, lock_file in LOCK_FILES:
            if (directory / lock_file).is_file():
                return PackageManagerInfo(
                    kind=agent_kind or kind,
                    bin_dir_hint=directory / "node_modules" / ".bin",
                )
    return PackageManagerInfo(kind=agent_kind or PackageManagerKind.UNKNOWN)


__all__ = ["LOCK_FILES", "PackageManagerDetector", "PackageManagerInfo", "detect_package_manager"]
