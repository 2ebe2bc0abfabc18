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


"""Partition requested files by the project configuration that governs them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from tscfiles.core.model_types import LogComponent
from tscfiles.core.types import FileGroup
from tscfiles.logging import structured_extra

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

    from tscfiles.config.project import ConfigResolver, ProjectConfig

logger: logging.Logger = logging.getLogger("tscfiles.config")

JAVASCRIPT_SUFFIXES: Final[frozenset[str]] = frozenset({".js", ".jsx", ".mjs", ".cjs"})


def group_files(
    files: Iterable[Path],
    resolver: ConfigResolver,
    explicit_config: Path | None = None,
) -> dict[Path, FileGroup]:
    """Group `files` by resolved configuration path.

    Files are made absolute against the resolver's working directory,
    de-duplicated and keep their first-seen order within each group. Groups
    are ordered by the first file that produced them.

    Args:
        files: Requested source files.
        resolver: Resolver shared by the whole run.
        explicit_config: Configuration that governs every file when given.

    Returns:
        Mapping of configuration path to its group.

    Raises:
        ConfigNotFoundError: If a file has no governing configuration.
        ConfigInvalidError: If a governing configuration cannot be loaded.
    """
    ordered = unique_files(files, resolver.cwd)
    if not ordered:
        return {}
    if explicit_config is not None:
        # single configuration for every file
        project = resolver.load(resolver.locate_explicit(explicit_config))
        return {project.path: FileGroup(config_path=project.path, files=ordered)}

    members: dict[Path, list[Path]] = {}
    for file_path in ordered:
        config_path = resolver.find_config(file_path)
        members.setdefault(config_path, []).append(file_path)
    groups = {path: FileGroup(config_path=path, files=tuple(items)) for path, items in members.items()}
    logger.debug(
        "Grouped %d file(s) into %d configuration group(s)",
        len(ordered),
        len(groups),
        extra=structured_extra(
            component=LogComponent.CONFIG,
            details={"files": len(ordered), "groups": len(groups)},
        ),
    )
    return groups


def load_projects(groups: dict[Path, FileGroup], resolver: ConfigResolver) -> dict[Path, ProjectConfig]:
    """Load and merge the configuration of every group.

    Raises:
        ConfigInvalidError: On the first configuration that fails to load.
    """
    return {path: resolver.load(path) for path in groups}


def drop_unchecked_javascript(
    groups: dict[Path, FileGroup],
    projects: Mapping[Path, ProjectConfig],
) -> dict[Path, FileGroup]:
    """Remove JavaScript members of groups whose project does not check them.

    Without ``allowJs`` or ``checkJs`` the compiler rejects JavaScript inputs
    listed in ``files``. Such members are skipped with a warning and groups
    left without members are dropped.
    """
    kept: dict[Path, FileGroup] = {}
    for path, group in groups.items():
        if projects[path].allows_javascript:
            kept[path] = group
            continue
        members = tuple(item for item in group.files if item.suffix.lower() not in JAVASCRIPT_SUFFIXES)
        skipped = len(group.files) - len(members)
        if skipped:
            logger.warning(
                "Skipping %d JavaScript file(s) for %s: allowJs and checkJs are not enabled",
                skipped,
                path,
                extra=structured_extra(
                    component=LogComponent.CONFIG,
                    config=path,
                    details={"skipped": skipped},
                ),
            )
        if members:
            kept[path] = FileGroup(config_path=path, files=members)
    return kept


def unique_files(files: Iterable[Path], cwd: Path) -> tuple[Path, ...]:
    """Return absolute, de-duplicated `files` in first-seen order."""
    absolute = ((path if path.is_absolute() else cwd / path).resolve() for path in files)
    return tuple(dict.fromkeys(absolute))


__all__ = ["JAVASCRIPT_SUFFIXES", "drop_unchecked_javascript", "group_files", "load_projects", "unique_files"]
