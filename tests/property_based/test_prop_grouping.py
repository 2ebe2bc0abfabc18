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

"""Property-based tests for grouping files by configuration."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings

from tests.fixtures.builders import ProjectTree
from tests.property_based.strategies import package_layouts
from tscfiles.config import ConfigResolver
from tscfiles.grouping import group_files

pytestmark = pytest.mark.property


@settings(max_examples=40, deadline=None)
@given(layout=package_layouts())
def test_h_every_file_lands_in_its_nearest_config(layout: dict[str, tuple[bool, list[str]]]) -> None:
    with tempfile.TemporaryDirectory() as raw_root:
        tree = ProjectTree(Path(raw_root).resolve())
        root_config = tree.config()
        expected: dict[Path, Path] = {}
        for package, (own_config, names) in layout.items():
            config = tree.config(f"packages/{package}") if own_config else root_config
            for name in names:
                expected[tree.source(f"packages/{package}/src/{name}")] = config
        requested = [*expected, *reversed(expected)]

        groups = group_files(requested, ConfigResolver(tree.root))

        grouped = {file: config for config, group in groups.items() for file in group.files}
        assert grouped == expected
        assert sum(len(group.files) for group in groups.values()) == len(expected)
        for config, group in groups.items():
            assert group.config_path == config
            assert list(group.files) == [file for file in expected if expected[file] == config]
