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

"""Unit tests for tsconfig discovery and extends resolution."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from tscfiles._internal.exceptions import CircularExtendsError, ConfigInvalidError, ConfigNotFoundError
from tscfiles.config import ConfigResolver
from tscfiles.core.types import FileGroup
from tscfiles.ephemeral import EphemeralConfigSynthesizer

if TYPE_CHECKING:
    from tests.fixtures.builders import ProjectTree

pytestmark = pytest.mark.unit


def test_find_config_returns_nearest_ancestor(tree: ProjectTree) -> None:
    root_config = tree.config(options={"strict": True})
    app_config = tree.config("packages/app", options={"strict": False})
    nested = tree.source("packages/app/src/deep/button.ts")
    top = tree.source("src/index.ts")

    resolver = ConfigResolver(tree.root)

    assert resolver.find_config(nested) == app_config
    assert resolver.find_config(top) == root_config


def test_find_config_accepts_relative_paths(tree: ProjectTree) -> None:
    config = tree.config("web")
    tree.source("web/src/main.ts")

    resolver = ConfigResolver(tree.root)

    assert resolver.find_config(Path("web/src/main.ts")) == config


def test_find_config_reports_searched_directories(tmp_path: Path) -> None:
    orphan = tmp_path / "loose" / "file.ts"
    orphan.parent.mkdir()
    orphan.write_text("", encoding="utf-8")

    with pytest.raises(ConfigNotFoundError) as excinfo:
        _ = ConfigResolver(tmp_path).find_config(orphan)

    assert excinfo.value.searched[0] == orphan.parent.resolve()
    assert "tsconfig.json" in str(excinfo.value)


def test_extends_merges_options_and_overrides_file_lists(tree: ProjectTree) -> None:
    tree.json(
        "configs/base.json",
        {
            "compilerOptions": {"strict": True, "target": "es2019", "tsBuildInfoFile": "./out/base.tsbuildinfo"},
            "files": ["shared.d.ts"],
            "include": ["base/**/*"],
            "exclude": ["dist"],
        },
    )
    child = tree.config(
        "app",
        extends="../configs/base.json",
        options={"target": "es2022"},
        files=["main.ts"],
        exclude=["build"],
    )

    project = ConfigResolver(tree.root).load(child)

    assert project.compiler_options["strict"] is True
    assert project.compiler_options["target"] == "es2022"
    assert project.files == (tree.path("app/main.ts"),)
    assert project.include == ("base/**/*",)
    assert project.exclude == ("build",)
    assert project.build_info_file == tree.path("configs/out/base.tsbuildinfo")
    assert project.extends_chain == (child, tree.path("configs/base.json"))


def test_parent_files_are_inherited_until_overridden(tree: ProjectTree) -> None:
    tree.json("base.json", {"files": ["legacy/old.ts"]})
    inheriting = tree.config("inherit", extends="../base.json")
    overriding = tree.config("override", extends="../base.json", files=["src/index.ts"])
    resolver = ConfigResolver(tree.root)

    inherited = resolver.load(inheriting)
    overridden = resolver.load(overriding)

    assert inherited.files == (tree.path("legacy/old.ts"),)
    assert overridden.files == (tree.path("override/src/index.ts"),)
    synthesizer = EphemeralConfigSynthesizer()
    group = FileGroup(overridden.path, (tree.source("override/src/extra.ts"),))
    assert synthesizer.member_files(group, overridden) == ("src/index.ts", "src/extra.ts")


def test_extends_without_json_suffix(tree: ProjectTree) -> None:
    tree.json("base.json", {"compilerOptions": {"noImplicitAny": True}})
    child = tree.config("app", extends="../base")

    project = ConfigResolver(tree.root).load(child)

    assert project.compiler_options == {"noImplicitAny": True}


def test_extends_array_applies_later_entries_last(tree: ProjectTree) -> None:
    tree.json("one.json", {"compilerOptions": {"target": "es5", "strict": True}})
    tree.json("two.json", {"compilerOptions": {"target": "es2020"}})
    child = tree.config("app", extends=["../one.json", "../two.json"], options={"module": "esnext"})

    project = ConfigResolver(tree.root).load(child)

    assert project.compiler_options == {"target": "es2020", "strict": True, "module": "esnext"}
    assert project.extends_chain == (child, tree.path("two.json"), tree.path("one.json"))


def test_extends_package_file_in_ancestor_node_modules(tree: ProjectTree) -> None:
    tree.json("node_modules/@tsconfig/node20/tsconfig.json", {"compilerOptions": {"lib": ["es2023"]}})
    child = tree.config("packages/api", extends="@tsconfig/node20/tsconfig.json")

    project = ConfigResolver(tree.root).load(child)

    assert project.compiler_options == {"lib": ["es2023"]}


def test_extends_bare_package_uses_manifest_tsconfig_field(tree: ProjectTree) -> None:
    tree.json("node_modules/shared-config/package.json", {"name": "shared-config", "tsconfig": "./strict.json"})
    tree.json("node_modules/shared-config/strict.json", {"compilerOptions": {"strict": True}})
    child = tree.config(extends="shared-config")

    project = ConfigResolver(tree.root).load(child)

    assert project.compiler_options == {"strict": True}


def test_extends_bare_package_defaults_to_tsconfig_json(tree: ProjectTree) -> None:
    tree.json("node_modules/base-config/tsconfig.json", {"compilerOptions": {"checkJs": True}})
    child = tree.config(extends="base-config")

    project = ConfigResolver(tree.root).load(child)

    assert project.allows_javascript


def test_circular_extends_is_rejected(tree: ProjectTree) -> None:
    first = tree.json("a.json", {"extends": "./b.json"})
    second = tree.json("b.json", {"extends": "./a.json"})

    with pytest.raises(CircularExtendsError) as excinfo:
        _ = ConfigResolver(tree.root).load(first)

    assert excinfo.value.chain == (first, second, first)
    assert isinstance(excinfo.value, ConfigInvalidError)


def test_unresolvable_extends_is_invalid(tree: ProjectTree) -> None:
    child = tree.config(extends="./missing.json")

    with pytest.raises(ConfigInvalidError, match="missing.json"):
        _ = ConfigResolver(tree.root).load(child)


def test_jsonc_comments_and_trailing_commas(tree: ProjectTree) -> None:
    config = tree.text(
        "tsconfig.json",
        """{
  // editor settings
  "compilerOptions": {
    /* strictness */
    "strict": true,
  },
}
""",
    )

    project = ConfigResolver(tree.root).load(config)

    assert project.compiler_options == {"strict": True}


def test_malformed_config_is_invalid(tree: ProjectTree) -> None:
    config = tree.text("tsconfig.json", '{"compilerOptions": ')

    with pytest.raises(ConfigInvalidError, match="malformed"):
        _ = ConfigResolver(tree.root).load(config)


def test_explicit_config_directory_and_missing_file(tree: ProjectTree) -> None:
    config = tree.config("tools")
    source = tree.source("src/a.ts")
    resolver = ConfigResolver(tree.root)

    assert resolver.resolve(source, explicit_config=Path("tools")).path == config
    with pytest.raises(ConfigNotFoundError, match="not found"):
        _ = resolver.resolve(source, explicit_config=Path("tools/tsconfig.build.json"))


def test_load_is_memoized_across_threads(tree: ProjectTree) -> None:
    tree.json("base.json", {"compilerOptions": {"strict": True}})
    config = tree.config("app", extends="../base.json")
    resolver = ConfigResolver(tree.root)

    with ThreadPoolExecutor(max_workers=8) as pool:
        projects = list(pool.map(lambda _: resolver.load(config), range(32)))

    assert all(project is projects[0] for project in projects)


def test_project_flags(tree: ProjectTree) -> None:
    config = tree.config(
        options={
            "composite": True,
            "emitDeclarationOnly": True,
            "baseUrl": ".",
            "moduleResolution": "Bundler",
        },
    )

    project = ConfigResolver(tree.root).load(config)

    assert project.is_incremental
    assert project.emits_declaration_only
    assert project.base_url == "."
    assert project.module_resolution == "bundler"
    assert project.directory == tree.root
