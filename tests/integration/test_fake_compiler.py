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

"""Integration tests running real subprocesses that mimic the compiler."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from tests.fixtures.builders import ProjectTree
from tests.fixtures.runners import posix_only
from tscfiles import CheckOptions, CompilerSelection, ExitCode, check_files, run_check
from tscfiles.core.model_types import CompilerKind, PackageManagerKind
from tscfiles.detectors import PackageManagerInfo
from tscfiles.events import RecordingEventSink

if TYPE_CHECKING:
    from collections.abc import Callable

pytestmark = [pytest.mark.integration, posix_only]

# Reads the generated config and reports an error for every listed file whose
# name contains "bad"; also records what it saw next to the config directory.
REPORTING_COMPILER = """
import json, os, pathlib
config = pathlib.Path(argv[argv.index("--project") + 1])
document = json.loads(config.read_text())
log = pathlib.Path(os.getcwd()) / "seen.json"
log.write_text(json.dumps({"argv": argv, "document": document, "config": str(config)}))
bad = [entry for entry in document["files"] if "bad" in entry]
for entry in bad:
    target = os.path.relpath(os.path.normpath(config.parent / entry), os.getcwd())
    print(f"{target}(1,14): error TS2322: Type 'string' is not assignable to type 'number'.")
if bad:
    print(f"\\nFound {len(bad)} error(s).")
sys.exit(2 if bad else 0)
"""

CRASHING_COMPILER = """
print("panic: runtime error: index out of range", file=sys.stderr)
sys.exit(2)
"""


def _bin_hint(tree: ProjectTree) -> Callable[[Path], PackageManagerInfo]:
    def detect(cwd: Path) -> PackageManagerInfo:
        return PackageManagerInfo(kind=PackageManagerKind.NPM, bin_dir_hint=tree.path("bin"))

    return detect


@pytest.fixture
def tree(tmp_path: Path) -> ProjectTree:
    return ProjectTree(tmp_path.resolve())


def test_errors_are_reported_for_selected_files_only(
    tree: ProjectTree,
    fake_compiler_script: Callable[[str, str], Path],
) -> None:
    fake_compiler_script("tsc", REPORTING_COMPILER)
    tree.config("app", options={"strict": True}, include=["src/**/*"])
    bad = tree.source("app/src/bad.ts")
    good = tree.source("app/src/good.ts")
    tree.source("app/src/also-bad-but-not-selected.ts")
    options = CheckOptions(cwd=tree.root, compiler=CompilerSelection(force_standard=True))

    result = check_files([bad, good], options, package_manager=_bin_hint(tree))

    assert result.exit_code is ExitCode.TYPE_ERRORS
    assert [(d.file, d.line, d.code) for d in result.diagnostics] == [(bad, 1, "TS2322")]
    seen = json.loads(tree.path("app/seen.json").read_text(encoding="utf-8"))
    assert seen["argv"] == ["--project", seen["config"], "--pretty", "false"]
    assert seen["document"]["include"] == []
    assert seen["document"]["compilerOptions"]["noEmit"] is True
    assert not Path(seen["config"]).exists()


def test_crashing_alternate_falls_back_to_standard(
    tree: ProjectTree,
    fake_compiler_script: Callable[[str, str], Path],
) -> None:
    fake_compiler_script("tsgo", CRASHING_COMPILER)
    fake_compiler_script("tsc", REPORTING_COMPILER)
    tree.config()
    good = tree.source("src/good.ts")
    events = RecordingEventSink()

    result, exit_code = run_check(
        [good],
        CheckOptions(cwd=tree.root),
        events=events,
        package_manager=_bin_hint(tree),
    )

    assert exit_code is ExitCode.SUCCESS
    assert result is not None
    (group,) = result.groups
    assert group.compiler is CompilerKind.TSC
    assert [event.compiler for event in events.events if event.kind == "compiler_fallback"] == [CompilerKind.TSGO]


def test_crash_without_fallback_is_a_system_error(
    tree: ProjectTree,
    fake_compiler_script: Callable[[str, str], Path],
) -> None:
    fake_compiler_script("tsgo", CRASHING_COMPILER)
    tree.config()
    good = tree.source("src/good.ts")

    _, exit_code = run_check(
        [good],
        CheckOptions(cwd=tree.root, compiler=CompilerSelection(force_alternate=True)),
        package_manager=_bin_hint(tree),
    )

    assert exit_code is ExitCode.SYSTEM_ERROR


def test_timeout_is_a_system_error(
    tree: ProjectTree,
    fake_compiler_script: Callable[[str, str], Path],
) -> None:
    fake_compiler_script("tsc", "import time\ntime.sleep(30)\n")
    tree.config()
    source = tree.source("src/slow.ts")

    result, exit_code = run_check(
        [source],
        CheckOptions(cwd=tree.root, timeout_seconds=0.5, compiler=CompilerSelection(force_standard=True)),
        package_manager=_bin_hint(tree),
    )

    assert exit_code is ExitCode.SYSTEM_ERROR
    assert result is not None
    assert "timed out" in str(result.failures[0].error)
