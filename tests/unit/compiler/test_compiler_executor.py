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

"""Unit tests for running compiler candidates with fallback."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

import pytest

from tests.fixtures.platforms import StubPlatform
from tests.fixtures.runners import FakeRunner
from tscfiles._internal.exceptions import CompilerSpawnError, CompilerTimeoutError
from tscfiles.compiler import CompilerExecutor, CompilerLocator
from tscfiles.config import ConfigResolver
from tscfiles.core.model_types import CompilerKind, ProgressEventKind
from tscfiles.core.types import FileGroup
from tscfiles.ephemeral import EphemeralConfigSynthesizer
from tscfiles.options import CheckOptions, CompilerSelection

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tests.fixtures.builders import ProjectTree
    from tscfiles.config import ProjectConfig
    from tscfiles.ephemeral import EphemeralConfig
    from tscfiles.events import RecordingEventSink

pytestmark = pytest.mark.unit

TYPE_ERROR = "src/a.ts(1,7): error TS2322: Type 'string' is not assignable to type 'number'.\n"


@pytest.fixture
def project(tree: ProjectTree) -> ProjectConfig:
    tree.text("node_modules/.bin/tsgo", "")
    tree.text("node_modules/.bin/tsc", "")
    return ConfigResolver(tree.root).load(tree.config(options={"strict": True}))


@pytest.fixture
def ephemeral(tree: ProjectTree, project: ProjectConfig) -> Iterator[EphemeralConfig]:
    group = FileGroup(project.path, (tree.source("src/a.ts"),))
    with EphemeralConfigSynthesizer().synthesize(group, project) as handle:
        yield handle


def _executor(recorder: RecordingEventSink) -> CompilerExecutor:
    return CompilerExecutor(CompilerLocator(platform=StubPlatform()), events=recorder)


def _install(monkeypatch: pytest.MonkeyPatch, runner: FakeRunner) -> FakeRunner:
    monkeypatch.setattr("tscfiles.compiler.executor.run_command", runner)
    return runner


def test_first_candidate_result_is_kept(
    monkeypatch: pytest.MonkeyPatch,
    recorder: RecordingEventSink,
    project: ProjectConfig,
    ephemeral: EphemeralConfig,
) -> None:
    runner = _install(monkeypatch, FakeRunner(lambda argv, doc: (2, TYPE_ERROR, "")))

    output = _executor(recorder).execute(ephemeral, CheckOptions(timeout_seconds=30), project)

    assert output.compiler is CompilerKind.TSGO
    assert output.exit_code == 2
    assert output.attempts == (CompilerKind.TSGO,)
    assert runner.executables == ["tsgo"]
    assert runner.calls[0][1:] == ["--project", str(ephemeral.path), "--pretty", "false"]
    assert runner.cwds == [project.directory]
    assert runner.timeouts == [30]
    assert recorder.kinds() == []


def test_unusable_alternate_falls_back_to_tsc(
    monkeypatch: pytest.MonkeyPatch,
    recorder: RecordingEventSink,
    project: ProjectConfig,
    ephemeral: EphemeralConfig,
) -> None:
    def handler(argv: list[str], document: dict[str, object]) -> tuple[int, str, str]:
        if argv[0].endswith("tsgo"):
            return 1, "", "panic: runtime error: invalid memory address\n"
        return 0, "", ""

    runner = _install(monkeypatch, FakeRunner(handler))

    output = _executor(recorder).execute(ephemeral, CheckOptions(), project)

    assert runner.executables == ["tsgo", "tsc"]
    assert output.compiler is CompilerKind.TSC
    assert output.exit_code == 0
    assert output.attempts == (CompilerKind.TSGO, CompilerKind.TSC)
    (event,) = recorder.events
    assert event.kind is ProgressEventKind.COMPILER_FALLBACK
    assert event.compiler is CompilerKind.TSGO
    assert event.details["next"] == "tsc"


def test_spawn_failure_falls_back(
    monkeypatch: pytest.MonkeyPatch,
    recorder: RecordingEventSink,
    project: ProjectConfig,
    ephemeral: EphemeralConfig,
) -> None:
    def handler(argv: list[str], document: dict[str, object]) -> tuple[int, str, str]:
        if argv[0].endswith("tsgo"):
            raise PermissionError(13, "Permission denied")
        return 0, "", ""

    _install(monkeypatch, FakeRunner(handler))

    output = _executor(recorder).execute(ephemeral, CheckOptions(), project)

    assert output.compiler is CompilerKind.TSC
    assert recorder.kinds() == [ProgressEventKind.COMPILER_FALLBACK]


def test_last_candidate_spawn_failure_raises(
    monkeypatch: pytest.MonkeyPatch,
    recorder: RecordingEventSink,
    project: ProjectConfig,
    ephemeral: EphemeralConfig,
) -> None:
    def handler(argv: list[str], document: dict[str, object]) -> tuple[int, str, str]:
        raise FileNotFoundError(2, "No such file or directory")

    _install(monkeypatch, FakeRunner(handler))

    with pytest.raises(CompilerSpawnError, match="No such file"):
        _ = _executor(recorder).execute(ephemeral, CheckOptions(), project)


def test_crash_of_last_candidate_is_returned_not_retried(
    monkeypatch: pytest.MonkeyPatch,
    recorder: RecordingEventSink,
    project: ProjectConfig,
    ephemeral: EphemeralConfig,
) -> None:
    runner = _install(monkeypatch, FakeRunner(lambda argv, doc: (3, "", "Segmentation fault\n")))

    output = _executor(recorder).execute(
        ephemeral,
        CheckOptions(compiler=CompilerSelection(force_standard=True)),
        project,
    )

    assert runner.executables == ["tsc"]
    assert output.exit_code == 3
    assert "Segmentation fault" in output.output


def test_timeout_stops_the_group(
    monkeypatch: pytest.MonkeyPatch,
    recorder: RecordingEventSink,
    project: ProjectConfig,
    ephemeral: EphemeralConfig,
) -> None:
    def handler(argv: list[str], document: dict[str, object]) -> tuple[int, str, str]:
        raise subprocess.TimeoutExpired(argv, 0.5)

    runner = _install(monkeypatch, FakeRunner(handler))

    with pytest.raises(CompilerTimeoutError, match="timed out after 0.5s"):
        _ = _executor(recorder).execute(ephemeral, CheckOptions(timeout_seconds=0.5), project)

    assert runner.executables == ["tsgo"]


def test_runner_sees_the_ephemeral_document(
    monkeypatch: pytest.MonkeyPatch,
    recorder: RecordingEventSink,
    tree: ProjectTree,
    project: ProjectConfig,
    ephemeral: EphemeralConfig,
) -> None:
    runner = _install(monkeypatch, FakeRunner())

    _ = _executor(recorder).execute(ephemeral, CheckOptions(), project)

    (document,) = runner.documents
    assert document["extends"] == project.path.as_posix()
    assert document["compilerOptions"] == {"noEmit": True}
    assert ephemeral.absolute_files() == (tree.path("src/a.ts"),)
