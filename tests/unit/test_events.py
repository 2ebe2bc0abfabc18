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

"""Unit tests for progress event sinks."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tscfiles.core.model_types import CompilerKind, ProgressEventKind, SeverityLevel
from tscfiles.core.type_aliases import DiagnosticCode
from tscfiles.core.types import Diagnostic
from tscfiles.events import LoggingEventSink, ProgressEvent, RecordingEventSink

pytestmark = pytest.mark.unit

CONFIG = Path("/repo/tsconfig.json")


def test_logging_sink_reports_fallback_at_info(caplog: pytest.LogCaptureFixture) -> None:
    event = ProgressEvent(
        kind=ProgressEventKind.COMPILER_FALLBACK,
        config_path=CONFIG,
        compiler=CompilerKind.TSGO,
        details={"next": "tsc"},
    )

    with caplog.at_level(logging.INFO, logger="tscfiles.events"):
        LoggingEventSink().emit(event)

    (record,) = caplog.records
    assert record.levelno == logging.INFO
    assert "Falling back from tsgo" in record.getMessage()
    assert record.__dict__["details"] == {"event": "compiler_fallback", "next": "tsc"}
    assert record.__dict__["compiler"] is CompilerKind.TSGO


def test_logging_sink_renders_diagnostics_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    diagnostic = Diagnostic(
        file=Path("src/a.ts"),
        line=4,
        column=2,
        code=DiagnosticCode("TS2304"),
        severity=SeverityLevel.ERROR,
        message="Cannot find name 'x'.",
    )

    with caplog.at_level(logging.DEBUG, logger="tscfiles.events"):
        LoggingEventSink().emit(
            ProgressEvent(kind=ProgressEventKind.DIAGNOSTIC_FOUND, config_path=CONFIG, diagnostic=diagnostic),
        )

    assert f"{Path('src/a.ts')}(4,2): error TS2304: Cannot find name 'x'." in caplog.text


def test_recording_sink_keeps_emission_order() -> None:
    sink = RecordingEventSink()
    sink.emit(ProgressEvent(kind=ProgressEventKind.GROUP_STARTED, config_path=CONFIG))
    sink.emit(ProgressEvent(kind=ProgressEventKind.GROUP_COMPLETED, config_path=CONFIG))

    assert sink.kinds() == [ProgressEventKind.GROUP_STARTED, ProgressEventKind.GROUP_COMPLETED]
    assert all(event.config_path == CONFIG for event in sink.events)
