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


"""Structured progress events emitted while a check runs.

The engine never writes to the terminal. Presentation layers receive
``ProgressEvent`` values through an ``EventSink``; the default sink forwards
them to the ``tscfiles.events`` logger.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from tscfiles.core.model_types import LogComponent, ProgressEventKind
from tscfiles.logging import structured_extra

if TYPE_CHECKING:
    from pathlib import Path

    from tscfiles.core.model_types import CompilerKind
    from tscfiles.core.types import Diagnostic

logger: logging.Logger = logging.getLogger("tscfiles.events")


def _empty_details() -> dict[str, object]:
    return {}


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    """One progress notification.

    Attributes:
        kind: What happened.
        config_path: Configuration group the event belongs to.
        compiler: Compiler involved, when relevant.
        diagnostic: The diagnostic for ``DIAGNOSTIC_FOUND`` events.
        details: Additional, event-specific values.
    """

    kind: ProgressEventKind
    config_path: Path
    compiler: CompilerKind | None = None
    diagnostic: Diagnostic | None = None
    details: dict[str, object] = field(default_factory=_empty_details)


class EventSink(Protocol):
    """Receiver for progress events. Implementations must be thread-safe."""

    def emit(self, event: ProgressEvent) -> None: ...


class LoggingEventSink:
    """Forward progress events to the ``tscfiles.events`` logger."""

    def emit(self, event: ProgressEvent) -> None:
        extra = structured_extra(
            component=LogComponent.EVENTS,
            config=event.config_path,
            compiler=event.compiler,
            details={"event": event.kind.value, **event.details},
        )
        match event.kind:
            case ProgressEventKind.COMPILER_FALLBACK:
                logger.info("Falling back from %s for %s", event.compiler, event.config_path, extra=extra)
            case ProgressEventKind.DIAGNOSTIC_FOUND if event.diagnostic is not None:
                diag = event.diagnostic
                logger.debug(
                    "%s(%d,%d): %s %s: %s",
                    diag.file,
                    diag.line,
                    diag.column,
                    diag.severity,
                    diag.code,
                    diag.message,
                    extra=extra,
                )
            case _:
                logger.debug("%s: %s", event.kind.value, event.config_path, extra=extra)


class RecordingEventSink:
    """Keep every event in memory, in emission order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> tuple[ProgressEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def kinds(self) -> list[ProgressEventKind]:
        return [event.kind for event in self.events]


__all__ = ["EventSink", "LoggingEventSink", "ProgressEvent", "RecordingEventSink"]
