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


"""Subprocess execution helpers with timeout and cancellation support."""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, cast

from tscfiles.core.model_types import LogComponent
from tscfiles.logging import structured_extra

logger: logging.Logger = logging.getLogger("tscfiles.compiler.process")

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

    from tscfiles.core.type_aliases import Command

__all__ = ["CommandOutput", "ProcessRegistry", "run_command"]


@dataclass(slots=True)
class CommandOutput:
    args: Command
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: float

    @property
    def combined(self) -> str:
        """Return stdout followed by stderr, separated by a newline when both exist."""
        if self.stdout and self.stderr:
            head = self.stdout.rstrip("\n")
            return f"{head}\n{self.stderr}"
        return self.stdout or self.stderr


class ProcessRegistry:
    """Track live child processes so a cancelled run can kill all of them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._processes: set[subprocess.Popen[str]] = set()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def register(self, process: subprocess.Popen[str]) -> None:
        with self._lock:
            if not self._cancelled:
                self._processes.add(process)
                return
        # Registered after cancellation: never let it run to completion.
        _kill(process)

    def unregister(self, process: subprocess.Popen[str]) -> None:
        with self._lock:
            self._processes.discard(process)

    def cancel_all(self) -> int:
        """Kill every registered process and refuse new ones.

        Returns:
            Number of processes that were signalled.
        """
        with self._lock:
            self._cancelled = True
            processes = list(self._processes)
            self._processes.clear()
        for process in processes:
            _kill(process)
        if processes:
            logger.debug(
                "Killed %d in-flight compiler process(es)",
                len(processes),
                extra=_structured_extra(details={"count": len(processes)}),
            )
        return len(processes)

    def __len__(self) -> int:
        with self._lock:
            return len(self._processes)


def _kill(process: subprocess.Popen[str]) -> None:
    if process.poll() is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass


def run_command(
    args: Iterable[str],
    cwd: Path | None = None,
    *,
    timeout: float | None = None,
    registry: ProcessRegistry | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandOutput:
    """Run a subprocess safely and return its captured output.

    Security guardrails:
    - Requires an iterable of string arguments; never uses ``shell=True``.
    - Standard input is closed so a compiler can never block on a prompt.

    Args:
        args: Command line to execute. The first element is treated as the
            executable and must be a non-empty string.
        cwd: Optional working directory for the child process.
        timeout: Optional limit in seconds after which the child is killed.
        registry: Optional registry used to track the live process for
            cancellation.
        env: Optional environment for the child; inherits the parent's when omitted.

    Returns:
        ``CommandOutput`` containing the executed argument vector along with the
        captured stdout/stderr, exit code, and duration in milliseconds.

    Raises:
        ValueError: If ``args`` is empty.
        TypeError: If any argument is falsy (for example ``""``).
        OSError: If the executable cannot be started.
        subprocess.TimeoutExpired: If ``timeout`` elapsed; the child has
            already been killed and reaped when this propagates.
    """
    argv: Command = list(args)
    if not argv:
        raise ValueError
    if not all(a for a in argv):
        raise TypeError
    start = time.perf_counter()
    debug_details: dict[str, object] = {}
    if cwd:
        debug_details["cwd"] = str(cwd)
    if timeout is not None:
        debug_details["timeout"] = timeout
    logger.debug(
        "Executing command: %s",
        " ".join(argv),
        extra=_structured_extra(details=debug_details),
    )
    process = subprocess.Popen(  # noqa: S603 - argument vector built from resolved executables
        argv,
        cwd=str(cwd) if cwd else None,
        env=dict(env) if env is not None else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        shell=False,
    )
    if registry is not None:
        registry.register(process)
    try:
        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill(process)
            process.communicate()
            logger.warning(
                "Command timed out after %ss: %s",
                timeout,
                " ".join(argv),
                extra=_structured_extra(details=debug_details),
            )
            raise
    finally:
        if registry is not None:
            registry.unregister(process)
    duration_ms = (time.perf_counter() - start) * 1000
    if process.returncode != 0:
        logger.debug(
            "Command exited with %s: %s",
            process.returncode,
            " ".join(argv),
            extra=_structured_extra(exit_code=process.returncode, duration_ms=duration_ms),
        )
    return CommandOutput(
        args=argv,
        stdout=stdout or "",
        stderr=stderr or "",
        exit_code=process.returncode,
        duration_ms=duration_ms,
    )


def _structured_extra(**kwargs: object) -> dict[str, object]:
    payload = structured_extra(LogComponent.COMPILER, **cast("dict[str, Any]", kwargs))
    return cast("dict[str, object]", payload)
