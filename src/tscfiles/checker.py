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


"""Type-check selected files against their project configurations.

``check_files`` runs the whole pipeline:

1. resolve every file to its ``tsconfig.json`` and group files by it;
2. per group, write an ephemeral check-only configuration, run the
   compiler against it and parse the output;
3. aggregate all groups into one ``CheckResult``.

Configuration errors are raised before any compiler starts. Filesystem and
compiler faults only fail their own group. Ephemeral configurations are
removed on every exit path, including ``KeyboardInterrupt`` and ``SIGTERM``,
which also kill every running compiler.
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

from tscfiles._internal.error_codes import error_code_for, exit_code_for
from tscfiles._internal.exceptions import (
    CompilerCrashError,
    CompilerSystemError,
    FileSystemError,
    TscFilesError,
    TypeCheckFailure,
)
from tscfiles._internal.process import ProcessRegistry
from tscfiles.aggregate import aggregate_results
from tscfiles.compiler import CompilerExecutor, CompilerLocator
from tscfiles.config.project import ConfigResolver
from tscfiles.core.model_types import ExitCode, LogComponent, ProgressEventKind
from tscfiles.core.types import GroupResult
from tscfiles.detectors import detect_package_manager
from tscfiles.diagnostics import has_confident_diagnostics, parse_diagnostics
from tscfiles.ephemeral import EphemeralConfigStore, EphemeralConfigSynthesizer
from tscfiles.events import LoggingEventSink, ProgressEvent
from tscfiles.grouping import drop_unchecked_javascript, group_files, load_projects, unique_files
from tscfiles.logging import configure_logging, structured_extra
from tscfiles.options import CheckOptions
from tscfiles.settings import load_settings

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence
    from types import FrameType

    from tscfiles.config.project import ProjectConfig
    from tscfiles.core.types import CheckResult, FileGroup
    from tscfiles.detectors import PackageManagerDetector
    from tscfiles.events import EventSink

logger: logging.Logger = logging.getLogger("tscfiles.checker")


@dataclass(slots=True)
class GroupRunner:
    """Check one group: synthesize, execute, parse."""

    synthesizer: EphemeralConfigSynthesizer
    executor: CompilerExecutor
    options: CheckOptions
    events: EventSink

    def run(self, group: FileGroup, project: ProjectConfig) -> GroupResult:
        start = time.perf_counter()
        self.events.emit(
            ProgressEvent(
                kind=ProgressEventKind.GROUP_STARTED,
                config_path=group.config_path,
                details={"files": len(group.files)},
            ),
        )
        try:
            with self.synthesizer.synthesize(group, project) as ephemeral:
                output = self.executor.execute(ephemeral, self.options, project)
        except (FileSystemError, CompilerSystemError) as exc:
            result = GroupResult(group=group, duration_ms=_elapsed_ms(start), error=exc)
            logger.error(
                "Group %s failed: %s",
                group.config_path,
                exc,
                extra=structured_extra(
                    component=LogComponent.CHECKER,
                    config=group.config_path,
                    details={"code": error_code_for(exc)},
                ),
            )
        else:
            diagnostics = parse_diagnostics(output.output, project.directory)
            error: TscFilesError | None = None
            if output.exit_code != 0 and not has_confident_diagnostics(diagnostics):
                error = CompilerCrashError(str(output.compiler), output.exit_code, output.output)
            for diagnostic in diagnostics:
                self.events.emit(
                    ProgressEvent(
                        kind=ProgressEventKind.DIAGNOSTIC_FOUND,
                        config_path=group.config_path,
                        compiler=output.compiler,
                        diagnostic=diagnostic,
                    ),
                )
            result = GroupResult(
                group=group,
                diagnostics=tuple(diagnostics),
                compiler=output.compiler,
                command=output.command,
                exit_code=output.exit_code,
                duration_ms=_elapsed_ms(start),
                error=error,
            )
        self.events.emit(
            ProgressEvent(
                kind=ProgressEventKind.GROUP_COMPLETED,
                config_path=group.config_path,
                compiler=result.compiler,
                details={
                    "diagnostics": len(result.diagnostics),
                    "failed": result.failed,
                    "duration_ms": result.duration_ms,
                },
            ),
        )
        return result


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _raise_interrupt(signum: int, frame: FrameType | None) -> NoReturn:
    raise KeyboardInterrupt


@contextmanager
def _sigterm_as_interrupt() -> Iterator[None]:
    """Turn ``SIGTERM`` into ``KeyboardInterrupt`` while a check runs.

    Signal handlers can only be installed from the main thread; elsewhere
    this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread() or not hasattr(signal, "SIGTERM"):
        yield
        return
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous if previous is not None else signal.SIG_DFL)


def _run_groups(
    runner: GroupRunner,
    jobs: Sequence[tuple[FileGroup, ProjectConfig]],
    workers: int,
    registry: ProcessRegistry,
) -> list[GroupResult]:
    if workers <= 1:
        return [runner.run(group, project) for group, project in jobs]
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tscfiles")
    try:
        futures = [pool.submit(runner.run, group, project) for group, project in jobs]
        return [future.result() for future in as_completed(futures)]
    except BaseException:
        registry.cancel_all()
        pool.shutdown(wait=True, cancel_futures=True)
        raise
    finally:
        pool.shutdown(wait=True)


def check_files(
    files: Iterable[Path | str],
    options: CheckOptions | None = None,
    *,
    events: EventSink | None = None,
    package_manager: PackageManagerDetector | None = None,
) -> CheckResult:
    """Type-check `files` with the compiler settings of their projects.

    Args:
        files: Source files, absolute or relative to ``options.cwd``.
        options: Run options; defaults to ``CheckOptions()``.
        events: Progress event sink; defaults to ``LoggingEventSink``.
        package_manager: Package-manager detector used to bias compiler
            discovery; defaults to ``detect_package_manager``.

    Returns:
        The aggregated result. Group faults are reported in
        ``CheckResult.failures`` and through ``exit_code``.

    Raises:
        ConfigNotFoundError: If a file has no configuration.
        ConfigInvalidError: If a configuration cannot be loaded.
        TypeCheckFailure: If ``options.raise_on_error`` is set and errors
            were reported.
        KeyboardInterrupt: If the run was interrupted; running compilers
            have been killed and temporary files removed.
    """
    opts = options or CheckOptions()
    start = time.perf_counter()
    cwd = opts.resolved_cwd()
    inputs = unique_files((Path(item) for item in files), cwd)
    resolver = ConfigResolver(cwd)
    groups = group_files(inputs, resolver, opts.project)
    projects = load_projects(groups, resolver)
    groups = drop_unchecked_javascript(groups, projects)
    jobs = [(group, projects[path]) for path, group in groups.items()]

    sink = events or LoggingEventSink()
    detector = package_manager or detect_package_manager
    registry = ProcessRegistry()
    store = EphemeralConfigStore()
    runner = GroupRunner(
        synthesizer=EphemeralConfigSynthesizer(
            cache_dir=opts.cache_dir,
            use_cache=opts.use_cache,
            skip_lib_check=opts.skip_lib_check,
            store=store,
        ),
        executor=CompilerExecutor(
            CompilerLocator(package_manager=detector(cwd)),
            registry=registry,
            events=sink,
        ),
        options=opts,
        events=sink,
    )
    workers = opts.worker_count(len(jobs))
    try:
        with _sigterm_as_interrupt():
            group_results = _run_groups(runner, jobs, workers, registry)
    except KeyboardInterrupt:
        cancelled = registry.cancel_all()
        logger.warning(
            "Type check interrupted; cancelled %d running compiler(s)",
            cancelled,
            extra=structured_extra(component=LogComponent.CHECKER),
        )
        raise
    finally:
        store.dispose_all()

    result = aggregate_results(group_results, inputs, _elapsed_ms(start))
    logger.info(
        "Checked %d file(s) in %d group(s): %d error(s), %d warning(s)",
        len(result.checked_files),
        len(result.groups),
        result.error_count,
        result.warning_count,
        extra=structured_extra(
            component=LogComponent.CHECKER,
            duration_ms=result.duration_ms,
            exit_code=int(result.exit_code),
            counts=result.severity_counts(),
            details={"workers": workers, "failures": len(result.failures)},
        ),
    )
    if opts.raise_on_error and result.error_count:
        raise TypeCheckFailure(result)
    return result


def _options_from_settings() -> CheckOptions:
    settings = load_settings().settings
    _ = configure_logging(settings.log_format, log_level=settings.log_level)
    return CheckOptions.from_settings(settings)


def run_check(
    files: Iterable[Path | str],
    options: CheckOptions | None = None,
    *,
    events: EventSink | None = None,
    package_manager: PackageManagerDetector | None = None,
) -> tuple[CheckResult | None, ExitCode]:
    """Run a check and convert failures into an exit code for a CLI layer.

    Without `options`, settings are loaded from the working directory and
    their ``log_format`` and ``log_level`` configure tscfiles logging. Callers
    passing `options` keep their own logging setup.

    Returns:
        The result (``None`` when the run could not start) and its exit code.
    """
    try:
        opts = options or _options_from_settings()
        result = check_files(files, opts, events=events, package_manager=package_manager)
    except TypeCheckFailure as failure:
        return failure.result, ExitCode.TYPE_ERRORS
    except TscFilesError as exc:
        logger.error(  # noqa: TRY400 - the message is the user-facing report
            "%s",
            exc,
            extra=structured_extra(component=LogComponent.CHECKER, details={"code": error_code_for(exc)}),
        )
        return None, exit_code_for(exc)
    return result, result.exit_code


__all__ = ["GroupRunner", "check_files", "run_check"]
