"""Single-slot dependency bundle builds with broadcast completion."""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Literal, Optional

from ..config import CACHE_FILENAME, BuildContext
from ..errors import BuildError, ConcurrentBuildError
from .bundlers import Bundler
from .entries import write_entries
from .models import BuildResult, BuildStats, BundleRequest
from .utils import clear_directory, replace_entry

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Optional[BaseException], Optional[BuildStats]], None]


class BuildState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"


@dataclass(slots=True)
class BuildOptions:
    on_busy: Literal["wait", "reject"] = "wait"
    on_build_complete: Optional[CompletionCallback] = None


class BuildSignal:
    """Completion notification for one build, delivered to every waiter."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._result: Optional[BuildResult] = None

    def fire(self, result: BuildResult) -> None:
        self._result = result
        self._event.set()

    async def wait(self) -> BuildResult:
        await self._event.wait()
        assert self._result is not None
        return self._result


class BuildEngine:
    """Builds the remote dependency bundle for one mode, one build at a time.

    Bundles are produced in a staging directory beside ``output_dir`` and only
    moved into place once the bundler succeeded, so a failed build leaves the
    previously served artifact untouched. The build slot stays taken until the
    bundler thread has returned, even when the caller that started the build is
    cancelled.
    """

    def __init__(
        self,
        context: BuildContext,
        bundler: Bundler,
        *,
        on_busy: Literal["wait", "reject"] = "wait",
    ) -> None:
        self.context = context
        self.bundler = bundler
        self.on_busy = on_busy
        self.state = BuildState.IDLE
        self.build_count = 0
        self._signal: Optional[BuildSignal] = None
        self._task: Optional[asyncio.Task[BuildResult]] = None
        self._last_result: Optional[BuildResult] = None
        self._listeners: List[CompletionCallback] = []

    @property
    def is_building(self) -> bool:
        return self._signal is not None

    def current_signal(self) -> Optional[BuildSignal]:
        return self._signal

    def add_listener(self, callback: CompletionCallback) -> None:
        self._listeners.append(callback)

    async def wait_until_idle(self) -> Optional[BuildResult]:
        signal = self._signal
        if signal is None:
            return self._last_result
        return await signal.wait()

    async def build(self, deps: Iterable[str], options: Optional[BuildOptions] = None) -> BuildStats:
        options = options or BuildOptions(on_busy=self.on_busy)
        in_flight = self._signal
        if in_flight is not None:
            if options.on_busy == "reject":
                raise ConcurrentBuildError(f"A {self.context.mode.value} dependency build is already running")
            logger.debug("Joining in-flight %s build", self.context.mode.value)
            result = await in_flight.wait()
            _invoke(options.on_build_complete, result)
            return _unwrap(result)

        signal = BuildSignal()
        self._signal = signal
        self.state = BuildState.BUILDING
        self.build_count += 1
        dependencies = sorted(set(deps))
        logger.info("Building %d dependencies (%s)", len(dependencies), self.context.mode.value)
        self._task = asyncio.ensure_future(self._execute(signal, dependencies, options))
        result = await asyncio.shield(self._task)
        return _unwrap(result)

    async def _execute(self, signal: BuildSignal, dependencies: List[str], options: BuildOptions) -> BuildResult:
        result = BuildResult(stats=None, error=BuildError("Build did not complete"))
        try:
            result = await self._run(dependencies)
        finally:
            self.state = BuildState.READY if result.ok else BuildState.FAILED
            self._last_result = result
            self._signal = None
            self._task = None
            signal.fire(result)
            for listener in list(self._listeners):
                _invoke(listener, result)
            _invoke(options.on_build_complete, result)
        return result

    async def _run(self, dependencies: List[str]) -> BuildResult:
        started = time.perf_counter()
        try:
            stats = await asyncio.to_thread(self._build_sync, dependencies)
        except Exception as exc:
            logger.debug("Bundler raised", exc_info=True)
            return BuildResult(stats=None, error=BuildError(f"Dependency build failed: {exc}"))
        stats.duration = time.perf_counter() - started
        for line in stats.logs:
            logger.debug("[%s] %s", self.bundler.name, line)
        if stats.has_errors():
            message = "; ".join(stats.errors)
            return BuildResult(stats=stats, error=BuildError(f"Dependency build failed: {message}", stats=stats))
        logger.info("Dependency build finished in %.2fs (%d assets)", stats.duration, len(stats.assets))
        return BuildResult(stats=stats)

    def _build_sync(self, dependencies: List[str]) -> BuildStats:
        output_dir = self.context.output_dir
        output_dir.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix=".mfsu-staging-", dir=output_dir.parent) as tmp_dir:
            staging_root = Path(tmp_dir)
            entries_dir = staging_root / "entries"
            staged_output = staging_root / "output"
            staged_output.mkdir(parents=True, exist_ok=True)

            manifest = write_entries(
                dependencies,
                entries_dir,
                name=self.context.mf_name,
                filename=self.context.remote_entry_name,
                export_all_members=self.context.export_all_members,
            )
            request = BundleRequest(
                context=self.context,
                entries=manifest,
                output_dir=staged_output,
                dependencies=dependencies,
            )
            stats = self.bundler.bundle(request)
            if stats.has_errors():
                return stats
            if not (staged_output / self.context.remote_entry_name).exists():
                stats.errors.append(f"Bundler '{self.bundler.name}' did not emit {self.context.remote_entry_name}")
                return stats
            self._publish(staged_output)
        return stats

    def _publish(self, staged_output: Path) -> None:
        output_dir = self.context.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        # Swap staged files over the served ones first; stale leftovers go last.
        staged_names = []
        for entry in sorted(staged_output.iterdir()):
            replace_entry(entry, output_dir / entry.name)
            staged_names.append(entry.name)
        clear_directory(output_dir, keep=(CACHE_FILENAME, *staged_names))


def _invoke(callback: Optional[CompletionCallback], result: BuildResult) -> None:
    if callback is None:
        return
    try:
        callback(result.error, result.stats)
    except Exception:
        logger.exception("Build completion callback failed")


def _unwrap(result: BuildResult) -> BuildStats:
    if result.error is not None:
        raise result.error
    assert result.stats is not None
    return result.stats
