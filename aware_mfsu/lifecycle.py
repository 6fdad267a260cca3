"""Explicit host integration: the events an application build calls into."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional

from .bundle.bundlers import Bundler, build_bundler
from .bundle.engine import BuildEngine
from .config import BuildContext, MfsuConfig, Mode
from .deps.filters import display_source, is_relative, should_record
from .deps.store import DependencySnapshotStore
from .errors import ConfigError, MfsuError
from .gateway import AssetGateway
from .orchestrator import BuildOrchestrator, ReconcileResult, ReconcileStatus, ReloadChannel

logger = logging.getLogger(__name__)

DEBUG_ENV = "MFSU_DEBUG"


def resolve_mode(command: str, mode: Optional[str] = None) -> Mode:
    """Map the host command to a build mode."""

    if command == "build":
        return Mode.PRODUCTION
    if command == "mfsu" and mode:
        return Mode.parse(mode)
    return Mode.DEVELOPMENT


class MfsuService:
    """Wires the snapshot store, build engine, orchestrator and asset gateway for one mode.

    The host calls :meth:`on_start` once, then reports transformed imports via
    :meth:`on_transform_deps` and compile events via
    :meth:`on_compile_pass_start`, :meth:`on_compile_pass_complete` and
    :meth:`on_full_build_complete`.
    """

    def __init__(
        self,
        config: MfsuConfig,
        cwd: Path,
        *,
        bundler: Optional[Bundler] = None,
        reload_channel: Optional[ReloadChannel] = None,
        source_root: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.cwd = Path(cwd)
        self.source_root = source_root if source_root is not None else self.cwd / "src"
        self.reload_channel = reload_channel
        self._bundler = bundler
        self._context: Optional[BuildContext] = None
        self._store: Optional[DependencySnapshotStore] = None
        self._engine: Optional[BuildEngine] = None
        self._orchestrator: Optional[BuildOrchestrator] = None
        self._gateway: Optional[AssetGateway] = None

    @property
    def context(self) -> BuildContext:
        return self._require(self._context)

    @property
    def store(self) -> DependencySnapshotStore:
        return self._require(self._store)

    @property
    def engine(self) -> BuildEngine:
        return self._require(self._engine)

    @property
    def orchestrator(self) -> BuildOrchestrator:
        return self._require(self._orchestrator)

    @property
    def gateway(self) -> AssetGateway:
        return self._require(self._gateway)

    def on_start(self, command: str = "dev", mode: Optional[str] = None) -> BuildContext:
        resolved = resolve_mode(command, mode)
        context = self.config.resolve(resolved, self.cwd)
        logger.debug("mode: %s", context.mode.value)
        logger.debug("tmpDir: %s", context.output_dir)
        try:
            context.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(f"Cannot create output directory {context.output_dir}: {exc}") from exc

        store = DependencySnapshotStore(context)
        store.load_cache()
        engine = BuildEngine(context, self._bundler or self._configured_bundler(), on_busy=self.config.on_busy)
        self._context = context
        self._store = store
        self._engine = engine
        self._orchestrator = BuildOrchestrator(context, store, engine, reload_channel=self.reload_channel)
        self._gateway = AssetGateway(context, engine)
        return context

    def on_compile_pass_start(self) -> None:
        self.store.reset_pass()

    def on_transform_deps(self, specifier: str, source_file: str, is_match: bool) -> bool:
        """Record one import reported by the transformation pipeline; returns True when kept."""

        source = display_source(source_file, self.source_root)
        self._debug_usage(specifier, source, is_match)
        if not should_record(
            specifier,
            is_match=is_match,
            ignore_node_builtins=self.config.ignore_node_builtin_modules,
        ):
            return False
        self.store.record_usage(specifier, source)
        return True

    async def on_compile_pass_complete(self) -> ReconcileResult:
        logger.debug("build deps in %s", self.context.mode.value)
        return await self.orchestrator.reconcile()

    async def on_full_build_complete(self, error: Optional[BaseException] = None) -> ReconcileResult:
        if error is not None:
            logger.debug("Host build failed; skipping dependency build")
            return ReconcileResult(
                status=ReconcileStatus.SKIPPED,
                evaluation=self.store.evaluate(),
                logs=[f"Host build failed, dependency build skipped: {error}"],
            )
        logger.debug("build deps in %s", self.context.mode.value)
        return await self.orchestrator.reconcile()

    async def rebuild(self, force: bool = False) -> ReconcileResult:
        return await self.orchestrator.reconcile(force=force)

    def federation_remotes(self) -> Dict[str, str]:
        """Remote declaration the host bundler needs to load the dependency container."""

        return {self.context.mf_name: self.context.remote_url}

    def _configured_bundler(self) -> Bundler:
        settings = self.config.bundler
        try:
            return build_bundler(settings.name, command=settings.command, env=dict(settings.env))
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    def _debug_usage(self, specifier: str, source: str, is_match: bool) -> None:
        flag = os.environ.get(DEBUG_ENV)
        if not flag or is_relative(specifier):
            return
        if flag == "MATCHED" and not is_match:
            return
        if flag == "UNMATCHED" and is_match:
            return
        logger.info("> import %s from %s, %s", specifier, source, "MATCHED" if is_match else "UNMATCHED")

    @staticmethod
    def _require(value):
        if value is None:
            raise MfsuError("MfsuService.on_start() must be called first")
        return value
