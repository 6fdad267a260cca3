"""Reconcile the referenced dependency set with the built remote bundle."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .bundle.engine import BuildEngine
from .bundle.models import BuildStats
from .bundle.utils import copy_tree
from .config import CACHE_FILENAME, BuildContext, Mode
from .deps.store import DependencySnapshotStore, Evaluation
from .errors import BuildError

logger = logging.getLogger(__name__)

RELOAD_MESSAGE: Mapping[str, Any] = {"type": "ok", "data": {"reload": True}}


class ReloadChannel(Protocol):
    def broadcast(self, message: Mapping[str, Any]) -> None:  # pragma: no cover - interface
        ...


class ReconcileStatus(str, Enum):
    NOOP = "noop"
    BUILT = "built"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(slots=True)
class ReconcileResult:
    status: ReconcileStatus
    evaluation: Evaluation
    stats: Optional[BuildStats] = None
    error: Optional[BuildError] = None
    copied_to: Optional[Path] = None
    logs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status.value,
            "should_build": self.evaluation.should_build,
            "reason": self.evaluation.reason,
            "fingerprint": self.evaluation.fingerprint,
            "stats": self.stats.to_dict() if self.stats else None,
            "error": str(self.error) if self.error else None,
            "copied_to": str(self.copied_to) if self.copied_to else None,
            "logs": list(self.logs),
        }


class BuildOrchestrator:
    """Runs one reconciliation per compile-pass or full-build event."""

    def __init__(
        self,
        context: BuildContext,
        store: DependencySnapshotStore,
        engine: BuildEngine,
        *,
        reload_channel: Optional[ReloadChannel] = None,
    ) -> None:
        self.context = context
        self.store = store
        self.engine = engine
        self.reload_channel = reload_channel
        self._lock = asyncio.Lock()

    async def reconcile(self, force: bool = False) -> ReconcileResult:
        # Triggers arriving mid-build queue here and re-evaluate against the new snapshot.
        async with self._lock:
            return await self._reconcile(force)

    async def _reconcile(self, force: bool) -> ReconcileResult:
        evaluation = self.store.evaluate()
        logger.debug(
            "shouldBuild: %s (%s), force: %s",
            evaluation.should_build,
            evaluation.reason,
            force,
        )
        records = self.store.pending_records()
        if not records or not (force or evaluation.should_build):
            result = ReconcileResult(status=ReconcileStatus.NOOP, evaluation=evaluation)
            result.logs.append(f"No dependency build needed: {evaluation.reason}")
            if self.context.mode is Mode.PRODUCTION and self.context.remote_entry_path.exists():
                result.copied_to = self._mirror(result.logs)
            return result

        try:
            stats = await self.engine.build(record.specifier for record in records)
        except BuildError as exc:
            return self._handle_failure(evaluation, exc)

        try:
            self.store.commit(records)
        except OSError as exc:
            return self._handle_failure(evaluation, BuildError(f"Failed to write dependency cache: {exc}", stats=stats))
        result = ReconcileResult(status=ReconcileStatus.BUILT, evaluation=evaluation, stats=stats)
        result.logs.append(f"Built {len(records)} dependencies into {self.context.output_dir}")

        if self.context.mode is Mode.DEVELOPMENT:
            self._notify_reload(result.logs)
        else:
            result.copied_to = self._mirror(result.logs)
        return result

    def _handle_failure(self, evaluation: Evaluation, error: BuildError) -> ReconcileResult:
        if self.context.mode is Mode.PRODUCTION:
            raise error
        logger.error("Dependency build failed; keeping the previous bundle: %s", error)
        return ReconcileResult(
            status=ReconcileStatus.FAILED,
            evaluation=evaluation,
            stats=error.stats,
            error=error,
            logs=[str(error)],
        )

    def _notify_reload(self, logs: List[str]) -> None:
        if self.reload_channel is None:
            return
        logger.debug("Asking connected clients to reload")
        self.reload_channel.broadcast(RELOAD_MESSAGE)
        logs.append("Sent reload notification to connected clients")

    def _mirror(self, logs: List[str]) -> Path:
        destination = self.context.publish_dir
        logger.info("Copying dependency bundle to %s", destination)
        try:
            copy_tree(self.context.output_dir, destination, exclude=(CACHE_FILENAME,))
        except OSError as exc:
            raise BuildError(f"Failed to copy dependency bundle to {destination}: {exc}") from exc
        logs.append(f"Copied dependency bundle to {destination}")
        return destination
