"""Tracks referenced dependency specifiers and the snapshot they were last built from."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from pydantic import ValidationError

from ..bundle.utils import compute_fingerprint, write_text_atomic
from ..config import BuildContext
from ..errors import CacheLoadError
from ..schemas.snapshot import DependencyRecord, Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Evaluation:
    should_build: bool
    reason: str
    fingerprint: str
    persisted_fingerprint: str


class DependencySnapshotStore:
    """Accumulates the pending dependency set of a compile pass and persists built snapshots.

    The pending set is rebuilt from scratch on every pass so dependencies dropped
    from application code disappear from the next evaluation. The persisted
    snapshot is only replaced through :meth:`commit`, which callers invoke after
    the bundle for that set has been written.
    """

    def __init__(self, context: BuildContext) -> None:
        self.context = context
        self._pending: Dict[str, DependencyRecord] = {}
        self._snapshot = Snapshot()

    @property
    def pending(self) -> Mapping[str, DependencyRecord]:
        return MappingProxyType(self._pending)

    @property
    def persisted(self) -> Snapshot:
        return self._snapshot

    def record_usage(self, specifier: str, source_file: Optional[str] = None) -> None:
        if specifier not in self._pending:
            self._pending[specifier] = DependencyRecord(specifier=specifier, source_file=source_file)

    def reset_pass(self) -> None:
        self._pending = {}

    def seed_from_snapshot(self) -> None:
        """Use the persisted dependency set as the pending set."""

        self._pending = self._snapshot.as_mapping()

    def pending_records(self) -> list[DependencyRecord]:
        return sorted(self._pending.values(), key=lambda record: record.specifier)

    def load_cache(self) -> Snapshot:
        try:
            self._snapshot = self._read_cache()
        except CacheLoadError as exc:
            logger.warning("Ignoring unreadable dependency cache: %s", exc)
            self._snapshot = Snapshot()
        logger.debug(
            "Loaded %d cached dependencies from %s",
            len(self._snapshot.specifiers),
            self.context.cache_path,
        )
        return self._snapshot

    def _read_cache(self) -> Snapshot:
        path = self.context.cache_path
        if not path.exists():
            return Snapshot()
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CacheLoadError(f"Cannot read {path}: {exc}") from exc
        if not raw.strip():
            return Snapshot()
        try:
            snapshot = Snapshot.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise CacheLoadError(f"Invalid dependency cache at {path}: {exc}") from exc
        # A hand-edited or truncated list must not pass as the recorded fingerprint.
        expected = compute_fingerprint(snapshot.names())
        if snapshot.fingerprint != expected:
            raise CacheLoadError(f"Fingerprint mismatch in {path}")
        return snapshot

    def evaluate(self) -> Evaluation:
        fingerprint = compute_fingerprint(self._pending)
        persisted = self._snapshot.fingerprint
        if not self._pending:
            return Evaluation(False, "no dependencies referenced", fingerprint, persisted)
        if fingerprint != persisted:
            return Evaluation(True, "dependency set changed", fingerprint, persisted)
        if not self.context.remote_entry_path.exists():
            return Evaluation(True, "remote entry missing", fingerprint, persisted)
        return Evaluation(False, "up to date", fingerprint, persisted)

    def commit(self, records: Optional[Iterable[DependencyRecord]] = None) -> Snapshot:
        snapshot = Snapshot.from_records(
            self.pending_records() if records is None else records,
            built_at=datetime.now(timezone.utc),
            mode=self.context.mode.value,
        )
        write_text_atomic(self.context.cache_path, snapshot.model_dump_json(indent=2) + "\n")
        self._snapshot = snapshot
        logger.debug("Wrote dependency cache %s (%s)", self.context.cache_path, snapshot.fingerprint[:12])
        return snapshot
