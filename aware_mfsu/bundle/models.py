"""Data models shared by the build engine and bundlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..config import BuildContext
from .entries import EntryManifest


@dataclass(slots=True)
class BuildStats:
    """Outcome of one bundler invocation."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    duration: float = 0.0
    dependencies: List[str] = field(default_factory=list)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict[str, object]:
        return {
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "assets": list(self.assets),
            "logs": list(self.logs),
            "duration": round(self.duration, 3),
            "dependencies": list(self.dependencies),
        }


@dataclass(slots=True)
class BundleRequest:
    context: BuildContext
    entries: EntryManifest
    output_dir: Path
    dependencies: List[str] = field(default_factory=list)


@dataclass(slots=True)
class BuildResult:
    """What every party waiting on one build is told when it finishes."""

    stats: Optional[BuildStats]
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.stats is not None and not self.stats.has_errors()
