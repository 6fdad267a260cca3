"""Schema definitions for persisted prebundle metadata."""

from .snapshot import DependencyRecord, Snapshot

__all__ = [
    "DependencyRecord",
    "Snapshot",
]
