"""Dependency discovery and snapshot persistence."""

from .filters import display_source, is_node_builtin, should_record
from .store import DependencySnapshotStore, Evaluation

__all__ = [
    "DependencySnapshotStore",
    "Evaluation",
    "display_source",
    "is_node_builtin",
    "should_record",
]
