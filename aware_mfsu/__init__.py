"""Dependency prebundling for aware application builds."""

__version__ = "0.1.0"
from .bundle import BuildEngine, BuildOptions, BuildState, BuildStats, Bundler, CommandBundler, PassthroughBundler
from .config import BuildContext, MfsuConfig, Mode, load_config
from .deps import DependencySnapshotStore, Evaluation
from .errors import (
    AssetNotFoundError,
    BuildError,
    CacheLoadError,
    ConcurrentBuildError,
    ConfigError,
    MfsuError,
)
from .gateway import AssetGateway, AssetRequest, AssetResponse
from .lifecycle import MfsuService
from .orchestrator import BuildOrchestrator, ReconcileResult, ReconcileStatus
from .schemas import DependencyRecord, Snapshot

__all__ = [
    "__version__",
    "AssetGateway",
    "AssetNotFoundError",
    "AssetRequest",
    "AssetResponse",
    "BuildContext",
    "BuildEngine",
    "BuildError",
    "BuildOptions",
    "BuildOrchestrator",
    "BuildState",
    "BuildStats",
    "Bundler",
    "CacheLoadError",
    "CommandBundler",
    "ConcurrentBuildError",
    "ConfigError",
    "DependencyRecord",
    "DependencySnapshotStore",
    "Evaluation",
    "MfsuConfig",
    "MfsuError",
    "MfsuService",
    "Mode",
    "PassthroughBundler",
    "ReconcileResult",
    "ReconcileStatus",
    "Snapshot",
    "load_config",
]
