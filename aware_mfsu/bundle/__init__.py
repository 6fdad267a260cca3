"""Dependency bundle assembly."""

from .bundlers import Bundler, CommandBundler, PassthroughBundler, build_bundler
from .engine import BuildEngine, BuildOptions, BuildSignal, BuildState
from .models import BuildResult, BuildStats, BundleRequest

__all__ = [
    "BuildEngine",
    "BuildOptions",
    "BuildResult",
    "BuildSignal",
    "BuildState",
    "BuildStats",
    "BundleRequest",
    "Bundler",
    "CommandBundler",
    "PassthroughBundler",
    "build_bundler",
]
