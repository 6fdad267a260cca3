"""Error taxonomy for dependency prebundling."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .bundle.models import BuildStats


class MfsuError(RuntimeError):
    """Base class for all aware-mfsu failures."""


class ConfigError(MfsuError):
    """Raised when user configuration or the requested mode is invalid."""


class CacheLoadError(MfsuError):
    """Raised when the persisted snapshot cannot be read or parsed."""


class BuildError(MfsuError):
    """Raised when the dependency bundle could not be produced."""

    def __init__(self, message: str, *, stats: Optional["BuildStats"] = None) -> None:
        super().__init__(message)
        self.stats = stats


class AssetNotFoundError(MfsuError):
    """Raised when a managed asset is missing from the output directory."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Asset not found: {path}")
        self.path = Path(path)


class ConcurrentBuildError(MfsuError):
    """Raised when a build is requested while another one is running and waiting is not allowed."""


__all__ = [
    "MfsuError",
    "ConfigError",
    "CacheLoadError",
    "BuildError",
    "AssetNotFoundError",
    "ConcurrentBuildError",
]
