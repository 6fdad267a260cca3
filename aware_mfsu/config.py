"""Configuration model and per-mode build context."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Literal, Mapping, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_MF_NAME = "mf"
MF_VA_PREFIX = "mf-va_"
MF_DEP_PREFIX = "mf-dep_"
MF_STATIC_PREFIX = "mf-static/"
REMOTE_ENTRY_NAME = f"{MF_VA_PREFIX}remoteEntry.js"
CACHE_FILENAME = "MFSU_CACHE.json"

_OUTPUT_MARKER = re.compile(r"\.mfsu")
_LEADING_DOTS = re.compile(r"^(?:\.+/?)+")


class Mode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, value: "Mode | str | None") -> "Mode":
        if isinstance(value, Mode):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ConfigError(
                f"[MFSU] Unsupported mode {value}, expect development or production."
            ) from None


class ModeOutput(BaseModel):
    output: Optional[str] = Field(default=None, description="Output directory relative to the workspace.")

    model_config = ConfigDict(extra="forbid")

    @field_validator("output")
    @classmethod
    def _require_mfsu_marker(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _OUTPUT_MARKER.search(value):
            raise ValueError(f"output must match /\\.mfsu/ (got '{value}')")
        return value


class BundlerSettings(BaseModel):
    name: str = "passthrough"
    command: Optional[str] = None
    env: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class MfsuConfig(BaseModel):
    """User-facing configuration for dependency prebundling."""

    development: ModeOutput = Field(default_factory=ModeOutput)
    production: ModeOutput = Field(default_factory=ModeOutput)
    mf_name: str = DEFAULT_MF_NAME
    export_all_members: Dict[str, List[str]] = Field(default_factory=dict)
    ignore_node_builtin_modules: bool = False
    public_path: str = "/"
    output_path: str = "dist"
    tmp_path: str = ".aware/tmp"
    bundler: BundlerSettings = Field(default_factory=BundlerSettings)
    on_busy: Literal["wait", "reject"] = "wait"

    model_config = ConfigDict(extra="forbid")

    def output_dir(self, mode: Mode, cwd: Path) -> Path:
        """Return the working directory the given mode builds into."""

        if mode is Mode.DEVELOPMENT:
            configured = self.development.output
            return cwd / configured if configured else cwd / self.tmp_path / ".cache" / ".mfsu"
        configured = self.production.output
        return cwd / configured if configured else cwd / ".mfsu-production"

    def resolve(self, mode: Mode | str, cwd: Path) -> "BuildContext":
        resolved_mode = Mode.parse(mode)
        root = Path(cwd).resolve()
        output_dir = self.output_dir(resolved_mode, root)
        return BuildContext(
            mode=resolved_mode,
            cwd=root,
            output_dir=output_dir,
            cache_path=output_dir / CACHE_FILENAME,
            publish_dir=root / self.output_path,
            public_path=normalize_public_path(self.public_path),
            mf_name=self.mf_name,
            export_all_members={key: list(value) for key, value in self.export_all_members.items()},
        )


@dataclass(frozen=True, slots=True)
class BuildContext:
    """Everything a component needs to know about one mode, resolved once."""

    mode: Mode
    cwd: Path
    output_dir: Path
    cache_path: Path
    publish_dir: Path
    public_path: str = "/"
    mf_name: str = DEFAULT_MF_NAME
    remote_entry_name: str = REMOTE_ENTRY_NAME
    export_all_members: Mapping[str, List[str]] = field(default_factory=dict)

    @property
    def remote_entry_path(self) -> Path:
        return self.output_dir / self.remote_entry_name

    @property
    def remote_url(self) -> str:
        return f"{self.mf_name}@{self.public_path}{self.remote_entry_name}"


def normalize_public_path(value: str) -> str:
    """Reduce a configured public path to an absolute URL path ending with '/'."""

    if re.match(r"^https?://", value):
        path = urlparse(value).path or "/"
    else:
        path = _LEADING_DOTS.sub("/", value)
    if not path.startswith("/"):
        path = "/" + path
    if not path.endswith("/"):
        path += "/"
    return path


def load_config(path: Optional[Path] = None, *, overrides: Optional[Mapping[str, object]] = None) -> MfsuConfig:
    """Load configuration from a YAML file; a missing path yields the defaults."""

    payload: Dict[str, object] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        payload.update(loaded)
    if overrides:
        payload.update(overrides)
    try:
        return MfsuConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"[MFSU] Invalid configuration: {exc}") from exc


__all__ = [
    "BuildContext",
    "BundlerSettings",
    "CACHE_FILENAME",
    "DEFAULT_MF_NAME",
    "MF_DEP_PREFIX",
    "MF_STATIC_PREFIX",
    "MF_VA_PREFIX",
    "MfsuConfig",
    "Mode",
    "ModeOutput",
    "REMOTE_ENTRY_NAME",
    "load_config",
    "normalize_public_path",
]
