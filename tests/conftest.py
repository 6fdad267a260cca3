from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, List, Mapping, Optional

import pytest

from aware_mfsu.bundle.bundlers import Bundler
from aware_mfsu.bundle.models import BuildStats, BundleRequest
from aware_mfsu.config import BuildContext, MfsuConfig, Mode


class FakeBundler(Bundler):
    """Writes a remote entry tagged with the build number; can fail or block on a gate."""

    name = "fake"

    def __init__(self, *, fail: bool = False, gate: Optional[threading.Event] = None, start: int = 0) -> None:
        self.fail = fail
        self.start = start
        self.gate = gate
        self.calls: List[List[str]] = []

    def bundle(self, request: BundleRequest) -> BuildStats:
        self.calls.append(list(request.dependencies))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        stats = BuildStats(dependencies=list(request.dependencies))
        if self.fail:
            stats.errors.append("Module not found: cannot resolve 'missing-dep'")
            return stats
        build_number = self.start + len(self.calls)
        (request.output_dir / request.entries.filename).write_text(f"build-{build_number}", encoding="utf-8")
        chunk = request.output_dir / f"mf-dep_vendor.{build_number:08d}.js"
        chunk.write_text(f"chunk-{build_number}", encoding="utf-8")
        stats.assets.extend([request.entries.filename, chunk.name])
        return stats


class RecordingChannel:
    def __init__(self) -> None:
        self.messages: List[Mapping[str, Any]] = []

    def broadcast(self, message: Mapping[str, Any]) -> None:
        self.messages.append(message)


@pytest.fixture()
def config() -> MfsuConfig:
    return MfsuConfig()


@pytest.fixture()
def dev_context(tmp_path: Path, config: MfsuConfig) -> BuildContext:
    return config.resolve(Mode.DEVELOPMENT, tmp_path)


@pytest.fixture()
def prod_context(tmp_path: Path, config: MfsuConfig) -> BuildContext:
    return config.resolve(Mode.PRODUCTION, tmp_path)


@pytest.fixture()
def fake_bundler() -> FakeBundler:
    return FakeBundler()


@pytest.fixture()
def channel() -> RecordingChannel:
    return RecordingChannel()
