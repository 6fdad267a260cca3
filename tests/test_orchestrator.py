from __future__ import annotations

import asyncio
import threading

import pytest

from aware_mfsu.bundle.engine import BuildEngine
from aware_mfsu.bundle.utils import compute_fingerprint
from aware_mfsu.config import BuildContext
from aware_mfsu.deps.store import DependencySnapshotStore
from aware_mfsu.errors import BuildError
from aware_mfsu.orchestrator import RELOAD_MESSAGE, BuildOrchestrator, ReconcileStatus

from .conftest import FakeBundler, RecordingChannel


def _orchestrator(
    context: BuildContext,
    bundler: FakeBundler,
    channel: RecordingChannel | None = None,
    *specifiers: str,
) -> BuildOrchestrator:
    store = DependencySnapshotStore(context)
    store.load_cache()
    for specifier in specifiers:
        store.record_usage(specifier, "@/app.tsx")
    engine = BuildEngine(context, bundler)
    return BuildOrchestrator(context, store, engine, reload_channel=channel)


def test_first_run_builds_commits_and_reloads(
    dev_context: BuildContext, fake_bundler: FakeBundler, channel: RecordingChannel
) -> None:
    orchestrator = _orchestrator(dev_context, fake_bundler, channel, "react", "lodash")

    result = asyncio.run(orchestrator.reconcile())

    assert result.status is ReconcileStatus.BUILT
    assert fake_bundler.calls == [["lodash", "react"]]
    assert orchestrator.store.persisted.fingerprint == compute_fingerprint(["react", "lodash"])
    assert channel.messages == [RELOAD_MESSAGE]
    assert RELOAD_MESSAGE == {"type": "ok", "data": {"reload": True}}


def test_reconcile_twice_builds_once(dev_context: BuildContext, fake_bundler: FakeBundler) -> None:
    orchestrator = _orchestrator(dev_context, fake_bundler, None, "react")

    async def scenario():
        first = await orchestrator.reconcile()
        second = await orchestrator.reconcile()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.status is ReconcileStatus.BUILT
    assert second.status is ReconcileStatus.NOOP
    assert len(fake_bundler.calls) == 1


def test_unchanged_set_skips_bundler(dev_context: BuildContext, fake_bundler: FakeBundler) -> None:
    asyncio.run(_orchestrator(dev_context, FakeBundler(), None, "react").reconcile())

    orchestrator = _orchestrator(dev_context, fake_bundler, None, "react")
    result = asyncio.run(orchestrator.reconcile())

    assert result.status is ReconcileStatus.NOOP
    assert fake_bundler.calls == []


def test_forced_rebuild_runs_with_unchanged_set(dev_context: BuildContext, fake_bundler: FakeBundler) -> None:
    asyncio.run(_orchestrator(dev_context, FakeBundler(), None, "react").reconcile())

    orchestrator = _orchestrator(dev_context, fake_bundler, None, "react")
    result = asyncio.run(orchestrator.reconcile(force=True))

    assert result.status is ReconcileStatus.BUILT
    assert fake_bundler.calls == [["react"]]


def test_force_with_no_dependencies_does_not_build(dev_context: BuildContext, fake_bundler: FakeBundler) -> None:
    orchestrator = _orchestrator(dev_context, fake_bundler, None)

    result = asyncio.run(orchestrator.reconcile(force=True))

    assert result.status is ReconcileStatus.NOOP
    assert fake_bundler.calls == []


def test_failed_build_is_not_committed(dev_context: BuildContext, channel: RecordingChannel) -> None:
    orchestrator = _orchestrator(dev_context, FakeBundler(fail=True), channel, "react")

    result = asyncio.run(orchestrator.reconcile())

    assert result.status is ReconcileStatus.FAILED
    assert isinstance(result.error, BuildError)
    assert not dev_context.cache_path.exists()
    assert channel.messages == []
    assert orchestrator.store.evaluate().should_build is True


def test_concurrent_triggers_share_one_build(dev_context: BuildContext) -> None:
    gate = threading.Event()
    bundler = FakeBundler(gate=gate)
    orchestrator = _orchestrator(dev_context, bundler, None, "react")

    async def scenario():
        tasks = [asyncio.create_task(orchestrator.reconcile()) for _ in range(3)]
        await asyncio.sleep(0.05)
        gate.set()
        return await asyncio.gather(*tasks)

    results = asyncio.run(scenario())

    assert [result.status for result in results].count(ReconcileStatus.BUILT) == 1
    assert len(bundler.calls) == 1


def test_production_build_is_mirrored_to_publish_dir(prod_context: BuildContext, fake_bundler: FakeBundler) -> None:
    orchestrator = _orchestrator(prod_context, fake_bundler, None, "react")

    result = asyncio.run(orchestrator.reconcile())

    assert result.copied_to == prod_context.publish_dir
    assert (prod_context.publish_dir / "mf-va_remoteEntry.js").read_text(encoding="utf-8") == "build-1"
    assert not (prod_context.publish_dir / "MFSU_CACHE.json").exists()


def test_production_noop_still_mirrors_cached_bundle(prod_context: BuildContext, fake_bundler: FakeBundler) -> None:
    asyncio.run(_orchestrator(prod_context, FakeBundler(), None, "react").reconcile())
    for path in prod_context.publish_dir.iterdir():
        path.unlink()

    result = asyncio.run(_orchestrator(prod_context, fake_bundler, None, "react").reconcile())

    assert result.status is ReconcileStatus.NOOP
    assert fake_bundler.calls == []
    assert (prod_context.publish_dir / "mf-va_remoteEntry.js").exists()


def test_production_failure_aborts_without_copy(prod_context: BuildContext) -> None:
    orchestrator = _orchestrator(prod_context, FakeBundler(fail=True), None, "react")

    with pytest.raises(BuildError):
        asyncio.run(orchestrator.reconcile())

    assert not prod_context.publish_dir.exists()
    assert not prod_context.cache_path.exists()
