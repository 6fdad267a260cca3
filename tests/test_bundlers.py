from __future__ import annotations

import json
from pathlib import Path

import pytest

from aware_mfsu.bundle.bundlers import CommandBundler, PassthroughBundler, build_bundler
from aware_mfsu.bundle.entries import entry_basename, render_entry, write_entries
from aware_mfsu.bundle.models import BundleRequest
from aware_mfsu.config import BuildContext


def _request(context: BuildContext, tmp_path: Path, *specifiers: str) -> BundleRequest:
    entries = write_entries(
        list(specifiers),
        tmp_path / "entries",
        name=context.mf_name,
        filename=context.remote_entry_name,
        export_all_members={"antd": ["Modal", "Button"]},
    )
    output = tmp_path / "output"
    output.mkdir()
    return BundleRequest(context=context, entries=entries, output_dir=output, dependencies=list(specifiers))


def test_entry_names_are_filesystem_safe() -> None:
    assert entry_basename("react") == "mf-va_react"
    assert entry_basename("@ant-design/icons") == "mf-va_ant-design__icons"
    assert entry_basename("lodash/fp") == "mf-va_lodash__fp"


def test_render_entry_reexports_members() -> None:
    source = render_entry("antd", ["Modal", "Button"])

    assert 'export * from "antd";' in source
    assert 'export { Button, Modal } from "antd";' in source
    assert "export default" in source


def test_write_entries_records_exposes(dev_context: BuildContext, tmp_path: Path) -> None:
    request = _request(dev_context, tmp_path, "react", "antd")

    exposes = json.loads((request.entries.entries_dir / "exposes.json").read_text(encoding="utf-8"))
    assert exposes["name"] == "mf"
    assert exposes["filename"] == "mf-va_remoteEntry.js"
    assert exposes["exposes"] == {"./antd": "./mf-va_antd.js", "./react": "./mf-va_react.js"}
    assert "Button" in (request.entries.entries_dir / "mf-va_antd.js").read_text(encoding="utf-8")


def test_passthrough_chunks_are_content_addressed(dev_context: BuildContext, tmp_path: Path) -> None:
    request = _request(dev_context, tmp_path, "react")

    first = PassthroughBundler().bundle(request)
    chunk = next(name for name in first.assets if name.startswith("mf-dep_react."))
    second = PassthroughBundler().bundle(request)

    assert chunk in second.assets
    assert (request.output_dir / "mf-va_remoteEntry.js").exists()


def test_command_bundler_renders_placeholders(dev_context: BuildContext, tmp_path: Path) -> None:
    request = _request(dev_context, tmp_path, "react")
    bundler = CommandBundler('echo "$MFSU_NAME" > {output}/{filename}')

    stats = bundler.bundle(request)

    assert not stats.has_errors()
    assert stats.assets == ["mf-va_remoteEntry.js"]
    assert (request.output_dir / "mf-va_remoteEntry.js").read_text(encoding="utf-8").strip() == "mf"


def test_command_bundler_reports_failures(dev_context: BuildContext, tmp_path: Path) -> None:
    request = _request(dev_context, tmp_path, "react")

    stats = CommandBundler("echo broken >&2; exit 3").bundle(request)

    assert stats.has_errors()
    assert "exit 3" in stats.errors[0]
    assert stats.warnings == ["broken"]


def test_build_bundler_factory() -> None:
    assert isinstance(build_bundler("passthrough"), PassthroughBundler)
    assert isinstance(build_bundler("command", command="true"), CommandBundler)
    with pytest.raises(ValueError):
        build_bundler("command")
    with pytest.raises(ValueError):
        build_bundler("rollup")


def test_command_bundler_keeps_its_log_lines(dev_context: BuildContext, tmp_path: Path) -> None:
    request = _request(dev_context, tmp_path, "react")

    stats = CommandBundler("echo bundling; touch {output}/{filename}").bundle(request)

    payload = stats.to_dict()
    assert any("bundling" in line for line in payload["logs"])
    assert json.loads(json.dumps(payload))["logs"] == stats.logs
