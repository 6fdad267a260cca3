from __future__ import annotations

from pathlib import Path

import pytest

from aware_mfsu.config import MfsuConfig, Mode, load_config
from aware_mfsu.errors import ConfigError


def test_default_directories(tmp_path: Path) -> None:
    config = MfsuConfig()

    dev = config.resolve("development", tmp_path)
    prod = config.resolve(Mode.PRODUCTION, tmp_path)

    assert dev.output_dir == tmp_path.resolve() / ".aware" / "tmp" / ".cache" / ".mfsu"
    assert dev.cache_path == dev.output_dir / "MFSU_CACHE.json"
    assert prod.output_dir == tmp_path.resolve() / ".mfsu-production"
    assert prod.publish_dir == tmp_path.resolve() / "dist"
    assert dev.remote_url == "mf@/mf-va_remoteEntry.js"


def test_configured_output_must_contain_marker(tmp_path: Path) -> None:
    path = tmp_path / "mfsu.yml"
    path.write_text("development:\n  output: build/deps\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mfsu"):
        load_config(path)


def test_load_config_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "mfsu.yml"
    path.write_text(
        "\n".join(
            [
                "mf_name: deps",
                "public_path: /static/",
                "production:",
                "  output: .mfsu-prod",
                "export_all_members:",
                "  antd: [Button, Modal]",
                "bundler:",
                "  name: command",
                "  command: \"build-remote {entries} {output}\"",
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(path)
    context = config.resolve(Mode.PRODUCTION, tmp_path)

    assert context.output_dir == tmp_path.resolve() / ".mfsu-prod"
    assert context.remote_url == "deps@/static/mf-va_remoteEntry.js"
    assert context.export_all_members == {"antd": ["Button", "Modal"]}
    assert config.bundler.command == "build-remote {entries} {output}"


def test_missing_config_path_uses_defaults() -> None:
    assert load_config(None) == MfsuConfig()


def test_unknown_keys_and_bad_files_are_config_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(overrides={"chunks_typo": ["umi"]})
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yml")

    listing = tmp_path / "list.yml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(listing)


def test_unsupported_mode_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Unsupported mode staging"):
        MfsuConfig().resolve("staging", tmp_path)
