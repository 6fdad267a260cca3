"""Command-line entry point for dependency prebundling."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from aware_mfsu.config import load_config
from aware_mfsu.errors import MfsuError
from aware_mfsu.lifecycle import MfsuService
from aware_mfsu.orchestrator import ReconcileStatus

DEFAULT_CONFIG_NAMES = (".mfsurc.yml", ".mfsurc.yaml")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return _handle_build(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aware-mfsu", description="Dependency prebundling helpers.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build the dependency bundle.")
    build.add_argument("--mode", default="development", help="development or production.")
    build.add_argument("--force", action="store_true", help="Rebuild even when the dependency set is unchanged.")
    build.add_argument("--config", help="Path to a YAML config file.")
    build.add_argument("--dep", action="append", help="Dependency specifier (repeatable).")
    build.add_argument("--dependencies-file")
    build.add_argument("--workspace-root")

    return parser


def _handle_build(args: argparse.Namespace) -> int:
    workspace = _resolve_workspace(args.workspace_root)
    logging.getLogger(__name__).info("[MFSU] build deps...")
    try:
        config = load_config(_resolve_config_path(args.config, workspace))
        service = MfsuService(config, workspace)
        context = service.on_start("mfsu", args.mode)

        dependencies = _collect_dependencies(args, workspace)
        if dependencies is None:
            service.store.seed_from_snapshot()
        else:
            for specifier in dependencies:
                service.store.record_usage(specifier)

        result = asyncio.run(service.rebuild(force=args.force))
    except (MfsuError, FileNotFoundError) as exc:
        print(str(exc), file=sys.stderr)
        return 1

    payload = {
        "mode": context.mode.value,
        "output_dir": str(context.output_dir),
        "cache_path": str(context.cache_path),
        "dependencies": [record.specifier for record in service.store.pending_records()],
        **result.to_dict(),
    }
    _print_json(payload)
    return 1 if result.status is ReconcileStatus.FAILED else 0


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _resolve_workspace(value: Optional[str]) -> Path:
    return Path(value).resolve() if value else Path.cwd()


def _resolve_path(value: str, workspace: Path) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = workspace / path
    return path.resolve()


def _resolve_config_path(value: Optional[str], workspace: Path) -> Optional[Path]:
    if value is not None:
        return _resolve_path(value, workspace)
    for name in DEFAULT_CONFIG_NAMES:
        candidate = workspace / name
        if candidate.exists():
            return candidate
    return None


def _collect_dependencies(args: argparse.Namespace, workspace: Path) -> Optional[List[str]]:
    if not args.dep and not args.dependencies_file:
        return None
    dependencies: List[str] = list(args.dep or [])
    if args.dependencies_file:
        dependencies.extend(_read_dependencies(_resolve_path(args.dependencies_file, workspace)))
    return dependencies


def _read_dependencies(path: Path) -> List[str]:
    if not path.exists():
        raise FileNotFoundError(f"Dependencies file not found: {path}")
    return [
        line.strip()
        for line in path.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


def _print_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, indent=2, default=str))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
