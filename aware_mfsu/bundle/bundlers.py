"""Bundler backends that turn generated entry modules into output chunks."""

from __future__ import annotations

import json
import logging
import os
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..config import MF_DEP_PREFIX, MF_VA_PREFIX
from .models import BuildStats, BundleRequest
from .utils import compute_sha256, write_text

logger = logging.getLogger(__name__)


class Bundler(ABC):
    name: str

    @abstractmethod
    def bundle(self, request: BundleRequest) -> BuildStats:
        ...


class PassthroughBundler(Bundler):
    """Emit entry modules as content-addressed chunks behind a module registry.

    No code is compiled; every chunk still imports its dependency by specifier,
    so the host runtime must be able to resolve bare imports (import maps or a
    dev server that rewrites them).
    """

    name = "passthrough"

    def bundle(self, request: BundleRequest) -> BuildStats:
        stats = BuildStats(dependencies=list(request.dependencies))
        entries = request.entries
        module_map: Dict[str, str] = {}
        for expose, entry_file in sorted(entries.exposes.items()):
            source = entries.entries_dir / entry_file
            digest = compute_sha256(source)[:8]
            stem = source.stem[len(MF_VA_PREFIX):] if source.stem.startswith(MF_VA_PREFIX) else source.stem
            chunk_name = f"{MF_DEP_PREFIX}{stem}.{digest}.js"
            shutil.copy2(source, request.output_dir / chunk_name)
            module_map[expose] = chunk_name
            stats.assets.append(chunk_name)

        write_text(request.output_dir / entries.filename, _render_remote_entry(entries.name, module_map))
        stats.assets.append(entries.filename)
        stats.logs.append(f"Wrote {len(module_map)} dependency chunks for remote '{entries.name}'")
        return stats


def _render_remote_entry(name: str, module_map: Dict[str, str]) -> str:
    loaders = ",\n".join(
        f"    {json.dumps(expose)}: () => import(new URL({json.dumps('./' + chunk)}, import.meta.url).href)"
        for expose, chunk in module_map.items()
    )
    return f"""const moduleMap = {{
{loaders}
}};

export const name = {json.dumps(name)};

export function init() {{}}

export function get(request) {{
  const load = moduleMap[request];
  if (!load) {{
    return Promise.reject(new Error(`Module ${{request}} does not exist in container ${{name}}`));
  }}
  return load().then((module) => () => module);
}}

globalThis[{json.dumps(name)}] = {{ get, init }};
"""


class CommandBundler(Bundler):
    """Delegate bundling to an external command line."""

    name = "command"

    def __init__(self, command: str, env: Optional[Dict[str, str]] = None) -> None:
        self.command = command
        self.env = env or {}

    def bundle(self, request: BundleRequest) -> BuildStats:
        stats = BuildStats(dependencies=list(request.dependencies))
        cmd = self._render_command(request)
        stats.logs.append(f"Executing bundler command: {cmd}")
        logger.debug("Running bundler command: %s", cmd)
        proc = subprocess.run(
            cmd,
            shell=True,
            check=False,
            capture_output=True,
            text=True,
            cwd=request.context.cwd,
            env={**os.environ, **self.env, **_build_env(request)},
        )
        if proc.stdout:
            stats.logs.append(proc.stdout.strip())
        if proc.stderr:
            stats.warnings.append(proc.stderr.strip())
        if proc.returncode != 0:
            stats.errors.append(f"Bundler command failed (exit {proc.returncode})")
            return stats
        stats.assets.extend(
            sorted(path.relative_to(request.output_dir).as_posix() for path in request.output_dir.rglob("*") if path.is_file())
        )
        return stats

    def _render_command(self, request: BundleRequest) -> str:
        replacements = {
            "{entries}": shlex.quote(str(request.entries.entries_dir)),
            "{output}": shlex.quote(str(request.output_dir)),
            "{name}": shlex.quote(request.entries.name),
            "{filename}": shlex.quote(request.entries.filename),
        }
        command = self.command
        for placeholder, value in replacements.items():
            command = command.replace(placeholder, value)
        return command


def _build_env(request: BundleRequest) -> Dict[str, str]:
    return {
        "MFSU_MODE": request.context.mode.value,
        "MFSU_NAME": request.entries.name,
        "MFSU_REMOTE_ENTRY": request.entries.filename,
        "MFSU_ENTRIES_DIR": str(request.entries.entries_dir),
        "MFSU_OUTPUT_DIR": str(request.output_dir),
        "MFSU_PUBLIC_PATH": request.context.public_path,
    }


def build_bundler(
    name: str,
    *,
    command: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> Bundler:
    lowered = (name or "passthrough").lower()
    if lowered in ("passthrough", "default"):
        return PassthroughBundler()
    if lowered in ("cmd", "command"):
        if not command:
            raise ValueError("Command bundler requires a command")
        return CommandBundler(command=command, env=env)
    raise ValueError(f"Unknown bundler '{name}'")
