"""Decide which transformed imports count as prebundled dependencies."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

NODE_BUILTIN_MODULES = frozenset(
    {
        "assert",
        "async_hooks",
        "buffer",
        "child_process",
        "cluster",
        "console",
        "constants",
        "crypto",
        "dgram",
        "dns",
        "domain",
        "events",
        "fs",
        "http",
        "http2",
        "https",
        "inspector",
        "module",
        "net",
        "os",
        "path",
        "perf_hooks",
        "process",
        "punycode",
        "querystring",
        "readline",
        "repl",
        "stream",
        "string_decoder",
        "sys",
        "timers",
        "tls",
        "trace_events",
        "tty",
        "url",
        "util",
        "v8",
        "vm",
        "worker_threads",
        "zlib",
    }
)


def is_relative(specifier: str) -> bool:
    return specifier.startswith(".") or specifier.startswith("/")


def is_node_builtin(specifier: str) -> bool:
    if specifier.startswith("node:"):
        return True
    return specifier.split("/", 1)[0] in NODE_BUILTIN_MODULES


def should_record(specifier: str, *, is_match: bool, ignore_node_builtins: bool = False) -> bool:
    """Return True when a transformed import should join the pending dependency set."""

    if not is_match or not specifier or is_relative(specifier):
        return False
    if ignore_node_builtins and is_node_builtin(specifier):
        return False
    return True


def display_source(source_file: str, source_root: Optional[Path]) -> str:
    """Shorten files under the application source root to the ``@/`` alias."""

    if source_root is None:
        return source_file
    try:
        relative = Path(source_file).resolve().relative_to(source_root.resolve())
    except ValueError:
        return source_file
    return f"@/{relative.as_posix()}"
