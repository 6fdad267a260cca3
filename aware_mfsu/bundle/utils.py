"""Shared helpers used by bundle tooling."""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Sequence


def compute_fingerprint(specifiers: Iterable[str]) -> str:
    """Return an order-independent digest of a dependency set."""

    normalized = sorted({specifier.strip() for specifier in specifiers if specifier.strip()})
    return hashlib.sha256("\n".join(normalized).encode("utf-8")).hexdigest()


def compute_sha256(path: Path) -> str:
    """Return the SHA-256 checksum for a file."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def write_text(path: Path, content: str, *, newline: Optional[str] = None) -> None:
    """Write text to file ensuring parent directories exist."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8", newline=newline)


def write_text_atomic(path: Path, content: str) -> None:
    """Write text through a sibling temp file so readers never see a partial file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def replace_entry(source: Path, target: Path) -> None:
    """Move ``source`` over ``target``; files are swapped with a single rename."""

    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    elif source.is_dir() and (target.exists() or target.is_symlink()):
        target.unlink()
    os.replace(source, target)


def copy_tree(source: Path, destination: Path, *, exclude: Sequence[str] = ()) -> list[Path]:
    """Copy the contents of ``source`` into ``destination``, merging with existing files."""

    destination.mkdir(parents=True, exist_ok=True)
    copied: list[Path] = []
    for entry in sorted(source.iterdir()):
        if entry.name in exclude:
            continue
        target = destination / entry.name
        if entry.is_dir():
            shutil.copytree(entry, target, dirs_exist_ok=True)
        else:
            shutil.copy2(entry, target)
        copied.append(target)
    return copied


def clear_directory(path: Path, *, keep: Sequence[str] = ()) -> None:
    """Remove everything inside ``path`` except the names listed in ``keep``."""

    if not path.exists():
        return
    for entry in path.iterdir():
        if entry.name in keep:
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
