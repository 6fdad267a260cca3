"""Generate the re-export modules a remote bundle exposes."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from ..config import MF_VA_PREFIX
from .utils import write_text

EXPOSES_FILENAME = "exposes.json"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(slots=True)
class EntryManifest:
    """Description of the generated entry modules handed to a bundler."""

    name: str
    filename: str
    entries_dir: Path
    exposes: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "filename": self.filename,
            "exposes": dict(self.exposes),
        }


def entry_basename(specifier: str) -> str:
    """Return a filesystem-safe module name for a dependency specifier."""

    safe = _UNSAFE_CHARS.sub("_", specifier.replace("/", "__")).strip("_.") or "module"
    return f"{MF_VA_PREFIX}{safe}"


def render_entry(specifier: str, members: Optional[Sequence[str]] = None) -> str:
    """Render a module that re-exports ``specifier`` under the remote namespace."""

    quoted = json.dumps(specifier)
    lines = [
        f"import * as __mfsu_namespace from {quoted};",
        f"export * from {quoted};",
    ]
    if members:
        names = ", ".join(sorted(set(members)))
        lines.append(f"export {{ {names} }} from {quoted};")
    lines.append("export default (__mfsu_namespace.default ?? __mfsu_namespace);")
    return "\n".join(lines) + "\n"


def write_entries(
    specifiers: Sequence[str],
    entries_dir: Path,
    *,
    name: str,
    filename: str,
    export_all_members: Optional[Mapping[str, List[str]]] = None,
) -> EntryManifest:
    """Write one entry module per specifier plus the exposes manifest."""

    manifest = EntryManifest(name=name, filename=filename, entries_dir=entries_dir)
    members = export_all_members or {}
    used: set[str] = set()
    for specifier in sorted(set(specifiers)):
        basename = entry_basename(specifier)
        if basename in used:
            digest = hashlib.sha256(specifier.encode("utf-8")).hexdigest()[:8]
            basename = f"{basename}_{digest}"
        used.add(basename)
        write_text(entries_dir / f"{basename}.js", render_entry(specifier, members.get(specifier)))
        manifest.exposes[f"./{specifier}"] = f"./{basename}.js"

    write_text(entries_dir / EXPOSES_FILENAME, json.dumps(manifest.to_dict(), indent=2) + "\n")
    return manifest
