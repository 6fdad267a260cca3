"""Pydantic models describing the persisted dependency snapshot."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..bundle.utils import compute_fingerprint

SNAPSHOT_VERSION = 1


class DependencyRecord(BaseModel):
    specifier: str
    source_file: Optional[str] = Field(default=None, description="First application module that imported the specifier.")

    model_config = ConfigDict(extra="ignore", frozen=True)


class Snapshot(BaseModel):
    version: int = SNAPSHOT_VERSION
    specifiers: List[DependencyRecord] = Field(default_factory=list)
    fingerprint: str = Field(default_factory=lambda: compute_fingerprint([]))
    built_at: Optional[datetime] = None
    mode: Optional[str] = None

    # Unknown keys from newer writers are dropped rather than rejected.
    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_records(
        cls,
        records: Iterable[DependencyRecord],
        *,
        built_at: Optional[datetime] = None,
        mode: Optional[str] = None,
    ) -> "Snapshot":
        ordered = sorted(records, key=lambda record: record.specifier)
        return cls(
            specifiers=ordered,
            fingerprint=compute_fingerprint(record.specifier for record in ordered),
            built_at=built_at,
            mode=mode,
        )

    def as_mapping(self) -> Dict[str, DependencyRecord]:
        return {record.specifier: record for record in self.specifiers}

    def names(self) -> List[str]:
        return [record.specifier for record in self.specifiers]
