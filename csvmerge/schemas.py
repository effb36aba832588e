## csvmerge/schemas.py

from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, FrozenSet, List, Optional, Tuple
from datetime import datetime

from .config import PROVENANCE_COLUMN


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class FileRecord(Frozen):
    name: str
    modified_time: float
    size_bytes: int
    content_hash: Optional[str] = Field(default=None, description="'' when hashing failed")


class Snapshot(Frozen):
    folder: str
    files: Dict[str, FileRecord] = Field(default_factory=dict)
    taken_at: datetime = Field(default_factory=datetime.now)

    def names(self) -> List[str]:
        return list(self.files)

    def __contains__(self, name: str) -> bool:
        return name in self.files


class ChangeSet(Frozen):
    added: Tuple[str, ...] = ()
    modified: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.removed)


class UnifiedSchema(Frozen):
    columns: Tuple[str, ...] = (PROVENANCE_COLUMN,)

    @field_validator("columns")
    @classmethod
    def _check(cls, v: Tuple[str, ...]):
        if not v or v[0] != PROVENANCE_COLUMN:
            raise ValueError(f"first column must be {PROVENANCE_COLUMN}")
        if len(set(v)) != len(v):
            raise ValueError("column names must be unique")
        return v

    def __contains__(self, column: str) -> bool:
        return column in self.columns

    def __len__(self) -> int:
        return len(self.columns)

    def grew_from(self, existing) -> bool:
        return list(self.columns) != list(existing)


class FileResult(Frozen):
    name: str
    ok: bool = True
    rows: int = 0
    columns: Tuple[str, ...] = ()
    reason: str = ""


class MasterState(Frozen):
    exists: bool = False
    columns: Tuple[str, ...] = ()
    row_count: int = 0
    processed: FrozenSet[str] = frozenset()


class MergeResult(Frozen):
    ok: bool = True
    processed_files: Tuple[str, ...] = ()
    skipped_files: Tuple[FileResult, ...] = ()
    pending_files: Tuple[str, ...] = Field(default=(), description="files to retry after a failed persist")
    rows_added: int = 0
    rows_removed: int = 0
    duplicates_dropped: int = 0
    columns: Tuple[str, ...] = ()
    reason: str = ""


class CycleResult(Frozen):
    ran_merge: bool = False
    forced: bool = False
    merge: Optional[MergeResult] = None
    error: str = ""
