## csvmerge/unify.py

from __future__ import annotations
import hashlib, json
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .config import PROVENANCE_COLUMN
from .schemas import UnifiedSchema

MasterRow = Dict[str, str]


def is_artifact(column: str) -> bool:
    return not str(column).strip()


def disambiguate_headers(raw: Sequence[object]) -> List[str]:
    """Trim header names; repeats become Name_2, Name_3, ... in encounter order."""
    out: List[str] = []
    used = set()
    counts: Dict[str, int] = {}
    for pos, value in enumerate(raw, start=1):
        name = "" if value is None or (isinstance(value, float) and pd.isna(value)) else str(value).strip()
        if not name:
            name = f"Column{pos}"
        counts[name] = counts.get(name, 0) + 1
        candidate = name if counts[name] == 1 else f"{name}_{counts[name]}"
        # a literal "Name_2" header earlier in the file would otherwise collide
        while candidate in used:
            counts[name] += 1
            candidate = f"{name}_{counts[name]}"
        used.add(candidate)
        out.append(candidate)
    return out


def unify_schema(existing: Iterable[str], new_columns: Iterable[str]) -> UnifiedSchema:
    cols: List[str] = [PROVENANCE_COLUMN]
    seen = {PROVENANCE_COLUMN}
    for group in (existing, new_columns):
        for c in group:
            if c in seen or is_artifact(c):
                continue
            seen.add(c)
            cols.append(c)
    return UnifiedSchema(columns=tuple(cols))


def normalize_row(row: Optional[Mapping[str, object]], schema: UnifiedSchema, source: str) -> MasterRow:
    row = row or {}
    out: MasterRow = {}
    for c in schema.columns:
        v = row.get(c)
        out[c] = "" if v is None or (isinstance(v, float) and pd.isna(v)) else str(v)
    out[PROVENANCE_COLUMN] = source
    return out


def normalize_frame(df: pd.DataFrame, schema: UnifiedSchema, source: Optional[str] = None) -> pd.DataFrame:
    """Vectorized normalize_row; source=None keeps the frame's own provenance values."""
    out = df.reindex(columns=list(schema.columns), fill_value="").fillna("").astype(str)
    if source is not None:
        out[PROVENANCE_COLUMN] = source
    return out


def row_signature(row: Mapping[str, str], excluded: Iterable[str] = (PROVENANCE_COLUMN,)) -> str:
    excluded = set(excluded)
    pairs = sorted((k, "" if v is None else str(v)) for k, v in row.items() if k not in excluded)
    return json.dumps(pairs, ensure_ascii=False, separators=(",", ":"))


class DuplicateFilter:
    """First-wins filter over row signatures. Keeps only digests in memory."""

    def __init__(self, excluded: Iterable[str] = (PROVENANCE_COLUMN,)):
        self.excluded = frozenset(excluded) | {PROVENANCE_COLUMN}
        self._seen = set()
        self.dropped = 0

    def _digest(self, row: Mapping[str, str]) -> bytes:
        return hashlib.sha1(row_signature(row, self.excluded).encode("utf-8")).digest()

    def __len__(self):
        return len(self._seen)

    def seen(self, row: Mapping[str, str]) -> bool:
        return self._digest(row) in self._seen

    def remember(self, row: Mapping[str, str]):
        self._seen.add(self._digest(row))

    def add(self, row: Mapping[str, str]) -> bool:
        d = self._digest(row)
        if d in self._seen:
            self.dropped += 1
            return False
        self._seen.add(d)
        return True

    def filter(self, rows: Iterable[Mapping[str, str]]) -> Iterator[Mapping[str, str]]:
        for row in rows:
            if self.add(row):
                yield row

    def filter_frame(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
        if df.empty:
            return df, 0
        keep = [self.add(r) for r in df.to_dict(orient="records")]
        kept = df[pd.Series(keep, index=df.index)]
        return kept, len(df) - len(kept)
