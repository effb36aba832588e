## csvmerge/master.py

from __future__ import annotations
import os, tempfile
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import pandas as pd

from .config import PROVENANCE_COLUMN
from .schemas import MasterState
from .utils import FileLockError, logger

log = logger.getChild("master")

LINE_TERMINATOR = "\r\n"
READ_OPTS = dict(dtype=str, keep_default_na=False, na_filter=False, encoding="utf-8-sig")


def to_csv_text(df: pd.DataFrame, header: bool) -> str:
    return df.to_csv(None, index=False, header=header, lineterminator=LINE_TERMINATOR)


def read_header(path: str) -> Tuple[str, ...]:
    if not os.path.exists(path) or os.path.getsize(path) == 0:
        return ()
    try:
        head = pd.read_csv(path, header=None, nrows=1, **READ_OPTS)
    except pd.errors.EmptyDataError:
        return ()
    if head.empty:
        return ()
    return tuple(str(c) for c in head.iloc[0].tolist())


def iter_chunks(path: str, chunk_rows: int, usecols: Optional[Sequence] = None) -> Iterator[pd.DataFrame]:
    columns = read_header(path)
    if not columns:
        return
    reader = pd.read_csv(path, header=0, names=list(columns), usecols=usecols,
                         chunksize=chunk_rows, **READ_OPTS)
    with reader:
        for chunk in reader:
            yield chunk.fillna("")


def analyze_master(path: str, chunk_rows: int = 50_000) -> MasterState:
    """Schema, row count and processed-file registry, in one streaming pass."""
    if not os.path.exists(path):
        return MasterState()
    columns = read_header(path)
    if not columns:
        return MasterState(exists=True)
    use = [PROVENANCE_COLUMN] if PROVENANCE_COLUMN in columns else [columns[0]]
    rows, processed = 0, set()
    for chunk in iter_chunks(path, chunk_rows, usecols=use):
        rows += len(chunk)
        if PROVENANCE_COLUMN in chunk:
            processed.update(v for v in chunk[PROVENANCE_COLUMN].unique() if v)
    return MasterState(exists=True, columns=columns, row_count=rows, processed=frozenset(processed))


def _ends_with_newline(path: str) -> bool:
    with open(path, "rb") as f:
        f.seek(0, os.SEEK_END)
        if f.tell() == 0:
            return True
        f.seek(-1, os.SEEK_END)
        return f.read(1) == b"\n"


def append_rows(path: str, df: pd.DataFrame):
    if df.empty:
        return
    text = to_csv_text(df, header=False)
    size = None
    try:
        if not _ends_with_newline(path):
            text = LINE_TERMINATOR + text
        size = os.path.getsize(path)
        with open(path, "a", newline="", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        if size is not None:
            _cut_back(path, size)
        raise FileLockError(f"Cannot append to master {path}: {e}") from e


def _cut_back(path: str, size: int):
    # a failed write may have left part of a row behind
    try:
        if os.path.getsize(path) > size:
            os.truncate(path, size)
    except OSError as e:
        log.error(f"Could not restore {path} to {size} bytes: {e}")


def rewrite_master(path: str, columns: Sequence[str], frames: Iterable[pd.DataFrame]) -> int:
    """Stream frames into a sibling temp file under `columns`, then atomically replace the master."""
    folder = os.path.dirname(os.path.abspath(path))
    os.makedirs(folder, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".merge-", suffix=".csv.tmp", dir=folder)
    written = 0
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as out:
            out.write(to_csv_text(pd.DataFrame(columns=list(columns)), header=True))
            for frame in frames:
                if frame.empty:
                    continue
                out.write(to_csv_text(frame.reindex(columns=list(columns), fill_value=""), header=False))
                written += len(frame)
        try:
            os.replace(tmp, path)
        except OSError as e:
            raise FileLockError(f"Cannot replace master {path}: {e}") from e
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
    log.debug(f"Rewrote {path} with {written} rows x {len(columns)} columns")
    return written
