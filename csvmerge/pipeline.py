## csvmerge/pipeline.py

from __future__ import annotations
import os
from typing import Iterable, Iterator, List, Optional, Set, Tuple

import pandas as pd

from .config import PROVENANCE_COLUMN, MergeConfig
from .master import READ_OPTS, analyze_master, append_rows, iter_chunks, rewrite_master
from .schemas import ChangeSet, FileResult, MasterState, MergeResult, UnifiedSchema
from .snapshot import name_predicate, take_snapshot
from .unify import DuplicateFilter, disambiguate_headers, normalize_frame, unify_schema
from .utils import FileLockError, FileParseError, logger

log = logger.getChild("pipeline")

FALLBACK_ENCODING = "latin-1"


def _read_raw(path: str) -> pd.DataFrame:
    opts = dict(READ_OPTS, header=None, skip_blank_lines=True)
    try:
        return pd.read_csv(path, **opts)
    except UnicodeDecodeError:
        log.warning(f"{path} is not UTF-8, retrying as {FALLBACK_ENCODING}")
        return pd.read_csv(path, **dict(opts, encoding=FALLBACK_ENCODING))


def parse_source(path: str) -> pd.DataFrame:
    """Source CSV as text columns. Empty or header-less files give an empty frame."""
    try:
        raw = _read_raw(path)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError, OSError) as e:
        raise FileParseError(f"{os.path.basename(path)}: {e}") from e
    if raw.empty:
        return pd.DataFrame()
    header = disambiguate_headers(raw.iloc[0].tolist())
    data = raw.iloc[1:].reset_index(drop=True).fillna("")
    data.columns = header
    return data


def read_source(path: str) -> Tuple[FileResult, pd.DataFrame]:
    name = os.path.basename(path)
    try:
        df = parse_source(path)
    except FileParseError as e:
        log.error(f"Skipping unparseable file {name}: {e}")
        return FileResult(name=name, ok=False, reason=str(e)), pd.DataFrame()
    if df.empty and not len(df.columns):
        log.info(f"{name} is empty or has no header; recording zero rows")
        return FileResult(name=name, reason="empty"), df
    return FileResult(name=name, rows=len(df), columns=tuple(df.columns)), df


class MergeEngine:
    """One merge run per detected change against {output_folder}/{output_base_name}.csv."""

    def __init__(self, cfg: MergeConfig):
        self.cfg = cfg
        self.accept = name_predicate(cfg.validate_filename_format)

    @property
    def master_path(self) -> str:
        return self.cfg.master_path

    def list_inputs(self) -> List[str]:
        snap = take_snapshot(self.cfg.input_folder, use_hashing=False, accept=self.accept,
                             exclude=[self.master_path])
        return snap.names()

    def determine_files(self, state: MasterState, changes: Optional[ChangeSet],
                        pending: Iterable[str] = ()) -> Tuple[List[str], Set[str]]:
        names = self.list_inputs()
        if changes is None:
            todo = [n for n in names if n not in state.processed]
        else:
            wanted = set(changes.added) | set(changes.modified) | set(pending)
            todo = [n for n in names if n in wanted]
        # a file is replaced as a unit, so any rows it already has go first
        removals = {n for n in todo if n in state.processed}
        if changes is not None and self.cfg.removed_file_policy == "purge":
            removals |= {n for n in changes.removed if n in state.processed}
        return todo, removals

    def run(self, changes: Optional[ChangeSet] = None, pending: Iterable[str] = ()) -> MergeResult:
        master = self.master_path
        state = analyze_master(master, self.cfg.read_chunk_rows)
        log.debug(f"Master {master}: exists={state.exists} columns={len(state.columns)} "
                  f"rows={state.row_count} files={len(state.processed)}")

        todo, removals = self.determine_files(state, changes, pending)
        if not todo and not removals:
            log.debug("Nothing to merge")
            return MergeResult(columns=state.columns)

        results, frames, new_columns = [], [], []
        for name in todo:
            res, df = read_source(os.path.join(self.cfg.input_folder, name))
            results.append(res)
            if res.ok:
                frames.append((name, df))
                new_columns.extend(df.columns)

        schema = unify_schema(state.columns, new_columns)
        normalized = [normalize_frame(df, schema, source=name) for name, df in frames]

        try:
            added, removed, dropped = self._persist(state, schema, normalized, removals)
        except (FileLockError, OSError) as e:
            log.error(f"Persist aborted, master left unchanged: {e}")
            return MergeResult(ok=False, columns=state.columns, reason=str(e), pending_files=tuple(todo),
                               skipped_files=tuple(r for r in results if not r.ok))

        processed = tuple(r.name for r in results if r.ok)
        for r in results:
            if r.ok:
                log.info(f"Processed OK: {r.name} -> {r.rows} records")
        log.info(f"Merge done: +{added} rows, -{removed} rows, {dropped} duplicates dropped, "
                 f"{len(schema)} columns")
        return MergeResult(
            processed_files=processed,
            skipped_files=tuple(r for r in results if not r.ok),
            rows_added=added,
            rows_removed=removed,
            duplicates_dropped=dropped,
            columns=schema.columns,
        )

    def _existing(self, schema: UnifiedSchema, removals: Set[str]) -> Iterator[pd.DataFrame]:
        for chunk in iter_chunks(self.master_path, self.cfg.read_chunk_rows):
            if removals and PROVENANCE_COLUMN in chunk:
                chunk = chunk[~chunk[PROVENANCE_COLUMN].isin(removals)]
            yield normalize_frame(chunk, schema)

    def _persist(self, state: MasterState, schema: UnifiedSchema, frames: List[pd.DataFrame],
                 removals: Set[str]) -> Tuple[int, int, int]:
        grew = schema.grew_from(state.columns)
        has_new = any(not f.empty for f in frames)

        dedup = DuplicateFilter(self.cfg.dedupe_excluded)
        kept_rows = 0
        if has_new or removals:
            for chunk in self._existing(schema, removals):
                kept_rows += len(chunk)
                if has_new:
                    for row in chunk.to_dict(orient="records"):
                        dedup.remember(row)
        removed = state.row_count - kept_rows if (has_new or removals) else 0

        fresh, dropped = [], 0
        for f in frames:
            kept, n = dedup.filter_frame(f)
            dropped += n
            if not kept.empty:
                fresh.append(kept)
        added = sum(len(f) for f in fresh)

        if not added and not removed and not grew:
            return 0, 0, dropped

        if grew or removed or not state.columns:
            rewrite_master(self.master_path, schema.columns,
                           _chain(self._existing(schema, removals), fresh))
        else:
            append_rows(self.master_path, pd.concat(fresh, ignore_index=True))
        return added, removed, dropped


def _chain(first: Iterable[pd.DataFrame], rest: Iterable[pd.DataFrame]) -> Iterator[pd.DataFrame]:
    yield from first
    yield from rest
