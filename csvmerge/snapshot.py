## csvmerge/snapshot.py

from __future__ import annotations
import os, re
from typing import Callable, Iterable, Optional

from .schemas import ChangeSet, FileRecord, Snapshot
from .utils import FolderAccessError, file_sha256, logger

log = logger.getChild("snapshot")

TIMESTAMP_NAME = re.compile(r"^\d{14}\.csv$")

NamePredicate = Callable[[str], bool]


def timestamp_name_predicate(name: str) -> bool:
    return bool(TIMESTAMP_NAME.match(name))


def csv_name_predicate(name: str) -> bool:
    return name.lower().endswith(".csv")


def name_predicate(validate_filename_format: bool) -> NamePredicate:
    return timestamp_name_predicate if validate_filename_format else csv_name_predicate


def _hash_or_sentinel(path: str) -> str:
    try:
        return file_sha256(path)
    except OSError as e:
        log.warning(f"Hashing failed for {path}: {e}")
        return ""


def _list_folder(folder: str):
    if not os.path.isdir(folder):
        raise FolderAccessError(f"Input folder not found: {folder}")
    try:
        with os.scandir(folder) as it:
            return sorted((e for e in it if e.is_file()), key=lambda e: e.name)
    except OSError as e:
        raise FolderAccessError(f"Input folder unreadable: {folder}: {e}") from e


def take_snapshot(folder: str, use_hashing: bool = False,
                  accept: NamePredicate = csv_name_predicate,
                  exclude: Iterable[str] = ()) -> Snapshot:
    """Record one FileRecord per accepted file; never raises for folder problems."""
    skip = {os.path.abspath(p) for p in exclude}
    try:
        entries = _list_folder(folder)
    except FolderAccessError as e:
        log.warning(str(e))
        return Snapshot(folder=folder)

    files = {}
    for entry in entries:
        if not accept(entry.name) or os.path.abspath(entry.path) in skip:
            continue
        try:
            st = entry.stat()
        except OSError as e:
            # vanished between listing and stat
            log.debug(f"Skipping {entry.name}: {e}")
            continue
        files[entry.name] = FileRecord(
            name=entry.name,
            modified_time=st.st_mtime,
            size_bytes=st.st_size,
            content_hash=_hash_or_sentinel(entry.path) if use_hashing else None,
        )
    return Snapshot(folder=folder, files=files)


def _differs(old: FileRecord, new: FileRecord) -> bool:
    if old.size_bytes != new.size_bytes or old.modified_time != new.modified_time:
        return True
    # hash is extra evidence, only when both sides have a usable value
    if old.content_hash and new.content_hash:
        return old.content_hash != new.content_hash
    return False


def detect_changes(old: Snapshot, new: Snapshot,
                   accept: Optional[NamePredicate] = None) -> ChangeSet:
    ok = accept or (lambda _name: True)
    added, modified = [], []
    for name, rec in new.files.items():
        if not ok(name):
            continue
        prev = old.files.get(name)
        if prev is None:
            added.append(name)
        elif _differs(prev, rec):
            modified.append(name)
    removed = [n for n in old.files if n not in new.files and ok(n)]
    return ChangeSet(added=tuple(added), modified=tuple(modified), removed=tuple(removed))
