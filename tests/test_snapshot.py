from unittest.mock import patch

from csvmerge.schemas import FileRecord, Snapshot
from csvmerge.snapshot import (
    csv_name_predicate,
    detect_changes,
    name_predicate,
    take_snapshot,
    timestamp_name_predicate,
)

from .helpers import write_csv


def test_timestamp_predicate():
    assert timestamp_name_predicate("20250101120000.csv")
    assert not timestamp_name_predicate("2025010112000.csv")
    assert not timestamp_name_predicate("20250101120000.CSV.bak")
    assert not timestamp_name_predicate("report_20250101120000.csv")
    assert name_predicate(True) is timestamp_name_predicate
    assert name_predicate(False) is csv_name_predicate


def test_snapshot_filters_and_sorts(inbox):
    write_csv(inbox, "b.csv", "x\n1\n")
    write_csv(inbox, "a.CSV", "x\n1\n")
    write_csv(inbox, "notes.txt", "hello")
    (inbox / "sub.csv").mkdir()
    snap = take_snapshot(str(inbox))
    assert snap.names() == ["a.CSV", "b.csv"]
    assert snap.files["b.csv"].size_bytes == 4
    assert snap.files["b.csv"].content_hash is None


def test_snapshot_with_timestamp_contract(inbox):
    write_csv(inbox, "20250101120000.csv", "x\n")
    write_csv(inbox, "F1.csv", "x\n")
    snap = take_snapshot(str(inbox), accept=timestamp_name_predicate)
    assert snap.names() == ["20250101120000.csv"]


def test_snapshot_excludes_master(inbox):
    write_csv(inbox, "F1.csv", "x\n")
    master = write_csv(inbox, "master.csv", "SourceFile\n")
    snap = take_snapshot(str(inbox), exclude=[str(master)])
    assert snap.names() == ["F1.csv"]


def test_missing_folder_gives_empty_snapshot(tmp_path, caplog):
    snap = take_snapshot(str(tmp_path / "nope"))
    assert snap.files == {}
    assert "not found" in caplog.text


def test_hashing_failure_uses_sentinel(inbox):
    write_csv(inbox, "F1.csv", "x\n")
    with patch("csvmerge.snapshot.file_sha256", side_effect=PermissionError("denied")):
        snap = take_snapshot(str(inbox), use_hashing=True)
    assert snap.files["F1.csv"].content_hash == ""


def test_hashing_records_digest(inbox):
    write_csv(inbox, "F1.csv", "x\n")
    snap = take_snapshot(str(inbox), use_hashing=True)
    assert len(snap.files["F1.csv"].content_hash) == 64


def _snap(*records):
    return Snapshot(folder="in", files={r.name: r for r in records})


def test_detect_added_modified_removed():
    old = _snap(FileRecord(name="a.csv", modified_time=1, size_bytes=10),
                FileRecord(name="b.csv", modified_time=1, size_bytes=10),
                FileRecord(name="c.csv", modified_time=1, size_bytes=10))
    new = _snap(FileRecord(name="a.csv", modified_time=1, size_bytes=10),
                FileRecord(name="b.csv", modified_time=2, size_bytes=10),
                FileRecord(name="d.csv", modified_time=1, size_bytes=5))
    changes = detect_changes(old, new)
    assert changes.added == ("d.csv",)
    assert changes.modified == ("b.csv",)
    assert changes.removed == ("c.csv",)
    assert changes.has_changes


def test_size_change_is_modification():
    old = _snap(FileRecord(name="a.csv", modified_time=1, size_bytes=10))
    new = _snap(FileRecord(name="a.csv", modified_time=1, size_bytes=11))
    assert detect_changes(old, new).modified == ("a.csv",)


def test_hash_catches_same_size_same_mtime_edit():
    old = _snap(FileRecord(name="a.csv", modified_time=1, size_bytes=10, content_hash="aa"))
    new = _snap(FileRecord(name="a.csv", modified_time=1, size_bytes=10, content_hash="bb"))
    assert detect_changes(old, new).modified == ("a.csv",)


def test_unknown_hash_is_not_evidence():
    old = _snap(FileRecord(name="a.csv", modified_time=1, size_bytes=10, content_hash=""))
    new = _snap(FileRecord(name="a.csv", modified_time=1, size_bytes=10, content_hash="bb"))
    assert not detect_changes(old, new).has_changes


def test_no_changes():
    rec = FileRecord(name="a.csv", modified_time=1, size_bytes=10)
    assert not detect_changes(_snap(rec), _snap(rec)).has_changes


def test_predicate_hides_names():
    old = _snap()
    new = _snap(FileRecord(name="junk.csv", modified_time=1, size_bytes=1),
                FileRecord(name="20250101120000.csv", modified_time=1, size_bytes=1))
    changes = detect_changes(old, new, timestamp_name_predicate)
    assert changes.added == ("20250101120000.csv",)
