import sys
from unittest.mock import patch

import pytest

from csvmerge import stability
from csvmerge.stability import FileBusy, wait_for_stable_files

from .helpers import write_csv


def test_pre_delay_once_then_readable(inbox):
    paths = [str(write_csv(inbox, n, "x\n1\n")) for n in ("a.csv", "b.csv")]
    sleeps = []
    busy = wait_for_stable_files(paths, pre_delay_ms=1500, retries=3, backoff_ms=100, sleep=sleeps.append)
    assert busy == []
    assert sleeps == [1.5]


def test_no_files_no_delay():
    sleeps = []
    assert wait_for_stable_files([], pre_delay_ms=1000, sleep=sleeps.append) == []
    assert sleeps == []


def test_locked_file_retries_then_proceeds(inbox, caplog):
    path = str(write_csv(inbox, "a.csv", "x\n"))
    sleeps = []
    calls = []

    def always_busy(p):
        calls.append(p)
        raise FileBusy("locked")

    with patch.object(stability, "_open_exclusive", always_busy):
        busy = wait_for_stable_files([path], pre_delay_ms=0, retries=2, backoff_ms=100, sleep=sleeps.append)
    assert busy == [path]
    assert calls == [path] * 3
    assert sleeps == [0.1, 0.2]
    assert "proceeding anyway" in caplog.text


def test_file_released_during_retries(inbox):
    path = str(write_csv(inbox, "a.csv", "x\n"))
    outcomes = [FileBusy("locked"), None]

    def busy_once(p):
        outcome = outcomes.pop(0)
        if outcome:
            raise outcome

    with patch.object(stability, "_open_exclusive", busy_once):
        busy = wait_for_stable_files([path], retries=5, backoff_ms=0, sleep=lambda s: None)
    assert busy == []
    assert outcomes == []


def test_vanished_file_is_ignored(inbox):
    assert wait_for_stable_files([str(inbox / "gone.csv")], sleep=lambda s: None) == []


@pytest.mark.skipif(sys.platform == "win32", reason="flock is POSIX only")
def test_exclusive_flock_reports_file_busy(inbox):
    import fcntl
    path = str(write_csv(inbox, "a.csv", "x\n1\n"))
    with open(path, "ab") as writer:
        fcntl.flock(writer.fileno(), fcntl.LOCK_EX)
        busy = wait_for_stable_files([path], retries=1, backoff_ms=0, sleep=lambda s: None)
        assert busy == [path]
        fcntl.flock(writer.fileno(), fcntl.LOCK_UN)
        assert wait_for_stable_files([path], retries=1, backoff_ms=0, sleep=lambda s: None) == []
