from __future__ import annotations
import os, sys, traceback
from datetime import datetime, timedelta
from pathlib import Path

from csvmerge.config import load_config
from csvmerge.master import analyze_master
from csvmerge.snapshot import name_predicate, take_snapshot
from csvmerge.utils import ConfigurationError


def human(n: float) -> str:
    return f"{n:,.0f}"


def recent_files_per_minute(snapshot, minutes: int = 5) -> float:
    cutoff = (datetime.now() - timedelta(minutes=minutes)).timestamp()
    hits = sum(1 for rec in snapshot.files.values() if rec.modified_time >= cutoff)
    return hits / max(minutes, 1)


def tail(path: Path, lines: int = 20) -> list[str]:
    if not path.exists():
        return ["<log file not found>"]
    try:
        with open(path, "rb") as f:
            f.seek(0, os.SEEK_END)
            size = f.tell()
            block = 1024
            data = b""
            while size > 0 and data.count(b"\n") <= lines:
                step = min(block, size)
                f.seek(size - step)
                data = f.read(step) + data
                size -= step
        txt = data.decode("utf-8", errors="replace").splitlines()[-lines:]
        return txt if txt else ["<empty>"]
    except OSError:
        return [traceback.format_exc()]


def report(cfg) -> list[str]:
    out = []
    snap = take_snapshot(cfg.input_folder, accept=name_predicate(cfg.validate_filename_format),
                         exclude=[cfg.master_path])
    state = analyze_master(cfg.master_path, cfg.read_chunk_rows)
    unmerged = [n for n in snap.names() if n not in state.processed]

    out.append(f"Input folder: {cfg.input_folder}")
    out.append(f"  Accepted files present: {human(len(snap.files))}")
    out.append(f"  Not in master:          {human(len(unmerged))}")
    out.append(f"  Arrival rate (5m):      {recent_files_per_minute(snap):.2f} files/min")

    out.append(f"\nMaster: {cfg.master_path}")
    if not state.exists:
        out.append("  not created yet")
    else:
        out.append(f"  Rows:            {human(state.row_count)}")
        out.append(f"  Columns:         {human(len(state.columns))}")
        out.append(f"  Source files:    {human(len(state.processed))}")
    return out


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    try:
        cfg = load_config(args[0] if args else None)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 2

    print("="*70)
    print("CSV Merge Watcher — Health Report")
    print(f"As of: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70)
    print()
    for line in report(cfg):
        print(line)

    log_path = Path(cfg.log_dir) / "merge.log"
    print(f"\nLog tail: {log_path}")
    for line in tail(log_path, lines=20):
        print("  " + line)

    print("\nDone.\n")
    return 0

if __name__ == "__main__":
    sys.exit(main())
