import os
from pathlib import Path


def write_csv(folder: Path, name: str, text: str, mtime: float = None) -> Path:
    p = folder / name
    p.write_text(text, encoding="utf-8", newline="")
    if mtime is not None:
        os.utime(p, (mtime, mtime))
    return p


def read_master(cfg) -> str:
    return Path(cfg.master_path).read_bytes().decode("utf-8")
