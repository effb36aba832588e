"""
csvmerge package for the incremental CSV merge watcher:
- watcher: polling loop, retained snapshot, per-cycle failure handling
- pipeline: analyze master → pick files → removals → parse → unify/dedup → persist
- snapshot: folder snapshots and change detection
- stability: wait for files still held open by a writer
- unify: schema union, row normalization, duplicate filter
- master: streaming reads/writes against the master CSV
- config: immutable settings from config.yaml / env
- alerts: email/slack on failures
"""

__all__ = [
    "watcher",
    "pipeline",
    "snapshot",
    "stability",
    "unify",
    "master",
    "config",
    "alerts",
    "schemas",
    "utils",
]

__version__ = "0.2.0"

# Load environment variables early so CSVMERGE_* overrides and SMTP/Slack settings are visible
from dotenv import load_dotenv

load_dotenv()
