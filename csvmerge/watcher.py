## csvmerge/watcher.py

from __future__ import annotations
import argparse, os, sys, time
from typing import Any, Callable, Iterable, List, Optional

from .config import MergeConfig, load_config
from .pipeline import MergeEngine
from .schemas import ChangeSet, CycleResult, MergeResult, Snapshot
from .snapshot import detect_changes, name_predicate, take_snapshot
from .stability import wait_for_stable_files
from .utils import ConfigurationError, ensure_dirs, logger, setup_logging
from . import alerts

log = logger.getChild("watcher")

class Watcher:
    """Polls the input folder and runs one merge per detected change."""

    def __init__(self, cfg: MergeConfig, engine: Optional[MergeEngine] = None,
                 sleep: Callable[[float], Any] = time.sleep,
                 notify: Optional[Callable[[str, str], None]] = None):
        self.cfg = cfg
        self.accept = name_predicate(cfg.validate_filename_format)
        self.engine = engine or MergeEngine(cfg)
        self.sleep = sleep
        if notify is None and cfg.alerts_enabled:
            notify = alerts.notify_failure
        self.notify = notify
        self.previous: Optional[Snapshot] = None
        self.pending: set = set()

    def snapshot(self) -> Snapshot:
        return take_snapshot(self.cfg.input_folder, self.cfg.use_file_hashing, self.accept,
                             exclude=[self.cfg.master_path])

    def _stabilize(self, names: Iterable[str]):
        paths = [os.path.join(self.cfg.input_folder, n) for n in names]
        wait_for_stable_files(paths, self.cfg.wait_for_stable_file_ms, self.cfg.max_polling_retries,
                              self.cfg.retry_backoff_ms, sleep=self.sleep)

    def _merge(self, changes: Optional[ChangeSet], names: List[str]) -> MergeResult:
        if names:
            self._stabilize(names)
        result = self.engine.run(changes, pending=self.pending)
        if result.ok:
            self.pending.clear()
        else:
            # retried on the next detected change, see MergeEngine.determine_files
            self.pending |= set(result.pending_files)
            self._alert("CSV merge persist failed", result.reason)
        self.previous = self.snapshot()
        return result

    def _alert(self, subject: str, body: str):
        if not self.notify:
            return
        try:
            self.notify(subject, f"Master: {self.cfg.master_path}\n{body}")
        except Exception as e:
            log.warning(f"Alert hook failed: {e}")

    def start(self) -> CycleResult:
        """Initial reconcile: merge every accepted file the master does not list yet."""
        log.info(f"Watching {self.cfg.input_folder} -> {self.cfg.master_path}")
        current = self.snapshot()
        try:
            result = self._merge(None, current.names())
        except Exception as e:
            # previous stays None so the next cycle reconciles the whole folder again
            log.exception(f"Initial merge failed: {e}")
            self._alert("CSV merge cycle failed", repr(e))
            return CycleResult(error=repr(e))
        return CycleResult(ran_merge=True, forced=True, merge=result)

    def run_once(self) -> CycleResult:
        try:
            if self.previous is None:
                return self.start()
            current = self.snapshot()
            changes = detect_changes(self.previous, current, self.accept)
            forced = not os.path.exists(self.cfg.master_path)
            if not changes.has_changes and not forced:
                return CycleResult()
            if forced:
                log.info("Master file missing, reprocessing all input files")
                result = self._merge(None, current.names())
            else:
                log.info(f"Changes detected: {len(changes.added)} added, {len(changes.modified)} modified, "
                         f"{len(changes.removed)} removed")
                for name in changes.removed:
                    log.info(f"Input removed: {name} (policy: {self.cfg.removed_file_policy})")
                result = self._merge(changes, list(changes.added) + list(changes.modified)
                                     + sorted(self.pending - set(changes.added) - set(changes.modified)))
            return CycleResult(ran_merge=True, forced=forced, merge=result)
        except Exception as e:
            log.exception(f"Cycle failed, continuing: {e}")
            self._alert("CSV merge cycle failed", repr(e))
            return CycleResult(error=repr(e))

    def run(self, max_cycles: Optional[int] = None):
        cycles = 0
        try:
            self.run_once()
            while max_cycles is None or cycles < max_cycles:
                self.sleep(self.cfg.polling_interval_seconds)
                self.run_once()
                cycles += 1
        except KeyboardInterrupt:
            log.info("Stopped")


def run(cfg_path: Optional[str] = None, once: bool = False) -> int:
    try:
        cfg = load_config(cfg_path)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    setup_logging(cfg.log_dir, cfg.log_level)
    ensure_dirs([cfg.output_folder])
    watcher = Watcher(cfg)
    if once:
        res = watcher.start()
        return 0 if not res.error and (res.merge is None or res.merge.ok) else 1
    watcher.run()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="csvmerge-watch", description="Merge CSV drops into one master file")
    parser.add_argument("config", nargs="?", default=None, help="Path to config.yaml (defaults and CSVMERGE_* env vars otherwise).")
    parser.add_argument("--once", action="store_true", help="Reconcile once and exit (for Cron/CI).")
    args = parser.parse_args(argv)
    return run(args.config, once=args.once)


if __name__ == "__main__":
    sys.exit(main())
