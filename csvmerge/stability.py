## csvmerge/stability.py

from __future__ import annotations
import sys, time
from typing import Any, Callable, Iterable, List

from .utils import Retryable, logger, retry

log = logger.getChild("stability")


class FileBusy(Retryable):
    pass


def _open_exclusive(path: str):
    try:
        with open(path, "rb") as f:
            # on Windows a writer without read sharing already fails the open
            if sys.platform != "win32":
                import fcntl
                fcntl.flock(f.fileno(), fcntl.LOCK_SH | fcntl.LOCK_NB)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            f.read(1)
    except FileNotFoundError:
        raise
    except OSError as e:
        raise FileBusy(f"{path}: {e}") from e


def wait_for_stable_files(paths: Iterable[str], pre_delay_ms: int = 0, retries: int = 0,
                          backoff_ms: int = 500,
                          sleep: Callable[[float], Any] = time.sleep) -> List[str]:
    """Advisory wait for writers to let go. Returns the files that stayed busy."""
    paths = list(paths)
    if not paths:
        return []
    if pre_delay_ms > 0:
        sleep(pre_delay_ms / 1000.0)

    check = retry(times=retries + 1, delay=backoff_ms / 1000.0, sleep=sleep)(_open_exclusive)
    busy = []
    for path in paths:
        try:
            check(path)
        except FileNotFoundError:
            log.debug(f"{path} disappeared before stability check")
        except FileBusy as e:
            log.warning(f"File still locked after {retries} retries, proceeding anyway: {e}")
            busy.append(path)
    return busy
