## csvmerge/utils.py

from __future__ import annotations
import hashlib, os, time, logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

logger = logging.getLogger("csvmerge")


def setup_logging(log_dir: str = "logs", level: str = "INFO", filename: str = "merge.log"):
    """Attach file + console handlers to the csvmerge logger (idempotent)."""
    os.makedirs(log_dir, exist_ok=True)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if getattr(logger, "_csvmerge_configured", False):
        return logger
    fmt = logging.Formatter(LOG_FORMAT)
    for handler in (logging.FileHandler(os.path.join(log_dir, filename), encoding="utf-8"),
                    logging.StreamHandler()):
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    logger._csvmerge_configured = True
    return logger


class Retryable(Exception):
    pass


class MergeError(Exception):
    pass


class ConfigurationError(MergeError):
    """Required settings missing or invalid; fatal before the loop starts."""


class FolderAccessError(MergeError):
    """Input folder missing or unreadable."""


class FileParseError(MergeError):
    """Source file could not be parsed as CSV."""


class FileLockError(MergeError, Retryable):
    """Master file busy or unwritable during persist."""


def retry(times: int = 3, delay: float = 1.0, sleep: Callable[[float], Any] = time.sleep):
    def deco(fn: Callable[..., Any]):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            last = None
            for i in range(times):
                try:
                    return fn(*args, **kwargs)
                except Retryable as e:
                    last = e
                    logger.debug(f"Retry {i+1}/{times} for {fn.__name__}: {e}")
                    if i < times - 1:
                        sleep(delay * (2 ** i))
            raise last if last else Retryable("Retry failed")
        return wrapper
    return deco


def file_sha256(path: str, block: int = 1 << 20) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(block), b""):
            h.update(chunk)
    return h.hexdigest()


def load_yaml(path: str) -> dict:
    import yaml
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def ensure_dirs(dirs: Iterable[Optional[str]]):
    for d in dirs:
        if d:
            os.makedirs(d, exist_ok=True)
