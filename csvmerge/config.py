## csvmerge/config.py

from __future__ import annotations
import os
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .utils import ConfigurationError, load_yaml

PROVENANCE_COLUMN = "SourceFile"
ENV_PREFIX = "CSVMERGE_"
DEFAULT_CONFIG_PATH = "config.yaml"


class MergeConfig(BaseModel):
    """Settings for one watcher process. Built once at startup, never mutated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    input_folder: str = Field(alias="InputFolder")
    output_folder: str = Field(alias="OutputFolder")
    output_base_name: str = Field(default="master", alias="OutputBaseName")
    validate_filename_format: bool = Field(default=False, alias="ValidateFilenameFormat")
    use_file_hashing: bool = Field(default=False, alias="UseFileHashing")
    polling_interval_seconds: int = Field(default=10, ge=1, alias="PollingIntervalSeconds")
    wait_for_stable_file_ms: int = Field(default=2000, ge=0, alias="WaitForStableFileMs")
    max_polling_retries: int = Field(default=3, ge=0, alias="MaxPollingRetries")
    retry_backoff_ms: int = Field(default=500, ge=0)
    removed_file_policy: Literal["retain", "purge"] = "retain"
    dedupe_exclude_columns: Tuple[str, ...] = ()
    read_chunk_rows: int = Field(default=50_000, ge=1)
    log_dir: str = "logs"
    log_level: str = "INFO"
    alerts_enabled: bool = False

    @field_validator("input_folder", "output_folder")
    @classmethod
    def _required_path(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("path must not be empty")
        return v

    @field_validator("output_base_name")
    @classmethod
    def _base_name(cls, v: str) -> str:
        v = (v or "").strip()
        if v.lower().endswith(".csv"):
            v = v[:-4]
        if not v or os.sep in v or "/" in v:
            raise ValueError(f"invalid output base name: {v!r}")
        return v

    @field_validator("dedupe_exclude_columns", mode="before")
    @classmethod
    def _split_columns(cls, v: Any):
        if v is None:
            return ()
        if isinstance(v, str):
            return tuple(c.strip() for c in v.split(",") if c.strip())
        return v

    @property
    def master_path(self) -> str:
        return os.path.join(self.output_folder, f"{self.output_base_name}.csv")

    @property
    def dedupe_excluded(self) -> frozenset:
        return frozenset((PROVENANCE_COLUMN, *self.dedupe_exclude_columns))


def _env_overrides(environ) -> Dict[str, str]:
    out = {}
    for name in MergeConfig.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            out[name] = environ[key]
    return out


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None,
                environ=None) -> MergeConfig:
    """Read config.yaml (if present), apply CSVMERGE_* env vars and explicit overrides."""
    environ = os.environ if environ is None else environ
    path = path or environ.get(ENV_PREFIX + "CONFIG", DEFAULT_CONFIG_PATH)
    raw: Dict[str, Any] = {}
    if os.path.exists(path):
        try:
            raw = load_yaml(path)
        except Exception as e:
            raise ConfigurationError(f"Cannot read config {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config {path} must be a mapping, got {type(raw).__name__}")
    # Normalize PascalCase keys to field names so later layers override cleanly
    aliases = {f.alias: n for n, f in MergeConfig.model_fields.items() if f.alias}
    data = {aliases.get(k, k): v for k, v in raw.items()}
    data.update(_env_overrides(environ))
    data.update(overrides or {})
    try:
        return MergeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration ({path}): {e}") from e
