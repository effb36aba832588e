import pytest

from csvmerge.config import MergeConfig


@pytest.fixture
def inbox(tmp_path):
    d = tmp_path / "incoming"
    d.mkdir()
    return d


@pytest.fixture
def make_config(tmp_path, inbox):
    def _make(**overrides):
        data = dict(
            input_folder=str(inbox),
            output_folder=str(tmp_path / "merged"),
            output_base_name="master",
            wait_for_stable_file_ms=0,
            max_polling_retries=0,
            retry_backoff_ms=0,
            log_dir=str(tmp_path / "logs"),
        )
        data.update(overrides)
        return MergeConfig(**data)
    return _make


@pytest.fixture
def cfg(make_config):
    return make_config()
