"""TrackerConfig + load_tracker_config 单元测试

验证环境变量映射、默认值与非法值回退。
"""

from pathlib import Path

import pytest
from pydantic import ValidationError
from tasklane.core.config import (
    DEFAULT_MICRO_SECONDS,
    TrackerConfig,
    get_db_path,
    load_tracker_config,
)
from tasklane.core.models import PurgeTrigger

_ENV_VARS = (
    "TASKLANE_DATA_DIR",
    "TASKLANE_DB_PATH",
    "TASKLANE_MICRO_SECONDS",
    "TASKLANE_PURGE_TRIGGER",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """清除相关环境变量"""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestTrackerConfig:
    def test_default_values(self):
        config = TrackerConfig(db_path="x.db")
        assert config.micro_seconds == DEFAULT_MICRO_SECONDS == 30
        assert config.purge_trigger == PurgeTrigger.DURATION_AND_GAP

    def test_threshold_min_value(self):
        with pytest.raises(ValidationError):
            TrackerConfig(db_path="x.db", micro_seconds=0)


class TestLoadTrackerConfig:
    def test_default_when_no_env(self):
        config = load_tracker_config()
        assert config.db_path == str(Path("data") / "sqlite" / "tasklane.db")
        assert config.micro_seconds == 30
        assert config.purge_trigger == PurgeTrigger.DURATION_AND_GAP

    def test_data_dir_from_env(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("TASKLANE_DATA_DIR", str(tmp_path))
        assert get_db_path() == str(tmp_path / "sqlite" / "tasklane.db")

    def test_db_path_overrides_data_dir(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("TASKLANE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("TASKLANE_DB_PATH", "/tmp/custom.db")
        assert load_tracker_config().db_path == "/tmp/custom.db"

    def test_micro_seconds_from_env(self, monkeypatch):
        monkeypatch.setenv("TASKLANE_MICRO_SECONDS", "45")
        assert load_tracker_config().micro_seconds == 45

    @pytest.mark.parametrize("value", ["abc", "0", "-5", "1.5"])
    def test_invalid_micro_seconds_falls_back(self, monkeypatch, value: str):
        monkeypatch.setenv("TASKLANE_MICRO_SECONDS", value)
        assert load_tracker_config().micro_seconds == DEFAULT_MICRO_SECONDS

    def test_purge_trigger_from_env(self, monkeypatch):
        monkeypatch.setenv("TASKLANE_PURGE_TRIGGER", "DURATION")
        assert load_tracker_config().purge_trigger == PurgeTrigger.DURATION

    def test_invalid_purge_trigger_falls_back(self, monkeypatch):
        monkeypatch.setenv("TASKLANE_PURGE_TRIGGER", "gap")
        assert load_tracker_config().purge_trigger == PurgeTrigger.DURATION_AND_GAP
