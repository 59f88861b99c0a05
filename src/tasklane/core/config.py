"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、micro-session 阈值、purge 触发策略、日志格式等可配置项。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

from .models.enums import PurgeTrigger

log = structlog.get_logger()

# micro-session 默认阈值（秒）
DEFAULT_MICRO_SECONDS: int = 30


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKLANE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKLANE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "tasklane.db"),
    )


class TrackerConfig(BaseModel):
    """Tracker 配置 -- 从环境变量加载

    环境变量:
        TASKLANE_DB_PATH: SQLite 数据库路径
        TASKLANE_MICRO_SECONDS: micro-session 阈值（秒，默认 30）
        TASKLANE_PURGE_TRIGGER: purge 触发条件（duration_and_gap / duration）
    """

    db_path: str = Field(description="SQLite 数据库路径")
    micro_seconds: int = Field(
        default=DEFAULT_MICRO_SECONDS,
        ge=1,
        description="micro-session 阈值（秒）",
    )
    purge_trigger: PurgeTrigger = Field(
        default=PurgeTrigger.DURATION_AND_GAP,
        description="micro-session purge 触发条件",
    )


def load_tracker_config() -> TrackerConfig:
    """从环境变量加载 Tracker 配置

    非法值记录 warning 并回退默认值，不阻塞启动。
    """
    kwargs: dict = {"db_path": get_db_path()}

    if val := os.environ.get("TASKLANE_MICRO_SECONDS"):
        try:
            seconds = int(val)
            if seconds < 1:
                raise ValueError(val)
            kwargs["micro_seconds"] = seconds
        except ValueError:
            log.warning(
                "invalid_config_value",
                env_var="TASKLANE_MICRO_SECONDS",
                value=val,
                fallback=DEFAULT_MICRO_SECONDS,
            )

    if val := os.environ.get("TASKLANE_PURGE_TRIGGER"):
        try:
            kwargs["purge_trigger"] = PurgeTrigger(val.lower())
        except ValueError:
            log.warning(
                "invalid_config_value",
                env_var="TASKLANE_PURGE_TRIGGER",
                value=val,
                fallback=PurgeTrigger.DURATION_AND_GAP.value,
            )

    return TrackerConfig(**kwargs)
