"""Event Domain Model

事件表 append-only，不允许更新或删除。
event_id 使用 ULID 格式；同一事务内写入的事件与事实变更一同提交。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventType


class Event(BaseModel):
    """Event 数据模型"""

    event_id: str = Field(description="唯一标识，ULID 格式")
    task_id: int = Field(description="关联的 Task ID")
    ts: datetime = Field(description="事件时间戳")
    type: EventType = Field(description="事件类型")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
