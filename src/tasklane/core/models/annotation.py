"""Annotation Domain Model -- append-only 备注，可回指 session"""

from datetime import datetime

from pydantic import BaseModel, Field


class Annotation(BaseModel):
    """Annotation 数据模型"""

    annotation_id: int = Field(description="备注标识")
    task_id: int = Field(description="关联任务")
    session_id: int | None = Field(default=None, description="写入时计时中的 session")
    note: str = Field(description="备注内容")
    entry_ts: datetime = Field(description="记录时间")
