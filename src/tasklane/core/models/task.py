"""Task Domain Model

lifecycle 与 queue_position 是受不变量约束的事实；
描述性属性（description / project / tags / 各类时间戳 / alloc）可自由修改。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import TERMINAL_LIFECYCLES, Lifecycle


class Task(BaseModel):
    """Task 数据模型"""

    task_id: int = Field(description="稳定整数标识，创建时分配")
    description: str = Field(description="任务描述")
    lifecycle: Lifecycle = Field(default=Lifecycle.OPEN, description="生命周期")
    queue_position: int | None = Field(
        default=None,
        description="队列序号，None 表示未入队；入队任务的序号稠密且严格有序",
    )
    project: str | None = Field(default=None, description="项目引用")
    tags: list[str] = Field(default_factory=list, description="标签")
    due_ts: datetime | None = Field(default=None, description="截止时间")
    scheduled_ts: datetime | None = Field(default=None, description="计划开始时间")
    wait_ts: datetime | None = Field(default=None, description="等待至该时间后再出现")
    alloc_secs: int | None = Field(default=None, ge=0, description="预估分配时长（秒）")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    @property
    def is_terminal(self) -> bool:
        return self.lifecycle in TERMINAL_LIFECYCLES

    @property
    def queued(self) -> bool:
        return self.queue_position is not None


class TaskChanges(BaseModel):
    """描述性属性修改集合，未设置的字段保持不变"""

    description: str | None = None
    project: str | None = None
    tags: list[str] | None = None
    due_ts: datetime | None = None
    scheduled_ts: datetime | None = None
    wait_ts: datetime | None = None
    alloc_secs: int | None = Field(default=None, ge=0)
