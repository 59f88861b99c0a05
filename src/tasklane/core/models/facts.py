"""派生事实与快照模型

TaskFacts 是分类函数与不变量检查的只读输入，
由存储层事实即时计算，从不落库。
"""

from pydantic import BaseModel, Field

from .enums import Lifecycle, Status, TimerState, WorkHistory
from .external import ExternalRecord
from .task import Task


class TaskFacts(BaseModel):
    """单个任务的正交事实集合"""

    task_id: int
    lifecycle: Lifecycle
    queue_position: int | None = None
    has_history: bool = Field(default=False, description="是否存在过 session")
    timer_on: bool = Field(default=False, description="是否存在该任务的 open session")
    external_waiting: bool = Field(default=False, description="是否存在 WAITING 记录")

    @property
    def queued(self) -> bool:
        return self.queue_position is not None

    @property
    def work_history(self) -> WorkHistory:
        return WorkHistory.INITIATED if self.has_history else WorkHistory.PENDING

    @property
    def timer(self) -> TimerState:
        return TimerState.ON if self.timer_on else TimerState.OFF


class TaskView(BaseModel):
    """展示层使用的任务视图：任务记录 + 派生状态"""

    task: Task
    work_history: WorkHistory
    timer: TimerState
    external: ExternalRecord | None = None
    status: Status


class QueueEntry(BaseModel):
    """队列条目"""

    position: int
    task_id: int
    description: str
    status: Status


class Snapshot(BaseModel):
    """只读快照：有序队列 + 每个任务的派生状态"""

    queue: list[QueueEntry] = Field(default_factory=list)
    tasks: list[TaskView] = Field(default_factory=list)
    running_task_id: int | None = None
