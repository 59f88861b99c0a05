"""Store Protocol 接口定义

定义各事实表存储的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
所有写方法都不提交事务，由 StoreGroup.transaction() 统一管理。
"""

from datetime import datetime
from typing import Protocol

from pydantic import BaseModel

from ..models.annotation import Annotation
from ..models.enums import EventType, Lifecycle
from ..models.event import Event
from ..models.external import ExternalRecord
from ..models.session import WorkSession
from ..models.stage import StageRule
from ..models.task import Task, TaskChanges


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, description: str, created_at: datetime, **attrs) -> Task:
        """创建任务记录，返回带分配 ID 的 Task"""
        ...

    async def get_task(self, task_id: int) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(self, lifecycle: Lifecycle | None = None) -> list[Task]:
        """查询任务列表，支持按生命周期筛选"""
        ...

    async def update_lifecycle(
        self,
        task_id: int,
        lifecycle: Lifecycle,
        updated_at: datetime,
    ) -> None:
        """更新生命周期"""
        ...

    async def update_attributes(
        self,
        task_id: int,
        changes: TaskChanges,
        updated_at: datetime,
    ) -> list[str]:
        """更新描述性属性"""
        ...

    async def get_queue(self) -> list[int]:
        """按序号返回入队任务 ID"""
        ...

    async def renumber_queue(self, order: list[int]) -> None:
        """按给定顺序重写稠密序号"""
        ...


class SessionStore(Protocol):
    """WorkSession 存储接口"""

    async def create_session(
        self,
        task_id: int,
        start_ts: datetime,
        end_ts: datetime | None,
        created_at: datetime,
        *,
        stopped: bool = False,
    ) -> WorkSession:
        ...

    async def get_session(self, session_id: int) -> WorkSession | None:
        ...

    async def get_open(self) -> WorkSession | None:
        """查询当前 open session"""
        ...

    async def list_open(self) -> list[WorkSession]:
        ...

    async def close_session(self, session_id: int, end_ts: datetime) -> WorkSession:
        ...

    async def update_bounds(
        self,
        session_id: int,
        start_ts: datetime,
        end_ts: datetime | None,
    ) -> None:
        ...

    async def delete_session(self, session_id: int) -> None:
        ...

    async def get_last_closed(self) -> WorkSession | None:
        """查询结束时间最晚的已关闭 session"""
        ...

    async def list_overlapping(
        self,
        start_ts: datetime,
        end_ts: datetime | None,
    ) -> list[WorkSession]:
        """查询与给定区间相交的 session"""
        ...

    async def list_sessions_for_task(self, task_id: int) -> list[WorkSession]:
        ...

    async def task_ids_with_sessions(self) -> set[int]:
        ...


class ExternalStore(Protocol):
    """External 记录存储接口"""

    async def create_waiting(
        self,
        task_id: int,
        recipient: str,
        note: str | None,
        sent_at: datetime,
    ) -> ExternalRecord:
        ...

    async def get_waiting(self, task_id: int) -> ExternalRecord | None:
        ...

    async def list_waiting(self, recipient: str | None = None) -> list[ExternalRecord]:
        ...

    async def list_for_task(self, task_id: int) -> list[ExternalRecord]:
        """查询任务的全部委派记录（含已回收）"""
        ...

    async def mark_returned(self, external_id: int, returned_at: datetime) -> None:
        """软删除：status 置为 RETURNED"""
        ...


class AnnotationStore(Protocol):
    """Annotation 存储接口（append-only）"""

    async def add_annotation(
        self,
        task_id: int,
        note: str,
        entry_ts: datetime,
        session_id: int | None = None,
    ) -> Annotation:
        ...

    async def list_for_task(self, task_id: int) -> list[Annotation]:
        ...

    async def repoint_session(self, from_session_id: int, to_session_id: int) -> None:
        ...


class EventStore(Protocol):
    """Event 存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def append_event(self, event: Event) -> None:
        """追加事件（append-only）"""
        ...

    async def record(
        self,
        task_id: int,
        event_type: EventType,
        ts: datetime,
        payload: BaseModel | None = None,
    ) -> Event:
        """构建并追加事件"""
        ...

    async def get_events_for_task(self, task_id: int) -> list[Event]:
        """查询指定任务的所有事件"""
        ...


class StageStore(Protocol):
    """分类覆盖规则存储接口"""

    async def list_overrides(self) -> list[StageRule]:
        ...

    async def put_override(self, rule: StageRule) -> None:
        ...

    async def clear_overrides(self) -> None:
        ...
