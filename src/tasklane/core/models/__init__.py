"""TaskLane Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .annotation import Annotation
from .enums import (
    TERMINAL_LIFECYCLES,
    VALID_TRANSITIONS,
    EventType,
    ExternalStatus,
    Lifecycle,
    PurgeTrigger,
    Status,
    Tier,
    TimerState,
    WorkHistory,
    validate_transition,
)
from .event import Event
from .external import ExternalRecord
from .facts import QueueEntry, Snapshot, TaskFacts, TaskView
from .payloads import (
    AnnotationPayload,
    ExternalPayload,
    LifecycleTransitionPayload,
    MicroSessionPayload,
    QueuePayload,
    SessionAmendedPayload,
    SessionPayload,
    TaskCreatedPayload,
    TaskModifiedPayload,
)
from .session import SessionOutcome, WorkSession
from .stage import StageRule
from .task import Task, TaskChanges

__all__ = [
    # 枚举
    "Lifecycle",
    "WorkHistory",
    "TimerState",
    "ExternalStatus",
    "Status",
    "Tier",
    "PurgeTrigger",
    "EventType",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_LIFECYCLES",
    "validate_transition",
    # 事实记录
    "Task",
    "TaskChanges",
    "WorkSession",
    "SessionOutcome",
    "ExternalRecord",
    "Annotation",
    "Event",
    # 派生
    "TaskFacts",
    "TaskView",
    "QueueEntry",
    "Snapshot",
    "StageRule",
    # Payloads
    "TaskCreatedPayload",
    "TaskModifiedPayload",
    "LifecycleTransitionPayload",
    "QueuePayload",
    "SessionPayload",
    "SessionAmendedPayload",
    "MicroSessionPayload",
    "ExternalPayload",
    "AnnotationPayload",
]
