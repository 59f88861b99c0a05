"""枚举定义

包含 Lifecycle 状态机、派生事实（WorkHistory / TimerState）、
ExternalStatus、分类结果 Status 及其优先级层级 Tier、EventType，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_LIFECYCLES 终态集合。
"""

from enum import StrEnum


class Lifecycle(StrEnum):
    """Task 生命周期"""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


# 合法生命周期流转
VALID_TRANSITIONS: dict[Lifecycle, set[Lifecycle]] = {
    Lifecycle.OPEN: {Lifecycle.CLOSED, Lifecycle.CANCELLED},
    # 终态不可再流转
    Lifecycle.CLOSED: set(),
    Lifecycle.CANCELLED: set(),
}

TERMINAL_LIFECYCLES: set[Lifecycle] = {
    Lifecycle.CLOSED,
    Lifecycle.CANCELLED,
}


class WorkHistory(StrEnum):
    """工作历史（派生）：是否存在过 session"""

    PENDING = "PENDING"
    INITIATED = "INITIATED"


class TimerState(StrEnum):
    """计时状态（派生）：是否存在该任务的 open session"""

    OFF = "OFF"
    ON = "ON"


class ExternalStatus(StrEnum):
    """External 记录状态（回收后软删除为 RETURNED）"""

    WAITING = "WAITING"
    RETURNED = "RETURNED"


class Status(StrEnum):
    """面向用户的单维分类结果"""

    PROPOSED = "proposed"
    PLANNED = "planned"
    IN_PROGRESS = "in progress"
    SUSPENDED = "suspended"
    ACTIVE = "active"
    EXTERNAL = "external"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Tier(StrEnum):
    """分类优先级层级，自上而下判定"""

    CLOSED = "closed"
    CANCELLED = "cancelled"
    TIMED = "timed"
    EXTERNAL = "external"
    OPEN = "open"


class PurgeTrigger(StrEnum):
    """micro-session purge 触发条件"""

    # session 时长 < 阈值 且 与下一个 session 的间隔 <= 阈值
    DURATION_AND_GAP = "duration_and_gap"
    # 仅看 session 时长
    DURATION = "duration"


class EventType(StrEnum):
    """审计事件类型"""

    TASK_CREATED = "TASK_CREATED"
    TASK_MODIFIED = "TASK_MODIFIED"
    LIFECYCLE_TRANSITION = "LIFECYCLE_TRANSITION"
    QUEUE_ADDED = "QUEUE_ADDED"
    QUEUE_REMOVED = "QUEUE_REMOVED"
    QUEUE_MOVED = "QUEUE_MOVED"
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_STOPPED = "SESSION_STOPPED"
    SESSION_RECORDED = "SESSION_RECORDED"
    SESSION_AMENDED = "SESSION_AMENDED"
    SESSION_MERGED = "SESSION_MERGED"
    SESSION_PURGED = "SESSION_PURGED"
    EXTERNAL_SENT = "EXTERNAL_SENT"
    EXTERNAL_RECALLED = "EXTERNAL_RECALLED"
    ANNOTATION_ADDED = "ANNOTATION_ADDED"


def validate_transition(from_lifecycle: Lifecycle, to_lifecycle: Lifecycle) -> bool:
    """验证生命周期流转是否合法

    Args:
        from_lifecycle: 当前生命周期
        to_lifecycle: 目标生命周期

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_lifecycle, set())
    return to_lifecycle in allowed
