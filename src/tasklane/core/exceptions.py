"""TaskLane 异常体系

UserError 子类均为用户可恢复错误（输入错误、状态不满足前置条件），
StoreUnavailable 表示存储层故障，调用方应区别展示。
"""


class TaskLaneError(Exception):
    """TaskLane 基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否为用户可修正的错误（False 表示系统故障）
        """
        super().__init__(message)
        self.recoverable = recoverable


class UserError(TaskLaneError):
    """用户侧错误基类：事务被拒绝，未提交任何变更"""

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=True)


class InvariantViolation(UserError):
    """事务会破坏不变量，整体回滚"""

    def __init__(self, message: str, violations: list[str] | None = None) -> None:
        super().__init__(message)
        self.violations = violations or [message]


class AlreadyWaiting(InvariantViolation):
    """任务已有 Waiting 状态的 external 记录"""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} is already waiting on an external party")
        self.task_id = task_id


class EmptyQueue(UserError):
    """队列为空"""

    def __init__(self, message: str = "Queue is empty") -> None:
        super().__init__(message)


class AlreadyRunning(UserError):
    """已有计时中的 session"""

    def __init__(self, task_id: int | None = None) -> None:
        if task_id is None:
            message = "A session is already running"
        else:
            message = f"A session is already running for task {task_id}"
        super().__init__(message)
        self.task_id = task_id


class NotRunning(UserError):
    """没有计时中的 session"""

    def __init__(self, message: str = "No session is running") -> None:
        super().__init__(message)


class NoSuchTask(UserError):
    """任务不存在"""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class NoWaitingRecord(UserError):
    """任务没有 Waiting 状态的 external 记录"""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} is not waiting on an external party")
        self.task_id = task_id


class TerminalLifecycle(UserError):
    """任务已处于终态（closed / cancelled）"""

    def __init__(self, task_id: int, lifecycle: str) -> None:
        super().__init__(f"Task {task_id} is {lifecycle}; it can no longer be changed")
        self.task_id = task_id
        self.lifecycle = lifecycle


class NonChronological(UserError):
    """session 时间不满足 end_ts > start_ts 或与既有记录冲突"""


class StoreUnavailable(TaskLaneError):
    """存储层故障（磁盘错误、数据库损坏、锁超时等）"""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, recoverable=False)
        self.original_error = original_error
