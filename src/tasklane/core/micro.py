"""Micro-session 合并/丢弃策略

在新 session 打开时回看最近一个已关闭的 session（全库按 end_ts 最晚）：
- MERGE: 同一任务，且间隔 <= 阈值 -> 两个 session 合并为一个
- PURGE: 不同任务，且时长 < 阈值（DURATION_AND_GAP 还要求间隔 <= 阈值）
  -> 已关闭的短 session 被丢弃
- KEEP: 保留原记录
决策本身是纯函数，由 TimerEngine 在触发事件的同一事务内执行。
"""

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel

from .config import DEFAULT_MICRO_SECONDS
from .models.enums import PurgeTrigger
from .models.session import WorkSession


class BoundaryAction(StrEnum):
    """session 边界处理动作"""

    KEEP = "keep"
    MERGE = "merge"
    PURGE = "purge"


class BoundaryDecision(BaseModel):
    """边界判定结果"""

    action: BoundaryAction
    duration_s: float
    gap_s: float


class MicroSessionPolicy:
    """micro-session 策略（阈值与 purge 触发条件可配置）"""

    def __init__(
        self,
        threshold_s: int = DEFAULT_MICRO_SECONDS,
        purge_trigger: PurgeTrigger = PurgeTrigger.DURATION_AND_GAP,
    ) -> None:
        self.threshold_s = threshold_s
        self.purge_trigger = purge_trigger

    @property
    def threshold(self) -> timedelta:
        return timedelta(seconds=self.threshold_s)

    def is_micro(self, session: WorkSession) -> bool:
        """已关闭 session 的时长是否低于阈值"""
        return session.end_ts is not None and session.duration() < self.threshold

    def decide(
        self,
        previous: WorkSession,
        next_task_id: int,
        next_start: datetime,
    ) -> BoundaryDecision:
        """判定上一个已关闭 session 在新 session 开始时的处理方式

        Args:
            previous: 最近一个已关闭的 session
            next_task_id: 新 session 的任务
            next_start: 新 session 的开始时间
        """
        assert previous.end_ts is not None
        duration = previous.duration()
        gap = next_start - previous.end_ts
        decision = BoundaryDecision(
            action=BoundaryAction.KEEP,
            duration_s=duration.total_seconds(),
            gap_s=gap.total_seconds(),
        )

        within_gap = timedelta(0) <= gap <= self.threshold
        if previous.task_id == next_task_id:
            if within_gap:
                decision.action = BoundaryAction.MERGE
            return decision

        if duration < self.threshold:
            if self.purge_trigger == PurgeTrigger.DURATION or within_gap:
                decision.action = BoundaryAction.PURGE
        return decision
