"""Work Session Domain Model

end_ts 为 None 表示计时中；全库同一时刻至多一个 open session。
"""

from datetime import datetime, timedelta

from pydantic import BaseModel, Field


class WorkSession(BaseModel):
    """WorkSession 数据模型"""

    session_id: int = Field(description="session 标识")
    task_id: int = Field(description="所属任务")
    start_ts: datetime = Field(description="开始时间")
    end_ts: datetime | None = Field(default=None, description="结束时间，None 表示计时中")
    created_at: datetime = Field(description="记录创建时间")
    stopped: bool = Field(
        default=False,
        description="是否经由停止计时关闭；interval 补记的 session 为 False",
    )

    @property
    def is_open(self) -> bool:
        return self.end_ts is None

    def duration(self, until: datetime | None = None) -> timedelta:
        """session 时长；open session 需提供 until"""
        end = self.end_ts if self.end_ts is not None else until
        if end is None:
            raise ValueError(f"session {self.session_id} is open; pass until")
        return end - self.start_ts


class SessionOutcome(BaseModel):
    """计时操作结果，供展示层输出提示"""

    session: WorkSession | None = Field(default=None, description="本次操作涉及的 session")
    closed: WorkSession | None = Field(
        default=None,
        description="本次操作关闭的 session（若有）",
    )
    merged_session_id: int | None = Field(
        default=None,
        description="被并入新 session 的旧 session",
    )
    purged_session_id: int | None = Field(
        default=None,
        description="被丢弃的 micro-session",
    )
    amended_session_ids: list[int] = Field(
        default_factory=list,
        description="因重叠被截断/移动/拆分的 session",
    )
    deleted_session_ids: list[int] = Field(
        default_factory=list,
        description="因被完全覆盖而删除的 session",
    )
    warnings: list[str] = Field(default_factory=list, description="非致命提示")
