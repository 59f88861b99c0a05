"""Event Payload 子类型

所有审计事件的结构化 payload 定义。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import Lifecycle


class TaskCreatedPayload(BaseModel):
    """TASK_CREATED 事件 payload"""

    description: str
    project: str | None = None
    tags: list[str] = Field(default_factory=list)


class TaskModifiedPayload(BaseModel):
    """TASK_MODIFIED 事件 payload"""

    fields: list[str] = Field(description="被修改的字段名")


class LifecycleTransitionPayload(BaseModel):
    """LIFECYCLE_TRANSITION 事件 payload"""

    from_lifecycle: Lifecycle
    to_lifecycle: Lifecycle


class QueuePayload(BaseModel):
    """QUEUE_ADDED / QUEUE_REMOVED / QUEUE_MOVED 事件 payload"""

    position: int | None = Field(default=None, description="入队位置（移除时为原位置）")
    reason: str = Field(default="")


class SessionPayload(BaseModel):
    """SESSION_STARTED / SESSION_STOPPED / SESSION_RECORDED 事件 payload"""

    session_id: int
    start_ts: datetime
    end_ts: datetime | None = None


class SessionAmendedPayload(BaseModel):
    """SESSION_AMENDED 事件 payload（重叠处理）"""

    session_id: int
    action: str = Field(description="truncated / moved / split / deleted")
    start_ts: datetime | None = None
    end_ts: datetime | None = None


class MicroSessionPayload(BaseModel):
    """SESSION_MERGED / SESSION_PURGED 事件 payload"""

    session_id: int = Field(description="被合并或丢弃的 session")
    into_session_id: int | None = Field(default=None, description="合并后的 session")
    duration_s: float
    gap_s: float


class ExternalPayload(BaseModel):
    """EXTERNAL_SENT / EXTERNAL_RECALLED 事件 payload"""

    external_id: int
    recipient: str
    position: int | None = None


class AnnotationPayload(BaseModel):
    """ANNOTATION_ADDED 事件 payload"""

    annotation_id: int
    session_id: int | None = None
