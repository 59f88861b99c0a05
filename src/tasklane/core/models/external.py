"""External Record Domain Model

记录委派给第三方的任务。每个任务至多一条 WAITING 记录；
回收后软删除（status 置为 RETURNED 并记录 returned_at）。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import ExternalStatus


class ExternalRecord(BaseModel):
    """ExternalRecord 数据模型"""

    external_id: int = Field(description="记录标识")
    task_id: int = Field(description="关联任务")
    recipient: str = Field(description="接收方")
    note: str | None = Field(default=None, description="委派说明")
    sent_at: datetime = Field(description="发出时间")
    status: ExternalStatus = Field(default=ExternalStatus.WAITING, description="记录状态")
    returned_at: datetime | None = Field(default=None, description="回收时间")

    @property
    def waiting(self) -> bool:
        return self.status == ExternalStatus.WAITING
