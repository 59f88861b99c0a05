"""Stage 映射模型 -- 分类查找表的一行

(tier, queued, has_history) 为坐标，None 表示通配。
sort_order / color 供展示层排序与着色。
"""

from pydantic import BaseModel, Field

from .enums import Status, Tier


class StageRule(BaseModel):
    """分类查找表规则"""

    tier: Tier = Field(description="优先级层级")
    queued: bool | None = Field(default=None, description="是否在队列中，None 为通配")
    has_history: bool | None = Field(default=None, description="是否有工作历史，None 为通配")
    status: Status = Field(description="分类结果")
    sort_order: int = Field(default=0, description="展示排序")
    color: str | None = Field(default=None, description="展示颜色")

    @property
    def key(self) -> tuple[Tier, bool | None, bool | None]:
        return (self.tier, self.queued, self.has_history)
