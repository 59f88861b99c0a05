"""分类函数 -- 从正交事实推导面向用户的单维状态

判定分两步：
1. tier_of() 按优先级选出层级：closed > cancelled > timed > external > open
2. StageTable 以 (tier, queued, has_history) 为坐标查表，None 为通配；
   用户覆盖规则先于默认表，同一层内精确坐标优先于通配坐标

默认表覆盖所有可达组合；用户覆盖规则只能新增或替换行，
因此叠加后仍然是全函数。
"""

from collections.abc import Iterable

from .models.enums import Lifecycle, Status, Tier
from .models.facts import TaskFacts
from .models.stage import StageRule

RuleKey = tuple[Tier, bool | None, bool | None]

DEFAULT_STAGE_RULES: tuple[StageRule, ...] = (
    StageRule(tier=Tier.CLOSED, status=Status.COMPLETED, sort_order=6, color="bright_black"),
    StageRule(tier=Tier.CANCELLED, status=Status.CANCELLED, sort_order=7, color="bright_black"),
    StageRule(tier=Tier.TIMED, status=Status.ACTIVE, sort_order=5, color="green"),
    StageRule(tier=Tier.EXTERNAL, status=Status.EXTERNAL, sort_order=3, color="magenta"),
    StageRule(
        tier=Tier.OPEN,
        queued=False,
        has_history=False,
        status=Status.PROPOSED,
        sort_order=0,
        color="bright_black",
    ),
    StageRule(
        tier=Tier.OPEN,
        queued=True,
        has_history=False,
        status=Status.PLANNED,
        sort_order=1,
        color="blue",
    ),
    StageRule(
        tier=Tier.OPEN,
        queued=True,
        has_history=True,
        status=Status.IN_PROGRESS,
        sort_order=4,
        color="cyan",
    ),
    StageRule(
        tier=Tier.OPEN,
        queued=False,
        has_history=True,
        status=Status.SUSPENDED,
        sort_order=2,
        color="yellow",
    ),
)


def tier_of(facts: TaskFacts) -> Tier:
    """按优先级确定层级"""
    if facts.lifecycle == Lifecycle.CLOSED:
        return Tier.CLOSED
    if facts.lifecycle == Lifecycle.CANCELLED:
        return Tier.CANCELLED
    if facts.timer_on:
        return Tier.TIMED
    if facts.external_waiting:
        return Tier.EXTERNAL
    return Tier.OPEN


class StageTable:
    """可替换的分类查找表

    用户覆盖规则与默认规则分两层存放：命中任意覆盖规则即生效，
    通配的覆盖规则同样优先于默认表中的精确行。
    """

    def __init__(self, overrides: Iterable[StageRule] = ()) -> None:
        self._defaults: dict[RuleKey, StageRule] = {rule.key: rule for rule in DEFAULT_STAGE_RULES}
        self._overrides: dict[RuleKey, StageRule] = {}
        for rule in overrides:
            self._overrides[rule.key] = rule

    @property
    def overrides(self) -> list[StageRule]:
        return list(self._overrides.values())

    def with_override(self, rule: StageRule) -> "StageTable":
        """返回叠加了一条覆盖规则的新表"""
        return StageTable([*self._overrides.values(), rule])

    def lookup(self, tier: Tier, queued: bool, has_history: bool) -> StageRule:
        """覆盖层优先于默认层；同一层内精确 > queued 通配 > history 通配 > 全通配"""
        keys = (
            (tier, queued, has_history),
            (tier, None, has_history),
            (tier, queued, None),
            (tier, None, None),
        )
        for layer in (self._overrides, self._defaults):
            for key in keys:
                rule = layer.get(key)
                if rule is not None:
                    return rule
        # 默认表对每个层级都有完整覆盖，走到这里说明表被外部篡改
        raise LookupError(f"No stage rule for {(tier, queued, has_history)}")

    def rule_for(self, facts: TaskFacts) -> StageRule:
        return self.lookup(tier_of(facts), facts.queued, facts.has_history)

    def classify(self, facts: TaskFacts) -> Status:
        return self.rule_for(facts).status


DEFAULT_STAGE_TABLE = StageTable()


def classify(facts: TaskFacts, table: StageTable = DEFAULT_STAGE_TABLE) -> Status:
    """纯函数分类入口"""
    return table.classify(facts)
