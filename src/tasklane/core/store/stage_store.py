"""StageStore SQLite 实现 -- 持久化用户覆盖的分类规则

queued / has_history 列以 -1 表示通配。
"""

import aiosqlite

from ..models.enums import Status, Tier
from ..models.stage import StageRule


def _to_flag(value: bool | None) -> int:
    return -1 if value is None else int(value)


def _from_flag(value: int) -> bool | None:
    return None if value == -1 else bool(value)


class SqliteStageStore:
    """StageStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def list_overrides(self) -> list[StageRule]:
        cursor = await self._conn.execute(
            "SELECT tier, queued, has_history, status, sort_order, color "
            "FROM stage_map ORDER BY tier, queued, has_history"
        )
        rows = await cursor.fetchall()
        return [
            StageRule(
                tier=Tier(row[0]),
                queued=_from_flag(row[1]),
                has_history=_from_flag(row[2]),
                status=Status(row[3]),
                sort_order=row[4],
                color=row[5],
            )
            for row in rows
        ]

    async def put_override(self, rule: StageRule) -> None:
        """写入或替换同坐标的覆盖规则"""
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO stage_map (tier, queued, has_history, status,
                                              sort_order, color)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                rule.tier.value,
                _to_flag(rule.queued),
                _to_flag(rule.has_history),
                rule.status.value,
                rule.sort_order,
                rule.color,
            ),
        )

    async def clear_overrides(self) -> None:
        await self._conn.execute("DELETE FROM stage_map")
