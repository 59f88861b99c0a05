"""TaskStore SQLite 实现

tasks 表保存 lifecycle、queue_position 与描述性属性。
队列序号的稠密性由 renumber_queue 在每个变更事务内维护。
注意：所有方法不自动提交事务，需由调用方管理事务。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import Lifecycle
from ..models.task import Task, TaskChanges
from ..timeutil import from_db, to_db

_TASK_COLUMNS = (
    "task_id, description, lifecycle, queue_position, project, tags, "
    "due_ts, scheduled_ts, wait_ts, alloc_secs, created_at, updated_at"
)


def _opt_ts(value: datetime | None) -> str | None:
    return to_db(value) if value is not None else None


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(
        self,
        description: str,
        created_at: datetime,
        *,
        project: str | None = None,
        tags: list[str] | None = None,
        due_ts: datetime | None = None,
        scheduled_ts: datetime | None = None,
        wait_ts: datetime | None = None,
        alloc_secs: int | None = None,
    ) -> Task:
        """创建任务记录，返回带分配 ID 的 Task"""
        cursor = await self._conn.execute(
            """
            INSERT INTO tasks (description, lifecycle, queue_position, project, tags,
                               due_ts, scheduled_ts, wait_ts, alloc_secs,
                               created_at, updated_at)
            VALUES (?, 'OPEN', NULL, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                description,
                project,
                json.dumps(tags or [], ensure_ascii=False),
                _opt_ts(due_ts),
                _opt_ts(scheduled_ts),
                _opt_ts(wait_ts),
                alloc_secs,
                to_db(created_at),
                to_db(created_at),
            ),
        )
        task = await self.get_task(cursor.lastrowid)
        assert task is not None
        return task

    async def get_task(self, task_id: int) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(self, lifecycle: Lifecycle | None = None) -> list[Task]:
        """查询任务列表，支持按生命周期筛选，按 task_id 正序"""
        if lifecycle:
            cursor = await self._conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE lifecycle = ? ORDER BY task_id",
                (lifecycle.value,),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks ORDER BY task_id"
            )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_lifecycle(
        self,
        task_id: int,
        lifecycle: Lifecycle,
        updated_at: datetime,
    ) -> None:
        await self._conn.execute(
            "UPDATE tasks SET lifecycle = ?, updated_at = ? WHERE task_id = ?",
            (lifecycle.value, to_db(updated_at), task_id),
        )

    async def update_attributes(
        self,
        task_id: int,
        changes: TaskChanges,
        updated_at: datetime,
    ) -> list[str]:
        """更新描述性属性，返回实际修改的字段名"""
        values = changes.model_dump(exclude_unset=True)
        # description 不可清空
        if values.get("description", "") is None:
            values.pop("description")
        if not values:
            return []

        assignments: list[str] = []
        params: list = []
        for name, value in values.items():
            if name == "tags":
                value = json.dumps(value or [], ensure_ascii=False)
            elif isinstance(value, datetime):
                value = to_db(value)
            assignments.append(f"{name} = ?")
            params.append(value)

        assignments.append("updated_at = ?")
        params.extend([to_db(updated_at), task_id])
        await self._conn.execute(
            f"UPDATE tasks SET {', '.join(assignments)} WHERE task_id = ?",
            params,
        )
        return list(values)

    # ------------------------------------------------------------------
    # 队列
    # ------------------------------------------------------------------

    async def get_queue(self) -> list[int]:
        """按序号返回入队任务 ID"""
        cursor = await self._conn.execute(
            "SELECT task_id FROM tasks WHERE queue_position IS NOT NULL "
            "ORDER BY queue_position, task_id"
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def renumber_queue(self, order: list[int]) -> None:
        """按给定顺序写入稠密序号 0..n-1，不在 order 中的任务移出队列"""
        await self._conn.execute(
            "UPDATE tasks SET queue_position = NULL WHERE queue_position IS NOT NULL"
        )
        for position, task_id in enumerate(order):
            await self._conn.execute(
                "UPDATE tasks SET queue_position = ? WHERE task_id = ?",
                (position, task_id),
            )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            description=row[1],
            lifecycle=Lifecycle(row[2]),
            queue_position=row[3],
            project=row[4],
            tags=json.loads(row[5]) if row[5] else [],
            due_ts=from_db(row[6]),
            scheduled_ts=from_db(row[7]),
            wait_ts=from_db(row[8]),
            alloc_secs=row[9],
            created_at=from_db(row[10]),
            updated_at=from_db(row[11]),
        )
