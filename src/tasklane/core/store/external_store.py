"""ExternalStore SQLite 实现

回收采用软删除：status 置为 RETURNED，保留历史记录。
注意：所有方法不自动提交事务，需由调用方管理事务。
"""

from datetime import datetime

import aiosqlite

from ..models.enums import ExternalStatus
from ..models.external import ExternalRecord
from ..timeutil import from_db, to_db

_EXTERNAL_COLUMNS = "external_id, task_id, recipient, note, sent_at, status, returned_at"


class SqliteExternalStore:
    """ExternalStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_waiting(
        self,
        task_id: int,
        recipient: str,
        note: str | None,
        sent_at: datetime,
    ) -> ExternalRecord:
        cursor = await self._conn.execute(
            """
            INSERT INTO externals (task_id, recipient, note, sent_at, status)
            VALUES (?, ?, ?, ?, 'WAITING')
            """,
            (task_id, recipient, note, to_db(sent_at)),
        )
        return ExternalRecord(
            external_id=cursor.lastrowid,
            task_id=task_id,
            recipient=recipient,
            note=note,
            sent_at=sent_at,
        )

    async def get_waiting(self, task_id: int) -> ExternalRecord | None:
        """查询任务的 WAITING 记录"""
        cursor = await self._conn.execute(
            f"SELECT {_EXTERNAL_COLUMNS} FROM externals "
            "WHERE task_id = ? AND status = 'WAITING'",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_external(row)

    async def list_waiting(self, recipient: str | None = None) -> list[ExternalRecord]:
        """查询所有 WAITING 记录，可按接收方筛选，按发出时间正序"""
        if recipient is not None:
            cursor = await self._conn.execute(
                f"SELECT {_EXTERNAL_COLUMNS} FROM externals "
                "WHERE status = 'WAITING' AND recipient = ? ORDER BY sent_at, external_id",
                (recipient,),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_EXTERNAL_COLUMNS} FROM externals "
                "WHERE status = 'WAITING' ORDER BY sent_at, external_id"
            )
        rows = await cursor.fetchall()
        return [self._row_to_external(row) for row in rows]

    async def list_for_task(self, task_id: int) -> list[ExternalRecord]:
        cursor = await self._conn.execute(
            f"SELECT {_EXTERNAL_COLUMNS} FROM externals WHERE task_id = ? "
            "ORDER BY sent_at, external_id",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_external(row) for row in rows]

    async def mark_returned(self, external_id: int, returned_at: datetime) -> None:
        await self._conn.execute(
            "UPDATE externals SET status = 'RETURNED', returned_at = ? WHERE external_id = ?",
            (to_db(returned_at), external_id),
        )

    @staticmethod
    def _row_to_external(row: aiosqlite.Row) -> ExternalRecord:
        """将数据库行转换为 ExternalRecord 模型"""
        return ExternalRecord(
            external_id=row[0],
            task_id=row[1],
            recipient=row[2],
            note=row[3],
            sent_at=from_db(row[4]),
            status=ExternalStatus(row[5]),
            returned_at=from_db(row[6]),
        )
