"""AnnotationStore SQLite 实现 -- append-only

session 被删除时外键 ON DELETE SET NULL 清空引用；
session 被合并时由调用方将引用改指到保留的 session。
"""

from datetime import datetime

import aiosqlite

from ..models.annotation import Annotation
from ..timeutil import from_db, to_db


class SqliteAnnotationStore:
    """AnnotationStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def add_annotation(
        self,
        task_id: int,
        note: str,
        entry_ts: datetime,
        session_id: int | None = None,
    ) -> Annotation:
        cursor = await self._conn.execute(
            "INSERT INTO annotations (task_id, session_id, note, entry_ts) VALUES (?, ?, ?, ?)",
            (task_id, session_id, note, to_db(entry_ts)),
        )
        return Annotation(
            annotation_id=cursor.lastrowid,
            task_id=task_id,
            session_id=session_id,
            note=note,
            entry_ts=entry_ts,
        )

    async def list_for_task(self, task_id: int) -> list[Annotation]:
        """查询任务的所有备注，按记录时间正序"""
        cursor = await self._conn.execute(
            "SELECT annotation_id, task_id, session_id, note, entry_ts "
            "FROM annotations WHERE task_id = ? ORDER BY entry_ts, annotation_id",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [
            Annotation(
                annotation_id=row[0],
                task_id=row[1],
                session_id=row[2],
                note=row[3],
                entry_ts=from_db(row[4]),
            )
            for row in rows
        ]

    async def repoint_session(self, from_session_id: int, to_session_id: int) -> None:
        """session 合并后，将备注引用改指到保留的 session"""
        await self._conn.execute(
            "UPDATE annotations SET session_id = ? WHERE session_id = ?",
            (to_session_id, from_session_id),
        )
