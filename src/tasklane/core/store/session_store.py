"""SessionStore SQLite 实现

end_ts 为 NULL 的行即计时中的 session；
idx_sessions_single_open 唯一索引保证全库至多一行。
注意：所有方法不自动提交事务，需由调用方管理事务。
"""

from datetime import datetime

import aiosqlite

from ..models.session import WorkSession
from ..timeutil import from_db, to_db

_SESSION_COLUMNS = "session_id, task_id, start_ts, end_ts, created_at, stopped"


class SqliteSessionStore:
    """SessionStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_session(
        self,
        task_id: int,
        start_ts: datetime,
        end_ts: datetime | None,
        created_at: datetime,
        *,
        stopped: bool = False,
    ) -> WorkSession:
        """创建 session；end_ts 为 None 时为 open session"""
        cursor = await self._conn.execute(
            "INSERT INTO sessions (task_id, start_ts, end_ts, created_at, stopped) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                task_id,
                to_db(start_ts),
                to_db(end_ts) if end_ts is not None else None,
                to_db(created_at),
                int(stopped),
            ),
        )
        session = await self.get_session(cursor.lastrowid)
        assert session is not None
        return session

    async def get_session(self, session_id: int) -> WorkSession | None:
        cursor = await self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE session_id = ?",
            (session_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_session(row)

    async def get_open(self) -> WorkSession | None:
        """查询当前 open session（全库至多一个）"""
        cursor = await self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE end_ts IS NULL"
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_session(row)

    async def list_open(self) -> list[WorkSession]:
        """查询所有 open session（不变量检查用）"""
        cursor = await self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE end_ts IS NULL"
        )
        rows = await cursor.fetchall()
        return [self._row_to_session(row) for row in rows]

    async def close_session(self, session_id: int, end_ts: datetime) -> WorkSession:
        await self._conn.execute(
            "UPDATE sessions SET end_ts = ?, stopped = 1 WHERE session_id = ?",
            (to_db(end_ts), session_id),
        )
        session = await self.get_session(session_id)
        assert session is not None
        return session

    async def update_bounds(
        self,
        session_id: int,
        start_ts: datetime,
        end_ts: datetime | None,
    ) -> None:
        await self._conn.execute(
            "UPDATE sessions SET start_ts = ?, end_ts = ? WHERE session_id = ?",
            (
                to_db(start_ts),
                to_db(end_ts) if end_ts is not None else None,
                session_id,
            ),
        )

    async def delete_session(self, session_id: int) -> None:
        await self._conn.execute(
            "DELETE FROM sessions WHERE session_id = ?",
            (session_id,),
        )

    async def get_last_closed(self) -> WorkSession | None:
        """查询结束时间最晚的已关闭 session"""
        cursor = await self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE end_ts IS NOT NULL "
            "ORDER BY end_ts DESC, session_id DESC LIMIT 1"
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_session(row)

    async def list_overlapping(
        self,
        start_ts: datetime,
        end_ts: datetime | None,
    ) -> list[WorkSession]:
        """查询与 [start_ts, end_ts) 相交的 session（end_ts 为 None 表示无上界）

        open session 视为无上界。
        """
        if end_ts is None:
            cursor = await self._conn.execute(
                f"SELECT {_SESSION_COLUMNS} FROM sessions "
                "WHERE end_ts IS NULL OR end_ts > ? ORDER BY start_ts",
                (to_db(start_ts),),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_SESSION_COLUMNS} FROM sessions "
                "WHERE start_ts < ? AND (end_ts IS NULL OR end_ts > ?) ORDER BY start_ts",
                (to_db(end_ts), to_db(start_ts)),
            )
        rows = await cursor.fetchall()
        return [self._row_to_session(row) for row in rows]

    async def list_sessions_for_task(self, task_id: int) -> list[WorkSession]:
        """查询指定任务的所有 session，按开始时间正序"""
        cursor = await self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE task_id = ? ORDER BY start_ts",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_session(row) for row in rows]

    async def task_ids_with_sessions(self) -> set[int]:
        cursor = await self._conn.execute("SELECT DISTINCT task_id FROM sessions")
        rows = await cursor.fetchall()
        return {row[0] for row in rows}

    @staticmethod
    def _row_to_session(row: aiosqlite.Row) -> WorkSession:
        """将数据库行转换为 WorkSession 模型"""
        return WorkSession(
            session_id=row[0],
            task_id=row[1],
            start_ts=from_db(row[2]),
            end_ts=from_db(row[3]),
            created_at=from_db(row[4]),
            stopped=bool(row[5]),
        )
