"""EventStore SQLite 实现

事件表 append-only：只允许插入，不允许更新或删除。
事件与事实变更在同一事务内写入。
"""

import json
from datetime import datetime

import aiosqlite
from pydantic import BaseModel
from ulid import ULID

from ..models.enums import EventType
from ..models.event import Event
from ..timeutil import from_db, to_db


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_event(self, event: Event) -> None:
        """追加事件（append-only）

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO events (event_id, task_id, ts, type, payload)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.task_id,
                to_db(event.ts),
                event.type.value,
                json.dumps(event.payload, ensure_ascii=False),
            ),
        )

    async def record(
        self,
        task_id: int,
        event_type: EventType,
        ts: datetime,
        payload: BaseModel | None = None,
    ) -> Event:
        """构建并追加事件，payload 以 JSON 模式序列化"""
        event = Event(
            event_id=str(ULID()),
            task_id=task_id,
            ts=ts,
            type=event_type,
            payload=payload.model_dump(mode="json") if payload is not None else {},
        )
        await self.append_event(event)
        return event

    async def get_events_for_task(self, task_id: int) -> list[Event]:
        """查询指定任务的所有事件，按写入顺序"""
        cursor = await self._conn.execute(
            "SELECT event_id, task_id, ts, type, payload FROM events "
            "WHERE task_id = ? ORDER BY seq ASC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> Event:
        """将数据库行转换为 Event 模型"""
        payload = json.loads(row[4]) if row[4] else {}
        return Event(
            event_id=row[0],
            task_id=row[1],
            ts=from_db(row[2]),
            type=EventType(row[3]),
            payload=payload,
        )
