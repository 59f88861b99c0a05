"""TaskLane Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from functools import partial
from pathlib import Path

import aiosqlite

from .annotation_store import SqliteAnnotationStore
from .event_store import SqliteEventStore
from .external_store import SqliteExternalStore
from .protocols import (
    AnnotationStore,
    EventStore,
    ExternalStore,
    SessionStore,
    StageStore,
    TaskStore,
)
from .session_store import SqliteSessionStore
from .sqlite_init import init_db
from .stage_store import SqliteStageStore
from .task_store import SqliteTaskStore
from .transaction import atomic

# 提交前校验：接收 StoreGroup，违反不变量时抛出异常
Validator = Callable[["StoreGroup"], Awaitable[None]]


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接与写锁"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        validator: Validator | None = None,
    ) -> None:
        self.conn = conn
        self.validator = validator
        self.task_store: TaskStore = SqliteTaskStore(conn)
        self.session_store: SessionStore = SqliteSessionStore(conn)
        self.external_store: ExternalStore = SqliteExternalStore(conn)
        self.annotation_store: AnnotationStore = SqliteAnnotationStore(conn)
        self.event_store: EventStore = SqliteEventStore(conn)
        self.stage_store: StageStore = SqliteStageStore(conn)
        self._lock = asyncio.Lock()

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """开启写事务；提交前运行 validator"""
        validate = partial(self.validator, self) if self.validator is not None else None
        return atomic(self.conn, self._lock, validate)

    @asynccontextmanager
    async def reading(self) -> AsyncIterator[None]:
        """只读访问：与写事务互斥，避免读到未提交的中间状态"""
        async with self._lock:
            yield

    async def close(self) -> None:
        await self.conn.close()


async def create_store_group(
    db_path: str | Path,
    validator: Validator | None = None,
) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径
        validator: 每个写事务提交前运行的校验

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(str(db_path))
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn, validator=validator)


__all__ = [
    "StoreGroup",
    "Validator",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteSessionStore",
    "SqliteExternalStore",
    "SqliteAnnotationStore",
    "SqliteEventStore",
    "SqliteStageStore",
    "init_db",
    "atomic",
]
