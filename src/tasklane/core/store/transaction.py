"""写事务封装

所有变更在同一 SQLite 事务内原子提交：
进程内单写锁 + BEGIN IMMEDIATE，提交前运行不变量检查，
任一步失败整体回滚，部分变更不可见。
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import aiosqlite
import structlog

from ..exceptions import AlreadyRunning, InvariantViolation, StoreUnavailable

log = structlog.get_logger()

# 提交前的校验回调（不变量检查）
Validate = Callable[[], Awaitable[None]]


def _is_single_open_conflict(exc: aiosqlite.IntegrityError) -> bool:
    """判断是否为 open session 唯一索引冲突"""
    return "idx_sessions_single_open" in str(exc)


async def _rollback(conn: aiosqlite.Connection) -> None:
    try:
        await conn.rollback()
    except aiosqlite.Error as e:
        log.error("store_rollback_failed", error=str(e))


@asynccontextmanager
async def atomic(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
    validate: Validate | None = None,
) -> AsyncIterator[None]:
    """单写者原子事务

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        lock: 进程内写锁
        validate: 提交前执行的校验，抛出异常则回滚

    Raises:
        AlreadyRunning: open session 唯一索引冲突
        InvariantViolation: 其他约束冲突
        StoreUnavailable: 存储层故障
    """
    async with lock:
        try:
            await conn.execute("BEGIN IMMEDIATE")
        except aiosqlite.Error as e:
            log.error("store_begin_failed", error=str(e))
            raise StoreUnavailable("Failed to begin transaction", e) from e

        try:
            yield
            if validate is not None:
                await validate()
            await conn.commit()
        except aiosqlite.IntegrityError as e:
            await _rollback(conn)
            if _is_single_open_conflict(e):
                raise AlreadyRunning() from e
            raise InvariantViolation(f"Constraint failed: {e}") from e
        except aiosqlite.Error as e:
            await _rollback(conn)
            log.error("store_transaction_failed", error=str(e))
            raise StoreUnavailable(f"Store failure: {e}", e) from e
        except BaseException:
            await _rollback(conn)
            raise
