"""tasklane 测试配置 -- 临时数据库与 Tracker fixture"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from tasklane.core.config import TrackerConfig
from tasklane.core.service import Tracker
from tasklane.core.store import StoreGroup, create_store_group

# 测试统一使用显式时间，避免依赖墙钟
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.fixture
def clock() -> Callable[[float], datetime]:
    """clock(s) 返回 T0 之后 s 秒的时间"""

    def _at(seconds: float = 0) -> datetime:
        return T0 + timedelta(seconds=seconds)

    return _at


@pytest_asyncio.fixture
async def db_path(tmp_path: Path) -> Path:
    """临时数据库路径"""
    return tmp_path / "sqlite" / "tasklane_test.db"


@pytest_asyncio.fixture
async def stores(db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """未启用不变量检查的 Store 实例组"""
    store_group = await create_store_group(db_path)
    yield store_group
    await store_group.close()


@pytest_asyncio.fixture
async def tracker(db_path: Path) -> AsyncGenerator[Tracker, None]:
    """默认策略（30s 阈值，duration_and_gap）的 Tracker"""
    instance = await Tracker.open(TrackerConfig(db_path=str(db_path)))
    yield instance
    await instance.close()


@pytest_asyncio.fixture
async def make_tasks(
    tracker: Tracker,
    clock: Callable[[float], datetime],
) -> Callable[..., Awaitable[list[int]]]:
    """批量创建任务，默认按创建顺序入队"""

    async def _make(*descriptions: str, enqueue: bool = True) -> list[int]:
        ids = []
        for description in descriptions:
            task = await tracker.create_task(description, enqueue=enqueue, at=clock(0))
            ids.append(task.task_id)
        return ids

    return _make
