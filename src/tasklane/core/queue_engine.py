"""QueueEngine -- 有序就绪队列

队列以 tasks.queue_position 的稠密序号表示，位置 0 为队首。
每次变更都在事务内整体重写序号，保证无空洞、无重复。
queue 操作本身不改变计时或委派状态；是否破坏不变量由提交前的检查判定
（例如把计时中的任务移出队首会被拒绝）。

公开方法各自开启一个事务；下划线方法假定调用方已在事务内，
供 TimerEngine / HandoffManager / Tracker 组合成复合事务。
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from .exceptions import EmptyQueue
from .facts import require_task
from .models.enums import EventType
from .models.payloads import QueuePayload
from .store import StoreGroup
from .timeutil import resolve_ts

if TYPE_CHECKING:
    from .timer_engine import TimerEngine

log = structlog.get_logger()


def resolve_index(order: list[int], index: int) -> int:
    """将用户给出的下标解析为合法位置

    负数从队尾倒数（-1 为最后一个），越界值钳制到最近的合法边界，
    从不因越界报错。队列为空时抛 EmptyQueue。
    """
    if not order:
        raise EmptyQueue()
    if index < 0:
        index += len(order)
    return max(0, min(index, len(order) - 1))


class QueueEngine:
    """队列引擎"""

    def __init__(self, stores: StoreGroup) -> None:
        self._stores = stores
        self._timer: TimerEngine | None = None

    def attach_timer(self, timer: TimerEngine) -> None:
        """绑定计时引擎，switch_timer 选项需要"""
        self._timer = timer

    # ------------------------------------------------------------------
    # 公开操作
    # ------------------------------------------------------------------

    async def queue(self) -> list[int]:
        """按序返回入队任务 ID"""
        async with self._stores.reading():
            return await self._stores.task_store.get_queue()

    async def enqueue(self, task_id: int, *, at: datetime | None = None) -> int:
        """入队到队尾；已在队列中则移到队尾。返回新位置"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            await require_task(self._stores, task_id)
            return await self._place(task_id, None, ts, reason="enqueue")

    async def select(self, index: int = 0) -> int:
        """按下标选取任务（钳制越界）"""
        async with self._stores.reading():
            order = await self._stores.task_store.get_queue()
            return order[resolve_index(order, index)]

    async def promote_to_front(
        self,
        task_id: int,
        *,
        switch_timer: bool = False,
        at: datetime | None = None,
    ) -> list[int]:
        """把任务移到队首（未入队则插入队首），其余任务保持相对顺序

        switch_timer=True 时计时跟随新的队首。
        """
        ts = resolve_ts(at)
        async with self._stores.transaction():
            await require_task(self._stores, task_id)
            await self._place(task_id, 0, ts, reason="promote")
            if switch_timer:
                await self._follow_front(ts)
            return await self._stores.task_store.get_queue()

    async def pick(
        self,
        index: int,
        *,
        switch_timer: bool = False,
        at: datetime | None = None,
    ) -> int:
        """按下标选取任务并移到队首，返回任务 ID"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            order = await self._stores.task_store.get_queue()
            task_id = order[resolve_index(order, index)]
            await self._place(task_id, 0, ts, reason="pick")
            if switch_timer:
                await self._follow_front(ts)
            return task_id

    async def rotate(
        self,
        n: int = 1,
        *,
        switch_timer: bool = False,
        at: datetime | None = None,
    ) -> list[int]:
        """把队首 n 个任务依次移到队尾；空队列或单元素队列不变"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            order = await self._stores.task_store.get_queue()
            if len(order) > 1:
                k = n % len(order)
                if k:
                    moved = order[:k]
                    order = order[k:] + moved
                    await self._stores.task_store.renumber_queue(order)
                    for task_id in moved:
                        await self._stores.event_store.record(
                            task_id,
                            EventType.QUEUE_MOVED,
                            ts,
                            QueuePayload(position=order.index(task_id), reason="rotate"),
                        )
                    log.info("queue_reordered", reason="rotate", n=n, order=order)
            if switch_timer:
                await self._follow_front(ts)
            return await self._stores.task_store.get_queue()

    async def remove(
        self,
        index: int = 0,
        *,
        task_id: int | None = None,
        switch_timer: bool = False,
        at: datetime | None = None,
    ) -> int | None:
        """按下标或任务 ID 移出队列，返回被移除的任务 ID

        队列为空抛 EmptyQueue；按 ID 移除未入队任务时不做任何事并返回 None。
        """
        ts = resolve_ts(at)
        async with self._stores.transaction():
            order = await self._stores.task_store.get_queue()
            if not order:
                raise EmptyQueue()
            if task_id is None:
                task_id = order[resolve_index(order, index)]
            elif task_id not in order:
                return None
            await self._dequeue(task_id, ts, reason="remove")
            if switch_timer:
                await self._follow_front(ts)
            return task_id

    async def clear(self, *, stop_timer: bool = False, at: datetime | None = None) -> list[int]:
        """清空队列，返回被移出的任务 ID

        计时进行中时需 stop_timer=True，否则违反队首约束被拒绝。
        """
        ts = resolve_ts(at)
        async with self._stores.transaction():
            if stop_timer and self._timer is not None:
                if await self._stores.session_store.get_open() is not None:
                    await self._timer._close(ts)
            order = await self._stores.task_store.get_queue()
            await self._stores.task_store.renumber_queue([])
            for position, task_id in enumerate(order):
                await self._stores.event_store.record(
                    task_id,
                    EventType.QUEUE_REMOVED,
                    ts,
                    QueuePayload(position=position, reason="clear"),
                )
            log.info("queue_cleared", count=len(order))
            return order

    # ------------------------------------------------------------------
    # 事务内原语
    # ------------------------------------------------------------------

    async def _place(
        self,
        task_id: int,
        position: int | None,
        at: datetime,
        *,
        reason: str,
    ) -> int:
        """把任务放到指定位置（None 为队尾），返回实际位置"""
        original = await self._stores.task_store.get_queue()
        order = list(original)
        was_queued = task_id in order
        if was_queued:
            order.remove(task_id)
        if position is None:
            position = len(order)
        position = max(0, min(position, len(order)))
        order.insert(position, task_id)
        if order == original:
            return position
        await self._stores.task_store.renumber_queue(order)
        await self._stores.event_store.record(
            task_id,
            EventType.QUEUE_MOVED if was_queued else EventType.QUEUE_ADDED,
            at,
            QueuePayload(position=position, reason=reason),
        )
        log.info("queue_placed", task_id=task_id, position=position, reason=reason)
        return position

    async def _dequeue(self, task_id: int, at: datetime, *, reason: str) -> int | None:
        """移出队列并收紧序号，返回原位置；未入队返回 None"""
        order = await self._stores.task_store.get_queue()
        if task_id not in order:
            return None
        position = order.index(task_id)
        order.remove(task_id)
        await self._stores.task_store.renumber_queue(order)
        await self._stores.event_store.record(
            task_id,
            EventType.QUEUE_REMOVED,
            at,
            QueuePayload(position=position, reason=reason),
        )
        log.info("queue_removed", task_id=task_id, position=position, reason=reason)
        return position

    async def _follow_front(self, at: datetime) -> None:
        if self._timer is None:
            raise RuntimeError("QueueEngine has no timer attached")
        await self._timer._follow_front(at)
