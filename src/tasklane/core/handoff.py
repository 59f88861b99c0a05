"""HandoffManager -- 委派给第三方的任务

send 创建 Waiting 记录并把任务移出队列（任务正在计时时保留队首，
待停止计时后再移出）；recall 软删除记录并按指定位置重新入队。
"""

from datetime import datetime

import structlog

from .exceptions import AlreadyWaiting, NoWaitingRecord
from .facts import require_task
from .models.enums import EventType, ExternalStatus
from .models.external import ExternalRecord
from .models.payloads import ExternalPayload
from .queue_engine import QueueEngine
from .store import StoreGroup
from .timeutil import resolve_ts

log = structlog.get_logger()


class HandoffManager:
    """委派管理"""

    def __init__(self, stores: StoreGroup, queue: QueueEngine) -> None:
        self._stores = stores
        self._queue = queue

    async def send(
        self,
        task_id: int,
        recipient: str,
        note: str | None = None,
        *,
        at: datetime | None = None,
    ) -> ExternalRecord:
        """委派任务给 recipient"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            await require_task(self._stores, task_id)
            if await self._stores.external_store.get_waiting(task_id) is not None:
                raise AlreadyWaiting(task_id)

            record = await self._stores.external_store.create_waiting(
                task_id, recipient, note, ts
            )
            running = await self._stores.session_store.get_open()
            if running is None or running.task_id != task_id:
                await self._queue._dequeue(task_id, ts, reason="external")
            await self._stores.event_store.record(
                task_id,
                EventType.EXTERNAL_SENT,
                ts,
                ExternalPayload(external_id=record.external_id, recipient=recipient),
            )

        log.info("external_sent", task_id=task_id, recipient=recipient)
        return record

    async def recall(
        self,
        task_id: int,
        position: int = 0,
        *,
        at: datetime | None = None,
    ) -> ExternalRecord:
        """收回委派，重新入队到 position（默认队首，越界钳制）

        任务正在计时时已位于队首，队列保持不变；
        其他任务正在计时时队首让给计时任务，最靠前插入到位置 1。
        """
        ts = resolve_ts(at)
        async with self._stores.transaction():
            await require_task(self._stores, task_id, mutable=False)
            record = await self._stores.external_store.get_waiting(task_id)
            if record is None:
                raise NoWaitingRecord(task_id)

            await self._stores.external_store.mark_returned(record.external_id, ts)
            running = await self._stores.session_store.get_open()
            placed: int | None = None
            if running is None:
                placed = await self._queue._place(task_id, position, ts, reason="recall")
            elif running.task_id != task_id:
                placed = await self._queue._place(task_id, max(position, 1), ts, reason="recall")
            await self._stores.event_store.record(
                task_id,
                EventType.EXTERNAL_RECALLED,
                ts,
                ExternalPayload(
                    external_id=record.external_id,
                    recipient=record.recipient,
                    position=placed,
                ),
            )

        log.info("external_recalled", task_id=task_id, position=placed)
        return record.model_copy(
            update={"status": ExternalStatus.RETURNED, "returned_at": ts}
        )

    async def waiting(self, recipient: str | None = None) -> list[ExternalRecord]:
        """列出 Waiting 记录，可按接收方筛选"""
        async with self._stores.reading():
            return await self._stores.external_store.list_waiting(recipient)

    async def history(self, task_id: int) -> list[ExternalRecord]:
        """任务的全部委派记录（含已回收），按委派时间排序"""
        async with self._stores.reading():
            await require_task(self._stores, task_id, mutable=False)
            return await self._stores.external_store.list_for_task(task_id)
