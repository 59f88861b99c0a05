"""TimerEngine -- 工作 session 计时

全局单槽状态机：Idle（无 open session）<-> Running(task_id)。
"当前计时"不在内存中缓存，每次都在事务内查询 end_ts IS NULL 的 session。

session 打开时在同一事务内完成：
1. 补记时间早于已有记录时，截断结束时间晚于新起点的已关闭 session
2. 最近一个已关闭 session 若由停止计时关闭，对其执行 micro-session 合并/丢弃
3. 插入新的 open session
"""

from datetime import datetime

import structlog

from .exceptions import (
    AlreadyRunning,
    EmptyQueue,
    InvariantViolation,
    NonChronological,
    NotRunning,
)
from .facts import require_task
from .micro import BoundaryAction, MicroSessionPolicy
from .models.enums import EventType, Lifecycle
from .models.payloads import MicroSessionPayload, SessionAmendedPayload, SessionPayload
from .models.session import SessionOutcome, WorkSession
from .queue_engine import QueueEngine
from .store import StoreGroup
from .timeutil import resolve_ts, utc

log = structlog.get_logger()


class TimerEngine:
    """计时引擎"""

    def __init__(
        self,
        stores: StoreGroup,
        queue: QueueEngine,
        policy: MicroSessionPolicy | None = None,
    ) -> None:
        self._stores = stores
        self._queue = queue
        self.policy = policy or MicroSessionPolicy()

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    async def open_session(self) -> WorkSession | None:
        async with self._stores.reading():
            return await self._stores.session_store.get_open()

    async def sessions_for_task(self, task_id: int) -> list[WorkSession]:
        async with self._stores.reading():
            await require_task(self._stores, task_id, mutable=False)
            return await self._stores.session_store.list_sessions_for_task(task_id)

    # ------------------------------------------------------------------
    # 公开操作
    # ------------------------------------------------------------------

    async def start_default(self, *, at: datetime | None = None) -> SessionOutcome:
        """为队首任务开始计时"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            running = await self._stores.session_store.get_open()
            if running is not None:
                raise AlreadyRunning(running.task_id)
            order = await self._stores.task_store.get_queue()
            if not order:
                raise EmptyQueue()
            return await self._open(order[0], ts)

    async def start_for(self, task_id: int, *, at: datetime | None = None) -> SessionOutcome:
        """为指定任务开始计时

        若其他任务正在计时，先以同一时间戳停止它；
        然后把目标任务移到队首（Waiting 任务在计时期间临时入队）。
        """
        ts = resolve_ts(at)
        async with self._stores.transaction():
            await require_task(self._stores, task_id)
            running = await self._stores.session_store.get_open()
            if running is not None and running.task_id == task_id:
                raise AlreadyRunning(task_id)

            closed = await self._close(ts) if running is not None else None
            await self._queue._place(task_id, 0, ts, reason="start")
            outcome = await self._open(task_id, ts)

        outcome.closed = closed
        if (
            closed is not None
            and closed.session_id != outcome.purged_session_id
            and self.policy.is_micro(closed)
        ):
            outcome.warnings.append(self._micro_warning(closed))
        return outcome

    async def stop(self, *, at: datetime | None = None) -> SessionOutcome:
        """停止当前计时"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            closed = await self._close(ts)

        outcome = SessionOutcome(session=closed, closed=closed)
        if self.policy.is_micro(closed):
            log.warning(
                "micro_session_detected",
                session_id=closed.session_id,
                task_id=closed.task_id,
                duration_s=closed.duration().total_seconds(),
            )
            outcome.warnings.append(self._micro_warning(closed))
        return outcome

    async def interval(
        self,
        task_id: int,
        start_ts: datetime,
        end_ts: datetime,
        *,
        at: datetime | None = None,
    ) -> SessionOutcome:
        """直接补记一个已关闭的 session

        与已有 session 重叠时修改已有记录而不是拒绝新区间：
        结束于区间内的截断，开始于区间内的后移，完全被覆盖的删除，
        完全包含区间的拆分为两段。不触发 micro-session 策略，不改变队列。
        """
        start, end = utc(start_ts), utc(end_ts)
        if end <= start:
            raise NonChronological(f"Interval end {end.isoformat()} is not after start {start.isoformat()}")
        created = resolve_ts(at)

        async with self._stores.transaction():
            await require_task(self._stores, task_id)
            outcome = SessionOutcome()
            sessions = self._stores.session_store

            for existing in await sessions.list_overlapping(start, end):
                if existing.end_ts is None:
                    if existing.start_ts <= start:
                        raise InvariantViolation(
                            f"Interval overlaps the running session {existing.session_id}"
                        )
                    await sessions.update_bounds(existing.session_id, end, None)
                    await self._record_amend(existing, "moved", end, None, created)
                    outcome.amended_session_ids.append(existing.session_id)
                elif existing.start_ts >= start and existing.end_ts <= end:
                    await sessions.delete_session(existing.session_id)
                    await self._record_amend(existing, "deleted", None, None, created)
                    outcome.deleted_session_ids.append(existing.session_id)
                elif existing.start_ts < start and existing.end_ts > end:
                    await sessions.update_bounds(existing.session_id, existing.start_ts, start)
                    tail = await sessions.create_session(
                        existing.task_id, end, existing.end_ts, created, stopped=existing.stopped
                    )
                    await self._record_amend(existing, "split", existing.start_ts, start, created)
                    await self._record_amend(tail, "split", end, existing.end_ts, created)
                    outcome.amended_session_ids.extend([existing.session_id, tail.session_id])
                elif existing.start_ts < start:
                    await sessions.update_bounds(existing.session_id, existing.start_ts, start)
                    await self._record_amend(existing, "truncated", existing.start_ts, start, created)
                    outcome.amended_session_ids.append(existing.session_id)
                else:
                    await sessions.update_bounds(existing.session_id, end, existing.end_ts)
                    await self._record_amend(existing, "moved", end, existing.end_ts, created)
                    outcome.amended_session_ids.append(existing.session_id)

            session = await sessions.create_session(task_id, start, end, created)
            await self._stores.event_store.record(
                task_id,
                EventType.SESSION_RECORDED,
                created,
                SessionPayload(session_id=session.session_id, start_ts=start, end_ts=end),
            )

        log.info(
            "session_recorded",
            session_id=session.session_id,
            task_id=task_id,
            amended=outcome.amended_session_ids,
            deleted=outcome.deleted_session_ids,
        )
        outcome.session = session
        if self.policy.is_micro(session):
            outcome.warnings.append(self._micro_warning(session))
        return outcome

    # ------------------------------------------------------------------
    # 事务内原语
    # ------------------------------------------------------------------

    async def _open(self, task_id: int, at: datetime) -> SessionOutcome:
        """打开 session（调用方已校验任务且已在事务内）"""
        sessions = self._stores.session_store
        running = await sessions.get_open()
        if running is not None:
            raise AlreadyRunning(running.task_id)

        outcome = SessionOutcome()
        outcome.amended_session_ids = await self._truncate_after(at, at)

        start = at
        merged_from: WorkSession | None = None
        # 只有紧邻的、由停止计时关闭的 session 参与合并/丢弃，补记的 session 原样保留
        previous = await sessions.get_last_closed()
        if previous is not None and previous.stopped and await self._is_adjustable(previous):
            decision = self.policy.decide(previous, task_id, at)
            if decision.action == BoundaryAction.MERGE:
                start = previous.start_ts
                merged_from = previous
            elif decision.action == BoundaryAction.PURGE:
                await sessions.delete_session(previous.session_id)
                await self._stores.event_store.record(
                    previous.task_id,
                    EventType.SESSION_PURGED,
                    at,
                    MicroSessionPayload(
                        session_id=previous.session_id,
                        duration_s=decision.duration_s,
                        gap_s=decision.gap_s,
                    ),
                )
                outcome.purged_session_id = previous.session_id
                log.info(
                    "micro_session_purged",
                    session_id=previous.session_id,
                    task_id=previous.task_id,
                    duration_s=decision.duration_s,
                    gap_s=decision.gap_s,
                )

        session = await sessions.create_session(task_id, start, None, at)

        if merged_from is not None:
            await self._stores.annotation_store.repoint_session(
                merged_from.session_id, session.session_id
            )
            await sessions.delete_session(merged_from.session_id)
            assert merged_from.end_ts is not None
            await self._stores.event_store.record(
                task_id,
                EventType.SESSION_MERGED,
                at,
                MicroSessionPayload(
                    session_id=merged_from.session_id,
                    into_session_id=session.session_id,
                    duration_s=merged_from.duration().total_seconds(),
                    gap_s=(at - merged_from.end_ts).total_seconds(),
                ),
            )
            outcome.merged_session_id = merged_from.session_id
            log.info(
                "micro_session_merged",
                session_id=merged_from.session_id,
                into_session_id=session.session_id,
                task_id=task_id,
            )

        await self._stores.event_store.record(
            task_id,
            EventType.SESSION_STARTED,
            at,
            SessionPayload(session_id=session.session_id, start_ts=session.start_ts),
        )
        log.info(
            "session_started",
            session_id=session.session_id,
            task_id=task_id,
            start_ts=session.start_ts.isoformat(),
        )
        outcome.session = session
        return outcome

    async def _close(self, at: datetime) -> WorkSession:
        """关闭 open session；Waiting 任务随即移出队列"""
        running = await self._stores.session_store.get_open()
        if running is None:
            raise NotRunning()
        if at <= running.start_ts:
            raise NonChronological(
                f"Stop time {at.isoformat()} is not after session start "
                f"{running.start_ts.isoformat()}"
            )

        closed = await self._stores.session_store.close_session(running.session_id, at)
        await self._stores.event_store.record(
            closed.task_id,
            EventType.SESSION_STOPPED,
            at,
            SessionPayload(
                session_id=closed.session_id,
                start_ts=closed.start_ts,
                end_ts=closed.end_ts,
            ),
        )
        log.info(
            "session_stopped",
            session_id=closed.session_id,
            task_id=closed.task_id,
            duration_s=closed.duration().total_seconds(),
        )

        if await self._stores.external_store.get_waiting(closed.task_id) is not None:
            await self._queue._dequeue(closed.task_id, at, reason="external")
        return closed

    async def _follow_front(self, at: datetime) -> SessionOutcome | None:
        """队首变化后让计时跟随；队列清空则仅停止"""
        running = await self._stores.session_store.get_open()
        if running is None:
            return None
        order = await self._stores.task_store.get_queue()
        if order and order[0] == running.task_id:
            return None

        closed = await self._close(at)
        order = await self._stores.task_store.get_queue()
        if not order:
            return SessionOutcome(closed=closed)
        outcome = await self._open(order[0], at)
        outcome.closed = closed
        return outcome

    async def _truncate_after(self, start: datetime, at: datetime) -> list[int]:
        """补记起点早于已有记录时截断重叠的已关闭 session"""
        amended: list[int] = []
        for existing in await self._stores.session_store.list_overlapping(start, None):
            if existing.end_ts is None:
                continue
            if existing.start_ts >= start:
                raise NonChronological(
                    f"Session {existing.session_id} starts at or after {start.isoformat()}"
                )
            await self._stores.session_store.update_bounds(
                existing.session_id, existing.start_ts, start
            )
            await self._record_amend(existing, "truncated", existing.start_ts, start, at)
            amended.append(existing.session_id)
        return amended

    async def _is_adjustable(self, session: WorkSession) -> bool:
        """只有 Open 任务的 session 参与合并/丢弃"""
        task = await self._stores.task_store.get_task(session.task_id)
        return task is not None and task.lifecycle == Lifecycle.OPEN

    async def _record_amend(
        self,
        session: WorkSession,
        action: str,
        start_ts: datetime | None,
        end_ts: datetime | None,
        at: datetime,
    ) -> None:
        await self._stores.event_store.record(
            session.task_id,
            EventType.SESSION_AMENDED,
            at,
            SessionAmendedPayload(
                session_id=session.session_id,
                action=action,
                start_ts=start_ts,
                end_ts=end_ts,
            ),
        )

    def _micro_warning(self, session: WorkSession) -> str:
        seconds = session.duration().total_seconds()
        return (
            f"Session {session.session_id} for task {session.task_id} lasted "
            f"{seconds:.0f}s, shorter than {self.policy.threshold_s}s"
        )
