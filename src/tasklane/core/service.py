"""Tracker -- 核心操作门面

组合 QueueEngine / TimerEngine / HandoffManager，并提供任务原语、
生命周期、备注、分类与快照等操作。
所有写操作各自在一个事务内完成，提交前统一运行不变量检查。
"""

from datetime import datetime

import structlog

from . import guard
from .classification import StageTable
from .config import TrackerConfig, load_tracker_config
from .exceptions import TerminalLifecycle
from .facts import load_all_facts, load_task_facts, require_task
from .handoff import HandoffManager
from .micro import MicroSessionPolicy
from .models.annotation import Annotation
from .models.enums import EventType, Lifecycle, Status, TimerState, validate_transition
from .models.event import Event
from .models.external import ExternalRecord
from .models.facts import QueueEntry, Snapshot, TaskView
from .models.payloads import (
    AnnotationPayload,
    ExternalPayload,
    LifecycleTransitionPayload,
    TaskCreatedPayload,
    TaskModifiedPayload,
)
from .models.session import SessionOutcome, WorkSession
from .models.stage import StageRule
from .models.task import Task, TaskChanges
from .queue_engine import QueueEngine
from .store import StoreGroup, create_store_group
from .timer_engine import TimerEngine
from .timeutil import resolve_ts, utc

log = structlog.get_logger()


class Tracker:
    """任务追踪核心服务"""

    def __init__(
        self,
        stores: StoreGroup,
        policy: MicroSessionPolicy | None = None,
        stage_table: StageTable | None = None,
    ) -> None:
        # Tracker 持有的 StoreGroup 总是在提交前检查不变量
        if stores.validator is None:
            stores.validator = guard.enforce
        self._stores = stores
        self.stage_table = stage_table or StageTable()
        self.queue = QueueEngine(stores)
        self.timer = TimerEngine(stores, self.queue, policy)
        self.queue.attach_timer(self.timer)
        self.handoff = HandoffManager(stores, self.queue)

    @classmethod
    async def open(cls, config: TrackerConfig | None = None) -> "Tracker":
        """按配置打开数据库并加载分类覆盖规则"""
        config = config or load_tracker_config()
        stores = await create_store_group(config.db_path, validator=guard.enforce)
        tracker = cls(
            stores,
            policy=MicroSessionPolicy(config.micro_seconds, config.purge_trigger),
        )
        await tracker.reload_stages()
        log.info(
            "tracker_opened",
            db_path=config.db_path,
            micro_seconds=config.micro_seconds,
            purge_trigger=config.purge_trigger.value,
        )
        return tracker

    @property
    def stores(self) -> StoreGroup:
        return self._stores

    async def close(self) -> None:
        await self._stores.close()

    # ------------------------------------------------------------------
    # 任务原语
    # ------------------------------------------------------------------

    async def create_task(
        self,
        description: str,
        *,
        project: str | None = None,
        tags: list[str] | None = None,
        due_ts: datetime | None = None,
        scheduled_ts: datetime | None = None,
        wait_ts: datetime | None = None,
        alloc_secs: int | None = None,
        enqueue: bool = False,
        at: datetime | None = None,
    ) -> Task:
        """创建任务；enqueue=True 时在同一事务内入队到队尾"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            task = await self._stores.task_store.create_task(
                description,
                ts,
                project=project,
                tags=tags,
                due_ts=utc(due_ts) if due_ts else None,
                scheduled_ts=utc(scheduled_ts) if scheduled_ts else None,
                wait_ts=utc(wait_ts) if wait_ts else None,
                alloc_secs=alloc_secs,
            )
            await self._stores.event_store.record(
                task.task_id,
                EventType.TASK_CREATED,
                ts,
                TaskCreatedPayload(
                    description=description,
                    project=project,
                    tags=tags or [],
                ),
            )
            if enqueue:
                await self.queue._place(task.task_id, None, ts, reason="create")
                task = await self._stores.task_store.get_task(task.task_id)

        log.info("task_created", task_id=task.task_id, enqueued=enqueue)
        return task

    async def modify_task(
        self,
        task_id: int,
        changes: TaskChanges,
        *,
        at: datetime | None = None,
    ) -> Task:
        """修改描述性属性；不触及队列、计时与委派状态，终态任务也允许"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            await require_task(self._stores, task_id, mutable=False)
            fields = await self._stores.task_store.update_attributes(task_id, changes, ts)
            if fields:
                await self._stores.event_store.record(
                    task_id,
                    EventType.TASK_MODIFIED,
                    ts,
                    TaskModifiedPayload(fields=fields),
                )
            task = await self._stores.task_store.get_task(task_id)
        return task

    async def get_task(self, task_id: int) -> Task:
        async with self._stores.reading():
            return await require_task(self._stores, task_id, mutable=False)

    async def list_tasks(self, lifecycle: Lifecycle | None = None) -> list[Task]:
        async with self._stores.reading():
            return await self._stores.task_store.list_tasks(lifecycle)

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    async def complete(
        self,
        task_id: int,
        *,
        start_next: bool = False,
        at: datetime | None = None,
    ) -> tuple[Task, SessionOutcome]:
        """完成任务

        计时中则以同一时间戳停止；移出队列；收回 Waiting 记录。
        start_next=True 时在同一事务内为新的队首开始计时。
        """
        return await self._finish(task_id, Lifecycle.CLOSED, at, start_next=start_next)

    async def cancel(
        self,
        task_id: int,
        *,
        at: datetime | None = None,
    ) -> tuple[Task, SessionOutcome]:
        """取消任务，清理规则与 complete 相同"""
        return await self._finish(task_id, Lifecycle.CANCELLED, at)

    async def _finish(
        self,
        task_id: int,
        target: Lifecycle,
        at: datetime | None,
        *,
        start_next: bool = False,
    ) -> tuple[Task, SessionOutcome]:
        ts = resolve_ts(at)
        outcome = SessionOutcome()
        async with self._stores.transaction():
            task = await require_task(self._stores, task_id)
            if not validate_transition(task.lifecycle, target):
                raise TerminalLifecycle(task_id, task.lifecycle.value)

            running = await self._stores.session_store.get_open()
            if running is not None and running.task_id == task_id:
                outcome.closed = await self.timer._close(ts)

            await self.queue._dequeue(task_id, ts, reason=target.value.lower())

            record = await self._stores.external_store.get_waiting(task_id)
            if record is not None:
                await self._stores.external_store.mark_returned(record.external_id, ts)
                await self._stores.event_store.record(
                    task_id,
                    EventType.EXTERNAL_RECALLED,
                    ts,
                    ExternalPayload(external_id=record.external_id, recipient=record.recipient),
                )

            await self._stores.task_store.update_lifecycle(task_id, target, ts)
            await self._stores.event_store.record(
                task_id,
                EventType.LIFECYCLE_TRANSITION,
                ts,
                LifecycleTransitionPayload(from_lifecycle=task.lifecycle, to_lifecycle=target),
            )

            if start_next and await self._stores.session_store.get_open() is None:
                order = await self._stores.task_store.get_queue()
                if order:
                    started = await self.timer._open(order[0], ts)
                    outcome.session = started.session
                    outcome.merged_session_id = started.merged_session_id
                    outcome.purged_session_id = started.purged_session_id
                    outcome.amended_session_ids = started.amended_session_ids

            task = await self._stores.task_store.get_task(task_id)

        log.info(
            "task_finished",
            task_id=task_id,
            lifecycle=target.value,
            stopped=outcome.closed is not None,
            next_task_id=outcome.session.task_id if outcome.session else None,
        )
        return task, outcome

    # ------------------------------------------------------------------
    # 备注
    # ------------------------------------------------------------------

    async def annotate(
        self,
        task_id: int,
        note: str,
        *,
        at: datetime | None = None,
    ) -> Annotation:
        """追加备注；任务正在计时时关联当前 open session"""
        ts = resolve_ts(at)
        async with self._stores.transaction():
            await require_task(self._stores, task_id, mutable=False)
            running = await self._stores.session_store.get_open()
            session_id = (
                running.session_id if running is not None and running.task_id == task_id else None
            )
            annotation = await self._stores.annotation_store.add_annotation(
                task_id, note, ts, session_id
            )
            await self._stores.event_store.record(
                task_id,
                EventType.ANNOTATION_ADDED,
                ts,
                AnnotationPayload(annotation_id=annotation.annotation_id, session_id=session_id),
            )
        return annotation

    async def annotations_for_task(self, task_id: int) -> list[Annotation]:
        async with self._stores.reading():
            await require_task(self._stores, task_id, mutable=False)
            return await self._stores.annotation_store.list_for_task(task_id)

    # ------------------------------------------------------------------
    # 分类
    # ------------------------------------------------------------------

    async def classify(self, task_id: int) -> Status:
        """推导任务当前的分类状态（不落库）"""
        return (await self.stage_for(task_id)).status

    async def stage_for(self, task_id: int) -> StageRule:
        """返回命中的分类规则（含排序与颜色）"""
        async with self._stores.reading():
            facts = await load_task_facts(self._stores, task_id)
        return self.stage_table.rule_for(facts)

    async def reload_stages(self) -> StageTable:
        """从 stage_map 重新加载覆盖规则"""
        async with self._stores.reading():
            overrides = await self._stores.stage_store.list_overrides()
        self.stage_table = StageTable(overrides)
        return self.stage_table

    async def set_stage_override(self, rule: StageRule) -> StageTable:
        """持久化一条覆盖规则并立即生效"""
        async with self._stores.transaction():
            await self._stores.stage_store.put_override(rule)
        self.stage_table = self.stage_table.with_override(rule)
        log.info("stage_override_set", tier=rule.tier.value, status=rule.status.value)
        return self.stage_table

    async def reset_stage_overrides(self) -> StageTable:
        async with self._stores.transaction():
            await self._stores.stage_store.clear_overrides()
        self.stage_table = StageTable()
        return self.stage_table

    # ------------------------------------------------------------------
    # 只读视图
    # ------------------------------------------------------------------

    async def snapshot(self, *, include_terminal: bool = False) -> Snapshot:
        """有序队列 + 每个任务的派生状态"""
        async with self._stores.reading():
            tasks = await self._stores.task_store.list_tasks()
            facts = await load_all_facts(self._stores, tasks)
            externals = {r.task_id: r for r in await self._stores.external_store.list_waiting()}
            running = await self._stores.session_store.get_open()

        views: list[TaskView] = []
        entries: list[QueueEntry] = []
        for task, task_facts in zip(tasks, facts, strict=True):
            status = self.stage_table.classify(task_facts)
            if task.queue_position is not None:
                entries.append(
                    QueueEntry(
                        position=task.queue_position,
                        task_id=task.task_id,
                        description=task.description,
                        status=status,
                    )
                )
            if task.is_terminal and not include_terminal:
                continue
            views.append(
                TaskView(
                    task=task,
                    work_history=task_facts.work_history,
                    timer=task_facts.timer,
                    external=externals.get(task.task_id),
                    status=status,
                )
            )

        entries.sort(key=lambda e: e.position)
        return Snapshot(
            queue=entries,
            tasks=views,
            running_task_id=running.task_id if running else None,
        )

    async def waiting(self, recipient: str | None = None) -> list[ExternalRecord]:
        return await self.handoff.waiting(recipient)

    async def events_for_task(self, task_id: int) -> list[Event]:
        async with self._stores.reading():
            await require_task(self._stores, task_id, mutable=False)
            return await self._stores.event_store.get_events_for_task(task_id)

    async def sessions_for_task(self, task_id: int) -> list[WorkSession]:
        return await self.timer.sessions_for_task(task_id)

    async def open_session(self) -> WorkSession | None:
        return await self.timer.open_session()

    async def timer_state(self) -> TimerState:
        return TimerState.ON if await self.open_session() is not None else TimerState.OFF

    async def check(self) -> list[str]:
        """对当前存储状态运行不变量检查，返回违反项"""
        async with self._stores.reading():
            return await guard.check(self._stores)
