"""Micro-session 合并/丢弃策略测试

测试内容：
1. 纯函数判定（merge / purge / keep，两种 purge 触发条件）
2. 通过 Tracker 的端到端行为：合并幂等、purge 正确性
3. 备注引用随合并改指、随丢弃置空
4. 已完成任务的最后一个 session 不会被丢弃
5. interval 补记的 session 不参与合并/丢弃
"""

from datetime import UTC, datetime, timedelta

import pytest
from tasklane.core.micro import BoundaryAction, MicroSessionPolicy
from tasklane.core.models import EventType, PurgeTrigger, WorkSession
from tasklane.core.service import Tracker
from tasklane.core.store import StoreGroup

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def closed_session(task_id: int, start_s: float, end_s: float) -> WorkSession:
    return WorkSession(
        session_id=1,
        task_id=task_id,
        start_ts=T0 + timedelta(seconds=start_s),
        end_ts=T0 + timedelta(seconds=end_s),
        created_at=T0,
    )


def bounds(sessions: list[WorkSession]) -> list[tuple[datetime, datetime | None]]:
    return [(s.start_ts, s.end_ts) for s in sessions]


class TestPolicyDecision:
    @pytest.mark.parametrize(
        "previous,next_task,next_start_s,expected",
        [
            # 同一任务，间隔在阈值内 -> 合并（与时长无关）
            (closed_session(1, 0, 10), 1, 15, BoundaryAction.MERGE),
            (closed_session(1, 0, 600), 1, 630, BoundaryAction.MERGE),
            # 同一任务，间隔超过阈值 -> 保留
            (closed_session(1, 0, 10), 1, 41, BoundaryAction.KEEP),
            # 不同任务，短 session 且间隔在阈值内 -> 丢弃
            (closed_session(1, 0, 10), 2, 10, BoundaryAction.PURGE),
            (closed_session(1, 0, 29), 2, 59, BoundaryAction.PURGE),
            # 不同任务，短 session 但间隔过长 -> 保留
            (closed_session(1, 0, 10), 2, 100, BoundaryAction.KEEP),
            # 不同任务，时长达到阈值 -> 保留
            (closed_session(1, 0, 30), 2, 30, BoundaryAction.KEEP),
        ],
    )
    def test_duration_and_gap(self, previous, next_task, next_start_s, expected):
        policy = MicroSessionPolicy()
        decision = policy.decide(previous, next_task, T0 + timedelta(seconds=next_start_s))
        assert decision.action == expected

    def test_duration_trigger_ignores_gap(self):
        policy = MicroSessionPolicy(purge_trigger=PurgeTrigger.DURATION)
        decision = policy.decide(closed_session(1, 0, 10), 2, T0 + timedelta(hours=3))
        assert decision.action == BoundaryAction.PURGE
        assert decision.duration_s == 10
        assert decision.gap_s == 3 * 3600 - 10

    def test_custom_threshold(self):
        policy = MicroSessionPolicy(threshold_s=5)
        assert policy.decide(closed_session(1, 0, 10), 2, T0 + timedelta(seconds=10)).action == (
            BoundaryAction.KEEP
        )
        assert policy.is_micro(closed_session(1, 0, 4)) is True
        assert policy.is_micro(closed_session(1, 0, 5)) is False


class TestMerge:
    async def test_restart_same_task_merges(self, tracker: Tracker, make_tasks, clock):
        (a,) = await make_tasks("a")
        await tracker.timer.start_for(a, at=clock(0))
        await tracker.timer.stop(at=clock(10))
        outcome = await tracker.timer.start_for(a, at=clock(15))
        await tracker.timer.stop(at=clock(20))

        sessions = await tracker.sessions_for_task(a)
        assert [(s.start_ts, s.end_ts) for s in sessions] == [(clock(0), clock(20))]
        assert outcome.merged_session_id is not None

    async def test_long_gap_keeps_both(self, tracker: Tracker, make_tasks, clock):
        (a,) = await make_tasks("a")
        await tracker.timer.start_for(a, at=clock(0))
        await tracker.timer.stop(at=clock(100))
        await tracker.timer.start_for(a, at=clock(200))
        await tracker.timer.stop(at=clock(300))
        assert len(await tracker.sessions_for_task(a)) == 2

    async def test_annotations_follow_merge(self, tracker: Tracker, make_tasks, clock):
        (a,) = await make_tasks("a")
        await tracker.timer.start_for(a, at=clock(0))
        note = await tracker.annotate(a, "started draft", at=clock(5))
        await tracker.timer.stop(at=clock(10))
        outcome = await tracker.timer.start_for(a, at=clock(12))

        assert note.session_id == outcome.merged_session_id
        annotations = await tracker.annotations_for_task(a)
        assert annotations[0].session_id == outcome.session.session_id

        types = [e.type for e in await tracker.events_for_task(a)]
        assert EventType.SESSION_MERGED in types


class TestPurge:
    async def test_stop_then_switch_purges(self, tracker: Tracker, make_tasks, clock):
        a, b = await make_tasks("a", "b")
        await tracker.timer.start_for(a, at=clock(0))
        await tracker.timer.stop(at=clock(10))
        outcome = await tracker.timer.start_for(b, at=clock(20))

        assert await tracker.sessions_for_task(a) == []
        assert outcome.purged_session_id is not None
        types = [e.type for e in await tracker.events_for_task(a)]
        assert EventType.SESSION_PURGED in types

    async def test_implicit_stop_purges_without_warning(
        self, tracker: Tracker, make_tasks, clock
    ):
        a, b = await make_tasks("a", "b")
        await tracker.timer.start_for(a, at=clock(0))
        outcome = await tracker.timer.start_for(b, at=clock(10))

        assert await tracker.sessions_for_task(a) == []
        assert outcome.closed is not None
        assert outcome.purged_session_id == outcome.closed.session_id
        assert outcome.warnings == []

    async def test_purge_nulls_annotation(self, tracker: Tracker, make_tasks, clock):
        a, b = await make_tasks("a", "b")
        await tracker.timer.start_for(a, at=clock(0))
        await tracker.annotate(a, "oops", at=clock(2))
        await tracker.timer.start_for(b, at=clock(5))
        annotations = await tracker.annotations_for_task(a)
        assert annotations[0].session_id is None

    async def test_long_session_kept(self, tracker: Tracker, make_tasks, clock):
        a, b = await make_tasks("a", "b")
        await tracker.timer.start_for(a, at=clock(0))
        outcome = await tracker.timer.start_for(b, at=clock(60))
        assert len(await tracker.sessions_for_task(a)) == 1
        assert outcome.purged_session_id is None

    async def test_short_session_outside_window_stands(
        self, tracker: Tracker, make_tasks, clock
    ):
        a, b = await make_tasks("a", "b")
        await tracker.timer.start_for(a, at=clock(0))
        stopped = await tracker.timer.stop(at=clock(10))
        assert stopped.warnings != []
        await tracker.timer.start_for(b, at=clock(100))
        assert len(await tracker.sessions_for_task(a)) == 1

    async def test_completed_task_session_is_kept(self, tracker: Tracker, make_tasks, clock):
        a, b = await make_tasks("a", "b")
        await tracker.timer.start_for(a, at=clock(0))
        await tracker.complete(a, at=clock(10))
        await tracker.timer.start_for(b, at=clock(15))
        assert len(await tracker.sessions_for_task(a)) == 1

    async def test_duration_trigger(self, stores: StoreGroup):
        tracker = Tracker(stores, policy=MicroSessionPolicy(30, PurgeTrigger.DURATION))
        a = (await tracker.create_task("a", enqueue=True, at=T0)).task_id
        b = (await tracker.create_task("b", enqueue=True, at=T0)).task_id
        await tracker.timer.start_for(a, at=T0)
        await tracker.timer.stop(at=T0 + timedelta(seconds=10))
        await tracker.timer.start_for(b, at=T0 + timedelta(hours=2))
        assert await tracker.sessions_for_task(a) == []


class TestBackfilledSessions:
    async def test_short_backfill_not_purged(self, tracker: Tracker, make_tasks, clock):
        a, b = await make_tasks("a", "b")
        await tracker.timer.interval(b, clock(990), clock(995), at=clock(996))
        outcome = await tracker.timer.start_for(a, at=clock(1000))

        assert outcome.purged_session_id is None
        assert bounds(await tracker.sessions_for_task(b)) == [(clock(990), clock(995))]

    async def test_backfill_same_task_not_merged(self, tracker: Tracker, make_tasks, clock):
        (a,) = await make_tasks("a")
        await tracker.timer.interval(a, clock(900), clock(990), at=clock(991))
        outcome = await tracker.timer.start_for(a, at=clock(1000))

        assert outcome.merged_session_id is None
        assert outcome.session.start_ts == clock(1000)
        sessions = await tracker.sessions_for_task(a)
        assert [s.stopped for s in sessions] == [False, False]

    async def test_stopped_flag(self, tracker: Tracker, make_tasks, clock):
        (a,) = await make_tasks("a")
        await tracker.timer.start_for(a, at=clock(0))
        stopped = await tracker.timer.stop(at=clock(100))
        recorded = await tracker.timer.interval(a, clock(200), clock(300), at=clock(400))
        assert stopped.closed.stopped is True
        assert recorded.session.stopped is False

    async def test_stopped_session_before_backfill_is_left_alone(
        self, tracker: Tracker, make_tasks, clock
    ):
        a, b, c = await make_tasks("a", "b", "c")
        await tracker.timer.start_for(a, at=clock(0))
        await tracker.timer.stop(at=clock(10))
        # 补记的 session 紧接在停止之后，打断了与下一次计时的相邻关系
        await tracker.timer.interval(b, clock(10), clock(60), at=clock(61))
        outcome = await tracker.timer.start_for(c, at=clock(62))

        assert outcome.purged_session_id is None
        assert len(await tracker.sessions_for_task(a)) == 1
        assert len(await tracker.sessions_for_task(b)) == 1
