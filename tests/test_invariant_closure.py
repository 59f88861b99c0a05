"""不变量闭包性质测试（Hypothesis）

生成随机操作序列驱动 Tracker，每一步之后检查：
1. 不变量检查无违反
2. 全库至多一个 open session
3. 队列序号为 0..n-1
4. 所有任务都能分类
被拒绝的操作（UserError）视为合法结果，只要拒绝后状态保持一致。
"""

import asyncio
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

from hypothesis import HealthCheck, given, note, settings
from hypothesis import strategies as st
from tasklane.core.config import TrackerConfig
from tasklane.core.exceptions import UserError
from tasklane.core.service import Tracker

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

RECIPIENTS = ["alice", "bob", "carol"]

# 按已有任务列表取模选择任务；空列表时落到不存在的任务
task_refs = st.integers(min_value=0, max_value=7)
indexes = st.integers(min_value=-3, max_value=5)

operations = st.one_of(
    st.tuples(st.just("create"), st.booleans()),
    st.tuples(st.just("enqueue"), task_refs),
    st.tuples(st.just("promote"), task_refs, st.booleans()),
    st.tuples(st.just("pick"), indexes, st.booleans()),
    st.tuples(st.just("rotate"), st.integers(min_value=0, max_value=4), st.booleans()),
    st.tuples(st.just("remove"), indexes, st.booleans()),
    st.tuples(st.just("remove_task"), task_refs, st.booleans()),
    st.tuples(st.just("clear"), st.booleans()),
    st.tuples(st.just("start_default")),
    st.tuples(st.just("start_for"), task_refs),
    st.tuples(st.just("stop")),
    st.tuples(
        st.just("interval"),
        task_refs,
        st.integers(min_value=60, max_value=3600),
        st.integers(min_value=5, max_value=600),
    ),
    st.tuples(st.just("send"), task_refs, st.sampled_from(RECIPIENTS)),
    st.tuples(st.just("recall"), task_refs, st.integers(min_value=-1, max_value=4)),
    st.tuples(st.just("complete"), task_refs, st.booleans()),
    st.tuples(st.just("cancel"), task_refs),
    st.tuples(st.just("annotate"), task_refs),
)

# 步间隔覆盖 micro-session 阈值两侧
steps = st.tuples(st.sampled_from([1, 5, 15, 29, 30, 31, 60, 300]), operations)


async def apply(tracker: Tracker, op: tuple, now: datetime) -> None:
    """执行一个操作"""
    name, *args = op
    tasks = await tracker.list_tasks()

    def pick_task(ref: int) -> int:
        return tasks[ref % len(tasks)].task_id if tasks else 1

    if name == "create":
        await tracker.create_task(f"task {len(tasks) + 1}", enqueue=args[0], at=now)
    elif name == "enqueue":
        await tracker.queue.enqueue(pick_task(args[0]), at=now)
    elif name == "promote":
        await tracker.queue.promote_to_front(pick_task(args[0]), switch_timer=args[1], at=now)
    elif name == "pick":
        await tracker.queue.pick(args[0], switch_timer=args[1], at=now)
    elif name == "rotate":
        await tracker.queue.rotate(args[0], switch_timer=args[1], at=now)
    elif name == "remove":
        await tracker.queue.remove(args[0], switch_timer=args[1], at=now)
    elif name == "remove_task":
        await tracker.queue.remove(task_id=pick_task(args[0]), switch_timer=args[1], at=now)
    elif name == "clear":
        await tracker.queue.clear(stop_timer=args[0], at=now)
    elif name == "start_default":
        await tracker.timer.start_default(at=now)
    elif name == "start_for":
        await tracker.timer.start_for(pick_task(args[0]), at=now)
    elif name == "stop":
        await tracker.timer.stop(at=now)
    elif name == "interval":
        start = now - timedelta(seconds=args[1])
        end = min(start + timedelta(seconds=args[2]), now)
        await tracker.timer.interval(pick_task(args[0]), start, end, at=now)
    elif name == "send":
        await tracker.handoff.send(pick_task(args[0]), args[1], at=now)
    elif name == "recall":
        await tracker.handoff.recall(pick_task(args[0]), args[1], at=now)
    elif name == "complete":
        await tracker.complete(pick_task(args[0]), start_next=args[1], at=now)
    elif name == "cancel":
        await tracker.cancel(pick_task(args[0]), at=now)
    elif name == "annotate":
        await tracker.annotate(pick_task(args[0]), "note", at=now)


async def assert_consistent(tracker: Tracker) -> None:
    assert await tracker.check() == []
    open_sessions = await tracker.stores.session_store.list_open()
    assert len(open_sessions) <= 1

    tasks = await tracker.list_tasks()
    positions = sorted(t.queue_position for t in tasks if t.queue_position is not None)
    assert positions == list(range(len(positions)))

    snapshot = await tracker.snapshot(include_terminal=True)
    assert len(snapshot.tasks) == len(tasks)


async def run_sequence(db_path: Path, sequence: list[tuple[int, tuple]]) -> None:
    tracker = await Tracker.open(TrackerConfig(db_path=str(db_path)))
    try:
        now = T0
        for _ in range(4):
            await tracker.create_task("seed", enqueue=True, at=now)

        for step, (seconds, op) in enumerate(sequence):
            now += timedelta(seconds=seconds)
            note(f"step={step} op={op}")
            try:
                await apply(tracker, op, now)
            except UserError as e:
                note(f"rejected: {e}")
            await assert_consistent(tracker)
    finally:
        await tracker.close()


class TestInvariantClosure:
    @settings(
        max_examples=40,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow],
    )
    @given(st.lists(steps, max_size=60))
    def test_random_operation_sequences(self, sequence: list[tuple[int, tuple]]):
        with tempfile.TemporaryDirectory() as tmp:
            asyncio.run(run_sequence(Path(tmp) / "tasklane.db", sequence))
