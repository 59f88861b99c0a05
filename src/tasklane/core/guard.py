"""不变量检查 -- 每个写事务提交前运行

检查项：
1. 全库至多一个 open session
2. 计时中的任务位于队首
3. Waiting 且未计时的任务不在队列中
4. Waiting 任务仅在计时期间可以入队（由 2、3 共同约束）
5. 终态任务既不在队列中也没有 Waiting 记录
另外检查队列序号稠密（0..n-1）以及 open session 指向存活的 Open 任务。
"""

import structlog

from .exceptions import InvariantViolation
from .facts import load_all_facts
from .models.enums import Lifecycle
from .models.facts import TaskFacts
from .models.session import WorkSession
from .store import StoreGroup

log = structlog.get_logger()


def find_violations(facts: list[TaskFacts], open_sessions: list[WorkSession]) -> list[str]:
    """纯函数：返回违反的不变量描述，空列表表示状态合法"""
    violations: list[str] = []
    by_id = {f.task_id: f for f in facts}

    if len(open_sessions) > 1:
        ids = ", ".join(str(s.session_id) for s in open_sessions)
        violations.append(f"More than one open session: {ids}")

    positions = sorted(f.queue_position for f in facts if f.queue_position is not None)
    if positions != list(range(len(positions))):
        violations.append(f"Queue positions are not dense: {positions}")

    for session in open_sessions:
        owner = by_id.get(session.task_id)
        if owner is None:
            violations.append(
                f"Open session {session.session_id} references missing task {session.task_id}"
            )
            continue
        if owner.lifecycle != Lifecycle.OPEN:
            violations.append(
                f"Task {owner.task_id} is {owner.lifecycle.value} but has an open session"
            )
        if owner.queue_position != 0:
            violations.append(f"Task {owner.task_id} is timed but not at the front of the queue")

    for f in facts:
        if f.external_waiting and not f.timer_on and f.queued:
            violations.append(
                f"Task {f.task_id} is waiting on an external party but is queued"
            )
        if f.lifecycle != Lifecycle.OPEN:
            if f.queued:
                violations.append(f"Task {f.task_id} is {f.lifecycle.value} but is queued")
            if f.external_waiting:
                violations.append(
                    f"Task {f.task_id} is {f.lifecycle.value} but has a waiting external record"
                )

    return violations


async def check(stores: StoreGroup) -> list[str]:
    """读取当前存储状态并检查不变量"""
    facts = await load_all_facts(stores)
    open_sessions = await stores.session_store.list_open()
    return find_violations(facts, open_sessions)


async def enforce(stores: StoreGroup) -> None:
    """违反不变量时抛出 InvariantViolation（事务随之回滚）"""
    violations = await check(stores)
    if violations:
        log.warning("invariant_violation", violations=violations)
        raise InvariantViolation(violations[0], violations)
