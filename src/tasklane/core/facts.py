"""事实加载 -- 从存储层即时计算每个任务的正交事实

TaskFacts 从不落库；分类函数与不变量检查都只读取这里的结果。
调用方负责持有事务或读锁。
"""

from .exceptions import NoSuchTask, TerminalLifecycle
from .models.facts import TaskFacts
from .models.task import Task
from .store import StoreGroup


async def require_task(stores: StoreGroup, task_id: int, *, mutable: bool = True) -> Task:
    """查询任务；不存在抛 NoSuchTask，mutable=True 时终态抛 TerminalLifecycle"""
    task = await stores.task_store.get_task(task_id)
    if task is None:
        raise NoSuchTask(task_id)
    if mutable and task.is_terminal:
        raise TerminalLifecycle(task_id, task.lifecycle.value)
    return task


def facts_from(
    task: Task,
    *,
    has_history: bool,
    running_task_id: int | None,
    waiting_ids: set[int],
) -> TaskFacts:
    return TaskFacts(
        task_id=task.task_id,
        lifecycle=task.lifecycle,
        queue_position=task.queue_position,
        has_history=has_history,
        timer_on=running_task_id == task.task_id,
        external_waiting=task.task_id in waiting_ids,
    )


async def load_task_facts(stores: StoreGroup, task_id: int) -> TaskFacts:
    """加载单个任务的事实"""
    task = await require_task(stores, task_id, mutable=False)
    open_session = await stores.session_store.get_open()
    waiting = await stores.external_store.get_waiting(task_id)
    sessions = await stores.session_store.list_sessions_for_task(task_id)
    return facts_from(
        task,
        has_history=bool(sessions),
        running_task_id=open_session.task_id if open_session else None,
        waiting_ids={task_id} if waiting is not None else set(),
    )


async def load_all_facts(stores: StoreGroup, tasks: list[Task] | None = None) -> list[TaskFacts]:
    """加载全部任务的事实，按 task_id 正序"""
    if tasks is None:
        tasks = await stores.task_store.list_tasks()
    history_ids = await stores.session_store.task_ids_with_sessions()
    open_session = await stores.session_store.get_open()
    waiting_ids = {r.task_id for r in await stores.external_store.list_waiting()}
    running_task_id = open_session.task_id if open_session else None
    return [
        facts_from(
            task,
            has_history=task.task_id in history_ids,
            running_task_id=running_task_id,
            waiting_ids=waiting_ids,
        )
        for task in tasks
    ]
