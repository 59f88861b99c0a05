"""CLI 入口模块 -- python -m tasklane.core <command>

支持的命令：
  check     对数据库运行不变量检查，存在违反项时退出码为 1
  snapshot  以 JSON 输出当前队列与任务派生状态
"""

import asyncio
import sys

from .config import load_tracker_config
from .logging_config import bind_command, setup_logging

_USAGE = """用法: python -m tasklane.core <command>
命令:
  check     对数据库运行不变量检查
  snapshot  以 JSON 输出当前快照"""


def main(argv: list[str] | None = None) -> int:
    """CLI 主入口"""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(_USAGE)
        return 1

    command = args[0]
    setup_logging()
    bind_command(command)

    if command == "check":
        return asyncio.run(run_check())
    if command == "snapshot":
        return asyncio.run(run_snapshot(include_terminal="--all" in args[1:]))

    print(f"未知命令: {command}")
    print("可用命令: check, snapshot")
    return 1


async def run_check() -> int:
    """执行不变量检查"""
    from .service import Tracker

    config = load_tracker_config()
    print(f"数据库路径: {config.db_path}")

    tracker = await Tracker.open(config)
    try:
        violations = await tracker.check()
    finally:
        await tracker.close()

    if violations:
        print(f"发现 {len(violations)} 项不变量违反:")
        for violation in violations:
            print(f"  - {violation}")
        return 1
    print("检查通过")
    return 0


async def run_snapshot(include_terminal: bool = False) -> int:
    """输出快照 JSON"""
    from .service import Tracker

    tracker = await Tracker.open()
    try:
        snapshot = await tracker.snapshot(include_terminal=include_terminal)
    finally:
        await tracker.close()

    print(snapshot.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
