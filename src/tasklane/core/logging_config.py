"""structlog 配置模块

dev 模式：ConsoleRenderer 可读输出
json 模式：每行一条 JSON 记录，异常栈展开为字符串字段
日志统一写 stderr，stdout 留给维护命令的输出（如 snapshot JSON）。
"""

import logging
import os
import sys
from typing import TextIO

import structlog

LOG_FORMATS = ("dev", "json")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> list[structlog.types.Processor]:
    if log_format == "json":
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    return [structlog.dev.ConsoleRenderer()]


def setup_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    *,
    stream: TextIO | None = None,
) -> None:
    """初始化 structlog 与标准库 logging

    参数缺省时读取 TASKLANE_LOG_FORMAT（dev / json）与 TASKLANE_LOG_LEVEL，
    未知格式按 dev 处理。
    """
    log_format = (log_format or os.environ.get("TASKLANE_LOG_FORMAT", "dev")).lower()
    if log_format not in LOG_FORMATS:
        log_format = "dev"
    log_level = log_level or os.environ.get("TASKLANE_LOG_LEVEL", "INFO")

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # aiosqlite 等第三方库的标准库日志也走同一格式
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderer(log_format),
        ],
        foreign_pre_chain=shared,
    )
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def bind_command(command: str) -> None:
    """为后续日志绑定当前维护命令名"""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command)
