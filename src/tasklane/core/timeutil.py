"""时间戳工具

核心层只接受已解析的绝对时间。所有时间统一为 UTC，
落库格式为定宽 ISO-8601（微秒精度），保证字典序与时间序一致。
"""

from datetime import UTC, datetime


def utc(ts: datetime) -> datetime:
    """规范化为 aware UTC 时间（naive 视为 UTC）"""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def now_utc() -> datetime:
    return datetime.now(UTC)


def to_db(ts: datetime) -> str:
    """转换为落库文本"""
    return utc(ts).isoformat(timespec="microseconds")


def from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    return utc(datetime.fromisoformat(value))


def resolve_ts(at: datetime | None) -> datetime:
    """操作时间：未指定时取当前时间"""
    return utc(at) if at is not None else now_utc()
