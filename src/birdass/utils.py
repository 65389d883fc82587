"""时间工具

存储层统一使用 UTC，格式 "YYYY-MM-DD HH:MM:SS"，定长字符串的字典序与时间顺序一致。
"""

from datetime import datetime, timezone

__all__ = ["DB_TIME_FORMAT", "now_utc", "ensure_utc", "to_db_time", "from_db_time", "pretty_date"]

DB_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_utc() -> datetime:
    """获取当前 UTC 时间"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """无时区信息的时间视为 UTC"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_db_time(dt: datetime) -> str:
    return ensure_utc(dt).strftime(DB_TIME_FORMAT)


def from_db_time(raw: str) -> datetime:
    return datetime.strptime(raw, DB_TIME_FORMAT).replace(tzinfo=timezone.utc)


def pretty_date(dt: datetime) -> str:
    """例如 "September 1, 2021" """
    return f"{dt:%B} {dt.day}, {dt.year}"
