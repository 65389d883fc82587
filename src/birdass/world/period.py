"""Music month 的周期计算与 prompt 查找

所有日历计算都基于 UTC。查询窗口的起点比自然月的 1 号更早:
    start = 本月 1 号 - 1 天 - grace_days   (grace_days=1 时即"上个月最后一天再往前一天")
    end   = 下个月 1 号                      (终点不放宽)
这样提前一两天导入的 music month 也能被当作"本月"。
"""

from datetime import datetime, timedelta

from birdass.datamodel import MusicMonth, PeriodWindow
from birdass.errors import NoActivePeriod, PromptNotFound
from birdass.storage.music_month import MusicMonthStore
from birdass.utils import ensure_utc

__all__ = [
    "DEFAULT_GRACE_DAYS",
    "current_window",
    "find_month",
    "find_active_month",
    "resolve_prompt",
]

DEFAULT_GRACE_DAYS = 1


def _first_of_month(dt: datetime) -> datetime:
    return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _first_of_next_month(dt: datetime) -> datetime:
    # 任何月份的 1 号加 32 天都会落在下个月
    return _first_of_month(_first_of_month(dt) + timedelta(days=32))


def current_window(now: datetime, grace_days: int = DEFAULT_GRACE_DAYS) -> PeriodWindow:
    if grace_days < 0:
        raise ValueError("grace_days 不能为负数")
    now = ensure_utc(now)
    month_start = _first_of_month(now)
    return PeriodWindow(
        start=month_start - timedelta(days=1 + grace_days),
        end=_first_of_next_month(now),
    )


async def find_month(store: MusicMonthStore, window: PeriodWindow) -> MusicMonth | None:
    """窗口起点之后最早开始的 music month, 不限制上界; 可能是尚未开始的下一期"""
    return await store.first_starting_after(window.start)


async def find_active_month(store: MusicMonthStore, window: PeriodWindow) -> MusicMonth:
    """窗口内最早开始的 music month; 没有时抛出 NoActivePeriod"""
    month = await store.first_starting_after(window.start, before=window.end)
    if month is None:
        raise NoActivePeriod("当前没有生效的 music month")
    return month


def resolve_prompt(month: MusicMonth, day: int) -> str:
    for entry in month.days:
        if entry.day == day:
            return entry.prompt
    raise PromptNotFound(day)
