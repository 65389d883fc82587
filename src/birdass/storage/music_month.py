import json
from datetime import datetime

import aiosqlite
from ulid import ULID

from birdass.datamodel import DayPrompt, MusicMonth
from birdass.errors import StoreUnavailable
from birdass.events import E, bus
from birdass.logger import logger
from birdass.utils import from_db_time, to_db_time

__all__ = ["MusicMonthStore"]


def _dumps_days(days: list[DayPrompt]) -> str:
    return json.dumps([{"day": d.day, "prompt": d.prompt} for d in days], ensure_ascii=False)


def _loads_days(raw: str) -> list[DayPrompt]:
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("music month 的 days_json 解析失败，已按空列表处理")
        return []
    return [DayPrompt(day=int(item["day"]), prompt=str(item["prompt"])) for item in loaded]


class MusicMonthStore:
    """music_months 表的读写; 只插入和查询, 不修改也不删除"""

    def __init__(self, conn: aiosqlite.Connection | None) -> None:
        self.conn = conn

    @property
    def available(self) -> bool:
        return self.conn is not None

    def _ensure_conn(self) -> aiosqlite.Connection:
        if self.conn is None:
            raise StoreUnavailable("数据库未初始化")
        return self.conn

    async def insert(self, start_time: datetime, days: list[DayPrompt]) -> MusicMonth:
        conn = self._ensure_conn()
        month = MusicMonth(month_id=str(ULID()), start_time=start_time, days=list(days))
        try:
            await conn.execute(
                "INSERT INTO music_months (month_id, start_time_utc, days_json) VALUES (?, ?, ?)",
                (month.month_id, to_db_time(month.start_time), _dumps_days(month.days)),
            )
            await conn.commit()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreUnavailable(f"保存 music month 失败: {e}") from e

        bus.emit(E.MUSIC_MONTH_CREATED, month=month)
        logger.trace(f"创建 music month: month_id={month.month_id}, start_time={to_db_time(month.start_time)}, days={len(month.days)}")
        return month

    async def first_starting_after(self, after: datetime, before: datetime | None = None) -> MusicMonth | None:
        """start_time 严格大于 after (且严格小于 before, 如果给出) 的第一个 music month

        start_time 完全相同时按插入顺序返回, 语义上不作保证。
        """
        conn = self._ensure_conn()
        sql = "SELECT month_id, start_time_utc, days_json FROM music_months WHERE start_time_utc > ?"
        params: list[str] = [to_db_time(after)]
        if before is not None:
            sql += " AND start_time_utc < ?"
            params.append(to_db_time(before))
        sql += " ORDER BY start_time_utc ASC, rowid ASC LIMIT 1"

        try:
            async with conn.execute(sql, tuple(params)) as cursor:
                row = await cursor.fetchone()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreUnavailable(f"查询 music month 失败: {e}") from e

        if row is None:
            return None
        return MusicMonth(
            month_id=row[0],
            start_time=from_db_time(row[1]),
            days=_loads_days(row[2]),
        )
