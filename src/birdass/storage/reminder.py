from datetime import datetime
from typing import AsyncIterator

import aiosqlite
from ulid import ULID

from birdass.datamodel import Reminder
from birdass.errors import StoreUnavailable
from birdass.events import E, bus
from birdass.logger import logger
from birdass.utils import from_db_time, to_db_time

__all__ = ["ReminderStore"]

_COLUMNS = "reminder_id, recipient_id, message, due_at_utc"


def _row_to_reminder(row) -> Reminder:
    return Reminder(
        reminder_id=row[0],
        recipient_id=row[1],
        message=row[2],
        due_at=from_db_time(row[3]),
    )


class ReminderStore:
    """reminders 表的读写; 连接由调用方创建并注入, 为 None 时表示存储不可用"""

    def __init__(self, conn: aiosqlite.Connection | None) -> None:
        self.conn = conn

    @property
    def available(self) -> bool:
        return self.conn is not None

    def _ensure_conn(self) -> aiosqlite.Connection:
        if self.conn is None:
            raise StoreUnavailable("数据库未初始化")
        return self.conn

    async def insert(self, recipient_id: str, message: str, due_at: datetime) -> Reminder:
        """创建提醒; 失败时抛出 StoreUnavailable, 不做重试"""
        conn = self._ensure_conn()
        reminder = Reminder(
            reminder_id=str(ULID()),
            recipient_id=str(recipient_id),
            message=message,
            due_at=due_at,
        )
        try:
            await conn.execute(
                "INSERT INTO reminders (reminder_id, recipient_id, message, due_at_utc) VALUES (?, ?, ?, ?)",
                (reminder.reminder_id, reminder.recipient_id, reminder.message, to_db_time(reminder.due_at)),
            )
            await conn.commit()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreUnavailable(f"保存提醒失败: {e}") from e

        bus.emit(E.REMINDER_CREATED, reminder=reminder)
        logger.trace(f"创建提醒: reminder_id={reminder.reminder_id}, recipient_id={reminder.recipient_id}, due_at={to_db_time(reminder.due_at)}")
        return reminder

    async def query_due(self, now: datetime) -> AsyncIterator[Reminder]:
        """逐条产出 due_at < now 的提醒, 不保证顺序; 每次调用只能迭代一次

        结果在第一次迭代时一次性读出, 迭代过程中删除记录不会影响本次结果。
        """
        conn = self._ensure_conn()
        try:
            async with conn.execute(
                f"SELECT {_COLUMNS} FROM reminders WHERE due_at_utc < ?",
                (to_db_time(now),),
            ) as cursor:
                rows = await cursor.fetchall()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreUnavailable(f"查询到期提醒失败: {e}") from e

        for row in rows:
            yield _row_to_reminder(row)

    async def delete(self, reminder_id: str) -> None:
        conn = self._ensure_conn()
        try:
            await conn.execute("DELETE FROM reminders WHERE reminder_id = ?", (reminder_id,))
            await conn.commit()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreUnavailable(f"删除提醒 {reminder_id} 失败: {e}") from e

        bus.emit(E.REMINDER_DELETED, reminder_id=reminder_id)
        logger.trace(f"删除提醒: reminder_id={reminder_id}")

    async def list_pending(self, limit: int = 50, offset: int = 0) -> list[Reminder]:
        """按到期时间列出尚未投递的提醒"""
        conn = self._ensure_conn()
        try:
            async with conn.execute(
                f"SELECT {_COLUMNS} FROM reminders ORDER BY due_at_utc ASC, reminder_id ASC LIMIT ? OFFSET ?",
                (limit, offset),
            ) as cursor:
                rows = await cursor.fetchall()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreUnavailable(f"查询提醒失败: {e}") from e
        return [_row_to_reminder(row) for row in rows]

    async def count(self) -> int:
        conn = self._ensure_conn()
        try:
            async with conn.execute("SELECT COUNT(*) FROM reminders") as cursor:
                row = await cursor.fetchone()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreUnavailable(f"统计提醒失败: {e}") from e
        return row[0] if row else 0
