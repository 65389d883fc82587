"""提醒的定时投递

每隔 interval_seconds 执行一轮 (tick):
1. 查询所有 due_at < now 的提醒, 查询失败则放弃本轮, 下一轮照常进行 (不退避)
2. 逐条尝试打开私聊并发送, 失败只记日志, 继续处理下一条
3. 无论发送是否成功都删除该提醒; 通道故障时提醒会丢失, 这是目前约定的"尽力投递"语义
4. 删除失败只记日志, 不影响同一轮的其他提醒

停止是协作式的: stop() 或共享的 shutdown_event 只会阻止下一轮开始, 正在进行的一轮会执行完。
"""

import asyncio
import time
from datetime import datetime
from typing import Callable

from birdass.channels.base import NotificationSink
from birdass.datamodel import Reminder, TickResult
from birdass.errors import DeliveryFailed, RecipientUnreachable, StoreUnavailable
from birdass.events import E, bus
from birdass.logger import logger
from birdass.storage.reminder import ReminderStore
from birdass.utils import now_utc

__all__ = ["REMINDER_TEMPLATE", "ReminderScheduler", "format_reminder"]

REMINDER_TEMPLATE = "Hi there! You asked me to remind you about {message} - this is that reminder!"


def format_reminder(reminder: Reminder) -> str:
    return REMINDER_TEMPLATE.format(message=reminder.message)


class ReminderScheduler:
    def __init__(
        self,
        store: ReminderStore,
        sink: NotificationSink,
        interval_seconds: float = 60.0,
        delivery_timeout_seconds: float | None = 10.0,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.sink = sink
        self.interval_seconds = interval_seconds
        self.delivery_timeout_seconds = delivery_timeout_seconds
        self.clock = clock

        self._stop_event = asyncio.Event()
        self._running = False
        self._last_tick_at_epoch: float | None = None
        self._last_result: TickResult | None = None

    def get_status(self) -> dict[str, object]:
        last = self._last_result
        return {
            "running": self._running,
            "interval_seconds": self.interval_seconds,
            "last_tick_at_epoch": self._last_tick_at_epoch,
            "last_result": None if last is None else {
                "due": last.due,
                "delivered": last.delivered,
                "failed": last.failed,
                "deleted": last.deleted,
                "aborted": last.aborted,
            },
        }

    def stop(self) -> None:
        """阻止下一轮开始; 不会打断正在进行的一轮"""
        self._stop_event.set()

    async def tick(self, now: datetime | None = None) -> TickResult:
        now = now or self.clock()
        result = TickResult()
        self._last_tick_at_epoch = time.time()

        try:
            async for reminder in self.store.query_due(now):
                result.due += 1
                if await self._deliver(reminder):
                    result.delivered += 1
                else:
                    result.failed += 1

                # 发送成功与否都要删除
                try:
                    await self.store.delete(reminder.reminder_id)
                    result.deleted += 1
                except StoreUnavailable as e:
                    logger.error(f"删除提醒失败, 下一轮可能重复发送: reminder_id={reminder.reminder_id}, error={e}")
        except StoreUnavailable as e:
            result.aborted = True
            bus.emit(E.SCHEDULER_TICK_FAILED, error=e)
            logger.error(f"查询到期提醒失败, 本轮放弃: {e}")

        if result.due:
            logger.info(
                f"本轮提醒处理完成: due={result.due}, delivered={result.delivered}, "
                f"failed={result.failed}, deleted={result.deleted}"
            )
        self._last_result = result
        return result

    async def _call_sink(self, coro):
        if self.delivery_timeout_seconds is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=self.delivery_timeout_seconds)

    async def _deliver(self, reminder: Reminder) -> bool:
        try:
            channel = await self._call_sink(self.sink.open_channel(reminder.recipient_id))
            await self._call_sink(self.sink.send(channel, format_reminder(reminder)))
        except RecipientUnreachable as e:
            logger.warning(f"无法联系用户 {reminder.recipient_id}, 提醒 {reminder.reminder_id} 未送达: {e}")
        except DeliveryFailed as e:
            logger.warning(f"向用户 {reminder.recipient_id} 发送提醒 {reminder.reminder_id} 失败: {e}")
        except asyncio.TimeoutError:
            logger.warning(f"向用户 {reminder.recipient_id} 发送提醒 {reminder.reminder_id} 超时")
        except Exception as e:
            logger.opt(exception=e).error(f"发送提醒 {reminder.reminder_id} 时发生预期外的错误: {e}")
        else:
            bus.emit(E.REMINDER_DELIVERED, reminder=reminder)
            logger.info(f"已提醒用户 {reminder.recipient_id}: reminder_id={reminder.reminder_id}")
            return True

        bus.emit(E.REMINDER_DELIVERY_FAILED, reminder=reminder)
        return False

    async def _watch_shutdown(self, shutdown_event: asyncio.Event) -> None:
        await shutdown_event.wait()
        self.stop()

    async def _wait_next_tick(self) -> bool:
        """等待一个周期, 期间收到停止信号则立即返回 True"""
        if self._stop_event.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            pass
        return self._stop_event.is_set()

    async def run_loop(self, shutdown_event: asyncio.Event | None = None) -> None:
        watcher = None
        if shutdown_event is not None:
            watcher = asyncio.create_task(self._watch_shutdown(shutdown_event))

        self._running = True
        logger.info(f"Reminder 主循环已启动, 每 {self.interval_seconds} 秒检查一次")
        try:
            # 先等待一个周期再检查, 给消息通道留出启动时间
            while not await self._wait_next_tick():
                try:
                    await self.tick()
                except Exception as e:
                    logger.opt(exception=e).error(f"Reminder 检查时发生预期外的错误: {e}")
        finally:
            self._running = False
            if watcher is not None:
                watcher.cancel()
                try:
                    await watcher
                except asyncio.CancelledError:
                    pass
            logger.info("Reminder 主循环已关闭")
