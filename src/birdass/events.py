"""事件总线

存储层和定时投递器在提醒生命周期的各个节点发出事件, 目前只有 metrics 订阅。
同步处理器在 emit 时直接调用; 返回协程的处理器由 pyee 调度为独立任务 (需要运行中的事件循环)。
处理器抛出的异常只记日志, 不会传回发出方。
"""

from __future__ import annotations

from typing import Callable, TypeVar

from pyee.asyncio import AsyncIOEventEmitter

from birdass.logger import logger

Handler = TypeVar("Handler", bound=Callable[..., object])


class E:
    """事件名"""
    REMINDER_CREATED = "reminder.created"  # reminder=Reminder
    REMINDER_DELIVERED = "reminder.delivered"  # reminder=Reminder
    REMINDER_DELIVERY_FAILED = "reminder.delivery_failed"  # reminder=Reminder
    REMINDER_DELETED = "reminder.deleted"  # reminder_id=str
    SCHEDULER_TICK_FAILED = "scheduler.tick_failed"  # error=StoreUnavailable
    MUSIC_MONTH_CREATED = "music_month.created"  # month=MusicMonth


class Bus(AsyncIOEventEmitter):
    def __init__(self) -> None:
        super().__init__()
        super().on("error", self._log_handler_error)

    @staticmethod
    def _log_handler_error(error: BaseException) -> None:
        logger.opt(exception=error).error(f"事件处理器执行失败: {error}")

    def on(self, event: str) -> Callable[[Handler], Handler]:
        """以装饰器形式注册处理器"""
        def decorator(handler: Handler) -> Handler:
            logger.debug(f"注册事件处理器: {event} -> {handler.__name__}")
            super(Bus, self).on(event, handler)
            return handler

        return decorator


bus = Bus()

__all__ = ["bus", "E", "Bus"]
