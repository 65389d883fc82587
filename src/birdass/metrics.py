"""
一个简单的运行时指标收集类，通过事件总线统计提醒的创建、投递、删除与定时任务失败次数，供 Admin API 查询。
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from birdass.events import E, bus


@dataclass
class RuntimeMetrics:
    reminder_created_count: int = 0
    reminder_delivered_count: int = 0
    reminder_failed_count: int = 0
    reminder_deleted_count: int = 0
    tick_failed_count: int = 0
    music_month_created_count: int = 0
    last_delivery_at: float | None = None

    def record_reminder_created(self) -> None:
        self.reminder_created_count += 1

    def record_reminder_delivered(self) -> None:
        self.reminder_delivered_count += 1
        self.last_delivery_at = time.time()

    def record_reminder_failed(self) -> None:
        self.reminder_failed_count += 1

    def record_reminder_deleted(self) -> None:
        self.reminder_deleted_count += 1

    def record_tick_failed(self) -> None:
        self.tick_failed_count += 1

    def record_music_month_created(self) -> None:
        self.music_month_created_count += 1

    def snapshot(self) -> dict:
        return {
            "reminder_created_count": self.reminder_created_count,
            "reminder_delivered_count": self.reminder_delivered_count,
            "reminder_failed_count": self.reminder_failed_count,
            "reminder_deleted_count": self.reminder_deleted_count,
            "tick_failed_count": self.tick_failed_count,
            "music_month_created_count": self.music_month_created_count,
            "last_delivery_at_epoch": self.last_delivery_at,
            "last_delivery_at_utc": (
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.last_delivery_at))
                if self.last_delivery_at is not None
                else None
            ),
        }


runtime_metrics = RuntimeMetrics()


# 同步处理器, pyee 会在 emit 时直接调用
@bus.on(E.REMINDER_CREATED)
def _on_reminder_created(**_) -> None:
    runtime_metrics.record_reminder_created()


@bus.on(E.REMINDER_DELIVERED)
def _on_reminder_delivered(**_) -> None:
    runtime_metrics.record_reminder_delivered()


@bus.on(E.REMINDER_DELIVERY_FAILED)
def _on_reminder_failed(**_) -> None:
    runtime_metrics.record_reminder_failed()


@bus.on(E.REMINDER_DELETED)
def _on_reminder_deleted(**_) -> None:
    runtime_metrics.record_reminder_deleted()


@bus.on(E.SCHEDULER_TICK_FAILED)
def _on_tick_failed(**_) -> None:
    runtime_metrics.record_tick_failed()


@bus.on(E.MUSIC_MONTH_CREATED)
def _on_music_month_created(**_) -> None:
    runtime_metrics.record_music_month_created()


__all__ = ["RuntimeMetrics", "runtime_metrics"]
