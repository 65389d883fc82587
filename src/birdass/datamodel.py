from dataclasses import dataclass, field
from datetime import datetime
from typing import List

__all__ = [
    "Reminder",
    "DayPrompt", "MusicMonth", "PeriodWindow",
    "TickResult",
]

# ----------------- Reminder 数据模型 ----------------
@dataclass
class Reminder:
    reminder_id: str  # ULID
    recipient_id: str  # 平台内的用户 ID, 同时也是私聊的 chat_id
    message: str
    due_at: datetime  # UTC, 创建时必须晚于当前时间


# ----------------- Music month 数据模型 ----------------
@dataclass
class DayPrompt:
    day: int
    prompt: str


@dataclass
class MusicMonth:
    month_id: str  # ULID
    start_time: datetime  # UTC
    days: List[DayPrompt] = field(default_factory=list)  # 保持导入时的顺序, 不要求有序或连续


@dataclass(frozen=True)
class PeriodWindow:
    """由当前时间推算出的 music month 查询窗口, 不落库"""
    start: datetime
    end: datetime

    def is_upcoming(self, start_time: datetime) -> bool:
        """开始时间不早于窗口结束即为"下一个" music month, 而不是当前的"""
        return start_time >= self.end


# ----------------- 定时投递结果 ----------------
@dataclass
class TickResult:
    due: int = 0
    delivered: int = 0
    failed: int = 0
    deleted: int = 0
    aborted: bool = False  # 查询到期提醒失败, 本轮放弃
