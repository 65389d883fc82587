from __future__ import annotations

import asyncio
from dataclasses import dataclass

from pydantic import BaseModel, Field

from birdass.storage.music_month import MusicMonthStore
from birdass.storage.reminder import ReminderStore
from birdass.world.reminder import ReminderScheduler


@dataclass
class RuntimeControl:
    shutdown_event: asyncio.Event
    started_at: float
    reminder_store: ReminderStore
    music_store: MusicMonthStore
    scheduler: ReminderScheduler
    auth_token: str = ""
    grace_days: int = 1
    log_file: str | None = None
    telegram_enabled: bool = False


class ShutdownRequest(BaseModel):
    reason: str = Field(default="manual")
