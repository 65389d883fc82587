import httpx

from birdass.channels.base import NotificationSink
from birdass.commands.base import CommandRouter
from birdass.commands.misc_cmd import Birdass, Start, Suggestion
from birdass.commands.music_cmd import MusicMonthInfo, MusicPrompt, MusicSetup
from birdass.commands.reminder_cmd import SetReminder
from birdass.storage.music_month import MusicMonthStore
from birdass.storage.reminder import ReminderStore
from birdass.world.period import DEFAULT_GRACE_DAYS

__all__ = ["build_router"]


def build_router(
    reminder_store: ReminderStore,
    music_store: MusicMonthStore,
    sink: NotificationSink,
    http_client: httpx.AsyncClient,
    owner_id: str = "",
    owner_name: str = "the bot owner",
    grace_days: int = DEFAULT_GRACE_DAYS,
    fetch_timeout_seconds: float = 10.0,
) -> CommandRouter:
    """创建并注册全部命令, 依赖全部由调用方传入"""
    router = CommandRouter()
    router.register(Start)
    router.register(Birdass)
    router.register(SetReminder(reminder_store))
    router.register(Suggestion(sink, owner_id))
    router.register(MusicSetup(music_store, http_client, owner_id, owner_name, fetch_timeout_seconds))
    router.register(MusicMonthInfo(music_store, grace_days))
    router.register(MusicPrompt(music_store, grace_days))
    return router
