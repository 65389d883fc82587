"""Music month 相关命令

导入的 JSON 格式:
    {"start_time": "2021-09-01T00:00:00Z", "days": [{"day": 1, "prompt": "..."}, ...]}
"""

from datetime import datetime
from typing import List

import httpx
from pydantic import BaseModel, Field, ValidationError

from birdass.commands.base import BaseCommand, CommandContext
from birdass.datamodel import DayPrompt, MusicMonth
from birdass.errors import InvalidFormat, NoActivePeriod, PromptNotFound, StoreUnavailable
from birdass.logger import logger
from birdass.storage.music_month import MusicMonthStore
from birdass.utils import ensure_utc, pretty_date
from birdass.world.period import (
    DEFAULT_GRACE_DAYS,
    current_window,
    find_active_month,
    find_month,
    resolve_prompt,
)

__all__ = ["MusicSetup", "MusicMonthInfo", "MusicPrompt", "parse_music_month"]

NOT_CONFIGURED_REPLY = "I haven't been set up to allow music months, please moan at whoever set me up"
STORE_FAILED_REPLY = "Something went wrong at my end, try again later"


class DayPayload(BaseModel):
    day: int
    prompt: str


class MusicMonthPayload(BaseModel):
    start_time: datetime
    days: List[DayPayload] = Field(default_factory=list)


def parse_music_month(raw: bytes | str) -> tuple[datetime, list[DayPrompt]]:
    """解析导入的 JSON; 格式不正确或 day 重复时抛出 InvalidFormat"""
    try:
        payload = MusicMonthPayload.model_validate_json(raw)
    except ValidationError as e:
        raise InvalidFormat(f"music month JSON 不合法: {e.error_count()} 处错误") from e

    seen: set[int] = set()
    for item in payload.days:
        if item.day in seen:
            raise InvalidFormat(f"day {item.day} 重复")
        seen.add(item.day)

    return ensure_utc(payload.start_time), [DayPrompt(day=d.day, prompt=d.prompt) for d in payload.days]


def _is_json_url(url: str) -> bool:
    try:
        path = httpx.URL(url).path
    except httpx.InvalidURL:
        return False
    return path.endswith(".json")


def format_month(month: MusicMonth) -> str:
    month_name = f"{month.start_time:%B}"
    return "\n".join(f"{month_name} {d.day}: {d.prompt}" for d in month.days)


class MusicSetup(BaseCommand):
    name = "musicsetup"
    description = "Sets up a music month from a URL to a .json file (owner only)"

    def __init__(
        self,
        store: MusicMonthStore,
        http_client: httpx.AsyncClient,
        owner_id: str,
        owner_name: str = "the bot owner",
        fetch_timeout_seconds: float = 10.0,
    ) -> None:
        self.store = store
        self.http_client = http_client
        self.owner_id = owner_id
        self.owner_name = owner_name
        self.fetch_timeout_seconds = fetch_timeout_seconds

    async def execute(self, ctx: CommandContext) -> str:
        if not self.store.available:
            return NOT_CONFIGURED_REPLY
        if not self.owner_id or ctx.user_id != self.owner_id:
            return f"Please ask {self.owner_name} to set this up!"
        if not ctx.args or not _is_json_url(ctx.args[0]):
            return "Give me a .json file"

        url = ctx.args[0]
        try:
            resp = await self.http_client.get(url, timeout=self.fetch_timeout_seconds, follow_redirects=True)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.info(f"获取 music month 文件失败: url={url}, error={e}")
            return "Couldn't get the file from the URL provided"

        try:
            start_time, days = parse_music_month(resp.content)
        except InvalidFormat as e:
            logger.debug(f"music month 文件内容不合法: url={url}, {e}")
            return "Invalid JSON"

        try:
            month = await self.store.insert(start_time, days)
        except StoreUnavailable as e:
            logger.error(f"保存 music month 失败: {e}")
            return "Something went wrong at my end so I didn't save the month"

        logger.info(f"用户 {ctx.user_id} 创建了 music month: month_id={month.month_id}, days={len(days)}")
        return f"Okay, I've set up a music month beginning on {pretty_date(month.start_time)}"


class MusicMonthInfo(BaseCommand):
    name = "musicmonth"
    description = "Get the current music month, if any"

    def __init__(self, store: MusicMonthStore, grace_days: int = DEFAULT_GRACE_DAYS) -> None:
        self.store = store
        self.grace_days = grace_days

    async def execute(self, ctx: CommandContext) -> str:
        if not self.store.available:
            return NOT_CONFIGURED_REPLY

        window = current_window(ctx.now, self.grace_days)
        try:
            month = await find_month(self.store, window)
        except StoreUnavailable as e:
            logger.error(f"查询 music month 失败: {e}")
            return STORE_FAILED_REPLY

        if month is None:
            return "No music month planned"

        if window.is_upcoming(month.start_time):
            header = f"There's no current music month; the next begins on {pretty_date(month.start_time)}"
        else:
            header = "Current music month:"
        body = format_month(month)
        return f"{header}\n{body}" if body else header


class MusicPrompt(BaseCommand):
    name = "musicprompt"
    description = "Get the prompt for a music month day (today if no day is given)"

    def __init__(self, store: MusicMonthStore, grace_days: int = DEFAULT_GRACE_DAYS) -> None:
        self.store = store
        self.grace_days = grace_days

    async def execute(self, ctx: CommandContext) -> str:
        if not self.store.available:
            return NOT_CONFIGURED_REPLY

        day = ctx.now.day
        if ctx.args:
            try:
                day = int(ctx.args[0])
            except ValueError:
                return "Give me a day number, for example /musicprompt 3"

        window = current_window(ctx.now, self.grace_days)
        try:
            month = await find_active_month(self.store, window)
            prompt = resolve_prompt(month, day)
        except NoActivePeriod:
            return "No currently active music month"
        except PromptNotFound:
            return f"No prompt found for day {day}"
        except StoreUnavailable as e:
            logger.error(f"查询 music month 失败: {e}")
            return STORE_FAILED_REPLY

        return f"Prompt for day {day}: {prompt}"
