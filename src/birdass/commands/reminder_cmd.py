from datetime import timedelta

from birdass.commands.base import BaseCommand, CommandContext
from birdass.errors import InvalidFormat, StoreUnavailable
from birdass.logger import logger
from birdass.storage.reminder import ReminderStore
from birdass.timeparse import OFFSET_EXAMPLE, parse_offset

__all__ = ["SetReminder"]

NOT_CONFIGURED_REPLY = "I haven't been set up to allow reminders, please moan at whoever set me up"
USAGE_REPLY = f"Usage: /reminder <when> <what>, for example /reminder {OFFSET_EXAMPLE} water the plants"
BAD_FORMAT_REPLY = f"That's not the right date or time format. Example: {OFFSET_EXAMPLE} for a reminder in 5 1/2 hours"
NOT_IN_FUTURE_REPLY = f"I can only remind you about things in the future. Example: {OFFSET_EXAMPLE}"
SAVE_FAILED_REPLY = "Something went wrong at my end so I didn't save your reminder"


class SetReminder(BaseCommand):
    name = "reminder"
    description = f"Set a reminder for yourself (format: /reminder {OFFSET_EXAMPLE} thing to remember)"

    def __init__(self, store: ReminderStore) -> None:
        self.store = store

    async def execute(self, ctx: CommandContext) -> str:
        if not self.store.available:
            return NOT_CONFIGURED_REPLY
        if len(ctx.args) < 2:
            return USAGE_REPLY

        when, message = ctx.args[0], " ".join(ctx.args[1:])
        try:
            offset = parse_offset(when)
        except InvalidFormat as e:
            logger.debug(f"用户 {ctx.user_id} 输入的时间格式不正确: {when!r}, {e}")
            return BAD_FORMAT_REPLY
        if offset <= timedelta(0):
            logger.debug(f"用户 {ctx.user_id} 输入的时间偏移不是正数: {when!r}")
            return NOT_IN_FUTURE_REPLY
        try:
            due_at = ctx.now + offset
        except OverflowError:
            logger.debug(f"用户 {ctx.user_id} 输入的时间偏移超出可表示的日期: {when!r}")
            return BAD_FORMAT_REPLY

        try:
            await self.store.insert(ctx.user_id, message, due_at)
        except StoreUnavailable as e:
            # 不自动重试, 由用户决定是否重新设置
            logger.error(f"保存提醒失败: user_id={ctx.user_id}, error={e}")
            return SAVE_FAILED_REPLY

        return f"Okay, I've set a reminder up to remind you of {message}"
