from birdass.channels.base import NotificationSink
from birdass.commands.base import BaseCommand, CommandContext
from birdass.errors import DeliveryFailed, RecipientUnreachable
from birdass.logger import logger

__all__ = ["Start", "Birdass", "Suggestion"]


class Start(BaseCommand):
    name = "start"
    description = "Say hello"

    async def execute(self, ctx: CommandContext) -> str:
        logger.info(f"收到 /start 命令来自用户 {ctx.user_id}")
        return "birdass bot online. Try /reminder 5d3h30m something to remember"


class Birdass(BaseCommand):
    name = "birdass"
    description = "Just birdass"

    async def execute(self, ctx: CommandContext) -> str:
        return "just birdass"


class Suggestion(BaseCommand):
    """把功能建议私聊转发给 bot 拥有者"""
    name = "suggestion"
    description = "Make a feature request for this bot"

    def __init__(self, sink: NotificationSink, owner_id: str) -> None:
        self.sink = sink
        self.owner_id = owner_id

    async def execute(self, ctx: CommandContext) -> str:
        if not ctx.args:
            return "Usage: /suggestion <what you want to see implemented>"
        if not self.owner_id:
            return "Nobody is set up to receive suggestions, sorry"

        sender = ctx.user_name or ctx.user_id
        try:
            channel = await self.sink.open_channel(self.owner_id)
            await self.sink.send(channel, f"You've had a suggestion from {sender}: {ctx.text}")
        except (RecipientUnreachable, DeliveryFailed) as e:
            logger.warning(f"转发建议失败: from={ctx.user_id}, error={e}")
            return "I couldn't pass your suggestion on, try again later"

        return "Thanks, I've passed your suggestion on"
