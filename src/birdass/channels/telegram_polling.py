from birdass.logger import logger
from birdass.channels.base import NotificationSink
from birdass.commands.base import CommandContext, CommandRouter
from birdass.errors import DeliveryFailed, RecipientUnreachable
from birdass.utils import now_utc
import datetime
import asyncio
from typing import Any

import telegram
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes

__all__ = ["TelegramNotifier", "build_application", "main", "get_status"]

_connected = False


class TelegramNotifier(NotificationSink):
    """通过 Telegram 私聊发送通知; 私聊的 chat_id 与用户 ID 相同

    bot 在 Application 初始化完成后才会被赋值, 在此之前发送会抛出 RecipientUnreachable。
    """

    def __init__(self, bot: telegram.Bot | None = None) -> None:
        self.bot = bot

    async def open_channel(self, recipient_id: str) -> telegram.Chat:
        if self.bot is None:
            raise RecipientUnreachable(recipient_id, "Telegram Bot 尚未启动")
        try:
            chat_id = int(recipient_id)
        except ValueError as e:
            raise RecipientUnreachable(recipient_id, "不是合法的 Telegram 用户 ID") from e

        try:
            return await self.bot.get_chat(chat_id=chat_id)
        except telegram.error.TelegramError as e:
            raise RecipientUnreachable(recipient_id, str(e)) from e

    async def send(self, channel: Any, text: str) -> None:
        if self.bot is None:
            raise DeliveryFailed("Telegram Bot 尚未启动")
        try:
            await self.bot.send_message(chat_id=channel.id, text=text)
        except telegram.error.TelegramError as e:
            raise DeliveryFailed(f"向 Telegram chat {channel.id} 发送消息失败: {e}") from e


def get_status() -> dict[str, object]:
    return {"connected": _connected}


def _make_handler(router: CommandRouter, name: str):
    async def handle(update: telegram.Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.effective_user is None or update.effective_message is None:
            return
        user = update.effective_user
        ctx = CommandContext(
            user_id=str(user.id),
            user_name=user.username or user.full_name,
            args=list(context.args or []),
            now=now_utc(),
        )
        logger.info(f"收到 /{name} 命令来自 Telegram ID: {user.id}")
        reply = await router.dispatch(name, ctx)
        await update.effective_message.reply_text(reply)

    handle.__name__ = f"cmd_{name}"
    return handle


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """处理 telegram 库中发生的错误"""
    logger.opt(exception=context.error).error(f"Telegram 错误: {context.error}")


def bot_error_callback(error: telegram.error.TelegramError) -> None:
    if isinstance(error, telegram.error.NetworkError):
        logger.warning(f"Telegram Bot 网络错误: {error}")
    else:
        logger.opt(exception=error).error(f"Telegram Bot 发生预期外的错误: {error}")


def build_application(token: str, router: CommandRouter) -> Application:
    app = ApplicationBuilder().token(token).build()
    for name in router.get_all_commands():
        app.add_handler(CommandHandler(name, _make_handler(router, name)))
    app.add_error_handler(error_handler)
    return app


async def _publish_commands(app: Application, router: CommandRouter) -> None:
    """把命令列表同步到 Telegram 的命令菜单"""
    commands = [
        telegram.BotCommand(name, command.description[:256] or name)
        for name, command in router.get_all_commands().items()
    ]
    try:
        await app.bot.set_my_commands(commands)
    except telegram.error.TelegramError as e:
        logger.warning(f"同步 Telegram 命令菜单失败: {e}")


async def main(
    token: str,
    router: CommandRouter,
    notifier: TelegramNotifier,
    shutdown_event: asyncio.Event,
) -> None:
    global _connected
    app = build_application(token, router)

    try:
        await app.initialize()
        notifier.bot = app.bot
        await _publish_commands(app, router)
        await app.updater.start_polling(
            poll_interval=0.5,
            timeout=datetime.timedelta(seconds=15),
            bootstrap_retries=-1,
            drop_pending_updates=False,  # 保留下线期间的命令
            error_callback=bot_error_callback,
        )
        await app.start()
        _connected = True
        logger.info("Telegram Bot Polling 已启动")

        await shutdown_event.wait()
    finally:
        _connected = False
        logger.info("关闭 Telegram Bot Polling...")
        if app.updater is not None and app.updater.running:
            await app.updater.stop()
        if app.running:
            await app.stop()
        await app.shutdown()
        notifier.bot = None
