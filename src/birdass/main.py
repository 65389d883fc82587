from birdass.logger import setup_logging, logger
from birdass.config.settings import *
setup_logging(
    log_level=LOG_LEVEL,
    log_file=LOG_FILE,
    console_level="INFO",
)

import asyncio
import signal
import sys
import time

import aiosqlite
import httpx

from birdass.admin.http_server import main_loop as admin_http_main
from birdass.admin.schemas import RuntimeControl
from birdass.channels.telegram_polling import TelegramNotifier, main as telegram_main
from birdass.commands.registry import build_router
import birdass.metrics  # noqa: F401  注册指标相关的事件处理器
from birdass.storage.db_config import init_db, close_db
from birdass.storage.music_month import MusicMonthStore
from birdass.storage.reminder import ReminderStore
from birdass.world.reminder import ReminderScheduler

shutdown_event = asyncio.Event()


def signal_handler(sig, frame):
    """处理 SIGINT (Ctrl+C) / SIGTERM 信号"""
    logger.info("收到中断信号,正在依次关闭组件...")
    shutdown_event.set()


async def _open_db():
    """数据库打不开时仍然启动, 依赖存储的命令会回复"未配置"提示"""
    try:
        return await init_db(DB_PATH)
    except (OSError, aiosqlite.Error) as e:
        logger.opt(exception=e).error(f"无法打开数据库 {DB_PATH}, 提醒与 music month 将不可用: {e}")
        return None


async def main():
    # 注册信号处理器
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if ENABLE_TELEGRAM_BOT_POLLING and TELEGRAM_BOT_TOKEN == "":
        logger.critical("已启用 Telegram Bot Polling, 但 TELEGRAM_BOT_TOKEN 未设置")
        sys.exit(1)

    conn = await _open_db()
    http_client = httpx.AsyncClient()
    try:
        reminder_store = ReminderStore(conn)
        music_store = MusicMonthStore(conn)
        notifier = TelegramNotifier()
        scheduler = ReminderScheduler(
            reminder_store,
            notifier,
            interval_seconds=REMINDER_CHECK_INTERVAL_SECONDS,
            delivery_timeout_seconds=REMINDER_DELIVERY_TIMEOUT_SECONDS,
        )
        router = build_router(
            reminder_store,
            music_store,
            notifier,
            http_client,
            owner_id=OWNER_USER_ID,
            owner_name=OWNER_NAME,
            grace_days=MUSIC_MONTH_GRACE_DAYS,
            fetch_timeout_seconds=HTTP_FETCH_TIMEOUT_SECONDS,
        )

        tasks = []
        if reminder_store.available:
            tasks.append(scheduler.run_loop(shutdown_event))
        else:
            logger.warning("数据库不可用, 提醒定时投递未启动")

        if ENABLE_TELEGRAM_BOT_POLLING:
            tasks.append(telegram_main(TELEGRAM_BOT_TOKEN, router, notifier, shutdown_event))
        else:
            logger.warning("Telegram Bot Polling 已禁用")

        if ENABLE_ADMIN_HTTP:
            control = RuntimeControl(
                shutdown_event=shutdown_event,
                started_at=time.time(),
                reminder_store=reminder_store,
                music_store=music_store,
                scheduler=scheduler,
                auth_token=ADMIN_AUTH_TOKEN,
                grace_days=MUSIC_MONTH_GRACE_DAYS,
                log_file=LOG_FILE,
                telegram_enabled=ENABLE_TELEGRAM_BOT_POLLING,
            )
            tasks.append(admin_http_main(control, ADMIN_HTTP_HOST, ADMIN_HTTP_PORT))
        else:
            logger.warning("Admin HTTP 服务已禁用")

        if not tasks:
            logger.critical("没有任何可运行的组件, 退出")
            return

        await asyncio.gather(*tasks)
    finally:
        logger.info("关闭 birdass...")
        await http_client.aclose()
        await close_db(conn)
        logger.info("birdass 已关闭")


def run() -> None:
    logger.info("启动 birdass...")
    asyncio.run(main())


if __name__ == "__main__":
    run()
