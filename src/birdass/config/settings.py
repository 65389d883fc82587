import os
from dotenv import load_dotenv
from birdass.logger import logger
load_dotenv()

__all__ = [
    "ENABLE_TELEGRAM_BOT_POLLING", "TELEGRAM_BOT_TOKEN",
    "OWNER_USER_ID", "OWNER_NAME",
    "DB_PATH",
    "REMINDER_CHECK_INTERVAL_SECONDS", "REMINDER_DELIVERY_TIMEOUT_SECONDS",
    "MUSIC_MONTH_GRACE_DAYS", "HTTP_FETCH_TIMEOUT_SECONDS",
    "ENABLE_ADMIN_HTTP", "ADMIN_HTTP_HOST", "ADMIN_HTTP_PORT", "ADMIN_AUTH_TOKEN",
    "LOG_FILE", "LOG_LEVEL",
]


def _parse_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on", "y")


def _parse_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name} 非法: {raw}, 已回退到 {default}")
        return default


def _parse_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name} 非法: {raw}, 已回退到 {default}")
        return default


# Telegram Bot
ENABLE_TELEGRAM_BOT_POLLING = _parse_bool("ENABLE_TELEGRAM_BOT_POLLING", True)
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")

# Bot 拥有者: 只有他能创建 music month, 同时接收 /suggestion
OWNER_USER_ID = os.getenv("OWNER_USER_ID", "").strip()
OWNER_NAME = os.getenv("OWNER_NAME", "the bot owner")
if OWNER_USER_ID == "":
    logger.warning("未设置 OWNER_USER_ID, /musicsetup 与 /suggestion 将不可用")

# 存储
DB_PATH = os.getenv("DB_PATH", "data/birdass.db")

# 提醒
REMINDER_CHECK_INTERVAL_SECONDS = _parse_float("REMINDER_CHECK_INTERVAL_SECONDS", 60.0)
REMINDER_DELIVERY_TIMEOUT_SECONDS = _parse_float("REMINDER_DELIVERY_TIMEOUT_SECONDS", 10.0)

# Music month
MUSIC_MONTH_GRACE_DAYS = _parse_int("MUSIC_MONTH_GRACE_DAYS", 1)
if MUSIC_MONTH_GRACE_DAYS < 0:
    logger.warning(f"MUSIC_MONTH_GRACE_DAYS 不能为负数: {MUSIC_MONTH_GRACE_DAYS}, 已回退到 1")
    MUSIC_MONTH_GRACE_DAYS = 1
HTTP_FETCH_TIMEOUT_SECONDS = _parse_float("HTTP_FETCH_TIMEOUT_SECONDS", 10.0)

# Admin API
ENABLE_ADMIN_HTTP = _parse_bool("ENABLE_ADMIN_HTTP", True)
ADMIN_HTTP_HOST = os.getenv("ADMIN_HTTP_HOST", "127.0.0.1")
ADMIN_HTTP_PORT = _parse_int("ADMIN_HTTP_PORT", 18080)
ADMIN_AUTH_TOKEN = os.getenv("ADMIN_AUTH_TOKEN", "")

# 日志
LOG_FILE = os.getenv("LOG_FILE", "logs/birdass.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
