"""日志模块 (loguru)

进程入口调用一次 setup_logging, 其余模块 `from birdass.logger import logger` 后直接使用。
未调用时 (例如测试) 沿用 loguru 默认的 stderr 输出。

日志文件:
    <log_file>            主日志, 级别由 LOG_LEVEL 决定, 保留 30 天
    <stem>_error<suffix>  只记录 ERROR 及以上, 保留 90 天
两者都按 10 MB 切分并压缩为 zip。Admin API 的日志查看依赖 FILE_FORMAT 中的 "| LEVEL |" 分隔。
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"

LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _level(raw: str | None, default: str) -> str:
    name = (raw or default).strip().upper()
    if name == "FATAL":
        return "CRITICAL"
    if name not in LEVELS:
        logger.warning(f"未知的日志级别 {raw!r}, 使用 {default}")
        return default
    return name


def error_log_path(log_file: str | Path) -> Path:
    log_file = Path(log_file)
    return log_file.with_name(f"{log_file.stem}_error{log_file.suffix}")


def setup_logging(
    log_level: str = "DEBUG",
    log_file: str | Path | None = None,
    console_level: str = "INFO",
) -> None:
    """重新配置全部输出; log_file 为空时只输出到控制台"""
    logger.remove()
    logger.add(sys.stderr, level=_level(console_level, "INFO"), format=CONSOLE_FORMAT, colorize=True)

    if not log_file:
        return

    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    for path, level, retention in (
        (log_file, _level(log_level, "DEBUG"), "30 days"),
        (error_log_path(log_file), "ERROR", "90 days"),
    ):
        logger.add(
            path,
            level=level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention=retention,
            compression="zip",
            encoding="utf-8",
        )


__all__ = ["setup_logging", "error_log_path", "logger", "FILE_FORMAT"]
