"""Admin API 的日志查看: 读取 loguru 写出的日志文件末尾若干行, 按级别和关键字过滤"""

from __future__ import annotations

import re
from collections import deque
from pathlib import Path
from typing import Iterable

from birdass.logger import LEVELS, error_log_path

# 对应 FILE_FORMAT 中的 "| LEVEL    |"
_LOG_LEVEL_RE = re.compile(r"\|\s*([A-Z]+)\s*\|")


def log_path(log_file: str | Path, stream: str = "main") -> Path:
    """stream 为 "error" 时返回单独的错误日志文件"""
    if stream == "error":
        return error_log_path(log_file)
    return Path(log_file)


def parse_levels(raw: Iterable[str]) -> set[str]:
    return {lv for lv in (str(x).upper().strip() for x in raw) if lv in LEVELS}


def _matches(line: str, levels: set[str], keyword: str) -> bool:
    if levels:
        match = _LOG_LEVEL_RE.search(line)
        if match is None or match.group(1) not in levels:
            return False
    return not keyword or keyword in line.lower()


def read_logs(
    path: Path,
    lines: int,
    levels: set[str] | None = None,
    keyword: str | None = None,
) -> list[str]:
    """先过滤再截取, 返回最后 lines 条匹配的日志"""
    if not path.exists():
        return []
    levels = levels or set()
    keyword = (keyword or "").strip().lower()

    buf: deque[str] = deque(maxlen=lines)
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.rstrip("\n")
            if _matches(line, levels, keyword):
                buf.append(line)
    return list(buf)
