"""提醒时间偏移的解析

格式: `[<天数>d]<时长>`, 例如 "5d3h30m"、"90m"、"1d0s"
- 时长部分沿用通用的时长语法: 可选正负号, 随后是若干 `<数字><单位>`, 单位支持 h/m/s/ms/us/µs/ns (对用户只说明 h 和 m), 单独的 "0" 也合法
- 出现 "d" 时, 第一个 "d" 之前必须是非负整数天数, 之后的部分按时长语法解析 (不能为空, 所以 "5d" 不合法)
- 总时长为 0 或负数不在这里拒绝, 由调用方决定
"""

import re
from datetime import timedelta
from decimal import Decimal

from birdass.errors import InvalidFormat

__all__ = ["OFFSET_EXAMPLE", "parse_offset", "parse_duration", "format_offset"]

OFFSET_EXAMPLE = "5d3h30m"

# 时长部分的上限, 与 64 位纳秒计数一致 (约 292 年)
_MAX_NS = Decimal(2**63 - 1)

_DAYS_RE = re.compile(r"[0-9]+")
_TOKEN_RE = re.compile(r"(?P<int>[0-9]*)(?P<frac>\.[0-9]*)?(?P<unit>[^0-9.]*)")

# 单位 -> 纳秒
_UNIT_NS = {
    "ns": Decimal(1),
    "us": Decimal(1_000),
    "µs": Decimal(1_000),  # U+00B5
    "μs": Decimal(1_000),  # U+03BC
    "ms": Decimal(1_000_000),
    "s": Decimal(1_000_000_000),
    "m": Decimal(60_000_000_000),
    "h": Decimal(3_600_000_000_000),
}


def parse_duration(text: str) -> timedelta:
    """解析不含天数的时长字符串, 例如 "3h30m"、"1.5h"、"-10m" """
    orig = text
    if text == "":
        raise InvalidFormat("时长为空")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if text == "":
        raise InvalidFormat(f"无效的时长: {orig!r}")

    total_ns = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        int_part = match.group("int")
        frac = match.group("frac")
        unit = match.group("unit")

        if int_part == "" and (frac is None or frac == "."):
            raise InvalidFormat(f"无效的时长: {orig!r}")
        if unit == "":
            raise InvalidFormat(f"时长缺少单位: {orig!r}")
        if unit not in _UNIT_NS:
            raise InvalidFormat(f"未知的时长单位 {unit!r}: {orig!r}")

        value = Decimal(int_part or "0")
        if frac is not None and frac != ".":
            value += Decimal("0" + frac)
        total_ns += value * _UNIT_NS[unit]
        if total_ns > _MAX_NS:
            raise InvalidFormat(f"时长超出范围: {orig!r}")
        pos = match.end()

    return sign * timedelta(microseconds=int(total_ns / 1000))


def parse_offset(text: str) -> timedelta:
    """解析 `[<天数>d]<时长>`, 返回总时长; 格式错误时抛出 InvalidFormat"""
    text = text.strip()
    if "d" not in text:
        return parse_duration(text)

    days_part, _, rest = text.partition("d")
    if not _DAYS_RE.fullmatch(days_part):
        raise InvalidFormat(f"天数不是非负整数: {days_part!r}")

    duration = parse_duration(rest)
    try:
        return timedelta(days=int(days_part)) + duration
    except (OverflowError, ValueError) as e:
        raise InvalidFormat(f"时间偏移超出范围: {text!r}") from e


def format_offset(delta: timedelta) -> str:
    """parse_offset 的逆操作, 例如 timedelta(days=5, hours=3, minutes=30) -> "5d3h30m" """
    if delta < timedelta(0):
        raise ValueError("不支持负的时间偏移")

    hours, remainder = divmod(delta.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds:
        parts.append(f"{seconds}s")
    if delta.microseconds:
        parts.append(f"{delta.microseconds}us")
    duration = "".join(parts) or "0s"

    if delta.days:
        return f"{delta.days}d{duration}"
    return duration
