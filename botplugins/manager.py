"""Group manager helpers: ban durations, switches, lucky draw and join checks."""

from __future__ import annotations

import random
import re
from typing import Any, Mapping, Sequence

MAX_BAN_MINUTES = 43199  # a ban may last at most one month

VERIFY_FLAG = 0x1
GIST_FLAG = 0x10
LUCKY_POOL = 10

_ENABLE = ("开启", "打开", "启用")
_DISABLE = ("关闭", "关掉", "禁用")

_MINUTE_UNITS = ("分钟", "min", "mins", "m")
_HOUR_UNITS = ("小时", "hour", "hours", "h")
_DAY_UNITS = ("天", "day", "days", "d")

_INT = re.compile(r"[+-]?[0-9]+")


def ban_minutes(amount: int, unit: str) -> int:
    """Ban length in minutes for amount of unit, capped below one month.

    An unknown unit is read as minutes.
    """
    minutes = int(amount)
    if unit in _HOUR_UNITS:
        minutes *= 60
    elif unit in _DAY_UNITS:
        minutes *= 60 * 24
    return min(minutes, MAX_BAN_MINUTES)


def unescape_cq(content: str) -> str:
    """Undo the bracket escaping of CQ code text before forwarding it."""
    return content.replace("&#91;", "[").replace("&#93;", "]")


def _switch(data: int, option: str, on_bits: int, off_mask: int) -> int | None:
    if option in _ENABLE:
        return data | on_bits
    if option in _DISABLE:
        return data & off_mask
    return None


def set_verify_flag(data: int, option: str) -> int | None:
    """Turn join verification on or off in the group's data word.

    Returns None when option is neither an enabling nor a disabling word.
    """
    return _switch(data, option, VERIFY_FLAG, 0x7FFFFFFF_FFFFFFFE)


def set_gist_flag(data: int, option: str) -> int | None:
    """Turn gist join approval on or off in the group's data word.

    Returns None when option is neither an enabling nor a disabling word.
    """
    return _switch(data, option, GIST_FLAG, 0x7FFFFFFF_FFFFFFFD)


def pick_lucky(
    members: Sequence[Mapping[str, Any]], rng: random.Random | None = None
) -> Mapping[str, Any]:
    """Pick one of the ten members who spoke most recently."""
    if not members:
        raise ValueError("no members")
    rng = rng or random.Random()
    ordered = sorted(members, key=lambda m: int(m.get("last_sent_time", 0) or 0))
    pool = ordered[max(0, len(ordered) - LUCKY_POOL):]
    return pool[rng.randrange(len(pool))]


def arithmetic_challenge(rng: random.Random | None = None) -> tuple[int, int, int]:
    """Two addends below 100 and their sum, for verifying a newcomer."""
    rng = rng or random.Random()
    a = rng.randrange(100)
    b = rng.randrange(100)
    return a, b, a + b


def check_answer(text: str, expected: int) -> bool | None:
    """Whether text answers the challenge; None when it is not a number."""
    cleaned = text.replace(" ", "")
    if not _INT.fullmatch(cleaned):
        return None
    return int(cleaned) == expected


def cron_reminder_args(date_strs: Sequence[str]) -> tuple[str, str]:
    """(image url, alert) from the groups of a cron reminder command."""
    if len(date_strs) == 4:
        url = date_strs[2]
        if url.startswith("用"):
            url = url[1:]
        return url, date_strs[3]
    if len(date_strs) == 3:
        return "", date_strs[2]
    raise ValueError("参数非法!")