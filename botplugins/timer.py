"""Reminder timers whose schedule is packed into a single integer field."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Any, Sequence

_ENABLED_BIT = 0x800000
_FIELD_BITS = 0xFFFFFF

# field name -> (shift, mask) inside the packed schedule value
_LAYOUT = {
    "month": (19, 0x780000),
    "day": (14, 0x07C000),
    "week": (11, 0x003800),
    "hour": (6, 0x0007C0),
    "minute": (0, 0x00003F),
}

_CHINESE_DIGITS = "零一二三四五六七八九十"
_ASCII_INT = re.compile(r"[+-]?[0-9]+")


@dataclass
class Timer:
    """A group reminder, either cron based or described by packed date fields.

    A packed field holding all ones reads back as -1, meaning "every".
    """

    id: int = 0
    packed: int = 0
    self_id: int = 0
    grp_id: int = 0
    alert: str = ""
    cron: str = ""
    url: str = ""

    def _read(self, field: str) -> int:
        shift, mask = _LAYOUT[field]
        value = (self.packed & mask) >> shift
        return -1 if value == mask >> shift else value

    def _write(self, field: str, value: int) -> None:
        shift, mask = _LAYOUT[field]
        self.packed = ((value << shift) & mask) | (self.packed & (_FIELD_BITS ^ mask))

    def update(
        self,
        *,
        enabled: bool | None = None,
        month: int | None = None,
        day: int | None = None,
        week: int | None = None,
        hour: int | None = None,
        minute: int | None = None,
    ) -> Timer:
        """Change the given schedule fields and return the timer."""
        if enabled is not None:
            if enabled:
                self.packed |= _ENABLED_BIT
            else:
                self.packed &= _FIELD_BITS ^ _ENABLED_BIT
        for field, value in (
            ("month", month),
            ("day", day),
            ("week", week),
            ("hour", hour),
            ("minute", minute),
        ):
            if value is not None:
                self._write(field, value)
        return self

    def enabled(self) -> bool:
        return self.packed & _ENABLED_BIT != 0

    def month(self) -> int:
        return self._read("month")

    def day(self) -> int:
        return self._read("day")

    def week(self) -> int:
        return self._read("week")

    def hour(self) -> int:
        return self._read("hour")

    def minute(self) -> int:
        return self._read("minute")

    def info(self) -> str:
        """Normalised description used to identify the timer."""
        if self.cron:
            return f"[{self.grp_id}]{self.cron}"
        return (
            f"[{self.grp_id}]{self.month()}月{self.day()}日{self.week()}周"
            f"{self.hour()}:{self.minute()}"
        )

    def timer_id(self) -> int:
        """32-bit id: first four bytes of the MD5 of info(), little endian."""
        digest = hashlib.md5(self.info().encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "little")

    def message_segments(self) -> list[dict[str, Any]]:
        """Message sent when the timer fires: @all, the alert and an optional image."""
        segments: list[dict[str, Any]] = [
            {"type": "at", "data": {"qq": "all"}},
            {"type": "text", "data": {"text": self.alert}},
        ]
        if self.url:
            segments.append({"type": "image", "data": {"file": self.url, "cache": "0"}})
        return segments


def filled_cron_timer(croncmd: str, alert: str, img: str, botqq: int, gid: int) -> Timer:
    """Build a cron based timer."""
    return Timer(self_id=botqq, grp_id=gid, alert=alert, cron=croncmd, url=img)


def _bad_day(d: int) -> bool:
    return (d != -1 and d <= 0) or d > 31


def filled_timer(
    date_strs: Sequence[str], botqq: int, grp: int, match_date_only: bool
) -> Timer:
    """Build a timer from the groups of a reminder command.

    date_strs holds the whole match followed by month, day-or-week, hour,
    minute, the optional "用<url>" part and the alert text. On an illegal
    value the returned timer is disabled and its alert names the problem.
    """
    month_str, day_week, hour_str, minute_str = date_strs[1:5]
    t = Timer()

    mon = chinese_num_to_int(month_str)
    if (mon != -1 and mon <= 0) or mon > 12:
        t.alert = "月份非法！"
        return t
    t.update(month=mon)

    if len(day_week) == 4:  # e.g. 二十五日: drop the middle 十
        d = chinese_num_to_int(day_week[0] + day_week[2])
        if _bad_day(d):
            t.alert = "日期非法1！"
            return t
        t.update(day=d)
    elif day_week.endswith("日"):
        d = chinese_num_to_int(day_week[:-1])
        if _bad_day(d):
            t.alert = "日期非法2！"
            return t
        t.update(day=d)
    elif day_week.startswith("每"):
        t.update(week=-1)
    else:
        w = chinese_num_to_int(day_week[1:])
        if w == 7:
            w = 0
        if w < 0 or w > 6:
            t.alert = "星期非法！"
            return t
        t.update(week=w)

    if len(hour_str) == 3:
        hour_str = hour_str[0] + hour_str[2]
    h = chinese_num_to_int(hour_str)
    if h < -1 or h > 23:
        t.alert = "小时非法！"
        return t
    t.update(hour=h)

    if len(minute_str) == 3:
        minute_str = minute_str[0] + minute_str[2]
    mn = chinese_num_to_int(minute_str)
    if mn < -1 or mn > 59:
        t.alert = "分钟非法！"
        return t
    t.update(minute=mn)

    if not match_date_only:
        url_str = date_strs[5]
        if url_str:
            # the leading 用 takes three bytes in UTF-8
            t.url = url_str.encode("utf-8")[3:].decode("utf-8", errors="replace")
            if not t.url.startswith("http"):
                t.url = "illegal"
                return t
        t.alert = date_strs[6]
        t.update(enabled=True)
    t.self_id = botqq
    t.grp_id = grp
    return t


def chinese_num_to_int(text: str) -> int:
    """Convert a one or two character number to int.

    Accepts arabic digits or Chinese numerals up to 99; "每" reads as -1 and
    "每二" as -2 and so on. Raises ValueError on an empty string.
    """
    if not text:
        raise ValueError("empty number")
    result = -1
    if text[0].isdecimal():
        result = int(text) if _ASCII_INT.fullmatch(text) else 0
    elif text[0] == "每":
        if len(text) == 2:
            result = -chinese_char_to_int(text[1])
    elif len(text) == 1:
        result = chinese_char_to_int(text[0])
    else:
        ten = chinese_char_to_int(text[0])
        if ten != 10:
            ten *= 10
        ones = chinese_char_to_int(text[1])
        if ones == 10:
            ones = 0
        result = ten + ones
    return result


def chinese_char_to_int(char: str) -> int:
    """Map one Chinese numeral to 0..10; 日 and 天 (Sunday) map to 7, others to 0."""
    if char in ("日", "天"):
        return 7
    index = _CHINESE_DIGITS.find(char) if len(char) == 1 else -1
    return index if index >= 0 else 0