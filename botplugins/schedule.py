"""Scheduling of reminder timers: cron specs, wake-time computation and a clock."""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime, timedelta
from os import PathLike
from typing import Callable

from .timer import Timer

logger = logging.getLogger(__name__)

Sender = Callable[[Timer], None]

_TICK = timedelta(microseconds=1)

_MONTH_NAMES = {
    name: index
    for index, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_DOW_NAMES = {
    name: index
    for index, name in enumerate(("sun", "mon", "tue", "wed", "thu", "fri", "sat"))
}
_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|ms|us|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
    "us": timedelta(microseconds=1),
}
_SEARCH_YEARS = 5


def _go_weekday(moment: datetime | date_type) -> int:
    """Weekday with Sunday as 0."""
    return (moment.weekday() + 1) % 7


def _go_date(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    micro: int = 0,
    tzinfo=None,
) -> datetime:
    """Build a datetime, letting out-of-range fields overflow into larger ones."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=tzinfo) + timedelta(
        days=day - 1, hours=hour, minutes=minute, seconds=second, microseconds=micro
    )


def _add_date(moment: datetime, years: int = 0, months: int = 0, days: int = 0) -> datetime:
    return _go_date(
        moment.year + years,
        moment.month + months,
        moment.day + days,
        moment.hour,
        moment.minute,
        moment.second,
        moment.microsecond,
        moment.tzinfo,
    )


@dataclass(frozen=True)
class CronSchedule:
    """A parsed five-field cron spec, or a fixed interval."""

    minutes: frozenset[int] = frozenset()
    hours: frozenset[int] = frozenset()
    days: frozenset[int] = frozenset()
    months: frozenset[int] = frozenset()
    weekdays: frozenset[int] = frozenset()
    dom_star: bool = False
    dow_star: bool = False
    interval: timedelta | None = None

    def _day_matches(self, moment: datetime) -> bool:
        dom = moment.day in self.days
        dow = _go_weekday(moment) in self.weekdays
        if self.dom_star or self.dow_star:
            return dom and dow
        return dom or dow

    def next_after(self, moment: datetime) -> datetime:
        """The first activation strictly after moment."""
        if self.interval is not None:
            return moment.replace(microsecond=0) + self.interval
        t = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = t.year + _SEARCH_YEARS
        while t.year <= limit:
            if t.month not in self.months:
                t = _go_date(t.year, t.month + 1, 1, tzinfo=t.tzinfo)
            elif not self._day_matches(t):
                t = datetime(t.year, t.month, t.day, tzinfo=t.tzinfo) + timedelta(days=1)
            elif t.hour not in self.hours:
                t = t.replace(minute=0) + timedelta(hours=1)
            elif t.minute not in self.minutes:
                t += timedelta(minutes=1)
            else:
                return t
        raise ValueError("cron spec never matches")


def _field_value(text: str, names: dict[str, int]) -> int:
    key = text.lower()
    if key in names:
        return names[key]
    if not text.isdigit():
        raise ValueError(f"failed to parse int from {text}")
    return int(text)


def _parse_field(
    text: str, low: int, high: int, names: dict[str, int]
) -> tuple[frozenset[int], bool]:
    values: set[int] = set()
    star = False
    for part in text.split(","):
        span, slash, step_text = part.partition("/")
        step = 1
        if slash:
            if not step_text.isdigit() or int(step_text) == 0:
                raise ValueError(f"invalid step in {part}")
            step = int(step_text)
        if span in ("*", "?"):
            start, end = low, high
            if step == 1:
                star = True
        else:
            first, dash, last = span.partition("-")
            start = _field_value(first, names)
            if dash:
                end = _field_value(last, names)
            elif slash:
                end = high
            else:
                end = start
        if start < low:
            raise ValueError(f"beginning of range ({start}) below minimum ({low}): {part}")
        if end > high:
            raise ValueError(f"end of range ({end}) above maximum ({high}): {part}")
        if start > end:
            raise ValueError(f"beginning of range ({start}) beyond end of range ({end}): {part}")
        values.update(range(start, end + 1, step))
    return frozenset(values), star


def _parse_duration(text: str) -> timedelta:
    text = text.strip()
    pos = 0
    total = timedelta(0)
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += _DURATION_UNITS[match.group(2)] * float(match.group(1))
        pos = match.end()
    if not text or pos != len(text):
        raise ValueError(f"failed to parse duration {text}")
    if total < timedelta(seconds=1):
        total = timedelta(seconds=1)
    return timedelta(seconds=int(total.total_seconds()))


def parse_cron(spec: str) -> CronSchedule:
    """Parse "min hour dom month dow", a descriptor such as @daily, or "@every 1h"."""
    spec = spec.strip()
    if spec.startswith("@every "):
        return CronSchedule(interval=_parse_duration(spec[len("@every "):]))
    if spec.startswith("@"):
        if spec not in _DESCRIPTORS:
            raise ValueError(f"unrecognized descriptor: {spec}")
        spec = _DESCRIPTORS[spec]
    fields = spec.split()
    if len(fields) != 5:
        raise ValueError(f"expected exactly 5 fields, found {len(fields)}: {spec}")
    minutes, _ = _parse_field(fields[0], 0, 59, {})
    hours, _ = _parse_field(fields[1], 0, 23, {})
    days, dom_star = _parse_field(fields[2], 1, 31, {})
    months, _ = _parse_field(fields[3], 1, 12, _MONTH_NAMES)
    weekdays, dow_star = _parse_field(fields[4], 0, 6, _DOW_NAMES)
    return CronSchedule(minutes, hours, days, months, weekdays, dom_star, dow_star)


def first_weekday(date: datetime, week: int) -> datetime:
    """The first day of date's month falling on week (Sunday is 0), same time of day."""
    if not 0 <= week <= 6:
        raise ValueError(f"invalid weekday {week}")
    d = _add_date(date, days=1 - date.day)
    while _go_weekday(d) != week:
        d = _add_date(d, days=1)
    return d


def next_wake_time(timer: Timer, now: datetime | None = None) -> datetime:
    """When a date-based timer should next wake up; always later than now."""
    now = now or datetime.now()
    date = now
    m, d, h, mn, w = timer.month(), timer.day(), timer.hour(), timer.minute(), timer.week()

    unit = timedelta(0)
    if mn >= 0:
        if h < 0:
            unit = timedelta(hours=1)
        elif d < 0 or w < 0:
            unit = timedelta(days=1)
        elif d == 0 and w >= 0:
            delta = timedelta(days=w - _go_weekday(date))
            if delta < timedelta(0):
                delta = timedelta(days=7)
            unit += delta
        elif m < 0:
            unit = -_TICK
    else:
        unit = timedelta(minutes=1)

    stable = 0
    if mn < 0:
        mn = date.minute
    if h < 0:
        h = date.hour
    else:
        stable |= 0x8
    if d < 0:
        d = date.day
    elif d > 0:
        stable |= 0x4
    else:
        d = date.day
        if w >= 0:
            stable |= 0x2
    if m < 0:
        m = date.month
    else:
        stable |= 0x1

    if stable == 0b0101:
        if timer.day() != now.day or timer.month() != now.month:
            h = 0
    elif stable == 0b1001:
        if timer.month() != now.month:
            d = 0
    elif stable == 0b0001:
        if timer.month() != now.month:
            d = 0
            h = 0
    logger.debug("timer m:%s d:%s h:%s mn:%s w:%s stable:%s", m, d, h, mn, w, stable)

    date = _go_date(date.year, m, d, h, mn, date.second, date.microsecond, date.tzinfo)
    if unit > timedelta(0):
        date += unit

    if date <= now:
        if timer.month() < 0:
            if timer.day() > 0 or (timer.day() == 0 and timer.week() >= 0):
                date = _add_date(date, months=1)
            elif timer.day() < 0 or timer.week() < 0:
                if timer.hour() > 0:
                    date = _add_date(date, days=1)
                elif timer.minute() > 0:
                    date += timedelta(hours=1)
        else:
            date = _add_date(date, years=1)

    if stable & 0x8 and date.hour != h:
        if stable & 0x4 == 0:
            date = _add_date(date, days=1) - timedelta(hours=1)
        elif stable & 0x2 == 0:
            date = _add_date(date, days=7) - timedelta(hours=1)
        elif stable == 0:
            date = _add_date(date, months=1) - timedelta(hours=1)
        else:
            date = _add_date(date, years=1) - timedelta(hours=1)

    if stable & 0x4 and date.day != d:
        if stable == 0:
            date = _add_date(date, months=1, days=-1)
        else:
            date = _add_date(date, years=1, days=-1)

    if stable & 0x2 and _go_weekday(date) != w:
        if stable == 0:
            date = _add_date(date, months=1)
        else:
            date = _add_date(date, years=1)
        date = first_weekday(date, w)

    if date <= now:
        date = now + timedelta(minutes=1)
    return date


def should_fire(timer: Timer, now: datetime) -> bool:
    """Whether a date-based timer matches the moment now."""
    if timer.month() >= 0 and timer.month() != now.month:
        return False
    if timer.day() < 0 or timer.day() == now.day:
        pass
    elif timer.day() == 0:
        if timer.week() >= 0 and timer.week() != _go_weekday(now):
            return False
    else:
        return False
    if timer.hour() >= 0 and timer.hour() != now.hour:
        return False
    return timer.minute() < 0 or timer.minute() == now.minute


_CREATE = (
    "CREATE TABLE IF NOT EXISTS timer ("
    "id INTEGER PRIMARY KEY, emdwhm INTEGER, sid INTEGER, gid INTEGER, "
    "alert TEXT, cron TEXT, url TEXT)"
)


class Clock:
    """Keeps timers in memory and in an SQLite table and fires them when due.

    Call run_pending periodically (for example once a minute) to deliver
    the timers that have come due through sender.
    """

    def __init__(self, db_path: str | PathLike[str], sender: Sender) -> None:
        self._sender = sender
        self._lock = threading.RLock()
        self._timers: dict[int, Timer] = {}
        self._crons: dict[int, CronSchedule] = {}
        self._due: dict[int, datetime] = {}
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.execute(_CREATE)
        self._db.commit()
        rows = list(
            self._db.execute("SELECT id, emdwhm, sid, gid, alert, cron, url FROM timer")
        )
        for row in rows:
            self.register_timer(Timer(*row), save=False)

    def __enter__(self) -> Clock:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def register_timer(self, ts: Timer, save: bool = True) -> bool:
        """Register ts, storing it in the database when save is set.

        Returns True when the timer is scheduled. A bad cron spec leaves
        its message in ts.alert and returns False.
        """
        now = datetime.now()
        if save:
            ts.id = ts.timer_id()
        key = ts.id
        with self._lock:
            old = self._timers.get(key)
            if old is not None and old is not ts:
                old.update(enabled=False)
            self._crons.pop(key, None)
            self._due.pop(key, None)
        logger.info("registering timer %08x", key)

        if ts.cron:
            try:
                schedule = parse_cron(ts.cron)
                due = schedule.next_after(now)
            except ValueError as exc:
                ts.alert = str(exc)
                return False
            try:
                if save:
                    self.add_timer_into_db(ts)
            except sqlite3.Error as exc:
                logger.warning("cannot store timer %08x: %s", key, exc)
                return False
            self.add_timer_into_map(ts)
            with self._lock:
                self._crons[key] = schedule
                self._due[key] = due
            return True

        if save:
            try:
                self.add_timer_into_db(ts)
            except sqlite3.Error as exc:
                logger.warning("cannot store timer %08x: %s", key, exc)
        self.add_timer_into_map(ts)
        if not ts.enabled():
            return False
        with self._lock:
            self._due[key] = next_wake_time(ts, now)
        return True

    def cancel_timer(self, key: int) -> bool:
        """Stop and forget the timer; False if there is none under key."""
        with self._lock:
            t = self._timers.pop(key, None)
            if t is None:
                return False
            if t.cron:
                self._crons.pop(key, None)
            else:
                t.update(enabled=False)
            self._due.pop(key, None)
            try:
                self._db.execute("DELETE FROM timer WHERE id = ?", (key,))
                self._db.commit()
            except sqlite3.Error as exc:
                logger.warning("cannot delete timer %08x: %s", key, exc)
                return False
            return True

    def list_timers(self, grp_id: int) -> list[str]:
        """Human readable schedules of the group's timers."""
        result = []
        with self._lock:
            timers = list(self._timers.values())
        for t in timers:
            if t.grp_id != grp_id:
                continue
            info = t.info()
            msg = info[info.index("]") + 1:] + "\n"
            msg = msg.replace("-1", "每")
            msg = msg.replace("月0日0周", "月周天")
            msg = msg.replace("月0日", "月")
            msg = msg.replace("日0周", "日")
            result.append(msg)
        return result

    def get_timer(self, key: int) -> Timer | None:
        with self._lock:
            return self._timers.get(key)

    def add_timer_into_db(self, t: Timer) -> None:
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO timer (id, emdwhm, sid, gid, alert, cron, url) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (t.id, t.packed, t.self_id, t.grp_id, t.alert, t.cron, t.url),
            )
            self._db.commit()

    def add_timer_into_map(self, t: Timer) -> None:
        with self._lock:
            self._timers[t.id] = t

    def _send(self, t: Timer) -> None:
        try:
            self._sender(t)
        except Exception:  # a failing delivery must not stop the other timers
            logger.exception("timer %08x failed to send", t.id)

    def run_pending(self, now: datetime | None = None) -> int:
        """Fire every timer that is due at now; return how many were sent."""
        now = now or datetime.now()
        with self._lock:
            due = [
                (key, self._timers[key])
                for key, when in self._due.items()
                if when <= now and key in self._timers
            ]
        fired = 0
        for key, t in due:
            if t.cron:
                with self._lock:
                    schedule = self._crons.get(key)
                if schedule is None:
                    continue
                self._send(t)
                fired += 1
                try:
                    following = schedule.next_after(now)
                except ValueError:
                    with self._lock:
                        self._due.pop(key, None)
                    continue
            else:
                if not t.enabled():
                    with self._lock:
                        self._due.pop(key, None)
                    continue
                if should_fire(t, now):
                    self._send(t)
                    fired += 1
                following = next_wake_time(t, now)
            with self._lock:
                if key in self._due:
                    self._due[key] = following
        return fired

    def close(self) -> None:
        with self._lock:
            self._db.close()