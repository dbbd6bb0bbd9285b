import pytest

from botplugins.timer import (
    Timer,
    chinese_char_to_int,
    chinese_num_to_int,
    filled_cron_timer,
    filled_timer,
)


def test_fields_from_next_wake_time_case():
    ts = Timer().update(month=-1, week=6, hour=16, minute=30)
    assert ts.month() == -1
    assert ts.week() == 6
    assert ts.hour() == 16
    assert ts.minute() == 30
    assert ts.day() == 0
    assert ts.enabled() is False


@pytest.mark.parametrize(
    "field,value",
    [("month", 7), ("day", 23), ("week", 3), ("hour", 22), ("minute", 45), ("day", -1)],
)
def test_setting_one_field_keeps_the_others(field, value):
    ts = Timer().update(enabled=True, month=2, day=5, week=1, hour=8, minute=9)
    before = {name: getattr(ts, name)() for name in ("month", "day", "week", "hour", "minute")}
    ts.update(**{field: value})
    after = {name: getattr(ts, name)() for name in before}
    before[field] = value
    assert after == before
    assert ts.enabled() is True


def test_enable_toggle():
    ts = Timer().update(minute=10)
    ts.update(enabled=True)
    assert ts.enabled()
    ts.update(enabled=False)
    assert not ts.enabled()
    assert ts.minute() == 10


def test_filled_timer_from_clock_case():
    ts = filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 0, False)
    assert ts.month() == 12
    assert ts.day() == 0
    assert ts.week() == 1
    assert ts.hour() == 12
    assert ts.minute() == 0
    assert ts.alert == "test"
    assert ts.url == ""
    assert ts.enabled()
    assert ts.info() == "[0]12月0日1周12:0"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("12", 12),
        ("三", 3),
        ("十", 10),
        ("十二", 12),
        ("二十", 20),
        ("三五", 35),
        ("每", -1),
        ("每二", -2),
        ("天", 7),
    ],
)
def test_chinese_num_to_int(text, expected):
    assert chinese_num_to_int(text) == expected


def test_chinese_num_to_int_empty_raises():
    with pytest.raises(ValueError):
        chinese_num_to_int("")


@pytest.mark.parametrize(
    "char,expected", [("零", 0), ("九", 9), ("十", 10), ("日", 7), ("天", 7), ("x", 0)]
)
def test_chinese_char_to_int(char, expected):
    assert chinese_char_to_int(char) == expected


def test_filled_timer_chinese_date_with_url():
    ts = filled_timer(
        ["", "十二", "二十五日", "八", "三十", "用http://example.com/a.png", "hello"],
        11,
        22,
        False,
    )
    assert (ts.month(), ts.day(), ts.hour(), ts.minute()) == (12, 25, 8, 30)
    assert ts.url == "http://example.com/a.png"
    assert ts.alert == "hello"
    assert ts.self_id == 11
    assert ts.grp_id == 22
    assert ts.enabled()


def test_filled_timer_every_week():
    ts = filled_timer(["", "每", "每周", "每", "五", "", "hi"], 1, 2, False)
    assert ts.month() == -1
    assert ts.week() == -1
    assert ts.hour() == -1
    assert ts.minute() == 5


@pytest.mark.parametrize("day_week,week", [("周三", 3), ("周日", 0), ("周天", 0)])
def test_filled_timer_weekday(day_week, week):
    ts = filled_timer(["", "1", day_week, "9", "0", "", "x"], 0, 0, False)
    assert ts.week() == week
    assert ts.day() == 0


@pytest.mark.parametrize(
    "parts,alert",
    [
        (["十三", "1日", "1", "1"], "月份非法！"),
        (["1", "三十二日", "1", "1"], "日期非法1！"),
        (["1", "32日", "1", "1"], "日期非法2！"),
        (["1", "周八", "1", "1"], "星期非法！"),
        (["1", "1日", "二十五", "1"], "小时非法！"),
        (["1", "1日", "1", "六十"], "分钟非法！"),
    ],
)
def test_filled_timer_illegal_values(parts, alert):
    ts = filled_timer([""] + parts + ["", "x"], 5, 6, False)
    assert ts.alert == alert
    assert not ts.enabled()
    assert ts.grp_id == 0


def test_filled_timer_illegal_url():
    ts = filled_timer(["", "1", "1日", "1", "1", "用ftp://example.com/a", "x"], 5, 6, False)
    assert ts.url == "illegal"
    assert not ts.enabled()


def test_filled_timer_match_date_only():
    ts = filled_timer(["", "3", "4日", "5", "6"], 7, 8, True)
    assert not ts.enabled()
    assert ts.alert == ""
    assert ts.grp_id == 8
    assert (ts.month(), ts.day(), ts.hour(), ts.minute()) == (3, 4, 5, 6)


def test_cron_timer_info_and_id():
    ts = filled_cron_timer("*/5 * * * *", "alert", "", 1, 42)
    assert ts.info() == "[42]*/5 * * * *"
    other = filled_cron_timer("*/5 * * * *", "different", "http://example.com", 9, 42)
    assert ts.timer_id() == other.timer_id()
    assert 0 <= ts.timer_id() < 2**32


def test_timer_id_depends_on_group():
    a = filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 1, False)
    b = filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 2, False)
    assert a.timer_id() != b.timer_id()


def test_message_segments():
    ts = Timer(alert="wake up")
    segs = ts.message_segments()
    assert segs[0] == {"type": "at", "data": {"qq": "all"}}
    assert segs[1] == {"type": "text", "data": {"text": "wake up"}}
    assert len(segs) == 2
    ts.url = "http://example.com/p.png"
    segs = ts.message_segments()
    assert segs[2] == {"type": "image", "data": {"file": "http://example.com/p.png", "cache": "0"}}