import pytest

from botplugins.manager_db import (
    ManagerDB,
    check_new_user,
    gist_url,
    parse_join_answer,
    welcome_to_cq,
)


@pytest.fixture
def db(tmp_path):
    store = ManagerDB(tmp_path / "config.db")
    yield store
    store.close()


def test_welcome_round_trip_and_replace(db):
    assert db.welcome(1) is None
    db.set_welcome(1, "hello")
    assert db.welcome(1) == "hello"
    db.set_welcome(1, "again")
    assert db.welcome(1) == "again"
    assert db.farewell(1) is None


def test_farewell_separate_from_welcome(db):
    db.set_farewell(2, "bye")
    assert db.farewell(2) == "bye"
    assert db.welcome(2) is None


def test_persists_across_reopen(tmp_path):
    path = tmp_path / "c.db"
    with ManagerDB(path) as first:
        first.set_welcome(5, "hi {at}")
        first.add_member(10, "alice")
    with ManagerDB(path) as second:
        assert second.welcome(5) == "hi {at}"
        assert second.has_github_user("alice")


def test_members(db):
    assert not db.has_github_user("bob")
    db.add_member(3, "bob")
    assert db.has_github_user("bob")


def test_welcome_to_cq_fills_placeholders():
    out = welcome_to_cq("{at} {avatar} {nickname}/{uid}/{gid}/{groupname}", 42, "Bob", 7, "G")
    assert out == (
        "[CQ:at,qq=42] [CQ:image,file=http://q4.qlogo.cn/g?b=qq&nk=42&s=640] Bob/42/7/G"
    )


def test_gist_url_shape():
    url = gist_url("alice", "abc", 123)
    prefix = "https://gist.githubusercontent.com/alice/abc/raw/"
    assert url.startswith(prefix)
    name = url[len(prefix):]
    assert len(name) == 32
    assert all(c in "0123456789abcdef" for c in name)
    assert gist_url("alice", "abc", 124) != url


def test_check_new_user_accepts_recent_stamp(db):
    seen = []

    def fetch(url):
        seen.append(url)
        return b"1000"

    ok, reason = check_new_user(db, 9, 123, "alice", "abc", fetch=fetch, now=1300)
    assert (ok, reason) == (True, "")
    assert seen == [gist_url("alice", "abc", 123)]
    assert db.has_github_user("alice")


def test_check_new_user_rejects_existing(db):
    db.add_member(1, "alice")
    ok, reason = check_new_user(db, 9, 1, "alice", "h", fetch=lambda u: b"0", now=0)
    assert not ok
    assert reason == "该github用户已入群"


def test_check_new_user_timeout(db):
    ok, reason = check_new_user(db, 9, 1, "a", "h", fetch=lambda u: b"1000", now=1600)
    assert (ok, reason) == (False, "时间戳超时")
    assert not db.has_github_user("a")


def test_check_new_user_bad_format(db):
    ok, reason = check_new_user(db, 9, 1, "a", "h", fetch=lambda u: b"abc", now=0)
    assert (ok, reason) == (False, "时间戳格式错误: abc")


def test_check_new_user_fetch_failure(db):
    def fetch(url):
        raise OSError("down")

    ok, reason = check_new_user(db, 9, 1, "a", "h", fetch=fetch, now=0)
    assert not ok
    assert reason == "无法连接到gist: down"


def test_parse_join_answer():
    assert parse_join_answer("问题：x\n答案：alice/abc") == ("alice", "abc")


@pytest.mark.parametrize("comment", ["答案：/abc", "答案：alice"])
def test_parse_join_answer_errors(comment):
    with pytest.raises(ValueError, match="格式错误!"):
        parse_join_answer(comment)