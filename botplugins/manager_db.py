"""Group manager storage: welcome and farewell texts, and gist-verified members."""

from __future__ import annotations

import hashlib
import re
import sqlite3
import time
from os import PathLike
from typing import Callable

import requests

GIST_RAW = "https://gist.githubusercontent.com/{user}/{hash}/raw/{file}"
ANSWER_MARK = "答案："
VALID_SECONDS = 600

_INT64 = re.compile(r"[+-]?[0-9]+")

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS welcome (gid INTEGER PRIMARY KEY, msg TEXT)",
    "CREATE TABLE IF NOT EXISTS farewell (gid INTEGER PRIMARY KEY, msg TEXT)",
    "CREATE TABLE IF NOT EXISTS member (qq INTEGER PRIMARY KEY, ghun TEXT)",
)


class GistError(Exception):
    """The gist could not be fetched."""


class ManagerDB:
    """SQLite store for per-group greetings and verified members."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self._db = sqlite3.connect(str(path), check_same_thread=False)
        for statement in _SCHEMA:
            self._db.execute(statement)
        self._db.commit()

    def __enter__(self) -> ManagerDB:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _set_text(self, table: str, gid: int, msg: str) -> None:
        self._db.execute(f"REPLACE INTO {table} (gid, msg) VALUES (?, ?)", (gid, msg))
        self._db.commit()

    def _get_text(self, table: str, gid: int) -> str | None:
        row = self._db.execute(f"SELECT msg FROM {table} WHERE gid = ?", (gid,)).fetchone()
        return None if row is None else row[0]

    def set_welcome(self, gid: int, msg: str) -> None:
        self._set_text("welcome", gid, msg)

    def welcome(self, gid: int) -> str | None:
        """The group's welcome template, or None when none is set."""
        return self._get_text("welcome", gid)

    def set_farewell(self, gid: int, msg: str) -> None:
        self._set_text("farewell", gid, msg)

    def farewell(self, gid: int) -> str | None:
        """The group's farewell template, or None when none is set."""
        return self._get_text("farewell", gid)

    def has_github_user(self, ghun: str) -> bool:
        row = self._db.execute("SELECT 1 FROM member WHERE ghun = ?", (ghun,)).fetchone()
        return row is not None

    def add_member(self, qq: int, ghun: str) -> None:
        self._db.execute("REPLACE INTO member (qq, ghun) VALUES (?, ?)", (qq, ghun))
        self._db.commit()

    def close(self) -> None:
        self._db.close()


def welcome_to_cq(template: str, uid: int, nickname: str, gid: int, groupname: str) -> str:
    """Fill the {at} {nickname} {avatar} {uid} {gid} {groupname} placeholders with CQ text."""
    uid_text = str(uid)
    replacements = (
        ("{at}", f"[CQ:at,qq={uid_text}]"),
        ("{nickname}", nickname),
        ("{avatar}", f"[CQ:image,file=http://q4.qlogo.cn/g?b=qq&nk={uid_text}&s=640]"),
        ("{uid}", uid_text),
        ("{gid}", str(gid)),
        ("{groupname}", groupname),
    )
    for key, value in replacements:
        template = template.replace(key, value)
    return template


def gist_url(ghun: str, gist_hash: str, gid: int) -> str:
    """Raw url of the gist file named after the MD5 of the group number."""
    file_name = hashlib.md5(str(gid).encode("ascii")).hexdigest()
    return GIST_RAW.format(user=ghun, hash=gist_hash, file=file_name)


def _fetch_gist(url: str) -> bytes:
    try:
        resp = requests.get(url, timeout=30)
    except requests.RequestException as exc:
        raise GistError(str(exc)) from exc
    if resp.status_code != 200:
        raise GistError(f"status code: {resp.status_code}")
    return resp.content


def check_new_user(
    db: ManagerDB,
    qq: int,
    gid: int,
    ghun: str,
    gist_hash: str,
    fetch: Callable[[str], bytes] | None = None,
    now: int | None = None,
) -> tuple[bool, str]:
    """Verify a join request by its gist; record the member on success.

    The gist must hold a unix timestamp within ten minutes of now.
    Returns (accepted, reason for refusal).
    """
    if db.has_github_user(ghun):
        return False, "该github用户已入群"
    fetch = fetch or _fetch_gist
    try:
        data = fetch(gist_url(ghun, gist_hash, gid))
    except Exception as exc:  # any failure to reach the gist is a refusal reason
        return False, "无法连接到gist: " + str(exc)
    text = data.decode("utf-8", errors="replace")
    if not _INT64.fullmatch(text):
        return False, "时间戳格式错误: " + text
    stamp = int(text)
    current = int(time.time()) if now is None else now
    if abs(current - stamp) < VALID_SECONDS:
        db.add_member(qq, ghun)
        return True, ""
    return False, "时间戳超时"


def parse_join_answer(comment: str) -> tuple[str, str]:
    """Split the answer of a join request into (github user, gist hash).

    Raises ValueError("格式错误!") when there is no user before a slash.
    """
    raw = comment.encode("utf-8")
    mark = ANSWER_MARK.encode("utf-8")
    start = raw.find(mark) + len(mark)
    answer = raw[start:].decode("utf-8", errors="ignore")
    divider = answer.find("/")
    if divider <= 0:
        raise ValueError("格式错误!")
    return answer[:divider], answer[divider + 1:]