"""Boring pictures collected from jandan.net."""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from os import PathLike
from typing import Callable

from lxml import html as lhtml

logger = logging.getLogger(__name__)

API = "http://jandan.net/pic"

_CURRENT_PAGE = "//*[@id='comments']/div[2]/div/span[@class='current-comment-page']/text()"
_PICTURE_LINK = "//*[@class='view_img_link']"
_PREVIOUS_PAGE = (
    "//*[@id='comments']/div[@class='comments']/div[@class='cp-pagenavi']"
    "/a[@class='previous-comment-page']"
)

_ISO_POLY = 0xD800000000000000
_MASK64 = 0xFFFFFFFFFFFFFFFF


def _make_table() -> list[int]:
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            crc = (crc >> 1) ^ _ISO_POLY if crc & 1 else crc >> 1
        table.append(crc)
    return table


_TABLE = _make_table()


def picture_id(url: str) -> int:
    """CRC-64 (ISO polynomial) of the url, used as the picture's id."""
    crc = _MASK64
    for byte in url.encode("utf-8"):
        crc = _TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ _MASK64


def _to_signed(pid: int) -> int:
    return pid - (1 << 64) if pid >= 1 << 63 else pid


class PictureStore:
    """SQLite table of picture urls keyed by their CRC-64 id."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self._lock = threading.RLock()
        self._db = sqlite3.connect(str(path), check_same_thread=False)
        self._db.execute(
            "CREATE TABLE IF NOT EXISTS picture (id INTEGER PRIMARY KEY, url TEXT)"
        )
        self._db.commit()

    def __enter__(self) -> PictureStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def random_url(self) -> str:
        """A random stored url; LookupError when the store is empty."""
        with self._lock:
            row = self._db.execute(
                "SELECT url FROM picture ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            raise LookupError("no pictures")
        return row[0]

    def contains(self, pid: int) -> bool:
        with self._lock:
            row = self._db.execute(
                "SELECT 1 FROM picture WHERE id = ?", (_to_signed(pid),)
            ).fetchone()
        return row is not None

    def insert(self, pid: int, url: str) -> None:
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO picture (id, url) VALUES (?, ?)",
                (_to_signed(pid), url),
            )
            self._db.commit()

    def count(self) -> int:
        with self._lock:
            return self._db.execute("SELECT COUNT(*) FROM picture").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self._db.close()


def current_page(html: str) -> int:
    """Number of the newest page as shown on the listing."""
    nodes = lhtml.fromstring(html).xpath(_CURRENT_PAGE)
    if not nodes:
        raise ValueError("current page not found")
    match = re.search(r"\d+", str(nodes[0]))
    if match is None:
        raise ValueError("current page has no number")
    return int(match.group())


def picture_links(html: str) -> list[str]:
    """Absolute urls of the pictures listed on a page."""
    links = []
    for element in lhtml.fromstring(html).xpath(_PICTURE_LINK):
        values = list(element.attrib.values())
        if values:
            links.append("https:" + values[0])
    return links


def previous_page_url(html: str) -> str:
    """Absolute url of the page before this one."""
    anchors = lhtml.fromstring(html).xpath(_PREVIOUS_PAGE)
    if not anchors:
        raise ValueError("previous page link not found")
    values = list(anchors[0].attrib.values())
    if len(values) < 2:
        raise ValueError("previous page link has no address")
    return "https:" + values[1]


def update(store: PictureStore, fetch: Callable[[str], str]) -> int:
    """Walk back through the pages storing new pictures; return how many were added.

    Stops at the first picture that is already stored, since everything
    older was collected before.
    """
    url = API
    total = current_page(fetch(url))
    added = 0
    for page in range(total):
        logger.debug("processing page %d/%d", page, total)
        html = fetch(url)
        for link in picture_links(html):
            pid = picture_id(link)
            if store.contains(pid):
                return added
            store.insert(pid, link)
            added += 1
        if page != total - 1:
            url = previous_page_url(html)
    return added