"""Keyword illustration search."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping
from urllib.parse import quote_plus

import requests

API = "https://api.pixivel.moe/v2/pixiv/illust/search/"
REFERER = "https://pixivel.moe/"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/94.0.4606.61 Safari/537.36"
)

_HREF = re.compile(r'<a href=".*">')


class ImageFinderError(Exception):
    """The search service failed or reported an error."""


def print_tags(tags: Iterable[Mapping[str, Any]]) -> str:
    """Render tags as "\\n#name (translation)" lines."""
    parts = []
    for tag in tags:
        line = "\n#" + str(tag.get("name", ""))
        translation = tag.get("translation")
        if translation:
            line += f" ({translation})"
        parts.append(line)
    return "".join(parts)


def clean_description(text: str) -> str:
    """Turn line breaks into newlines and drop anchor tags."""
    text = text.replace("<br />", "\n").replace("</a>", "")
    return _HREF.sub("", text)


def format_illust(illust: Mapping[str, Any], user_name: str, user_id: Any) -> str:
    """Caption text for one search result."""
    return (
        f"{illust.get('width', 0)}x{illust.get('height', 0)}\n"
        f"标题: {illust.get('title', '')}\n"
        f"副标题: {illust.get('altTitle', '')}\n"
        f"ID: {illust.get('id', 0)}\n"
        f"画师: {user_name} ({user_id})\n"
        f"分级:{illust.get('sanity', 0)}\n"
        + clean_description(illust.get("description") or "")
        + print_tags(illust.get("tags") or [])
    )


def search(keyword: str) -> dict[str, Any]:
    """Query the search API and return the decoded result."""
    url = API + quote_plus(keyword) + "?page=0"
    try:
        resp = requests.get(
            url, headers={"Referer": REFERER, "User-Agent": USER_AGENT}, timeout=30
        )
    except requests.RequestException as exc:
        raise ImageFinderError(str(exc)) from exc
    if resp.status_code != 200:
        raise ImageFinderError(f"status code: {resp.status_code}")
    try:
        result = resp.json()
    except ValueError as exc:
        raise ImageFinderError(str(exc)) from exc
    if result.get("error"):
        raise ImageFinderError(result.get("message", ""))
    return result