"""The 绝绝子 phrase generator."""

from __future__ import annotations

import json

import requests

URL = "https://www.offjuan.com/api/juejuezi/text"
REFERER = "https://juejuezi.offjuan.com/"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)
KEYWORD = "绝绝子"


class JuejueziError(Exception):
    """The generator service could not be reached or answered badly."""


def build_payload(verb: str, noun: str) -> str:
    """JSON body of a generator request, the words inserted as they are."""
    return '{"verb":"%s","noun":"%s"}' % (verb, noun)


def split_words(text: str) -> tuple[str, str]:
    """Split a message into (verb, noun) once the keyword is removed.

    Two characters give one each; whitespace separates words when present;
    otherwise the text is cut in half. Raises ValueError when less than two
    characters remain.
    """
    rest = text.replace(KEYWORD, "")
    words = rest.split()
    if len(words) >= 2:
        return words[0], words[1]
    rest = "".join(words)
    if len(rest) < 2:
        raise ValueError("不要只输入绝绝子")
    half = len(rest) // 2
    return rest[:half], rest[half:]


def request(verb: str, noun: str) -> str:
    """Ask the generator for a phrase built from verb and noun."""
    try:
        resp = requests.post(
            URL,
            data=build_payload(verb, noun).encode("utf-8"),
            headers={"Referer": REFERER, "User-Agent": USER_AGENT},
            timeout=30,
        )
    except requests.RequestException as exc:
        raise JuejueziError(str(exc)) from exc
    try:
        result = json.loads(resp.content)
    except ValueError as exc:
        raise JuejueziError(str(exc)) from exc
    text = result.get("text") if isinstance(result, dict) else None
    return "" if text is None else str(text)