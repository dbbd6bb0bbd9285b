"""Hearthstone card search and deck images."""

from __future__ import annotations

import json
from typing import Any, Mapping

import requests

SITE = "https://hs.fbigame.com"
REFERER = "https://hs.fbigame.com"
USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 6.0; Nexus 5 Build/MRA58N) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/86.0.4240.198 Mobile Safari/537.36"
)
AJAX = "https://hs.fbigame.com/ajax.php?"
PARAMS = (
    "mod=get_cards_list&"
    "mode=-1&"
    "extend=-1&"
    "mutil_extend=&"
    "hero=-1&"
    "rarity=-1&"
    "cost=-1&"
    "mutil_cost=&"
    "techlevel=-1&"
    "type=-1&"
    "collectible=-1&"
    "isbacon=-1&"
    "page=1&"
    "search_type=1&"
    "deckmode=normal"
)
CARD_IMAGE = "https://res.fbigame.com/hs/v13/"
MAX_CARDS = 5

_HASH_MARK = 'var hash = "'


class HearthstoneError(Exception):
    """The card site could not be queried."""


def extract_hash(page: str) -> str:
    """The page hash that the search API requires; ValueError if absent."""
    _, found, rest = page.partition(_HASH_MARK)
    if not found:
        raise ValueError("page hash not found")
    return rest.split('"', 1)[0]


def search_url(page_hash: str, query: str) -> str:
    return AJAX + PARAMS + "&hash=" + page_hash + "&search=" + query


def deck_url(page_hash: str, code: str) -> str:
    return (
        AJAX + PARAMS + "mod=general_deck_image&deck_code=" + code
        + "&deck_text=&hash=" + page_hash + "&search=" + code
    )


def _field(card: Mapping[str, Any], key: str) -> str:
    value = card.get(key)
    return "" if value is None else str(value)


def card_image_url(card: Mapping[str, Any]) -> str:
    """Image address of one card from the search list."""
    return CARD_IMAGE + _field(card, "CardID") + ".png?auth_key=" + _field(card, "auth_key")


def _get(url: str) -> bytes:
    try:
        resp = requests.get(
            url, headers={"Referer": REFERER, "User-Agent": USER_AGENT}, timeout=30
        )
    except requests.RequestException as exc:
        raise HearthstoneError(str(exc)) from exc
    if resp.status_code != 200:
        raise HearthstoneError(f"status code: {resp.status_code}")
    return resp.content


def _query(url_for_hash) -> Any:
    page = _get(SITE).decode("utf-8", errors="replace")
    try:
        page_hash = extract_hash(page)
    except ValueError as exc:
        raise HearthstoneError(str(exc)) from exc
    body = _get(url_for_hash(page_hash))
    try:
        return json.loads(body)
    except ValueError as exc:
        raise HearthstoneError(str(exc)) from exc


def search_cards(query: str) -> list[dict[str, Any]]:
    """The first cards (at most five) matching query."""
    result = _query(lambda h: search_url(h, query))
    cards = result.get("list") if isinstance(result, dict) else None
    if not isinstance(cards, list):
        return []
    return [card for card in cards if isinstance(card, dict)][:MAX_CARDS]


def deck_image(code: str) -> str:
    """The deck picture for a deck code, as a base64:// reference."""
    result = _query(lambda h: deck_url(h, code))
    img = result.get("img") if isinstance(result, dict) else None
    return "base64://" + ("" if img is None else str(img))