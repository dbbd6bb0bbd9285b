import json
import re

import pytest
import responses

from botplugins.hearthstone import (
    AJAX,
    PARAMS,
    HearthstoneError,
    card_image_url,
    deck_image,
    deck_url,
    extract_hash,
    search_cards,
    search_url,
)

PAGE = '<script>var hash = "h1";</script>'
AJAX_RE = re.compile(r"https://hs\.fbigame\.com/ajax\.php\?.*")


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_extract_hash():
    assert extract_hash(PAGE) == "h1"


def test_extract_hash_missing():
    with pytest.raises(ValueError):
        extract_hash("<html></html>")


def test_search_url():
    url = search_url("h1", "q")
    assert url.startswith(AJAX + PARAMS)
    assert url.endswith("&hash=h1&search=q")


def test_deck_url():
    url = deck_url("h1", "AAEcode")
    assert url.startswith(AJAX + PARAMS)
    assert "mod=general_deck_image&deck_code=AAEcode&deck_text=&hash=h1&search=AAEcode" in url


def test_card_image_url():
    card = {"CardID": "X", "auth_key": "k"}
    assert card_image_url(card) == "https://res.fbigame.com/hs/v13/X.png?auth_key=k"


def test_search_cards_limits_to_five(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", body=PAGE)
    cards = [{"CardID": f"C{i}", "auth_key": "k"} for i in range(7)]
    mocked.add(responses.GET, AJAX_RE, body=json.dumps({"list": cards}))
    found = search_cards("fire")
    assert [c["CardID"] for c in found] == ["C0", "C1", "C2", "C3", "C4"]
    ajax_call = mocked.calls[1].request
    assert "hash=h1" in ajax_call.url
    assert ajax_call.headers["Referer"] == "https://hs.fbigame.com"


def test_search_cards_empty(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", body=PAGE)
    mocked.add(responses.GET, AJAX_RE, body=json.dumps({"list": []}))
    assert search_cards("none") == []


def test_deck_image(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", body=PAGE)
    mocked.add(responses.GET, AJAX_RE, body=json.dumps({"img": "IMG"}))
    assert deck_image("AAEcode") == "base64://IMG"


def test_site_error_raises(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", status=500)
    with pytest.raises(HearthstoneError):
        search_cards("x")


def test_missing_hash_raises(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", body="<html></html>")
    with pytest.raises(HearthstoneError):
        deck_image("AAE")