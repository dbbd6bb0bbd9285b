"""Random illustrations kept ready in a small queue."""

from __future__ import annotations

import base64
import queue
from typing import Callable

import requests

API = "https://api.lolicon.app/setu/v2"
CAPACITY = 10
FILL_BATCH = 2


class LoliconError(Exception):
    """The image service failed or reported an error."""


def normalize_url(url: str) -> str:
    """Point image links at the reachable mirror host."""
    return url.replace("i.pixiv.cat", "i.pixiv.re")


def image_name(url: str) -> str:
    """File name of an image link without its four-character extension."""
    return url[url.rfind("/") + 1: len(url) - 4]


def validate_custom_api(url: str) -> str:
    """Strip url and make sure it is an http(s) address."""
    url = url.strip()
    if not url.startswith("http"):
        raise ValueError("url非法!")
    return url


def _get(url: str) -> requests.Response:
    try:
        resp = requests.get(url, timeout=30)
    except requests.RequestException as exc:
        raise LoliconError(str(exc)) from exc
    if resp.status_code != 200:
        raise LoliconError(f"status code: {resp.status_code}")
    return resp


def _fetch_api() -> str:
    try:
        payload = _get(API).json()
    except ValueError as exc:
        raise LoliconError(str(exc)) from exc
    error = payload.get("error") if isinstance(payload, dict) else None
    if error:
        raise LoliconError(error)
    try:
        url = payload["data"][0]["urls"]["original"]
    except (KeyError, IndexError, TypeError) as exc:
        raise LoliconError("no image in response") from exc
    return normalize_url(url)


def _fetch_custom(url: str) -> str:
    return "base64://" + base64.b64encode(_get(url).content).decode("ascii")


class ImageQueue:
    """Bounded queue of image references filled from a fetch function.

    Without a fetch function the public service is used, or custom_api when
    it is set, in which case the raw image is queued as base64.
    """

    def __init__(self, fetch: Callable[[], str] | None = None, capacity: int = CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._fetch = fetch
        self.capacity = capacity
        self.custom_api = ""
        self._queue: queue.Queue[str] = queue.Queue(maxsize=capacity)

    def _next(self) -> str:
        if self._fetch is not None:
            return self._fetch()
        if self.custom_api:
            return _fetch_custom(self.custom_api)
        return _fetch_api()

    def fill(self, count: int = FILL_BATCH) -> list[Exception]:
        """Fetch up to count images, never beyond capacity; return the errors met."""
        errors: list[Exception] = []
        for _ in range(min(self.capacity - self._queue.qsize(), count)):
            try:
                item = self._next()
            except Exception as exc:  # reported to the caller, the rest still fill
                errors.append(exc)
                continue
            self._queue.put(item)
        return errors

    def take(self, timeout: float = 60.0) -> str:
        """Next image reference; TimeoutError if none arrives in time."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("等待填充，请稍后再试......") from None