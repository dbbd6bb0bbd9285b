"""Ogura Hyakunin Isshu: the hundred poems and their pictures."""

from __future__ import annotations

import csv
from dataclasses import astuple, dataclass
from os import PathLike

BED = "https://gitcode.net/u011570312/OguraHyakuninIsshu/-/raw/master/"
CSV_URL = BED + "小倉百人一首.csv"
POEM_COUNT = 100

_LABELS = (
    ("●", "番号"),
    ("◉", "歌人"),
    ("○", "上の句"),
    ("○", "下の句"),
    ("◎", "上の句ひらがな"),
    ("◎", "下の句ひらがな"),
)


@dataclass(frozen=True)
class Poem:
    """One poem of the collection, as the six columns of the data file."""

    number: str
    poet: str
    upper: str
    lower: str
    upper_kana: str
    lower_kana: str

    def __str__(self) -> str:
        return "".join(
            f"{mark}{label}：{value}\n"
            for (mark, label), value in zip(_LABELS, astuple(self))
        )


def load_poems(path: str | PathLike[str]) -> list[Poem]:
    """Read the data file: a title row and then the 100 poems in order.

    Raises ValueError when the file does not hold exactly that.
    """
    with open(path, encoding="utf-8", newline="") as handle:
        records = list(csv.reader(handle))[1:]
    if len(records) != POEM_COUNT:
        raise ValueError("invalid csvfile")
    poems = []
    for expected, record in enumerate(records):
        if len(record) != len(_LABELS):
            raise ValueError("invalid csvfile")
        if int(record[0]) - 1 != expected:
            raise ValueError("invalid csvfile")
        poems.append(Poem(*record))
    return poems


def image_urls(number: int) -> tuple[str, str]:
    """The picture and the card image of poem number (1 to 100)."""
    if number > POEM_COUNT or number < 1:
        raise ValueError("超出范围")
    return f"{BED}img/{number:03d}.jpg", f"{BED}img/{number:03d}.png"