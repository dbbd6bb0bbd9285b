"""Running raw CQ code sent by the bot owner."""

from __future__ import annotations

_UNESCAPES = (
    ("&#44;", ","),
    ("&#91;", "["),
    ("&#93;", "]"),
    ("&amp;", "&"),
)


def unescape_cq_text(text: str) -> str:
    """Undo CQ code text escaping so the text can be sent as raw CQ code."""
    for escaped, plain in _UNESCAPES:
        text = text.replace(escaped, plain)
    return text