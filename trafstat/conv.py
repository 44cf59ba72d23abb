"""Small string helpers."""

from __future__ import annotations


def split(delimiter: str, text: str) -> list[str]:
    """Split text on a single-character delimiter, dropping empty chunks."""
    if len(delimiter) != 1:
        raise ValueError("delimiter must be a single character")
    return [chunk for chunk in text.split(delimiter) if chunk]


def qs_get(qs: str | None, key: str) -> str | None:
    """Return the value for key in an HTTP query string, or None.

    A value is only found if there is room after the key for "=" and at
    least one more character.
    """
    if qs is None:
        return None
    needle = key + "="
    pos = 0
    while pos < len(qs):
        if pos + len(key) + 1 >= len(qs):
            return None
        if qs.startswith(needle, pos):
            start = pos + len(needle)
            end = qs.find("&", start)
            return qs[start:] if end < 0 else qs[start:end]
        amp = qs.find("&", pos + 1)
        if amp < 0:
            return None
        pos = amp + 1
    return None