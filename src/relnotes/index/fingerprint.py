"""Content fingerprint used to skip re-embedding unchanged notes."""

from __future__ import annotations

_OFFSET_BASIS = 0x811C9DC5
_MASK = 0xFFFFFFFF


def _utf16_code_units(text: str) -> list[int]:
    raw = text.encode("utf-16-le", "surrogatepass")
    return [raw[i] | (raw[i + 1] << 8) for i in range(0, len(raw), 2)]


def hash_text(text: str) -> str:
    """32-bit FNV-1a style hash over UTF-16 code units, as 8 lowercase hex chars.

    Characters outside the BMP contribute both surrogate code units, so the
    value is stable for any given string across runs and platforms.
    """
    h = _OFFSET_BASIS
    for unit in _utf16_code_units(text):
        h ^= unit
        h = (h + (h << 1) + (h << 4) + (h << 7) + (h << 8) + (h << 24)) & _MASK
    return f"{h:08x}"
