"""Non-cryptographic content hash used for artifact change detection."""

from __future__ import annotations

import string

_DIGITS = string.digits + string.ascii_lowercase


def content_hash(content: str) -> str:
    """32-bit rolling hash (h * 31 + unit) over UTF-16 code units, rendered in base 36.

    Order-sensitive and stable across runs. Not suitable for integrity checks.
    """
    h = 0
    data = content.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(h)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS[rem])
    return sign + "".join(reversed(digits))
