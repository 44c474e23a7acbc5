from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import FormatError

UINT8_MAX = 255

_UINT_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Ratio:
    """How many clones to create (up) and containers to remove (down) per tick."""

    up: int = 1
    down: int = 1

    def is_zero(self) -> bool:
        return self.up == 0 or self.down == 0

    def __str__(self) -> str:
        return render(self)


DEFAULT = Ratio(1, 1)


def _parse_uint8(token: str) -> int:
    if not _UINT_RE.fullmatch(token):
        raise FormatError(f"invalid ratio value {token!r}: expected an unsigned integer")
    value = int(token)
    if value > UINT8_MAX:
        raise FormatError(f"invalid ratio value {token!r}: out of range 0-{UINT8_MAX}")
    return value


def parse(s: str) -> Ratio:
    """Parse "up:down", e.g. "2:1". Both sides must be integers in 0..255."""
    parts = s.split(":")
    if len(parts) != 2:
        raise FormatError(f"invalid ratio {s!r}: wrong format, expected up:down")
    return Ratio(up=_parse_uint8(parts[0]), down=_parse_uint8(parts[1]))


def resolve(r: Ratio) -> Ratio:
    # Unset and zero-sided ratios both collapse to the 1:1 default.
    if r.is_zero():
        return DEFAULT
    return r


def render(r: Ratio) -> str:
    if r.is_zero():
        return "1:1"
    return f"{r.up}:{r.down}"
