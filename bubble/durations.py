from __future__ import annotations

import math
import re

from .errors import FormatError

_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_PART_RE = re.compile(r"([0-9]*\.?[0-9]+)(ns|us|µs|ms|s|m|h)")


def parse_duration(s: str) -> float:
    """Parse a duration like "1m", "30s", "1h30m" or "250ms" into seconds.

    A bare number is taken as seconds.
    """
    raw = s.strip()
    if not raw:
        raise FormatError("empty duration")
    try:
        seconds = float(raw)
    except ValueError:
        pos = 0
        seconds = 0.0
        for m in _PART_RE.finditer(raw):
            if m.start() != pos:
                raise FormatError(f"invalid duration {s!r}") from None
            seconds += float(m.group(1)) * _UNITS[m.group(2)]
            pos = m.end()
        if pos == 0 or pos != len(raw):
            raise FormatError(f"invalid duration {s!r}") from None
    if not math.isfinite(seconds) or seconds <= 0:
        raise FormatError(f"duration must be positive, got {s!r}")
    return seconds


def format_duration(seconds: float) -> str:
    whole = int(seconds)
    if whole != seconds or whole == 0:
        return f"{seconds:g}s"
    h, rem = divmod(whole, 3600)
    m, sec = divmod(rem, 60)
    out = ""
    if h:
        out += f"{h}h"
    if m:
        out += f"{m}m"
    if sec:
        out += f"{sec}s"
    return out
