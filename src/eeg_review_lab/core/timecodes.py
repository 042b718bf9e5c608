"""Conversion between wall-clock time codes and seconds.

Time codes are colon-separated ``HH:MM:SS`` or ``HH:MM:SS:mmm`` where the
optional fourth field is milliseconds.
"""
from __future__ import annotations

import math


def parse_clock_time(text: str) -> float:
    """Convert ``HH:MM:SS`` or ``HH:MM:SS:mmm`` to seconds.

    Args:
        text: Time code

    Returns:
        ``H*3600 + M*60 + S + ms/1000``

    Raises:
        ValueError: If the time code has the wrong field count or non-numeric fields

    Example:
        >>> parse_clock_time("01:02:03:500")
        3723.5
    """
    if not isinstance(text, str):
        raise ValueError(f"Time code must be a string, got {type(text).__name__}")

    parts = [part.strip() for part in text.strip().split(":")]
    if len(parts) not in (3, 4):
        raise ValueError(f"Expected HH:MM:SS[:mmm], got {text!r}")

    try:
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = float(parts[2])
        millis = int(parts[3]) if len(parts) == 4 else 0
    except ValueError as e:
        raise ValueError(f"Non-numeric field in time code {text!r}") from e

    if min(hours, minutes, seconds, millis) < 0 or not math.isfinite(seconds):
        raise ValueError(f"Negative or invalid field in time code {text!r}")

    return hours * 3600 + minutes * 60 + seconds + millis / 1000.0


def format_clock_time(seconds: float) -> str:
    """Render seconds as ``HH:MM:SS:mmm``.

    The value is rounded to the nearest millisecond before splitting so that
    ``parse_clock_time(format_clock_time(t))`` is within 0.5 ms of ``t``.
    Hours are not wrapped at 24.
    """
    total_ms = int(round(seconds * 1000.0))
    if total_ms < 0:
        raise ValueError(f"Cannot format negative time {seconds}")
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}:{millis:03d}"


def format_elapsed(seconds: float) -> str:
    """``HH:MM:SS`` rendering of a relative time (truncated) for event lists."""
    hours, rem = divmod(int(max(0.0, seconds)), 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
