# /wim_inspector/domain/timestamps.py
"""
Decoding of WIM timestamps.

WIM XML stores times as FILETIME values: 100-nanosecond ticks since
1601-01-01 UTC, usually split into HIGHPART/LOWPART 32-bit hex halves.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

LOG = logging.getLogger("domain.timestamps")

FILETIME_EPOCH = datetime(1601, 1, 1)
MAX_FILETIME = 0x7FFFFFFFFFFFFFFF
MIN_YEAR = 1990
MAX_YEAR = 2050
NOT_SPECIFIED = "Not specified"
DISPLAY_FORMAT = "%d/%m/%Y %H:%M:%S"

_SPLIT_FILETIME = re.compile(r"^\s*(?:0[xX])?([0-9a-fA-F]+)\s*:\s*(?:0[xX])?([0-9a-fA-F]+)\s*$")
# MAX_FILETIME has 19 digits, so longer strings can never be valid ticks
_DECIMAL = re.compile(r"^\s*\d{1,20}\s*$")

# tried after datetime.fromisoformat
_DATE_LAYOUTS = (
    DISPLAY_FORMAT,
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%a, %d %b %Y %H:%M:%S",
    "%d %b %Y %H:%M:%S",
    "%b %d %Y %H:%M:%S",
)


def _in_range(dt: datetime) -> bool:
    return MIN_YEAR <= dt.year <= MAX_YEAR


def filetime_to_datetime(ticks: int) -> datetime | None:
    """Convert a FILETIME tick count to a naive UTC datetime, None when out of range."""
    if not 0 < ticks < MAX_FILETIME:
        return None
    try:
        dt = FILETIME_EPOCH + timedelta(microseconds=ticks // 10)
    except OverflowError:
        return None
    return dt if _in_range(dt) else None


def _decode_split(raw: str) -> datetime | None:
    m = _SPLIT_FILETIME.match(raw)
    if not m:
        return None
    high, low = m.group(1), m.group(2)
    if len(high) > 8 or len(low) > 8:
        return None
    return filetime_to_datetime((int(high, 16) << 32) | int(low, 16))


def _decode_calendar(raw: str) -> datetime | None:
    text = raw.strip()
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        dt = None
    if dt is None:
        for layout in _DATE_LAYOUTS:
            try:
                dt = datetime.strptime(text, layout)
                break
            except ValueError:
                continue
    if dt is None:
        return None
    if dt.tzinfo is not None:
        try:
            dt = dt.replace(tzinfo=None) - dt.utcoffset()
        except OverflowError:
            return None
    return dt if _in_range(dt) else None


def _decode_ticks(raw: str) -> datetime | None:
    if not _DECIMAL.match(raw):
        return None
    return filetime_to_datetime(int(raw))


def decode_timestamp(raw: str | None) -> datetime | None:
    """
    Decode a split FILETIME ("0x01DC08B6:0x1A436C39"), a calendar string, or a
    decimal FILETIME tick count. Anything undecodable or outside 1990..2050 is None.
    """
    if raw is None or not raw.strip() or raw.strip() == NOT_SPECIFIED:
        return None
    for decoder in (_decode_split, _decode_calendar, _decode_ticks):
        dt = decoder(raw)
        if dt is not None:
            return dt
    LOG.debug("timestamp.undecodable", extra={"extra": {"raw": raw}})
    return None


def join_split_parts(high: str | None, low: str | None) -> str | None:
    """Assemble HIGHPART/LOWPART values into the 'high:low' split form."""
    if not high or not high.strip() or not low or not low.strip():
        return None
    return f"{high.strip()}:{low.strip()}"


def format_timestamp(dt: datetime | None) -> str:
    return dt.strftime(DISPLAY_FORMAT) if dt is not None else NOT_SPECIFIED
