"""Reading the date and time from the CMOS real-time clock."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import astuple, dataclass

CMOS_STATA = 0x0A
CMOS_STATB = 0x0B
CMOS_UIP = 1 << 7  # RTC update in progress

SECS = 0x00
MINS = 0x02
HOURS = 0x04
DAY = 0x07
MONTH = 0x08
YEAR = 0x09


@dataclass(frozen=True)
class RtcDate:
    second: int
    minute: int
    hour: int
    day: int
    month: int
    year: int


def bcd_to_binary(x: int) -> int:
    """Convert a binary-coded decimal byte to its value."""
    return (x >> 4) * 10 + (x & 0xF)


def _fill(read_register: Callable[[int], int]) -> RtcDate:
    return RtcDate(
        second=read_register(SECS),
        minute=read_register(MINS),
        hour=read_register(HOURS),
        day=read_register(DAY),
        month=read_register(MONTH),
        year=read_register(YEAR),
    )


def cmostime(read_register: Callable[[int], int]) -> RtcDate:
    """Read a consistent date from the clock registers.

    The registers are read twice, outside any update in progress, until
    both readings agree. BCD values are converted, and the two-digit year
    is taken to be in the 2000s.
    """
    bcd = (read_register(CMOS_STATB) & (1 << 2)) == 0

    while True:
        t1 = _fill(read_register)
        if read_register(CMOS_STATA) & CMOS_UIP:
            continue
        t2 = _fill(read_register)
        if t1 == t2:
            break

    values = astuple(t1)
    if bcd:
        values = tuple(bcd_to_binary(v) for v in values)
    second, minute, hour, day, month, year = values
    return RtcDate(second, minute, hour, day, month, year + 2000)