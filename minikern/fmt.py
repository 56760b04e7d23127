"""Formatting for the minimal printf dialects: %d, %x, %p, %s (and %c for user code)."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from .layout import KernelPanic

LOWER_DIGITS = "0123456789abcdef"
UPPER_DIGITS = "0123456789ABCDEF"

_MASK = 0xFFFFFFFF
_SIGN_BIT = 0x80000000


def format_int(
    value: int, base: int = 10, signed: bool = True, digits: str = LOWER_DIGITS
) -> str:
    """Render a 32-bit integer in the given base.

    The value is taken as a 32-bit word; when ``signed`` is true a set top
    bit makes it negative.
    """
    if not 2 <= base <= len(digits):
        raise ValueError(f"base {base} not supported by {len(digits)} digits")
    x = value & _MASK
    negative = signed and bool(x & _SIGN_BIT)
    if negative:
        x = (-x) & _MASK
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _next_arg(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _as_text(value: Any) -> str:
    if value is None:
        return "(null)"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return str(value)


def _as_char(value: Any) -> str:
    if isinstance(value, str):
        if len(value) != 1:
            raise ValueError("%c takes a single character")
        return value
    return chr(int(value) & 0xFF)


def _render(fmt: str, args: tuple, hex_digits: str, with_char: bool) -> str:
    values = iter(args)
    chars = iter(fmt)
    out: list[str] = []
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        spec = next(chars, None)
        if spec is None:
            break
        if spec == "d":
            out.append(format_int(_next_arg(values), 10, True))
        elif spec in ("x", "p"):
            out.append(format_int(_next_arg(values), 16, False, hex_digits))
        elif spec == "s":
            out.append(_as_text(_next_arg(values)))
        elif spec == "c" and with_char:
            out.append(_as_char(_next_arg(values)))
        elif spec == "%":
            out.append("%")
        else:
            # Unknown sequences are echoed to draw attention.
            out.append("%" + spec)
    return "".join(out)


def format_printf(fmt: str, *args: Any) -> str:
    """Format as the user-level printf: %d, %x, %p, %s, %c, %% with upper-case hex."""
    return _render(fmt, args, UPPER_DIGITS, with_char=True)


def format_cprintf(fmt: str | None, *args: Any) -> str:
    """Format as the kernel console printf: %d, %x, %p, %s, %% with lower-case hex."""
    if fmt is None:
        raise KernelPanic("null fmt")
    return _render(fmt, args, LOWER_DIGITS, with_char=False)