"""x86 segment descriptors as they are laid out in memory."""

from __future__ import annotations

import struct

STA_X = 0x8  # executable segment
STA_W = 0x2  # writeable (non-executable segments)
STA_R = 0x2  # readable (executable segments)

_DESCRIPTOR = struct.Struct("<HHBBBB")


def seg_null() -> bytes:
    """The null descriptor: eight zero bytes."""
    return bytes(_DESCRIPTOR.size)


def seg_asm(type: int, base: int, lim: int) -> bytes:
    """A 32-bit descriptor whose limit counts 4096-byte units."""
    return _DESCRIPTOR.pack(
        (lim >> 12) & 0xFFFF,
        base & 0xFFFF,
        (base >> 16) & 0xFF,
        0x90 | (type & 0xF),
        0xC0 | ((lim >> 28) & 0xF),
        (base >> 24) & 0xFF,
    )