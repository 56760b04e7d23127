"""PC keyboard: turn scan codes into character codes."""

from __future__ import annotations

from collections.abc import Iterable

NO = 0

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

# Special keycodes.
KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


def _table(entries: dict[int, int]) -> list[int]:
    table = [NO] * 256
    for code, value in entries.items():
        table[code] = value
    return table


_SHIFTCODE = _table({0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT})
_TOGGLECODE = _table({0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK})

_ESCAPED = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}

_KEYPAD = "\0" * 13 + "789-456+1230."


def _map(layout: str, extra: dict[int, int]) -> list[int]:
    table = _table(dict(enumerate(ord(ch) for ch in layout)))
    for code, value in extra.items():
        table[code] = value
    return table


_NORMALMAP = _map(
    "\0\x1b1234567890-=\b\t"
    "qwertyuiop[]\n\0as"
    "dfghjkl;'`\0\\zxcv"
    "bnm,./\0*\0 " + _KEYPAD,
    {0x9C: ord("\n"), 0xB5: ord("/"), **_ESCAPED},
)

_SHIFTMAP = _map(
    "\0\x1b!@#$%^&*()_+\b\t"
    "QWERTYUIOP{}\n\0AS"
    'DFGHJKL:"~\0|ZXCV'
    "BNM<>?\0*\0 " + _KEYPAD,
    {0x9C: ord("\n"), 0xB5: ord("/"), **_ESCAPED},
)

_CTLMAP = _table(
    {
        **{0x10 + i: _ctl(ch) for i, ch in enumerate("QWERTYUIOP")},
        0x1C: ord("\r"),
        **{0x1E + i: _ctl(ch) for i, ch in enumerate("ASDFGHJKL")},
        **{0x2B + i: _ctl(ch) for i, ch in enumerate("\\ZXCVBNM")},
        0x35: _ctl("/"),
        0x9C: ord("\r"),
        0xB5: _ctl("/"),
        **_ESCAPED,
    }
)

_CHARCODE = (_NORMALMAP, _SHIFTMAP, _CTLMAP, _CTLMAP)


class KeyboardDecoder:
    """Tracks modifier state across a stream of scan codes."""

    def __init__(self) -> None:
        self.shift = 0

    def feed(self, scancode: int) -> int:
        """Process one scan code; return the character code, or 0 if none."""
        data = scancode & 0xFF
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            # Key released.
            if not self.shift & E0ESC:
                data &= 0x7F
            self.shift &= ~(_SHIFTCODE[data] | E0ESC)
            return 0
        if self.shift & E0ESC:
            # The previous code was an E0 escape.
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= _SHIFTCODE[data]
        self.shift ^= _TOGGLECODE[data]
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c


def decode_scancodes(codes: Iterable[int]) -> bytes:
    """Decode a sequence of scan codes into the characters they type."""
    decoder = KeyboardDecoder()
    return bytes(c for c in map(decoder.feed, codes) if c)