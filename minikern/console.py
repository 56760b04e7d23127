"""Console: a text screen, a serial echo, and line-edited keyboard input."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from .fmt import format_cprintf
from .layout import KernelPanic

BACKSPACE = 0x100
INPUT_BUF = 128

COLUMNS = 80
LINES = 25
_ATTR = 0x0700  # grey on black


def control(ch: str) -> int:
    """Code of Control-``ch``."""
    return ord(ch) - ord("@")


class CgaScreen:
    """An 80x25 character screen whose last usable row is 23."""

    def __init__(self) -> None:
        self.cells = [0] * (COLUMNS * LINES)
        self.pos = 0  # cursor: column + 80 * row

    def putc(self, c: int | str) -> None:
        """Put one character, a newline, or BACKSPACE at the cursor."""
        if isinstance(c, str):
            c = ord(c)
        pos = self.pos
        if c == ord("\n"):
            pos += COLUMNS - pos % COLUMNS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > LINES * COLUMNS:
            raise KernelPanic("pos under/overflow")

        if pos // COLUMNS >= 24:  # scroll up
            self.cells[: 23 * COLUMNS] = self.cells[COLUMNS: 24 * COLUMNS]
            pos -= COLUMNS
            self.cells[pos: 24 * COLUMNS] = [0] * (24 * COLUMNS - pos)

        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR

    def rows(self) -> list[str]:
        """The text of every row, without trailing blanks."""
        text = []
        for start in range(0, COLUMNS * LINES, COLUMNS):
            row = self.cells[start:start + COLUMNS]
            text.append("".join(chr(cell & 0xFF) if cell & 0xFF else " " for cell in row).rstrip())
        return text


class Console:
    """Output goes to the screen and the serial line; input is edited a line at a time."""

    def __init__(self, procdump: Callable[[], None] | None = None):
        self.screen = CgaScreen()
        self.serial = bytearray()
        self.procdump = procdump
        self.locking = True
        self._buf = bytearray(INPUT_BUF)
        self.r = 0  # read index
        self.w = 0  # write index
        self.e = 0  # edit index
        self._cond = threading.Condition(threading.RLock())

    def putc(self, c: int) -> None:
        """Send one character to the serial line and the screen."""
        if c == BACKSPACE:
            self.serial += b"\b \b"
        else:
            self.serial.append(c & 0xFF)
        self.screen.putc(c)

    def cprintf(self, fmt: str, *args) -> None:
        """Print formatted text to the console."""
        text = format_cprintf(fmt, *args)
        if self.locking:
            with self._cond:
                self._emit(text)
        else:
            self._emit(text)

    def _emit(self, text: str) -> None:
        for byte in text.encode():
            self.putc(byte)

    def interrupt(self, chars: Iterable[int] | bytes | str) -> bool:
        """Take typed characters into the input buffer with line editing.

        Returns True when a process listing (Control-P) was asked for.
        """
        if isinstance(chars, str):
            chars = chars.encode()
        doprocdump = False
        with self._cond:
            for c in chars:
                if c == control("P"):
                    doprocdump = True
                elif c == control("U"):  # kill line
                    while self.e != self.w and self._buf[(self.e - 1) % INPUT_BUF] != ord("\n"):
                        self.e -= 1
                        self.putc(BACKSPACE)
                elif c in (control("H"), 0x7F):  # backspace
                    if self.e != self.w:
                        self.e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self.e - self.r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self.e % INPUT_BUF] = c & 0xFF
                    self.e += 1
                    self.putc(c)
                    if c in (ord("\n"), control("D")) or self.e == self.r + INPUT_BUF:
                        self.w = self.e
                        self._cond.notify_all()
        if doprocdump and self.procdump is not None:
            self.procdump()
        return doprocdump

    def read(self, n: int) -> bytes:
        """Read up to n bytes of completed input, stopping after a newline.

        Waits while no completed line is available. Control-D ends input:
        it is kept for the next read when some bytes were already returned.
        """
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self.r == self.w:
                    self._cond.wait()
                c = self._buf[self.r % INPUT_BUF]
                self.r += 1
                if c == control("D"):
                    if n < target:
                        self.r -= 1
                    break
                out.append(c)
                n -= 1
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Write bytes to the console; return how many were written."""
        payload = bytes(data)
        with self._cond:
            for byte in payload:
                self.putc(byte)
        return len(payload)