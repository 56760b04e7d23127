import pytest

from minikern.console import BACKSPACE, CgaScreen, Console, control
from minikern.layout import KernelPanic


def test_screen_prints_text():
    screen = CgaScreen()
    for ch in "hi":
        screen.putc(ch)
    assert screen.rows()[0] == "hi"
    assert screen.pos == 2


def test_screen_newline_moves_to_next_row():
    screen = CgaScreen()
    for ch in "ab\ncd":
        screen.putc(ch)
    rows = screen.rows()
    assert rows[0] == "ab"
    assert rows[1] == "cd"


def test_screen_backspace():
    screen = CgaScreen()
    screen.putc("a")
    screen.putc("b")
    screen.putc(BACKSPACE)
    assert screen.rows()[0] == "a"
    assert screen.pos == 1


def test_screen_backspace_at_origin_stays():
    screen = CgaScreen()
    screen.putc(BACKSPACE)
    assert screen.pos == 0


def test_screen_scrolls():
    screen = CgaScreen()
    for i in range(30):
        for ch in f"line{i}\n":
            screen.putc(ch)
        assert screen.pos // 80 < 24
    rows = screen.rows()
    assert rows[22] == "line29"
    assert rows[0] == "line7"


def test_console_line_input():
    con = Console()
    con.interrupt(b"hi\r")
    assert con.read(10) == b"hi\n"
    assert bytes(con.serial) == b"hi\n"


def test_console_read_partial():
    con = Console()
    con.interrupt("hello\n")
    assert con.read(2) == b"he"
    assert con.read(10) == b"llo\n"


def test_console_backspace_edits():
    con = Console()
    con.interrupt(b"ab\x7f\n")
    assert con.read(10) == b"a\n"
    assert b"\b \b" in con.serial


def test_console_kill_line():
    con = Console()
    con.interrupt(bytes([ord("a"), ord("b"), ord("c"), control("U"), ord("x"), ord("\n")]))
    assert con.read(10) == b"x\n"


def test_console_eof():
    con = Console()
    con.interrupt(bytes([ord("a"), ord("b"), control("D")]))
    assert con.read(10) == b"ab"
    assert con.read(10) == b""


def test_console_procdump():
    calls = []
    con = Console(procdump=lambda: calls.append(1))
    assert con.interrupt(bytes([control("P")])) is True
    assert calls == [1]


def test_console_write_and_cprintf():
    con = Console()
    assert con.write(b"ok ") == 3
    con.cprintf("%d %s", 7, "x")
    assert con.screen.rows()[0] == "ok 7 x"
    assert bytes(con.serial) == b"ok 7 x"


def test_cprintf_null_panics():
    con = Console()
    with pytest.raises(KernelPanic):
        con.cprintf(None)