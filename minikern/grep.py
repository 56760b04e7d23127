"""A small grep supporting the ^ . * $ operators."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from typing import TextIO

_BUFSIZE = 1024


def match(re: str, text: str) -> bool:
    """Search for re anywhere in text."""
    if re.startswith("^"):
        return match_here(re[1:], text)
    # The empty tail must be tried too.
    return any(match_here(re, text[i:]) for i in range(len(text) + 1))


def match_here(re: str, text: str) -> bool:
    """Search for re at the beginning of text."""
    if not re:
        return True
    if len(re) >= 2 and re[1] == "*":
        return match_star(re[0], re[2:], text)
    if re == "$":
        return text == ""
    if text and (re[0] == "." or re[0] == text[0]):
        return match_here(re[1:], text[1:])
    return False


def match_star(c: str, re: str, text: str) -> bool:
    """Search for c* followed by re at the beginning of text."""
    i = 0
    while True:
        if match_here(re, text[i:]):
            return True
        if i < len(text) and (text[i] == c or c == "."):
            i += 1
        else:
            return False


def grep(pattern: str, stream: TextIO) -> Iterator[str]:
    """Yield the newline-terminated lines of stream that match pattern.

    Lines are gathered in a buffer of 1023 characters; text that reaches
    no newline within it, including an unterminated last line, is dropped.
    """
    buf = ""
    while chunk := stream.read(_BUFSIZE - 1 - len(buf)):
        buf += chunk
        *lines, rest = buf.split("\n")
        for line in lines:
            if match(pattern, line):
                yield line + "\n"
        buf = rest if lines else ""


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern = args[0]

    if len(args) == 1:
        sys.stdout.writelines(grep(pattern, sys.stdin))
        return 0

    for path in args[1:]:
        try:
            stream = open(path, newline="", errors="surrogateescape")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with stream:
            sys.stdout.writelines(grep(pattern, stream))
    return 0


if __name__ == "__main__":
    sys.exit(main())