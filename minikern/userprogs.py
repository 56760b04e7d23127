"""Small user programs: cat, echo and ls."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import BinaryIO, TextIO

from .fs import FileSystem
from .layout import DIRSIZ, DirEntry, FileType, Stat

_CHUNK = 512
_PATH_MAX = 512


def cat(sources: Iterable[BinaryIO], out: BinaryIO) -> None:
    """Copy each source, in order, to out."""
    for src in sources:
        while chunk := src.read(_CHUNK):
            if out.write(chunk) != len(chunk):
                raise OSError("cat: write error")


def echo(args: list[str]) -> str:
    """The arguments joined by spaces and ended by a newline."""
    if not args:
        return ""
    return " ".join(args) + "\n"


def fmtname(path: str) -> str:
    """The final element of path, blank-padded to DIRSIZ characters."""
    name = path[path.rfind("/") + 1:]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _stat_path(fs: FileSystem, path: str) -> Stat:
    with fs.log.transaction():
        ip = fs.resolve(path)
        fs.lock(ip)
        try:
            return fs.stat(ip)
        finally:
            fs.unlock_put(ip)


def _open(fs: FileSystem, path: str) -> tuple[Stat, list[str]]:
    """Stat a path and, for a directory, list the names of its used entries."""
    names: list[str] = []
    with fs.log.transaction():
        ip = fs.resolve(path)
        fs.lock(ip)
        try:
            st = fs.stat(ip)
            if st.type == FileType.DIR:
                for off in range(0, ip.size, DirEntry.SIZE):
                    raw = fs.read(ip, off, DirEntry.SIZE)
                    if len(raw) != DirEntry.SIZE:
                        break
                    de = DirEntry.unpack(raw)
                    if de.inum:
                        names.append(de.name.decode(errors="replace"))
        finally:
            fs.unlock_put(ip)
    return st, names


def _line(path: str, st: Stat) -> str:
    return f"{fmtname(path)} {int(st.type)} {st.ino} {st.size}\n"


def ls(fs: FileSystem, path: str, out: TextIO) -> None:
    """List a file, or every entry of a directory, as: name type inode size."""
    try:
        st, names = _open(fs, path)
    except OSError:
        sys.stderr.write(f"ls: cannot open {path}\n")
        return

    if st.type == FileType.FILE:
        out.write(_line(path, st))
    elif st.type == FileType.DIR:
        if len(path) + 1 + DIRSIZ + 1 > _PATH_MAX:
            out.write("ls: path too long\n")
            return
        for name in names:
            full = f"{path}/{name}"
            try:
                entry = _stat_path(fs, full)
            except OSError:
                out.write(f"ls: cannot stat {full}\n")
                continue
            out.write(_line(full, entry))