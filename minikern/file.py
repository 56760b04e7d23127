"""Open files: a system-wide table of reference-counted file descriptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .fs import FileSystem, Inode
from .layout import BSIZE, MAXOPBLOCKS, NFILE, KernelPanic, Stat

# Write a few blocks at a time so one operation never exceeds the log:
# the inode, an indirect block, allocation blocks and two blocks of slop
# for unaligned writes.
_MAX_WRITE = ((MAXOPBLOCKS - 1 - 1 - 2) // 2) * BSIZE


class FileKind(Enum):
    """What an open file refers to."""

    NONE = "none"
    PIPE = "pipe"
    INODE = "inode"


@dataclass(eq=False)
class OpenFile:
    """One open file description, shared by every descriptor that refers to it."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Any = None
    ip: Inode | None = None
    off: int = 0
    fs: FileSystem | None = None

    def _filesystem(self) -> FileSystem:
        if self.fs is None or self.ip is None:
            raise KernelPanic("inode file without a file system")
        return self.fs

    def read(self, n: int) -> bytes:
        """Read up to n bytes, advancing the offset of an inode file."""
        if not self.readable:
            raise PermissionError("file not open for reading")
        if self.kind is FileKind.PIPE:
            return self.pipe.read(n)
        if self.kind is FileKind.INODE:
            fs = self._filesystem()
            fs.lock(self.ip)
            try:
                data = fs.read(self.ip, self.off, n)
            finally:
                fs.unlock(self.ip)
            self.off += len(data)
            return data
        raise KernelPanic("fileread")

    def write(self, data: bytes) -> int:
        """Write all of data, returning the number of bytes written."""
        if not self.writable:
            raise PermissionError("file not open for writing")
        if self.kind is FileKind.PIPE:
            return self.pipe.write(data)
        if self.kind is FileKind.INODE:
            fs = self._filesystem()
            payload = bytes(data)
            written = 0
            while written < len(payload):
                chunk = payload[written:written + _MAX_WRITE]
                with fs.log.transaction():
                    fs.lock(self.ip)
                    try:
                        r = fs.write(self.ip, chunk, self.off)
                        if r > 0:
                            self.off += r
                    finally:
                        fs.unlock(self.ip)
                if r != len(chunk):
                    raise KernelPanic("short filewrite")
                written += r
            return len(payload)
        raise KernelPanic("filewrite")

    def stat(self) -> Stat:
        """Metadata of the inode behind this file."""
        if self.kind is not FileKind.INODE:
            raise OSError("only inode files have metadata")
        fs = self._filesystem()
        fs.lock(self.ip)
        try:
            return fs.stat(self.ip)
        finally:
            fs.unlock(self.ip)


class FileTable:
    """The fixed pool of open file descriptions."""

    def __init__(self, fs: FileSystem | None = None, nfile: int = NFILE):
        self.fs = fs
        self.files = [OpenFile() for _ in range(nfile)]

    def alloc(self) -> OpenFile:
        """Take an unused file description with one reference."""
        for f in self.files:
            if f.ref == 0:
                f.ref = 1
                f.fs = self.fs
                return f
        raise OSError("file table full")

    def dup(self, f: OpenFile) -> OpenFile:
        """Take another reference to an open file."""
        if f.ref < 1:
            raise KernelPanic("filedup")
        f.ref += 1
        return f

    def close(self, f: OpenFile) -> None:
        """Drop a reference; on the last one, release what the file refers to."""
        if f.ref < 1:
            raise KernelPanic("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        kind, pipe, ip, writable, fs = f.kind, f.pipe, f.ip, f.writable, f.fs
        f.kind = FileKind.NONE
        f.pipe = None
        f.ip = None
        f.readable = False
        f.writable = False
        f.off = 0

        if kind is FileKind.PIPE:
            pipe.close(writable)
        elif kind is FileKind.INODE:
            if fs is None:
                raise KernelPanic("inode file without a file system")
            with fs.log.transaction():
                fs.put(ip)