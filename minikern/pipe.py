"""Pipes: a bounded byte channel between a read end and a write end."""

from __future__ import annotations

import threading

from .file import FileKind, FileTable, OpenFile

PIPESIZE = 512


class Pipe:
    """A ring buffer of PIPESIZE bytes; writers block when full, readers when empty."""

    def __init__(self) -> None:
        self._data = bytearray(PIPESIZE)
        self.nread = 0  # bytes read so far
        self.nwrite = 0  # bytes written so far
        self.readopen = True
        self.writeopen = True
        self._cond = threading.Condition()

    def write(self, data: bytes) -> int:
        """Write all of data, waiting for room; fails once the read end is closed."""
        payload = bytes(data)
        with self._cond:
            for byte in payload:
                while self.nwrite == self.nread + PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError("read end of pipe closed")
                    self._cond.notify_all()
                    self._cond.wait()
                self._data[self.nwrite % PIPESIZE] = byte
                self.nwrite += 1
            self._cond.notify_all()
        return len(payload)

    def read(self, n: int) -> bytes:
        """Read up to n bytes, waiting while the pipe is empty and still writable."""
        with self._cond:
            while self.nread == self.nwrite and self.writeopen:
                self._cond.wait()
            count = min(n, self.nwrite - self.nread)
            start = self.nread % PIPESIZE
            ring = self._data[start:] + self._data[:start]
            out = bytes(ring[:count])
            self.nread += count
            self._cond.notify_all()
        return out

    def close(self, writable: bool) -> None:
        """Close the write end if writable, else the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()


def pipe_alloc(table: FileTable) -> tuple[OpenFile, OpenFile]:
    """Create a pipe and return its read-end and write-end files."""
    f0 = table.alloc()
    try:
        f1 = table.alloc()
    except OSError:
        table.close(f0)
        raise
    p = Pipe()
    f0.kind = FileKind.PIPE
    f0.readable = True
    f0.writable = False
    f0.pipe = p
    f1.kind = FileKind.PIPE
    f1.readable = False
    f1.writable = True
    f1.pipe = p
    return f0, f1