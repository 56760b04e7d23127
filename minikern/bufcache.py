"""Buffer cache: in-memory copies of disk blocks, recycled least recently used first."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from .disk import Buffer, MemoryDisk
from .layout import NBUF, KernelPanic


class BufferCache:
    """A fixed pool of block buffers in front of a disk.

    Only one user at a time may hold a buffer; a buffer is held from
    ``read`` until ``release``.
    """

    def __init__(self, disk: MemoryDisk, nbuf: int = NBUF):
        self.disk = disk
        # Most recently used first.
        self._lru: list[Buffer] = [Buffer() for _ in range(nbuf)]

    @staticmethod
    def _lock(buf: Buffer) -> None:
        if buf.locked:
            raise KernelPanic("bget: buffer already locked")
        buf.locked = True

    def _get(self, dev: int, blockno: int) -> Buffer:
        for buf in self._lru:
            if buf.dev == dev and buf.blockno == blockno:
                self._lock(buf)
                buf.refcnt += 1
                return buf

        # A dirty buffer with no references is still pinned by the log.
        for buf in reversed(self._lru):
            if buf.refcnt == 0 and not buf.dirty:
                buf.dev = dev
                buf.blockno = blockno
                buf.valid = False
                buf.dirty = False
                buf.refcnt = 1
                buf.locked = True
                return buf

        raise KernelPanic("bget: no buffers")

    def read(self, dev: int, blockno: int) -> Buffer:
        """Return a locked buffer holding the contents of the block."""
        buf = self._get(dev, blockno)
        if not buf.valid:
            self.disk.sync(buf)
        return buf

    def write(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.locked:
            raise KernelPanic("bwrite")
        buf.dirty = True
        self.disk.sync(buf)

    def release(self, buf: Buffer) -> None:
        """Release a locked buffer, making it the most recently used."""
        if not buf.locked:
            raise KernelPanic("brelse")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._lru.remove(buf)
            self._lru.insert(0, buf)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buffer]:
        """Hold the block's buffer for the duration of a with-block."""
        buf = self.read(dev, blockno)
        try:
            yield buf
        finally:
            self.release(buf)