"""Write-ahead redo log that makes multi-block file system updates atomic."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from contextlib import contextmanager

from .bufcache import BufferCache
from .disk import Buffer
from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS, KernelPanic, SuperBlock

_COUNT = struct.Struct("<i")
_HEADER_SIZE = _COUNT.size * (1 + LOGSIZE)


class Log:
    """The on-disk log of one device.

    The header block at ``start`` holds the count and home block numbers
    of the logged blocks, which follow it in order.
    """

    def __init__(self, cache: BufferCache, dev: int):
        if _HEADER_SIZE >= BSIZE:
            raise KernelPanic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        with cache.block(dev, 1) as bp:
            sb = SuperBlock.unpack(bp.data)
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0  # file system operations in progress
        self.committing = False
        self.blocks: list[int] = []  # home block numbers of logged blocks
        self._recover()

    def _install(self) -> None:
        """Copy committed blocks from the log to their home locations."""
        for tail, home in enumerate(self.blocks):
            lbuf = self.cache.read(self.dev, self.start + tail + 1)
            dbuf = self.cache.read(self.dev, home)
            dbuf.data[:] = lbuf.data
            self.cache.write(dbuf)
            self.cache.release(lbuf)
            self.cache.release(dbuf)

    def _read_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            (n,) = _COUNT.unpack_from(buf.data)
            if not 0 <= n <= LOGSIZE:
                raise KernelPanic("log header corrupt")
            self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, _COUNT.size))

    def _write_head(self) -> None:
        """Write the in-memory header to disk: the real commit point."""
        buf = self.cache.read(self.dev, self.start)
        n = len(self.blocks)
        _COUNT.pack_into(buf.data, 0, n)
        struct.pack_into(f"<{n}i", buf.data, _COUNT.size, *self.blocks)
        self.cache.write(buf)
        self.cache.release(buf)

    def _recover(self) -> None:
        self._read_head()
        self._install()
        self.blocks = []
        self._write_head()

    def _write_log(self) -> None:
        """Copy modified blocks from the cache into the log."""
        for tail, home in enumerate(self.blocks):
            to = self.cache.read(self.dev, self.start + tail + 1)
            src = self.cache.read(self.dev, home)
            to.data[:] = src.data
            self.cache.write(to)
            self.cache.release(src)
            self.cache.release(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install()
            self.blocks = []
            self._write_head()

    def begin_op(self) -> None:
        """Mark the start of a file system operation."""
        if self.committing:
            raise KernelPanic("begin_op: log is committing")
        if len(self.blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE:
            raise KernelPanic("begin_op: log space exhausted")
        self.outstanding += 1

    def end_op(self) -> None:
        """Mark the end of an operation; the last one out commits."""
        self.outstanding -= 1
        if self.committing:
            raise KernelPanic("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    def write(self, buf: Buffer) -> None:
        """Record a modified buffer in the log and pin it in the cache."""
        if len(self.blocks) >= LOGSIZE or len(self.blocks) >= self.size - 1:
            raise KernelPanic("too big a transaction")
        if self.outstanding < 1:
            raise KernelPanic("log_write outside of trans")
        if buf.blockno not in self.blocks:
            self.blocks.append(buf.blockno)
        buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the with-block as one file system operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()