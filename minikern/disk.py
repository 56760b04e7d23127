"""Block buffers and an in-memory disk that stores blocks in a byte array."""

from __future__ import annotations

from dataclasses import dataclass, field

from .layout import BSIZE, FSSIZE, KernelPanic


def _empty_block() -> bytearray:
    return bytearray(BSIZE)


@dataclass(eq=False)
class Buffer:
    """A cached copy of one disk block."""

    dev: int = 0
    blockno: int = 0
    data: bytearray = field(default_factory=_empty_block)
    valid: bool = False  # data has been read from disk
    dirty: bool = False  # data has been modified and must be written
    refcnt: int = 0
    locked: bool = False


class MemoryDisk:
    """A disk whose blocks live in memory; serves device 1 only."""

    DEV = 1

    def __init__(self, image: bytes | bytearray | None = None, nblocks: int = FSSIZE):
        if image is None:
            image = bytes(nblocks * BSIZE)
        self._data = bytearray(image)
        self.nblocks = len(self._data) // BSIZE

    def sync(self, buf: Buffer) -> None:
        """Write a dirty buffer to disk, or read an invalid one from it."""
        if not buf.locked:
            raise KernelPanic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise KernelPanic("iderw: nothing to do")
        if buf.dev != self.DEV:
            raise KernelPanic("iderw: request not for disk 1")
        if buf.blockno >= self.nblocks:
            raise KernelPanic("iderw: block out of range")

        start = buf.blockno * BSIZE
        if buf.dirty:
            buf.dirty = False
            self._data[start:start + BSIZE] = buf.data
        else:
            buf.data[:] = self._data[start:start + BSIZE]
        buf.valid = True

    def image(self) -> bytes:
        """A copy of the whole disk contents."""
        return bytes(self._data)