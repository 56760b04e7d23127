"""Build a file system image holding a root directory and a set of files."""

from __future__ import annotations

import struct
import sys
from collections.abc import Iterable
from pathlib import Path

from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    SuperBlock,
    inode_block,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out an empty file system with a root directory holding "." and "..".

    Disk layout: boot block, super block, log, inode blocks, free bit map,
    data blocks.
    """

    def __init__(self, size: int = FSSIZE, ninodes: int = NINODES, nlog: int = LOGSIZE):
        self.size = size
        self.nbitmap = size // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = nlog
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        if self.nmeta >= size:
            raise ValueError("image too small for its metadata")
        self.nblocks = size - self.nmeta
        self.sb = SuperBlock(
            size=size,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self._image = bytearray(size * BSIZE)
        self._write_block(1, self.sb.pack())
        self.freeinode = 1
        self.freeblock = self.nmeta  # first block that may be allocated

        root = self.alloc_inode(FileType.DIR)
        if root != ROOTINO:
            raise ValueError("root directory did not get the root inode")
        self.append(root, DirEntry(inum=root, name=b".").pack())
        self.append(root, DirEntry(inum=root, name=b"..").pack())

    def _read_block(self, sec: int) -> bytearray:
        if not 0 <= sec < self.size:
            raise ValueError(f"block {sec} outside image")
        return bytearray(self._image[sec * BSIZE:(sec + 1) * BSIZE])

    def _write_block(self, sec: int, data: bytes) -> None:
        if not 0 <= sec < self.size:
            raise ValueError(f"block {sec} outside image")
        self._image[sec * BSIZE:(sec + 1) * BSIZE] = bytes(data).ljust(BSIZE, b"\0")

    def _alloc_block(self) -> int:
        b = self.freeblock
        if b >= self.size:
            raise ValueError("image full")
        self.freeblock += 1
        return b

    def alloc_inode(self, type: int) -> int:
        """Allocate the next inode with the given type and one link."""
        inum = self.freeinode
        if inum >= self.sb.ninodes:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self.write_inode(inum, DiskInode(type=type, nlink=1, size=0))
        return inum

    def read_inode(self, inum: int) -> DiskInode:
        block = self._read_block(inode_block(inum, self.sb))
        off = (inum % IPB) * DiskInode.SIZE
        return DiskInode.unpack(block[off:off + DiskInode.SIZE])

    def write_inode(self, inum: int, din: DiskInode) -> None:
        bn = inode_block(inum, self.sb)
        block = self._read_block(bn)
        off = (inum % IPB) * DiskInode.SIZE
        block[off:off + DiskInode.SIZE] = din.pack()
        self._write_block(bn, block)

    def append(self, inum: int, data: bytes) -> None:
        """Append data to the end of the inode's content."""
        din = self.read_inode(inum)
        off = din.size
        view = memoryview(bytes(data))
        pos = 0
        while pos < len(view):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(_INDIRECT.unpack(self._read_block(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._write_block(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            start = off - fbn * BSIZE
            n1 = min(len(view) - pos, BSIZE - start)
            block = self._read_block(x)
            block[start:start + n1] = view[pos:pos + n1]
            self._write_block(x, block)
            pos += n1
            off += n1
        din.size = off
        self.write_inode(inum, din)

    def add_file(self, name: str | bytes, data: bytes) -> int:
        """Create a file in the root directory; a leading underscore is dropped."""
        raw = name.encode() if isinstance(name, str) else bytes(name)
        if b"/" in raw:
            raise ValueError(f"file name {raw!r} must not contain '/'")
        if raw.startswith(b"_"):
            raw = raw[1:]
        inum = self.alloc_inode(FileType.FILE)
        self.append(ROOTINO, DirEntry(inum=inum, name=raw[:DIRSIZ]).pack())
        self.append(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round up the root directory size, write the free map, return the image."""
        din = self.read_inode(ROOTINO)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self.write_inode(ROOTINO, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._write_block(self.sb.bmapstart, bitmap)
        return bytes(self._image)


def _build(files: Iterable[tuple[str | bytes, bytes]]) -> ImageBuilder:
    builder = ImageBuilder()
    for name, data in files:
        builder.add_file(name, data)
    return builder


def make_image(files: Iterable[tuple[str | bytes, bytes]]) -> bytes:
    """Build an image whose root directory holds the given (name, data) files."""
    return _build(files).finish()


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1

    files = []
    for path in args[1:]:
        if "/" in path:
            print(f"mkfs: {path}: name must not contain '/'", file=sys.stderr)
            return 1
        try:
            files.append((path, Path(path).read_bytes()))
        except OSError as exc:
            print(f"{path}: {exc.strerror}", file=sys.stderr)
            return 1

    builder = _build(files)
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {builder.size}"
    )
    image = builder.finish()
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        Path(args[0]).write_bytes(image)
    except OSError as exc:
        print(f"{args[0]}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())