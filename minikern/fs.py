"""File system: block allocation, inodes, directories and path names.

The layers, from the bottom up:

* blocks: a bitmap allocator for raw disk blocks;
* inodes: an in-memory cache of inodes with reading and writing of content;
* directories: inodes whose content is a sequence of directory entries;
* names: slash-separated paths resolved from the root or a working directory.

Every change to the disk goes through the log, so callers that modify the
file system must do so inside a log transaction.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from .bufcache import BufferCache
from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    KernelPanic,
    Stat,
    SuperBlock,
    bitmap_block,
    inode_block,
)
from .log import Log

_ADDR = struct.Struct("<I")
_UINT_MAX = 0xFFFFFFFF


def _zero_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode, with bookkeeping kept only in memory."""

    dev: int = 0
    inum: int = 0
    ref: int = 0  # in-memory references
    locked: bool = False
    valid: bool = False  # has been read from disk
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_zero_addrs)


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode() if isinstance(value, str) else bytes(value)


def skip_element(path: str | bytes) -> tuple[bytes, bytes] | None:
    """Split off the first element of a path.

    Returns the element (cut to DIRSIZ bytes) and the rest of the path with
    its leading slashes removed, or None when the path holds no element.
    """
    rest = _as_bytes(path).lstrip(b"/")
    if not rest:
        return None
    name, _, rest = rest.partition(b"/")
    return name[:DIRSIZ], rest.lstrip(b"/")


def name_compare(s: str | bytes, t: str | bytes) -> int:
    """Compare two directory entry names over at most DIRSIZ bytes."""
    a = _as_bytes(s)[:DIRSIZ].split(b"\0", 1)[0]
    b = _as_bytes(t)[:DIRSIZ].split(b"\0", 1)[0]
    return (a > b) - (a < b)


class FileSystem:
    """The file system on one device, with its inode cache.

    ``devsw`` maps a major device number to a driver object offering
    ``read(ip, n) -> bytes`` and/or ``write(ip, data) -> int``.
    """

    def __init__(
        self,
        cache: BufferCache,
        log: Log,
        dev: int = ROOTDEV,
        devsw: dict | None = None,
        ninode: int = NINODE,
    ):
        self.cache = cache
        self.log = log
        self.dev = dev
        self.devsw = dict(devsw or {})
        self._inodes = [Inode() for _ in range(ninode)]
        with cache.block(dev, 1) as bp:
            self.sb = SuperBlock.unpack(bp.data)

    # Blocks.

    def _zero_block(self, dev: int, bno: int) -> None:
        with self.cache.block(dev, bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.write(bp)

    def _balloc(self, dev: int) -> int:
        """Allocate a zeroed disk block."""
        for base in range(0, self.sb.size, BPB):
            bp = self.cache.read(dev, bitmap_block(base, self.sb))
            for bi in range(min(BPB, self.sb.size - base)):
                mask = 1 << (bi % 8)
                if bp.data[bi // 8] & mask == 0:
                    bp.data[bi // 8] |= mask
                    self.log.write(bp)
                    self.cache.release(bp)
                    self._zero_block(dev, base + bi)
                    return base + bi
            self.cache.release(bp)
        raise KernelPanic("balloc: out of blocks")

    def _bfree(self, dev: int, b: int) -> None:
        with self.cache.block(dev, bitmap_block(b, self.sb)) as bp:
            bi = b % BPB
            mask = 1 << (bi % 8)
            if bp.data[bi // 8] & mask == 0:
                raise KernelPanic("freeing free block")
            bp.data[bi // 8] &= ~mask & 0xFF
            self.log.write(bp)

    # Inodes.

    @staticmethod
    def _dinode_offset(inum: int) -> int:
        return (inum % IPB) * DiskInode.SIZE

    def _get(self, dev: int, inum: int) -> Inode:
        """Find or make the cache entry for an inode; neither locks nor reads it."""
        empty = None
        for ip in self._inodes:
            if ip.ref > 0 and ip.dev == dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise KernelPanic("iget: no inodes")
        empty.dev = dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        return empty

    def allocate_inode(self, type: int) -> Inode:
        """Allocate an inode of the given type; return it referenced but unlocked."""
        for inum in range(1, self.sb.ninodes):
            with self.cache.block(self.dev, inode_block(inum, self.sb)) as bp:
                off = self._dinode_offset(inum)
                if DiskInode.unpack(bp.data[off:off + DiskInode.SIZE]).type == 0:
                    bp.data[off:off + DiskInode.SIZE] = DiskInode(type=type).pack()
                    self.log.write(bp)
                    free = True
                else:
                    free = False
            if free:
                return self._get(self.dev, inum)
        raise KernelPanic("ialloc: no inodes")

    def update(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        with self.cache.block(ip.dev, inode_block(ip.inum, self.sb)) as bp:
            off = self._dinode_offset(ip.inum)
            din = DiskInode(
                type=ip.type,
                major=ip.major,
                minor=ip.minor,
                nlink=ip.nlink,
                size=ip.size,
                addrs=list(ip.addrs),
            )
            bp.data[off:off + DiskInode.SIZE] = din.pack()
            self.log.write(bp)

    def dup(self, ip: Inode) -> Inode:
        """Take another reference to an inode."""
        ip.ref += 1
        return ip

    def lock(self, ip: Inode) -> None:
        """Lock an inode, reading it from disk if necessary."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        if ip.locked:
            raise KernelPanic("ilock: already locked")
        ip.locked = True
        if not ip.valid:
            with self.cache.block(ip.dev, inode_block(ip.inum, self.sb)) as bp:
                off = self._dinode_offset(ip.inum)
                din = DiskInode.unpack(bp.data[off:off + DiskInode.SIZE])
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def unlock(self, ip: Inode) -> None:
        if ip is None or not ip.locked or ip.ref < 1:
            raise KernelPanic("iunlock")
        ip.locked = False

    def put(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        if ip.locked:
            raise KernelPanic("iput: inode locked")
        ip.locked = True
        if ip.valid and ip.nlink == 0 and ip.ref == 1:
            self._truncate(ip)
            ip.type = 0
            self.update(ip)
            ip.valid = False
        ip.locked = False
        ip.ref -= 1

    def unlock_put(self, ip: Inode) -> None:
        self.unlock(ip)
        self.put(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        """Disk block of the bn-th block of the inode, allocated if missing."""
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc(ip.dev)
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc(ip.dev)
            bp = self.cache.read(ip.dev, ip.addrs[NDIRECT])
            (addr,) = _ADDR.unpack_from(bp.data, bn * _ADDR.size)
            if addr == 0:
                addr = self._balloc(ip.dev)
                _ADDR.pack_into(bp.data, bn * _ADDR.size, addr)
                self.log.write(bp)
            self.cache.release(bp)
            return addr
        raise KernelPanic("bmap: out of range")

    def _truncate(self, ip: Inode) -> None:
        """Free all of the inode's content blocks."""
        for i, addr in enumerate(ip.addrs[:NDIRECT]):
            if addr:
                self._bfree(ip.dev, addr)
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                indirect = struct.unpack_from(f"<{NINDIRECT}I", bp.data)
            for addr in indirect:
                if addr:
                    self._bfree(ip.dev, addr)
            self._bfree(ip.dev, ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.update(ip)

    def stat(self, ip: Inode) -> Stat:
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    def _driver(self, ip: Inode, op: str):
        driver = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        fn = getattr(driver, op, None)
        if fn is None:
            raise OSError(f"no {op} routine for device {ip.major}")
        return fn

    def read(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to n bytes at offset off; shorter at end of file."""
        if ip.type == FileType.DEVICE:
            return self._driver(ip, "read")(ip, n)
        if off > ip.size or off + n > _UINT_MAX:
            raise ValueError(f"read offset {off} out of range")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            blockno = self._bmap(ip, off // BSIZE)
            with self.cache.block(ip.dev, blockno) as bp:
                start = off % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start:start + m]
            off += m
        return bytes(out)

    def write(self, ip: Inode, data: bytes, off: int) -> int:
        """Write data at offset off, growing the file as needed."""
        if ip.type == FileType.DEVICE:
            return self._driver(ip, "write")(ip, data)
        n = len(data)
        if off > ip.size or off + n > _UINT_MAX:
            raise ValueError(f"write offset {off} out of range")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write beyond maximum file size")
        view = memoryview(data)
        tot = 0
        while tot < n:
            blockno = self._bmap(ip, off // BSIZE)
            with self.cache.block(ip.dev, blockno) as bp:
                start = off % BSIZE
                m = min(n - tot, BSIZE - start)
                bp.data[start:start + m] = view[tot:tot + m]
                self.log.write(bp)
            tot += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.update(ip)
        return n

    # Directories.

    def lookup(self, dp: Inode, name: str | bytes) -> tuple[Inode, int] | None:
        """Find a name in a directory: its inode and the entry's byte offset."""
        if dp.type != FileType.DIR:
            raise KernelPanic("dirlookup not DIR")
        for off in range(0, dp.size, DirEntry.SIZE):
            raw = self.read(dp, off, DirEntry.SIZE)
            if len(raw) != DirEntry.SIZE:
                raise KernelPanic("dirlookup read")
            de = DirEntry.unpack(raw)
            if de.inum and name_compare(name, de.name) == 0:
                return self._get(dp.dev, de.inum), off
        return None

    def link(self, dp: Inode, name: str | bytes, inum: int) -> None:
        """Add the entry (name, inum) to a directory."""
        found = self.lookup(dp, name)
        if found is not None:
            self.put(found[0])
            raise FileExistsError(_as_bytes(name).decode(errors="replace"))
        slot = dp.size
        for off in range(0, dp.size, DirEntry.SIZE):
            raw = self.read(dp, off, DirEntry.SIZE)
            if len(raw) != DirEntry.SIZE:
                raise KernelPanic("dirlink read")
            if DirEntry.unpack(raw).inum == 0:
                slot = off
                break
        entry = DirEntry(inum=inum, name=_as_bytes(name)[:DIRSIZ].split(b"\0", 1)[0])
        if self.write(dp, entry.pack(), slot) != DirEntry.SIZE:
            raise KernelPanic("dirlink")

    # Paths.

    def _namex(self, path: str | bytes, parent: bool, cwd: Inode | None):
        path = _as_bytes(path)
        if path.startswith(b"/") or cwd is None:
            ip = self._get(ROOTDEV, ROOTINO)
        else:
            ip = self.dup(cwd)
        while (elem := skip_element(path)) is not None:
            name, path = elem
            self.lock(ip)
            if ip.type != FileType.DIR:
                self.unlock_put(ip)
                raise NotADirectoryError(name.decode(errors="replace"))
            if parent and not path:
                self.unlock(ip)
                return ip, name
            found = self.lookup(ip, name)
            self.unlock_put(ip)
            if found is None:
                raise FileNotFoundError(name.decode(errors="replace"))
            ip = found[0]
        if parent:
            self.put(ip)
            raise FileNotFoundError("path has no final element")
        return ip, b""

    def resolve(self, path: str | bytes, cwd: Inode | None = None) -> Inode:
        """Return a referenced inode for a path.

        Relative paths start at ``cwd``, or at the root when it is None.
        """
        return self._namex(path, False, cwd)[0]

    def resolve_parent(
        self, path: str | bytes, cwd: Inode | None = None
    ) -> tuple[Inode, bytes]:
        """Return the parent directory of a path and the path's final element."""
        return self._namex(path, True, cwd)