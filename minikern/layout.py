"""On-disk file system format, system parameters and shared record types."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

# System parameters.
NPROC = 64  # maximum number of processes
KSTACKSIZE = 4096  # size of per-process kernel stack
NCPU = 8  # maximum number of CPUs
NOFILE = 16  # open files per process
NFILE = 100  # open files per system
NINODE = 50  # maximum number of active i-nodes
NDEV = 10  # maximum major device number
ROOTDEV = 1  # device number of file system root disk
MAXARG = 32  # max exec arguments
MAXOPBLOCKS = 10  # max number of blocks any FS op writes
LOGSIZE = MAXOPBLOCKS * 3  # max data blocks in on-disk log
NBUF = MAXOPBLOCKS * 3  # size of disk block cache
FSSIZE = 1000  # size of file system in blocks

# Open flags.
O_RDONLY = 0x000
O_WRONLY = 0x001
O_RDWR = 0x002
O_CREATE = 0x200

# Disk format.
ROOTINO = 1  # root i-number
BSIZE = 512  # block size
NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT
DIRSIZ = 14
BPB = BSIZE * 8  # bitmap bits per block

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

IPB = BSIZE // _DINODE.size  # inodes per block


class KernelPanic(Exception):
    """Raised when a kernel invariant is violated."""


class FileType(IntEnum):
    """Kinds of inode."""

    DIR = 1
    FILE = 2
    DEVICE = 3


@dataclass
class Stat:
    """Metadata reported about a file."""

    type: int
    dev: int
    ino: int
    nlink: int
    size: int


@dataclass
class SuperBlock:
    """Describes the layout of a file system image."""

    size: int = 0  # size of file system image (blocks)
    nblocks: int = 0  # number of data blocks
    ninodes: int = 0  # number of inodes
    nlog: int = 0  # number of log blocks
    logstart: int = 0  # block number of first log block
    inodestart: int = 0  # block number of first inode block
    bmapstart: int = 0  # block number of first free map block

    SIZE: ClassVar[int] = _SUPERBLOCK.size

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data) -> SuperBlock:
        return cls(*_SUPERBLOCK.unpack_from(data))


def _zero_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass
class DiskInode:
    """On-disk inode record."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_zero_addrs)

    SIZE: ClassVar[int] = _DINODE.size

    def __post_init__(self) -> None:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds exactly {NDIRECT + 1} block addresses")

    def pack(self) -> bytes:
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data) -> DiskInode:
        values = _DINODE.unpack_from(data)
        return cls(
            type=values[0],
            major=values[1],
            minor=values[2],
            nlink=values[3],
            size=values[4],
            addrs=list(values[5:]),
        )


@dataclass
class DirEntry:
    """One entry of a directory: an inode number and a name of up to DIRSIZ bytes."""

    inum: int = 0
    name: bytes = b""

    SIZE: ClassVar[int] = _DIRENT.size

    def __post_init__(self) -> None:
        if isinstance(self.name, str):
            self.name = self.name.encode()

    def pack(self) -> bytes:
        return _DIRENT.pack(self.inum, self.name)

    @classmethod
    def unpack(cls, data) -> DirEntry:
        inum, raw = _DIRENT.unpack_from(data)
        return cls(inum=inum, name=raw.split(b"\0", 1)[0])


def inode_block(inum: int, sb: SuperBlock) -> int:
    """Block holding inode number ``inum``."""
    return inum // IPB + sb.inodestart


def bitmap_block(b: int, sb: SuperBlock) -> int:
    """Block of the free map holding the bit for block ``b``."""
    return b // BPB + sb.bmapstart