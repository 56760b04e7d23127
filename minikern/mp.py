"""Multiprocessor configuration: find and parse the MP tables in physical memory."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from .layout import NCPU, KernelPanic

# Table entry types.
MPPROC = 0x00  # one per processor
MPBUS = 0x01  # one per bus
MPIOAPIC = 0x02  # one per I/O APIC
MPIOINTR = 0x03  # one per bus interrupt source
MPLINTR = 0x04  # one per system interrupt source

MPBOOT = 0x02  # processor flag: this is the bootstrap processor

_MP = struct.Struct("<4sIBBBBB3s")  # floating pointer
_MPCONF = struct.Struct("<4sHBB20sIHHIHBB")  # configuration table header
_MPPROC = struct.Struct("<BBBB4sI8s")  # processor entry
_MPIOAPIC = struct.Struct("<BBBBI")  # I/O APIC entry
_OTHER_ENTRY_SIZE = 8  # bus and interrupt source entries

_BDA = 0x400  # BIOS data area


@dataclass(frozen=True)
class FloatingPointer:
    """The MP floating pointer structure and where it was found."""

    address: int
    physaddr: int  # physical address of the configuration table
    length: int
    specrev: int
    checksum: int
    type: int
    imcrp: int


@dataclass
class MachineConfig:
    """What the configuration table says about the machine."""

    lapicaddr: int
    cpus: list[int] = field(default_factory=list)  # local APIC ids
    ioapicid: int = 0
    imcrp: bool = False
    version: int = 0


def checksum(data: bytes) -> int:
    """Sum of the bytes modulo 256; a valid table sums to zero."""
    return sum(data) & 0xFF


def search(memory: bytes, start: int, length: int) -> FloatingPointer | None:
    """Look for a valid floating pointer in ``length`` bytes at ``start``."""
    for p in range(max(start, 0), start + length, _MP.size):
        chunk = bytes(memory[p:p + _MP.size])
        if len(chunk) == _MP.size and chunk[:4] == b"_MP_" and checksum(chunk) == 0:
            _, physaddr, size, specrev, csum, kind, imcrp, _ = _MP.unpack(chunk)
            return FloatingPointer(
                address=p,
                physaddr=physaddr,
                length=size,
                specrev=specrev,
                checksum=csum,
                type=kind,
                imcrp=imcrp,
            )
    return None


def _find_pointer(memory: bytes) -> FloatingPointer | None:
    """Search the first KB of the EBDA, else the last KB of base memory, then the BIOS ROM."""
    bda = memory[_BDA:_BDA + 0x20]
    p = ((bda[0x0F] << 8) | bda[0x0E]) << 4
    if p:
        mp = search(memory, p, 1024)
    else:
        p = ((bda[0x14] << 8) | bda[0x13]) * 1024
        mp = search(memory, p - 1024, 1024)
    if mp is not None:
        return mp
    return search(memory, 0xF0000, 0x10000)


def find_config(memory: bytes) -> tuple[FloatingPointer, bytes] | None:
    """Find the floating pointer and the raw configuration table it points to.

    Default configurations (a zero table address), bad signatures, unknown
    versions and bad checksums are rejected.
    """
    mp = _find_pointer(memory)
    if mp is None or mp.physaddr == 0:
        return None
    base = mp.physaddr
    header = bytes(memory[base:base + _MPCONF.size])
    if len(header) < _MPCONF.size or header[:4] != b"PCMP":
        return None
    _, length, version, *_ = _MPCONF.unpack(header)
    if version not in (1, 4):
        return None
    table = bytes(memory[base:base + length])
    if len(table) != length or checksum(table) != 0:
        return None
    return mp, table


def _entry(layout: struct.Struct, table: bytes, offset: int) -> tuple:
    if offset + layout.size > len(table):
        raise KernelPanic("mpinit: truncated entry")
    return layout.unpack_from(table, offset)


def mp_init(memory: bytes) -> MachineConfig:
    """Read the processors, I/O APIC and local APIC address from the MP tables."""
    found = find_config(memory)
    if found is None:
        raise KernelPanic("Expect to run on an SMP")
    mp, table = found
    fields = _MPCONF.unpack_from(table)
    length, version, lapicaddr = fields[1], fields[2], fields[8]

    config = MachineConfig(lapicaddr=lapicaddr, imcrp=bool(mp.imcrp), version=version)
    p = _MPCONF.size
    while p < length:
        kind = table[p]
        if kind == MPPROC:
            entry = _entry(_MPPROC, table, p)
            if len(config.cpus) < NCPU:
                config.cpus.append(entry[1])
            p += _MPPROC.size
        elif kind == MPIOAPIC:
            entry = _entry(_MPIOAPIC, table, p)
            config.ioapicid = entry[1]
            p += _MPIOAPIC.size
        elif kind in (MPBUS, MPIOINTR, MPLINTR):
            p += _OTHER_ENTRY_SIZE
        else:
            raise KernelPanic("Didn't find a suitable machine")
    return config