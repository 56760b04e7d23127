"""Physical page allocator with a small per-CPU cache of free pages."""

from __future__ import annotations

from .layout import NCPU, KernelPanic

PGSIZE = 4096  # bytes per page
CPU_CACHE = 16  # free pages kept per CPU

EXTMEM = 0x100000  # start of extended memory
PHYSTOP = 0xE000000  # top physical memory
DEVSPACE = 0xFE000000  # other devices are at high addresses
KERNBASE = 0x80000000  # first kernel virtual address
KERNLINK = KERNBASE + EXTMEM  # address where the kernel is linked


def v2p(addr: int) -> int:
    """Physical address of a kernel virtual address."""
    return (addr - KERNBASE) & 0xFFFFFFFF


def p2v(addr: int) -> int:
    """Kernel virtual address of a physical address."""
    return addr + KERNBASE


class PageAllocator:
    """Hands out page-aligned kernel virtual addresses above ``end``.

    Freed pages go first to the freeing CPU's cache; once that is full they
    go to a shared free list.
    """

    def __init__(self, end: int, ncpu: int = NCPU, cache_size: int = CPU_CACHE):
        self.end = end
        self.cache_size = cache_size
        self._caches: list[list[int]] = [[] for _ in range(ncpu)]
        self._freelist: list[int] = []

    def free(self, addr: int, cpu: int = 0) -> None:
        """Return the page at addr."""
        if addr % PGSIZE or addr < self.end or v2p(addr) >= PHYSTOP:
            raise KernelPanic("kfree")
        cache = self._caches[cpu]
        if len(cache) < self.cache_size:
            cache.append(addr)
        else:
            self._freelist.append(addr)

    def alloc(self, cpu: int = 0) -> int:
        """Take a free page, preferring the CPU's own cache."""
        cache = self._caches[cpu]
        if cache:
            return cache.pop()
        if not self._freelist:
            raise MemoryError("out of physical pages")
        return self._freelist.pop()

    def __len__(self) -> int:
        return len(self._freelist) + sum(len(cache) for cache in self._caches)