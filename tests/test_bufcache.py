import pytest

from minikern.bufcache import BufferCache
from minikern.disk import MemoryDisk
from minikern.layout import BSIZE, KernelPanic


def _disk(nblocks=8):
    image = bytearray(BSIZE * nblocks)
    for blockno in range(nblocks):
        image[blockno * BSIZE] = blockno
    return MemoryDisk(image)


def test_read_returns_block_contents():
    cache = BufferCache(_disk())
    buf = cache.read(1, 5)
    assert buf.data[0] == 5
    assert buf.locked and buf.valid and buf.refcnt == 1
    cache.release(buf)


def test_cached_buffer_is_reused():
    cache = BufferCache(_disk())
    first = cache.read(1, 3)
    cache.release(first)
    second = cache.read(1, 3)
    assert second is first
    cache.release(second)


def test_write_reaches_disk():
    disk = _disk()
    cache = BufferCache(disk)
    buf = cache.read(1, 2)
    buf.data[1:4] = b"xyz"
    cache.write(buf)
    cache.release(buf)
    assert disk.image()[2 * BSIZE + 1:2 * BSIZE + 4] == b"xyz"
    assert not buf.dirty


def test_least_recently_used_is_recycled():
    cache = BufferCache(_disk(), nbuf=2)
    b1 = cache.read(1, 1)
    cache.release(b1)
    b2 = cache.read(1, 2)
    cache.release(b2)
    b3 = cache.read(1, 3)
    assert b3 is b1
    assert b3.blockno == 3 and b3.data[0] == 3
    cache.release(b3)


def test_no_free_buffers_panics():
    cache = BufferCache(_disk(), nbuf=1)
    cache.read(1, 1)
    with pytest.raises(KernelPanic, match="no buffers"):
        cache.read(1, 2)


def test_dirty_buffer_not_recycled():
    cache = BufferCache(_disk(), nbuf=1)
    buf = cache.read(1, 1)
    buf.dirty = True
    cache.release(buf)
    with pytest.raises(KernelPanic, match="no buffers"):
        cache.read(1, 2)


def test_release_unlocked_panics():
    cache = BufferCache(_disk())
    buf = cache.read(1, 1)
    cache.release(buf)
    with pytest.raises(KernelPanic, match="brelse"):
        cache.release(buf)


def test_write_unlocked_panics():
    cache = BufferCache(_disk())
    buf = cache.read(1, 1)
    cache.release(buf)
    with pytest.raises(KernelPanic, match="bwrite"):
        cache.write(buf)


def test_double_read_while_held_panics():
    cache = BufferCache(_disk())
    cache.read(1, 4)
    with pytest.raises(KernelPanic):
        cache.read(1, 4)


def test_block_context_releases():
    cache = BufferCache(_disk())
    with cache.block(1, 6) as buf:
        assert buf.data[0] == 6
        assert buf.locked
    assert not buf.locked
    assert buf.refcnt == 0