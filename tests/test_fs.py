import pytest

from minikern.bufcache import BufferCache
from minikern.disk import MemoryDisk
from minikern.fs import FileSystem, Inode, name_compare, skip_element
from minikern.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    FSSIZE,
    IPB,
    LOGSIZE,
    NDIRECT,
    NINODE,
    ROOTINO,
    DirEntry,
    FileType,
    KernelPanic,
    Stat,
    SuperBlock,
)
from minikern.log import Log


def _blank_image():
    ninodes = 200
    ninodeblocks = ninodes // IPB + 1
    nbitmap = FSSIZE // BPB + 1
    sb = SuperBlock(
        size=FSSIZE,
        ninodes=ninodes,
        nlog=LOGSIZE,
        logstart=2,
        inodestart=2 + LOGSIZE,
        bmapstart=2 + LOGSIZE + ninodeblocks,
    )
    nmeta = sb.bmapstart + nbitmap
    sb.nblocks = FSSIZE - nmeta
    img = bytearray(FSSIZE * BSIZE)
    img[BSIZE:BSIZE + SuperBlock.SIZE] = sb.pack()
    base = sb.bmapstart * BSIZE
    for b in range(nmeta):
        img[base + b // 8] |= 1 << (b % 8)
    return img


def _mount(image, devsw=None):
    cache = BufferCache(MemoryDisk(image))
    log = Log(cache, 1)
    return FileSystem(cache, log, 1, devsw=devsw)


def _format(devsw=None):
    fs = _mount(_blank_image(), devsw)
    with fs.log.transaction():
        root = fs.allocate_inode(FileType.DIR)
        fs.lock(root)
        root.nlink = 1
        fs.update(root)
        fs.link(root, ".", root.inum)
        fs.link(root, "..", root.inum)
        fs.unlock_put(root)
    return fs


def _create(fs, parent, name, type):
    with fs.log.transaction():
        ip = fs.allocate_inode(type)
        fs.lock(ip)
        ip.nlink = 1
        fs.update(ip)
        if type == FileType.DIR:
            fs.link(ip, ".", ip.inum)
            fs.link(ip, "..", parent.inum)
        fs.unlock(ip)
        fs.lock(parent)
        fs.link(parent, name, ip.inum)
        fs.unlock(parent)
    return ip


def _write(fs, ip, data, off=0):
    with fs.log.transaction():
        fs.lock(ip)
        n = fs.write(ip, data, off)
        fs.unlock(ip)
    return n


@pytest.fixture
def fs():
    return _format()


def test_skip_element_examples():
    assert skip_element("a/bb/c") == (b"a", b"bb/c")
    assert skip_element("///a//bb") == (b"a", b"bb")
    assert skip_element("a") == (b"a", b"")
    assert skip_element("") is None
    assert skip_element("////") is None


def test_skip_element_truncates_long_names():
    name, rest = skip_element("abcdefghijklmnopqrst/x")
    assert len(name) == DIRSIZ
    assert rest == b"x"


def test_name_compare():
    assert name_compare("abcdefghijklmnXX", "abcdefghijklmnYY") == 0
    assert name_compare("a", "b") < 0
    assert name_compare("b", "a") > 0
    assert name_compare(b"ls", "ls") == 0


def test_root_is_first_inode(fs):
    root = fs.resolve("/")
    assert root.inum == ROOTINO
    fs.lock(root)
    assert root.type == FileType.DIR
    assert root.size == 2 * DirEntry.SIZE
    fs.unlock_put(root)


def test_write_read_round_trip_and_stat(fs):
    root = fs.resolve("/")
    f = _create(fs, root, "hello", FileType.FILE)
    assert _write(fs, f, b"hello") == 5
    fs.lock(f)
    assert fs.read(f, 0, 100) == b"hello"
    assert fs.read(f, 1, 3) == b"ell"
    assert fs.stat(f) == Stat(type=FileType.FILE, dev=1, ino=f.inum, nlink=1, size=5)
    fs.unlock(f)


def test_read_offset_past_end_raises(fs):
    root = fs.resolve("/")
    f = _create(fs, root, "f", FileType.FILE)
    _write(fs, f, b"abc")
    fs.lock(f)
    assert fs.read(f, 3, 10) == b""
    with pytest.raises(ValueError):
        fs.read(f, 4, 1)
    fs.unlock(f)


def test_write_offset_past_end_raises(fs):
    root = fs.resolve("/")
    f = _create(fs, root, "f", FileType.FILE)
    with fs.log.transaction():
        fs.lock(f)
        with pytest.raises(ValueError):
            fs.write(f, b"x", 1)
        fs.unlock(f)


def test_large_file_uses_indirect_block(fs):
    root = fs.resolve("/")
    f = _create(fs, root, "big", FileType.FILE)
    data = bytes(i % 251 for i in range((NDIRECT + 2) * BSIZE))
    chunk = 2 * BSIZE
    for off in range(0, len(data), chunk):
        _write(fs, f, data[off:off + chunk], off)
    fs.lock(f)
    assert f.size == len(data)
    assert f.addrs[NDIRECT] > 0
    assert fs.read(f, 0, len(data)) == data
    fs.unlock(f)


def test_lookup_reports_offset(fs):
    root = fs.resolve("/")
    f = _create(fs, root, "a", FileType.FILE)
    fs.lock(root)
    ip, off = fs.lookup(root, "a")
    assert ip is f
    assert off == 2 * DirEntry.SIZE
    assert fs.lookup(root, "missing") is None
    fs.unlock(root)


def test_link_duplicate_raises(fs):
    root = fs.resolve("/")
    _create(fs, root, "a", FileType.FILE)
    with fs.log.transaction():
        fs.lock(root)
        with pytest.raises(FileExistsError):
            fs.link(root, "a", 7)
        fs.unlock(root)


def test_resolve_nested_paths(fs):
    root = fs.resolve("/")
    d = _create(fs, root, "d", FileType.DIR)
    f = _create(fs, d, "f", FileType.FILE)
    assert fs.resolve("/d/f") is f
    assert fs.resolve("/d/../d/f") is f
    assert fs.resolve("f", d) is f
    assert fs.resolve("//d//f") is f


def test_resolve_parent(fs):
    root = fs.resolve("/")
    d = _create(fs, root, "d", FileType.DIR)
    parent, name = fs.resolve_parent("/d/newfile")
    assert parent is d
    assert name == b"newfile"
    assert not parent.locked


def test_resolve_parent_of_root_raises(fs):
    with pytest.raises(FileNotFoundError):
        fs.resolve_parent("/")


def test_resolve_missing_raises(fs):
    with pytest.raises(FileNotFoundError):
        fs.resolve("/nope")


def test_resolve_through_file_raises(fs):
    root = fs.resolve("/")
    _create(fs, root, "f", FileType.FILE)
    with pytest.raises(NotADirectoryError):
        fs.resolve("/f/x")


def test_dup_and_put_track_references(fs):
    root = fs.resolve("/")
    assert fs.dup(root) is root
    assert root.ref == 2
    fs.put(root)
    fs.put(root)
    assert root.ref == 0


def test_put_frees_unlinked_inode_and_blocks(fs):
    with fs.log.transaction():
        ip = fs.allocate_inode(FileType.FILE)
        fs.lock(ip)
        fs.write(ip, b"x" * BSIZE, 0)
        first_block = ip.addrs[0]
        inum = ip.inum
        fs.unlock_put(ip)
    with fs.log.transaction():
        again = fs.allocate_inode(FileType.FILE)
        fs.lock(again)
        assert again.inum == inum
        assert again.size == 0
        fs.write(again, b"y", 0)
        assert again.addrs[0] == first_block
        assert fs.read(again, 0, BSIZE) == b"y"
        fs.unlock(again)


def test_contents_persist_on_disk(fs):
    root = fs.resolve("/")
    f = _create(fs, root, "keep", FileType.FILE)
    _write(fs, f, b"persistent")
    other = _mount(fs.cache.disk.image())
    ip = other.resolve("/keep")
    other.lock(ip)
    assert ip.inum == f.inum
    assert other.read(ip, 0, 100) == b"persistent"
    other.unlock(ip)


def test_lock_errors(fs):
    with pytest.raises(KernelPanic):
        fs.lock(Inode())
    root = fs.resolve("/")
    with pytest.raises(KernelPanic):
        fs.unlock(root)
    fs.lock(root)
    with pytest.raises(KernelPanic):
        fs.lock(root)


def test_inode_cache_exhaustion(fs):
    with fs.log.transaction():
        held = [fs.allocate_inode(FileType.FILE) for _ in range(NINODE)]
        assert len({ip.inum for ip in held}) == NINODE
        with pytest.raises(KernelPanic):
            fs.allocate_inode(FileType.FILE)


class _Device:
    def __init__(self):
        self.written = []

    def read(self, ip, n):
        return b"z" * n

    def write(self, ip, data):
        self.written.append(bytes(data))
        return len(data)


def test_device_inode_dispatches_to_driver():
    device = _Device()
    fs = _format({1: device})
    root = fs.resolve("/")
    dev = _create(fs, root, "console", FileType.DEVICE)
    with fs.log.transaction():
        fs.lock(dev)
        dev.major = 1
        fs.update(dev)
        assert fs.read(dev, 0, 3) == b"zzz"
        assert fs.write(dev, b"out", 0) == 3
        dev.major = 2
        with pytest.raises(OSError):
            fs.read(dev, 0, 1)
        fs.unlock(dev)
    assert device.written == [b"out"]