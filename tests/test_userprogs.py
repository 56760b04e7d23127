import io

import pytest

from minikern.bufcache import BufferCache
from minikern.disk import MemoryDisk
from minikern.fs import FileSystem
from minikern.layout import BSIZE, DIRSIZ, ROOTINO, FileType
from minikern.log import Log
from minikern.mkfs import make_image
from minikern.userprogs import cat, echo, fmtname, ls


@pytest.fixture
def fs():
    image = make_image([("README", b"hello"), ("_cat", b"x" * 600)])
    cache = BufferCache(MemoryDisk(image))
    log = Log(cache, 1)
    return FileSystem(cache, log)


def _root_size(fs):
    root = fs.resolve("/")
    fs.lock(root)
    st = fs.stat(root)
    fs.unlock(root)
    fs.put(root)
    return st.size


def test_cat_concatenates_sources():
    out = io.BytesIO()
    big = bytes(range(256)) * 5
    cat([io.BytesIO(b"abc"), io.BytesIO(big)], out)
    assert out.getvalue() == b"abc" + big


def test_cat_short_write_raises():
    class Short:
        def write(self, data):
            return len(data) - 1

    with pytest.raises(OSError, match="write error"):
        cat([io.BytesIO(b"data")], Short())


def test_echo():
    assert echo(["hello", "world"]) == "hello world\n"
    assert echo(["one"]) == "one\n"
    assert echo([]) == ""


def test_fmtname_pads_short_names():
    name = fmtname("a/b/cat")
    assert len(name) == DIRSIZ
    assert name.rstrip() == "cat"


def test_fmtname_keeps_long_names():
    long_name = "n" * (DIRSIZ + 3)
    assert fmtname("/dir/" + long_name) == long_name
    assert fmtname("plain").strip() == "plain"


def test_ls_file(fs):
    out = io.StringIO()
    ls(fs, "/README", out)
    assert out.getvalue().split() == ["README", str(int(FileType.FILE)), "2", "5"]


def test_ls_root_directory(fs):
    out = io.StringIO()
    ls(fs, "/", out)
    rows = [line.split() for line in out.getvalue().splitlines()]
    size = _root_size(fs)
    assert size % BSIZE == 0
    assert rows[0] == [".", str(int(FileType.DIR)), str(ROOTINO), str(size)]
    assert rows[1] == ["..", str(int(FileType.DIR)), str(ROOTINO), str(size)]
    assert rows[2][0] == "README" and rows[2][3] == "5"
    assert rows[3][0] == "cat" and rows[3][3] == "600"
    assert len(rows) == 4


def test_ls_missing_path(fs, capsys):
    out = io.StringIO()
    ls(fs, "/nope", out)
    assert out.getvalue() == ""
    assert capsys.readouterr().err == "ls: cannot open /nope\n"


def test_ls_path_too_long(fs):
    out = io.StringIO()
    ls(fs, "/" * 600, out)
    assert out.getvalue() == "ls: path too long\n"