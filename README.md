# minikern

`minikern` models the storage and console layers of a small Unix-like
teaching kernel in pure Python, with no dependencies beyond the standard
library. It covers:

- the on-disk layout: `SuperBlock`, `DiskInode`, `DirEntry`, and block
  arithmetic through `inode_block` and `bitmap_block` (`minikern.layout`)
- an in-memory disk (`minikern.disk.MemoryDisk`) and an LRU buffer cache
  (`minikern.bufcache.BufferCache`)
- a write-ahead redo log with transactions (`minikern.log.Log`)
- inodes, directories and path resolution (`minikern.fs.FileSystem`)
- open files and the file table (`minikern.file.OpenFile`, `FileTable`)
  and pipes (`minikern.pipe.Pipe`, `pipe_alloc`)
- a page allocator with per-CPU caches (`minikern.kalloc.PageAllocator`)
- a file system image builder (`minikern.mkfs.ImageBuilder`, `make_image`)
- kernel and user `printf` formatting (`minikern.fmt`), a CGA screen and
  console line editing (`minikern.console`), a PC keyboard scancode decoder
  (`minikern.keyboard`)
- a tiny `^ . * $` regular-expression grep (`minikern.grep`)
- multiprocessor table parsing (`minikern.mp`), segment descriptors
  (`minikern.segments`) and CMOS clock decoding (`minikern.rtc`)
- small user programs as functions: `cat`, `echo`, `fmtname` and `ls`
  (`minikern.userprogs`)

Errors that the kernel would treat as fatal raise
`minikern.layout.KernelPanic`.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Building a file system image

```
minikern-mkfs fs.img README.md notes.txt
```

The first argument is the image to create; the remaining files, which must
be named without a `/`, are copied into the root directory. A leading
underscore in a file name is dropped, so `_cat` is stored as `cat`.

From Python, `make_image` takes `(name, data)` pairs and returns the image
bytes:

```python
from minikern.mkfs import make_image

image = make_image([("hello", b"hello, world\n")])
```

## Searching text

```
minikern-grep 'ab*c$' input.txt
```

With no file names, standard input is read. Only `^`, `.`, `*` and `$`
are special.

```python
from minikern.grep import match

assert match("^h.llo", "hello there")
```

## Working with the file system

A `FileSystem` sits on a buffer cache and a log, which sit on a disk.
Device number 1 is the one a `MemoryDisk` serves.

```python
from minikern.bufcache import BufferCache
from minikern.disk import MemoryDisk
from minikern.fs import FileSystem
from minikern.log import Log
from minikern.mkfs import make_image

disk = MemoryDisk(make_image([("hello", b"hi\n")]))
cache = BufferCache(disk)
log = Log(cache, 1)
fs = FileSystem(cache, log)

with log.transaction():
    ip = fs.resolve("/hello")
    fs.lock(ip)
    print(fs.read(ip, 0, 3))
    fs.unlock_put(ip)
```

Changes to the disk (`FileSystem.write`, `link`, `allocate_inode`, `put`
of an unlinked inode) must happen inside `log.transaction()`.

## What it does not do

There are no processes, no scheduler, no system calls, no program loading
and no virtual memory. Devices are modelled, not driven: the disk lives in
memory, the screen is a list of cells, the keyboard and clock decoders take
values handed to them. `cat`, `echo` and `ls` are functions to call from
Python; only `minikern-mkfs` and `minikern-grep` are installed as commands.