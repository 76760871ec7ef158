# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Filesystem views used by the file server.

RootedFilesystem maps slash-separated URL paths onto a directory root and
cannot be walked out of it. RestrictedFilesystem wraps any FileSystem and,
unless directory listing is enabled, refuses to hand out directories.

Both raise the builtin OSError subclasses (FileNotFoundError,
PermissionError, NotADirectoryError); the file server answers all of them
with the same 404.
"""

from __future__ import annotations

import errno
import os
import posixpath
import stat
from pathlib import Path
from typing import BinaryIO, Iterator, NamedTuple, Protocol, runtime_checkable

__all__ = [
    "CHUNK_SIZE",
    "DirEntry",
    "FileHandle",
    "FileSystem",
    "RootedFilesystem",
    "RestrictedFilesystem",
]

CHUNK_SIZE = 64 * 1024


def _not_found(name: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), name)


class DirEntry(NamedTuple):
    """Immediate child of a directory."""

    name: str
    is_dir: bool


class FileHandle:
    """An opened filesystem entry.

    Regular files keep a binary file object open until ``close()``.
    Directories hold no descriptor, only their path and stat.
    """

    __slots__ = ("path", "stat", "_file")

    def __init__(self, path: Path, stat_result: os.stat_result, file: BinaryIO | None = None) -> None:
        self.path = path
        self.stat = stat_result
        self._file = file

    @property
    def is_dir(self) -> bool:
        """True if the handle points to a directory."""
        return stat.S_ISDIR(self.stat.st_mode)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size(self) -> int:
        return self.stat.st_size

    @property
    def mtime(self) -> float:
        return self.stat.st_mtime

    def read_chunks(
        self, start: int = 0, length: int | None = None, chunk_size: int = CHUNK_SIZE
    ) -> Iterator[bytes]:
        """Yield the file content from ``start``, at most ``length`` bytes, in chunks.

        Raises:
            IsADirectoryError: If the handle is a directory.
            ValueError: If the handle was closed.
        """
        if self.is_dir:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), str(self.path))
        if self._file is None:
            raise ValueError("I/O operation on closed file")
        self._file.seek(start)
        remaining = self.size - start if length is None else length
        while remaining > 0:
            chunk = self._file.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk

    def children(self) -> list[DirEntry]:
        """List the immediate children of a directory, sorted by name."""
        with os.scandir(self.path) as entries:
            result = [DirEntry(entry.name, entry.is_dir()) for entry in entries]
        return sorted(result, key=lambda entry: entry.name)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> FileHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        kind = "dir" if self.is_dir else "file"
        return f"FileHandle({str(self.path)!r}, {kind})"


@runtime_checkable
class FileSystem(Protocol):
    """Anything that can open slash-separated paths."""

    def open(self, name: str) -> FileHandle:
        """Open ``name``. Raises an OSError subclass on failure."""
        ...


class RootedFilesystem:
    """Filesystem rooted at a local directory.

    The requested name is cleaned as an absolute slash path before being
    joined to the root, so ``..`` segments stop at the root. The resolved
    target must still lie inside the root, which also refuses symlinks that
    point elsewhere.
    """

    __slots__ = ("root",)

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def resolve(self, name: str) -> Path:
        """Map a URL path onto a filesystem path inside the root.

        Raises:
            FileNotFoundError: If the name is malformed or escapes the root.
        """
        if "\x00" in name or "\\" in name:
            raise _not_found(name)
        cleaned = posixpath.normpath("/" + name.lstrip("/")).lstrip("/")
        target = (self.root / cleaned) if cleaned else self.root
        try:
            resolved = target.resolve()
        except (OSError, RuntimeError) as e:
            raise _not_found(name) from e
        if resolved != self.root and self.root not in resolved.parents:
            raise _not_found(name)
        return resolved

    def open(self, name: str) -> FileHandle:
        path = self.resolve(name)
        info = os.stat(path)
        if stat.S_ISDIR(info.st_mode):
            return FileHandle(path, info)
        file = open(path, "rb")
        return FileHandle(path, os.fstat(file.fileno()), file)

    def __repr__(self) -> str:
        return f"RootedFilesystem({str(self.root)!r})"


class RestrictedFilesystem:
    """Filesystem view that hides directories unless listing is enabled.

    A directory is reported as missing (FileNotFoundError), never as
    forbidden, so its existence is not disclosed. Errors from the wrapped
    filesystem propagate unchanged.
    """

    __slots__ = ("fs", "dir_index")

    def __init__(self, fs: FileSystem, dir_index: bool = False) -> None:
        self.fs = fs
        self.dir_index = dir_index

    def open(self, name: str) -> FileHandle:
        handle = self.fs.open(name)
        if handle.is_dir and not self.dir_index:
            handle.close()
            raise _not_found(name)
        return handle

    def __repr__(self) -> str:
        return f"RestrictedFilesystem({self.fs!r}, dir_index={self.dir_index})"
