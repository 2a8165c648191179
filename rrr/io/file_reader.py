"""
Byte sources: zero-copy local files (mmap + memoryview) and in-memory buffers.
"""

from __future__ import annotations

import mmap
import os
from abc import ABC, abstractmethod
from typing import Optional, Union

from loguru import logger

from rrr.diagnostics import SourceError, SourceErrorKind


class ByteSource(ABC):
    """Finite, addressable bytes. Use as a context manager."""

    name: str = "<bytes>"

    def __enter__(self) -> "ByteSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    @property
    @abstractmethod
    def size(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def view(self) -> memoryview:
        """All bytes of the source."""
        raise NotImplementedError

    def read(self, offset: int, n: Optional[int] = None) -> memoryview:
        """Up to `n` bytes starting at `offset`; shorter at the end of the source."""
        v = self.view()
        return v[offset:] if n is None else v[offset : offset + n]


class BufferSource(ByteSource):
    """In-memory bytes."""

    def __init__(self, data: Union[bytes, bytearray], name: str = "<bytes>"):
        self._mv = memoryview(data)
        self.name = name

    @property
    def size(self) -> int:
        return len(self._mv)

    def view(self) -> memoryview:
        return self._mv


class LocalFileSource(ByteSource):
    """Local file source with zero-copy memory mapping.

    Attributes:
        path: Path to the local file.
    """

    def __init__(self, path: str):
        self.path = path
        self.name = path
        self._mapped: Optional[MappedFile] = None

    def __enter__(self) -> "LocalFileSource":
        self._mapped = MappedFile(self.path).__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._mapped is not None:
            self._mapped.__exit__(exc_type, exc, tb)
            self._mapped = None

    @property
    def size(self) -> int:
        return self._entered().size

    def view(self) -> memoryview:
        return self._entered().view

    def _entered(self) -> "MappedFile":
        if self._mapped is None:
            raise RuntimeError("LocalFileSource is not entered")
        return self._mapped


class MappedFile:
    """Context manager that wraps an mmapped file and exposes a memoryview."""

    __slots__ = ("_fd", "_m", "_mv", "size", "path")

    def __init__(self, path: str):
        self.path = path
        self._fd: Optional[int] = None
        self._m: Optional[mmap.mmap] = None
        self._mv: Optional[memoryview] = None
        self.size: int = 0

    def __enter__(self) -> "MappedFile":
        try:
            self._fd = os.open(self.path, os.O_RDONLY)
            self.size = os.fstat(self._fd).st_size
            if self.size:
                self._m = mmap.mmap(self._fd, self.size, access=mmap.ACCESS_READ)
                self._mv = memoryview(self._m)
            else:
                # mmap refuses empty files
                self._mv = memoryview(b"")
        except OSError as e:
            self.__exit__(None, None, None)
            raise SourceError.at(SourceErrorKind.UNREADABLE, None, self.path, e) from e
        logger.debug("Mapped {path} ({size} bytes)", path=self.path, size=self.size)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._mv is not None:
            self._mv.release()
            self._mv = None
        if self._m is not None:
            try:
                self._m.close()
            except BufferError:
                # Slices are still alive (e.g. in a traceback being propagated);
                # the map is unmapped once they are collected.
                logger.debug("Deferred unmapping of {path}", path=self.path)
            self._m = None
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    @property
    def view(self) -> memoryview:
        """Zero-copy memoryview over the file bytes."""
        if self._mv is None:
            raise RuntimeError("MappedFile is not entered")
        return self._mv
