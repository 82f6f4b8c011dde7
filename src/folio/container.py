# folio/container.py
"""
Container file codec.

A container is a flat, index-addressed sequence of objects.

Format:
- Header: magic "FLPK" (4 bytes) followed by the signature "folio1" (6 bytes)
- Object bytes, concatenated in index order
- Object table:
  - Number of objects (ULEB128)
  - For each object, its length in bytes (ULEB128)
- Trailer (12 bytes):
  - Offset of the object table (8 bytes, little-endian)
  - Magic "FLPK"

Objects are written sequentially into '<path>.partial'; the table and trailer
are only appended by complete(), which then renames the file into place, so
an aborted run never leaves a container at the output path.
"""
import os
import struct
from pathlib import Path
from typing import List, Optional, Union

import aiofiles

from .errors import ContainerError

MAGIC = b"FLPK"
SIGNATURE = b"folio1"
HEADER = MAGIC + SIGNATURE
TRAILER = struct.Struct("<Q4s")


def encode_uleb128(value: int) -> bytes:
    """Encode an unsigned integer as ULEB128 bytes."""
    result = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value != 0:
            byte |= 0x80
        result.append(byte)
        if value == 0:
            break
    return bytes(result)


def decode_uleb128(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode ULEB128 bytes to an unsigned integer. Returns (value, bytes_read)."""
    result = 0
    shift = 0
    bytes_read = 0
    while True:
        if offset + bytes_read >= len(data):
            raise ContainerError("Truncated object table")
        byte = data[offset + bytes_read]
        bytes_read += 1
        result |= (byte & 0x7F) << shift
        if (byte & 0x80) == 0:
            break
        shift += 7
    return result, bytes_read


class ContainerWriter:
    """
    Sequential container writer.

    Usage:
        with ContainerWriter('out.folio') as writer:
            writer.begin_object()
            writer.write_binary(b'...')
            ...
            writer.complete()

    Leaving the block without complete(), or with an exception, removes the
    partial file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.partial_path = self.path.with_name(self.path.name + ".partial")
        if self.path.exists():
            raise ContainerError(f"File '{self.path}' already exists")
        self._file = self.partial_path.open("wb")
        self._file.write(HEADER)
        self._lengths: List[int] = []
        self._completed = False

    def __enter__(self) -> "ContainerWriter":
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self._completed:
            self.abort()
        return False

    @property
    def object_count(self) -> int:
        return len(self._lengths)

    def _check_open(self):
        if self._file is None:
            raise ContainerError("Container writer is already closed")

    def begin_object(self):
        self._check_open()
        self._lengths.append(0)

    def write_binary(self, data: bytes):
        self._check_open()
        if not self._lengths:
            raise ContainerError("write_binary called before begin_object")
        self._file.write(data)
        self._lengths[-1] += len(data)

    def complete(self):
        """Writes the object table and trailer and moves the container into place."""
        self._check_open()
        table_offset = self._file.tell()
        self._file.write(encode_uleb128(len(self._lengths)))
        for length in self._lengths:
            self._file.write(encode_uleb128(length))
        self._file.write(TRAILER.pack(table_offset, MAGIC))
        self._file.close()
        self._file = None
        if self.path.exists():
            self.partial_path.unlink()
            raise ContainerError(f"File '{self.path}' appeared while compiling")
        os.replace(self.partial_path, self.path)
        self._completed = True

    def abort(self):
        """Discards everything written so far."""
        if self._file is not None:
            self._file.close()
            self._file = None
        self.partial_path.unlink(missing_ok=True)


class ContainerReader:
    """
    Async random-access container reader.

    Usage:
        reader = ContainerReader('out.folio')
        await reader.init()
        n = reader.count()
        data = await reader.fetch_bytes(3)

    Every fetch opens its own file handle, so concurrent fetches, and several
    readers on one file, never share a cursor.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._offsets: Optional[List[int]] = None
        self._lengths: List[int] = []

    async def init(self) -> None:
        """Reads and validates the object table. Must be called before fetching."""
        if self._offsets is not None:
            return

        try:
            async with aiofiles.open(self.path, "rb") as f:
                header = await f.read(len(HEADER))
                if header != HEADER:
                    raise ContainerError(f"'{self.path}' is not a folio container")
                end = await f.seek(0, os.SEEK_END)
                if end < len(HEADER) + TRAILER.size:
                    raise ContainerError(f"'{self.path}' is truncated")
                await f.seek(end - TRAILER.size)
                table_offset, magic = TRAILER.unpack(await f.read(TRAILER.size))
                if magic != MAGIC or not len(HEADER) <= table_offset <= end - TRAILER.size:
                    raise ContainerError(f"'{self.path}' has a damaged trailer")
                await f.seek(table_offset)
                table = await f.read(end - TRAILER.size - table_offset)
        except OSError as e:
            raise ContainerError(f"Failed to read '{self.path}': {e}") from e

        count, pos = decode_uleb128(table)
        offsets, lengths = [], []
        cursor = len(HEADER)
        for _ in range(count):
            length, n = decode_uleb128(table, pos)
            pos += n
            offsets.append(cursor)
            lengths.append(length)
            cursor += length
        if cursor != table_offset or pos != len(table):
            raise ContainerError(f"'{self.path}' object table does not match its contents")

        self._lengths = lengths
        self._offsets = offsets

    def count(self) -> int:
        if self._offsets is None:
            raise ContainerError("Container reader is not initialized")
        return len(self._offsets)

    async def fetch_bytes(self, index: int) -> bytes:
        """Returns the raw bytes of object 'index'."""
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < self.count():
            raise ContainerError(f"Object index {index!r} out of range")
        offset, length = self._offsets[index], self._lengths[index]
        try:
            async with aiofiles.open(self.path, "rb") as f:
                await f.seek(offset)
                data = await f.read(length)
        except OSError as e:
            raise ContainerError(f"Failed to read object {index}: {e}") from e
        if len(data) != length:
            raise ContainerError(f"Object {index} is truncated")
        return data

    async def fetch_text(self, index: int) -> str:
        """Returns object 'index' decoded as UTF-8."""
        data = await self.fetch_bytes(index)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ContainerError(f"Object {index} is not valid UTF-8 text") from e
