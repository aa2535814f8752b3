"""
struct_reader.py - Read fixed-size records from streams and decode them

Thin adapter over StructDecoder: it pulls exactly ``size(name)`` bytes from a
binary file object (blocking) or an ``asyncio.StreamReader`` (suspending) and
hands them to the decoder. A stream that ends early raises ShortReadError;
there is no partial result.

Usage:
    reader = StructReader(graph)
    with open('capture.bin', 'rb') as f:
        header = reader.read(f, 'file_header_t')
        while True:
            try:
                record = reader.read(f, 'record_t')
            except ShortReadError as e:
                if e.actual == 0:
                    break
                raise
"""

import asyncio
from typing import BinaryIO, Optional

from binary_decoder import DecodedValue, StructDecoder
from cstruct_errors import ShortReadError
from type_graph import StructType, TypeGraph


def read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read ``size`` bytes, looping over short reads from pipes and sockets."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b''.join(chunks)


class StructReader:
    """Size, decode and read records of one graph, by struct name."""

    def __init__(self, graph: TypeGraph, little_endian: bool = True):
        self.decoder = StructDecoder(graph, little_endian)
        self.previous_buffer: Optional[bytes] = None

    def size(self, name: str) -> int:
        return self.decoder.size_of(StructType(name))

    def decode(self, data: bytes, name: str) -> DecodedValue:
        return self.decoder.decode(data, StructType(name))

    def read(self, stream: BinaryIO, name: str) -> DecodedValue:
        """Block until one full ``name`` record is read, then decode it."""
        size = self.size(name)
        data = read_exactly(stream, size)
        if len(data) != size:
            raise ShortReadError(size, len(data), name)
        self.previous_buffer = data
        return self.decode(data, name)

    async def read_async(self, reader: asyncio.StreamReader, name: str) -> DecodedValue:
        """Suspend until one full ``name`` record is available, then decode it."""
        size = self.size(name)
        try:
            data = await reader.readexactly(size)
        except asyncio.IncompleteReadError as e:
            raise ShortReadError(size, len(e.partial), name) from e
        self.previous_buffer = data
        return self.decode(data, name)
