"""
binary_decoder.py - Decode packed binary records against a type graph

Reproduces the in-memory layout of C structs compiled with 1-byte packing:
fields are laid out back to back in declaration order with no padding.

Decoding rules:
    intN_t / uintN_t     -> int (widths 1, 2, 4, 8; 64-bit values stay exact)
    char8_t / char16_t   -> str, cut at the first zero code unit
    char*_t name[N]      -> one str over the whole array span
    uint8_t name[N]      -> bytes (copy of the raw span)
    T name[N]            -> list of N decoded elements
    struct NAME          -> dict in field declaration order

The buffer must be exactly ``size_of(root)`` bytes; anything else is an error.

Usage:
    from binary_decoder import StructDecoder, decode

    value = decode(graph, 'test_t', data)              # little-endian
    value = decode(graph, 'test_t', data, little_endian=False)

    decoder = StructDecoder(graph)
    decoder.size_of(StructType('test_t'))
"""

from typing import Any, Dict, List, Set, Tuple, Union

from cstruct_errors import DecodeError
from type_graph import (
    ArrayType, CharType, CType, IntType, StructDefinition, StructType, TypeGraph,
    is_byte_type,
)

DecodedValue = Union[int, str, bytes, List[Any], Dict[str, Any]]

INT_WIDTHS = (1, 2, 4, 8)

# Largest magnitude a JSON consumer using IEEE doubles represents exactly.
SAFE_INTEGER = 2 ** 53 - 1


class StructDecoder:
    """
    Decoder bound to one graph and one byte order.

    Holds only a size cache; instances can be shared between threads.
    """

    def __init__(self, graph: TypeGraph, little_endian: bool = True):
        self.graph = graph
        self.little_endian = little_endian
        self.byteorder = 'little' if little_endian else 'big'
        self._sizes: Dict[str, int] = {}

    def get_struct(self, name: str) -> StructDefinition:
        definition = self.graph.get_struct(name)
        if definition is None:
            raise DecodeError(f"Unknown struct: '{name}'")
        return definition

    def size_of(self, ctype: CType) -> int:
        """Size in bytes of ``ctype`` in packed layout."""
        return self._size_of(ctype, set())

    def _size_of(self, ctype: CType, active: Set[str]) -> int:
        if isinstance(ctype, (IntType, CharType)):
            return ctype.length
        if isinstance(ctype, ArrayType):
            return self._size_of(ctype.element_type, active) * ctype.length
        if isinstance(ctype, StructType):
            cached = self._sizes.get(ctype.name)
            if cached is not None:
                return cached
            if ctype.name in active:
                raise DecodeError(f"Recursive struct: '{ctype.name}' contains itself")
            definition = self.get_struct(ctype.name)
            active.add(ctype.name)
            size = sum(self._size_of(f.element_type, active) for f in definition.fields)
            active.discard(ctype.name)
            self._sizes[ctype.name] = size
            return size
        raise TypeError(f"Not a CType: {ctype!r}")

    def decode(self, data: bytes, root_type: Union[CType, str]) -> DecodedValue:
        """Decode a whole buffer as ``root_type`` (a CType or a struct name)."""
        if isinstance(root_type, str):
            root_type = StructType(root_type)

        expected = self.size_of(root_type)
        if len(data) != expected:
            raise DecodeError(
                f"Buffer size mismatch for {describe_type(root_type)}: "
                f"expected {expected} bytes, got {len(data)}"
            )
        return self._decode(memoryview(data), root_type)

    def _decode(self, buf: memoryview, ctype: CType) -> DecodedValue:
        if isinstance(ctype, IntType):
            return self._read_int(buf, ctype)
        if isinstance(ctype, CharType):
            return self._read_string(buf, ctype.length)
        if isinstance(ctype, ArrayType):
            return self._decode_array(buf, ctype)
        if isinstance(ctype, StructType):
            return self._decode_struct(buf, ctype)
        raise TypeError(f"Not a CType: {ctype!r}")

    def _read_int(self, buf: memoryview, ctype: IntType) -> int:
        """Read an integer occupying the whole slice."""
        if ctype.length not in INT_WIDTHS:
            raise DecodeError(f"Unsupported integer width: {ctype.length} bytes")
        return int.from_bytes(buf, self.byteorder, signed=ctype.signed)

    def _read_string(self, buf: memoryview, unit: int) -> str:
        """
        Decode text up to the first zero code unit, or the whole slice.

        ``unit`` is 1 for UTF-8 and 2 for UTF-16 in the active byte order.
        """
        if unit == 1:
            raw = bytes(buf)
            end = raw.find(b'\x00')
            if end != -1:
                raw = raw[:end]
            return raw.decode('utf-8', errors='replace')

        if unit == 2:
            raw = bytes(buf[:len(buf) - len(buf) % 2])
            end = len(raw)
            for i in range(0, len(raw), 2):
                if raw[i] == 0 and raw[i + 1] == 0:
                    end = i
                    break
            codec = 'utf-16-le' if self.little_endian else 'utf-16-be'
            return raw[:end].decode(codec, errors='replace')

        raise DecodeError(f"Unsupported character width: {unit} bytes")

    def _decode_array(self, buf: memoryview, ctype: ArrayType) -> DecodedValue:
        element = ctype.element_type
        if isinstance(element, CharType):
            return self._read_string(buf, element.length)
        if is_byte_type(element):
            return bytes(buf)

        size = self.size_of(element)
        return [
            self._decode(buf[i * size:(i + 1) * size], element)
            for i in range(ctype.length)
        ]

    def _decode_struct(self, buf: memoryview, ctype: StructType) -> Dict[str, Any]:
        result = {}
        offset = 0
        for f in self.get_struct(ctype.name).fields:
            size = self.size_of(f.element_type)
            result[f.name] = self._decode(buf[offset:offset + size], f.element_type)
            offset += size
        return result

    def field_offsets(self, name: str) -> List[Tuple[str, int, int]]:
        """(field name, offset, size) for every field of struct ``name``."""
        layout = []
        offset = 0
        for f in self.get_struct(name).fields:
            size = self.size_of(f.element_type)
            layout.append((f.name, offset, size))
            offset += size
        return layout


def describe_type(ctype: CType) -> str:
    """Short C-like spelling of a CType, for messages and listings."""
    if isinstance(ctype, IntType):
        return f"{'' if ctype.signed else 'u'}int{ctype.length * 8}_t"
    if isinstance(ctype, CharType):
        return f"char{ctype.length * 8}_t"
    if isinstance(ctype, StructType):
        return f"struct {ctype.name}"
    if isinstance(ctype, ArrayType):
        return f"{describe_type(ctype.element_type)}[{ctype.length}]"
    raise TypeError(f"Not a CType: {ctype!r}")


def size_of(graph: TypeGraph, ctype: Union[CType, str]) -> int:
    """Convenience function: packed size of a CType or struct name."""
    if isinstance(ctype, str):
        ctype = StructType(ctype)
    return StructDecoder(graph).size_of(ctype)


def decode(graph: TypeGraph, root_type: Union[CType, str], data: bytes,
           little_endian: bool = True) -> DecodedValue:
    """Convenience function to decode one buffer."""
    return StructDecoder(graph, little_endian).decode(data, root_type)


def to_jsonable(value: DecodedValue, bigint_as_string: bool = False) -> Any:
    """
    Convert a decoded value for JSON/YAML output.

    Byte blobs become upper-case hex strings. With ``bigint_as_string``,
    integers outside the exactly-representable double range become decimal
    strings so JavaScript consumers keep full precision.
    """
    if isinstance(value, dict):
        return {k: to_jsonable(v, bigint_as_string) for k, v in value.items()}
    if isinstance(value, list):
        return [to_jsonable(v, bigint_as_string) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex().upper()
    if isinstance(value, int) and bigint_as_string and abs(value) > SAFE_INTEGER:
        return str(value)
    return value
