"""
type_graph.py - Type graph data model for C struct schemas

A type graph is the resolved schema produced from a C header: a list of
top-level ("global root") fields plus every named struct definition. It is
pure data. The schema builder produces it, the binary decoder and the type
generator consume it, and nothing mutates it after construction.

Serialized form (JSON/YAML):

    globalRoot:
      - name: test_instance
        elementType: {tag: struct, name: test_t}
    structs:
      - name: test_t
        fields:
          - name: field1
            elementType: {tag: int, length: 1, signed: false}
          - name: arr
            elementType:
              tag: array
              length: 5
              elementType: {tag: int, length: 1, signed: false}

Usage:
    from type_graph import TypeGraph, load_type_graph

    graph = load_type_graph(Path('schema.graph.yaml'))
    data = graph.to_dict()
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml

from cstruct_errors import SchemaError


class CTypeTag(Enum):
    INT = 'int'
    CHAR = 'char'
    STRUCT = 'struct'
    ARRAY = 'array'


@dataclass(frozen=True)
class IntType:
    """Fixed-width integer, ``length`` in bytes."""
    length: int
    signed: bool
    tag: CTypeTag = field(default=CTypeTag.INT, init=False, repr=False)


@dataclass(frozen=True)
class CharType:
    """One text code unit: 1 byte (UTF-8) or 2 bytes (UTF-16)."""
    length: int
    tag: CTypeTag = field(default=CTypeTag.CHAR, init=False, repr=False)


@dataclass(frozen=True)
class StructType:
    """Reference to a struct definition by name."""
    name: str
    tag: CTypeTag = field(default=CTypeTag.STRUCT, init=False, repr=False)


@dataclass(frozen=True)
class ArrayType:
    """Fixed-length repetition of ``element_type``."""
    element_type: 'CType'
    length: int
    tag: CTypeTag = field(default=CTypeTag.ARRAY, init=False, repr=False)


CType = Union[IntType, CharType, StructType, ArrayType]


@dataclass(frozen=True)
class StructField:
    name: str
    element_type: CType


@dataclass(frozen=True)
class StructDefinition:
    name: str
    fields: Tuple[StructField, ...] = ()


def is_byte_type(ctype: CType) -> bool:
    """True for ``uint8_t``, whose arrays decode to raw bytes."""
    return isinstance(ctype, IntType) and ctype.length == 1 and not ctype.signed


def ctype_to_dict(ctype: CType) -> Dict[str, Any]:
    """Convert a CType to its tagged dict form."""
    if isinstance(ctype, IntType):
        return {'tag': ctype.tag.value, 'length': ctype.length, 'signed': ctype.signed}
    if isinstance(ctype, CharType):
        return {'tag': ctype.tag.value, 'length': ctype.length}
    if isinstance(ctype, StructType):
        return {'tag': ctype.tag.value, 'name': ctype.name}
    if isinstance(ctype, ArrayType):
        return {
            'tag': ctype.tag.value,
            'elementType': ctype_to_dict(ctype.element_type),
            'length': ctype.length,
        }
    raise TypeError(f"Not a CType: {ctype!r}")


def ctype_from_dict(data: Dict[str, Any]) -> CType:
    """Inverse of ctype_to_dict."""
    if not isinstance(data, dict):
        raise SchemaError(f"Type entry must be a mapping, got {type(data).__name__}")
    try:
        tag = CTypeTag(data.get('tag'))
    except ValueError:
        raise SchemaError(f"Unknown type tag: {data.get('tag')!r}")

    try:
        if tag == CTypeTag.INT:
            return IntType(length=int(data['length']), signed=bool(data['signed']))
        if tag == CTypeTag.CHAR:
            return CharType(length=int(data['length']))
        if tag == CTypeTag.STRUCT:
            return StructType(name=str(data['name']))
        return ArrayType(
            element_type=ctype_from_dict(data['elementType']),
            length=int(data['length']),
        )
    except SchemaError:
        raise
    except KeyError as e:
        raise SchemaError(f"Type entry with tag '{tag.value}' is missing {e}")
    except (TypeError, ValueError) as e:
        raise SchemaError(f"Invalid '{tag.value}' type entry {data!r}: {e}")


def _fields_to_list(fields: Tuple[StructField, ...]) -> List[Dict[str, Any]]:
    return [{'name': f.name, 'elementType': ctype_to_dict(f.element_type)} for f in fields]


def _fields_from_list(entries: List[Dict[str, Any]]) -> Tuple[StructField, ...]:
    if not isinstance(entries or [], list):
        raise SchemaError(f"Field list must be a sequence, got {entries!r}")
    fields = []
    for entry in entries or []:
        if not isinstance(entry, dict):
            raise SchemaError(f"Field entry must be a mapping, got {entry!r}")
        if 'name' not in entry or 'elementType' not in entry:
            raise SchemaError(f"Field entry needs 'name' and 'elementType': {entry!r}")
        fields.append(StructField(str(entry['name']), ctype_from_dict(entry['elementType'])))
    return tuple(fields)


def iter_struct_refs(ctype: CType) -> Iterator[str]:
    """Yield every struct name referenced by ``ctype``."""
    while isinstance(ctype, ArrayType):
        ctype = ctype.element_type
    if isinstance(ctype, StructType):
        yield ctype.name


@dataclass(frozen=True)
class TypeGraph:
    """
    Resolved schema: global root fields plus named struct definitions.

    The constructor does not validate; use ``validate()`` for graphs that were
    not produced by the schema builder.
    """
    global_root: Tuple[StructField, ...] = ()
    structs: Tuple[StructDefinition, ...] = ()
    _index: Dict[str, StructDefinition] = field(
        default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'global_root', tuple(self.global_root))
        object.__setattr__(self, 'structs', tuple(self.structs))
        index = {}
        for definition in self.structs:
            index.setdefault(definition.name, definition)
        object.__setattr__(self, '_index', index)

    def get_struct(self, name: str) -> Optional[StructDefinition]:
        return self._index.get(name)

    @property
    def struct_names(self) -> List[str]:
        return [s.name for s in self.structs]

    def validate(self) -> None:
        """
        Check graph invariants.

        Raises SchemaError on duplicate struct names, duplicate field names
        within one struct (or within the global root), negative lengths, and
        struct references that do not resolve.
        """
        seen = set()
        for definition in self.structs:
            if definition.name in seen:
                raise SchemaError(f"Redefinition of struct: '{definition.name}'")
            seen.add(definition.name)

        scopes = [('global root', self.global_root)]
        scopes.extend((f"struct '{s.name}'", s.fields) for s in self.structs)
        for where, fields in scopes:
            names = set()
            for f in fields:
                if f.name in names:
                    raise SchemaError(f"Duplicate field '{f.name}' in {where}")
                names.add(f.name)
                self._check_type(f.element_type, where, f.name)

    def _check_type(self, ctype: CType, where: str, field_name: str) -> None:
        if isinstance(ctype, ArrayType):
            if ctype.length < 0:
                raise SchemaError(f"Negative array length for field '{field_name}' in {where}")
            self._check_type(ctype.element_type, where, field_name)
            return
        if isinstance(ctype, (IntType, CharType)):
            if ctype.length <= 0:
                raise SchemaError(f"Invalid type length {ctype.length} for field '{field_name}' in {where}")
            return
        if isinstance(ctype, StructType):
            if ctype.name not in self._index:
                raise SchemaError(f"Unknown struct: '{ctype.name}' (field '{field_name}' in {where})")
            return
        raise TypeError(f"Not a CType: {ctype!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'globalRoot': _fields_to_list(self.global_root),
            'structs': [
                {'name': s.name, 'fields': _fields_to_list(s.fields)}
                for s in self.structs
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TypeGraph':
        """Build and validate a graph from its serialized form."""
        if not isinstance(data, dict):
            raise SchemaError("Type graph must be a mapping with 'globalRoot' and 'structs'")
        structs = []
        if not isinstance(data.get('structs') or [], list):
            raise SchemaError("'structs' must be a list of struct entries")
        for entry in data.get('structs') or []:
            if not isinstance(entry, dict):
                raise SchemaError(f"Struct entry must be a mapping, got {entry!r}")
            if 'name' not in entry:
                raise SchemaError(f"Struct entry without name: {entry!r}")
            structs.append(StructDefinition(str(entry['name']), _fields_from_list(entry.get('fields'))))
        graph = cls(global_root=_fields_from_list(data.get('globalRoot')), structs=tuple(structs))
        graph.validate()
        return graph


def load_type_graph(path: Path) -> TypeGraph:
    """Load a serialized graph. YAML is a superset of JSON, so both work."""
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    return TypeGraph.from_dict(data)
