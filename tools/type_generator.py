"""
type_generator.py - Generate Python TypedDict declarations from a type graph

The generated module describes the shape of decoded values so editors and type
checkers can follow ``decode()`` results:

    from typing import List, TypedDict


    class testa_t(TypedDict):
        field5: int
        mat: List[bytes]


    class GeneratedTypeMap(TypedDict):
        testa_t: 'testa_t'

Type mapping:
    intN_t / uintN_t          -> int (Python ints are exact at every width)
    char*_t, char*_t[N]       -> str
    uint8_t[N]                -> bytes
    T[N]                      -> List[T]
    struct NAME               -> 'NAME' (forward reference)

Struct names that are Python keywords, or that clash with ``List``,
``TypedDict`` or ``GeneratedTypeMap``, are rejected with SchemaError.
"""

import keyword
from typing import List

from cstruct_errors import SchemaError
from type_graph import ArrayType, CharType, CType, IntType, StructType, TypeGraph, is_byte_type

TYPE_MAP_NAME = 'GeneratedTypeMap'

# Names the generated module defines or imports itself.
RESERVED_NAMES = {'List', 'TypedDict', TYPE_MAP_NAME}


def python_type(ctype: CType) -> str:
    """Annotation text for values decoded from ``ctype``."""
    if isinstance(ctype, IntType):
        return 'int'
    if isinstance(ctype, CharType):
        return 'str'
    if isinstance(ctype, StructType):
        return f"'{ctype.name}'"
    if isinstance(ctype, ArrayType):
        if isinstance(ctype.element_type, CharType):
            return 'str'
        if is_byte_type(ctype.element_type):
            return 'bytes'
        return f"List[{python_type(ctype.element_type)}]"
    raise TypeError(f"Not a CType: {ctype!r}")


def _is_identifier(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name)


def _typed_dict(name: str, entries: List[tuple]) -> List[str]:
    """
    One TypedDict declaration. Falls back to the functional syntax when a key
    is not a usable attribute name (e.g. ``class`` or ``from``).
    """
    if all(_is_identifier(key) for key, _ in entries):
        lines = [f"class {name}(TypedDict):"]
        if not entries:
            lines.append("    pass")
        lines.extend(f"    {key}: {annotation}" for key, annotation in entries)
        return lines

    items = ', '.join(f"{key!r}: {annotation}" for key, annotation in entries)
    return [f"{name} = TypedDict({name!r}, {{{items}}})"]


def generate_types(graph: TypeGraph) -> str:
    """Render one TypedDict per struct plus the struct-name index."""
    lines = [
        '"""Generated from a C struct header; do not edit."""',
        '',
        'from typing import List, TypedDict',
    ]

    for definition in graph.structs:
        if not _is_identifier(definition.name) or definition.name in RESERVED_NAMES:
            raise SchemaError(f"Struct name '{definition.name}' cannot be used as a generated class name")
        entries = [(f.name, python_type(f.element_type)) for f in definition.fields]
        lines.extend(['', ''])
        lines.extend(_typed_dict(definition.name, entries))

    index = [(s.name, f"'{s.name}'") for s in graph.structs]
    lines.extend(['', ''])
    lines.extend(_typed_dict(TYPE_MAP_NAME, index))
    return '\n'.join(lines) + '\n'
