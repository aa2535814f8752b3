"""
field_parser.py - Field and typedef statements to typed struct fields

Each ``;``-separated statement of a flattened struct body (or of the global
text) is tokenized and parsed on its own:

    statement  := 'typedef' type_spec ALIAS
                | type_spec declarator
    type_spec  := token+                   (everything before the declarator)
    declarator := IDENT ('[' NUMBER ']')*

The type spec is resolved in a fixed order, after substituting typedef
aliases up to two levels deep:

    1. array suffix on the declarator   -> ArrayType (last suffix outermost)
    2. struct NAME                      -> StructType (NAME must be known)
    3. u?int{N}_t, N divisible by 8     -> IntType(N / 8, signed)
    4. char8_t / char16_t               -> CharType(1 | 2)
    5. anything else                    -> SchemaError
"""

import re
from dataclasses import dataclass
from typing import Collection, Dict, List, Optional

from cstruct_errors import SchemaError
from type_graph import ArrayType, CharType, CType, IntType, StructField, StructType

TYPEDEF_PASSES = 2

TOKEN_RE = re.compile(r'''
    \s*(?:
        (?P<struct>struct\s+(?P<sname>[A-Za-z0-9_]+))
      | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
      | (?P<number>0[xX][0-9A-Fa-f]+|[0-9]+)
      | (?P<punct>\S)
    )''', re.VERBOSE)

STRUCT_REF_RE = re.compile(r'^struct ([A-Za-z0-9_]+)$')
INT_RE = re.compile(r'^(u?)int([0-9]+)_t$')
CHAR_RE = re.compile(r'^char(8|16)_t$')


@dataclass(frozen=True)
class Token:
    kind: str       # 'struct', 'ident', 'number' or 'punct'
    text: str

    @property
    def spec(self) -> str:
        """Text of the token inside a type spec."""
        if self.kind == 'struct':
            return f"struct {self.text}"
        return self.text


def tokenize(statement: str) -> List[Token]:
    tokens = []
    pos = 0
    statement = statement.rstrip()
    while pos < len(statement):
        match = TOKEN_RE.match(statement, pos)
        if match is None:
            break
        kind = match.lastgroup
        if kind == 'sname':
            kind = 'struct'
        text = match.group('sname') if kind == 'struct' else match.group(kind)
        tokens.append(Token(kind, text))
        pos = match.end()
    return tokens


def parse_array_length(token: Token, statement: str) -> int:
    if token.kind != 'number':
        raise SchemaError(f"Invalid array length '{token.text}' in statement '{statement}'")
    if token.text[:2].lower() == '0x':
        return int(token.text, 16)
    return int(token.text, 10)


class FieldParser:
    """
    Parses statements against a fixed set of struct names.

    The typedef table is shared by every body parsed with the same instance, so
    top-level typedefs are visible inside struct bodies parsed afterwards.
    """

    def __init__(self, known_structs: Collection[str], typedefs: Optional[Dict[str, str]] = None):
        self.known_structs = set(known_structs)
        self.typedefs: Dict[str, str] = typedefs if typedefs is not None else {}

    def parse_body(self, body: str, where: str = 'global root') -> List[StructField]:
        """Parse every statement of a body, keeping source order."""
        fields = []
        names = set()
        for statement in body.split(';'):
            statement = ' '.join(statement.split())
            if not statement:
                continue
            parsed = self.parse_statement(statement)
            if parsed is None:
                continue
            if parsed.name in names:
                raise SchemaError(f"Duplicate field '{parsed.name}' in {where}")
            names.add(parsed.name)
            fields.append(parsed)
        return fields

    def parse_statement(self, statement: str) -> Optional[StructField]:
        """
        Parse one statement.

        Returns None for typedefs and for statements without a type (such as
        the bare ``struct NAME`` left behind by the flattener).
        """
        tokens = tokenize(statement)
        if not tokens:
            return None

        if tokens[0].kind == 'ident' and tokens[0].text == 'typedef':
            self._parse_typedef(tokens[1:], statement)
            return None

        dims, end = self._parse_suffixes(tokens, statement)
        if end == 0:
            raise SchemaError(f"Missing field name in statement '{statement}'")
        name = tokens[end - 1]
        type_tokens = tokens[:end - 1]
        if not type_tokens:
            return None
        if name.kind != 'ident':
            raise SchemaError(f"Missing field name in statement '{statement}'")

        type_spec = ' '.join(t.spec for t in type_tokens)
        return StructField(name.text, self.resolve(type_spec, dims, name.text))

    def _parse_suffixes(self, tokens: List[Token], statement: str):
        """Strip trailing ``[N]`` groups. Returns (lengths, index past the name)."""
        dims = []
        end = len(tokens)
        while end > 0 and tokens[end - 1].text == ']' and tokens[end - 1].kind == 'punct':
            if end < 3 or tokens[end - 3].text != '[':
                raise SchemaError(f"Malformed array suffix in statement '{statement}'")
            dims.insert(0, parse_array_length(tokens[end - 2], statement))
            end -= 3
        return dims, end

    def _parse_typedef(self, tokens: List[Token], statement: str) -> None:
        if tokens and tokens[-1].text == ']':
            raise SchemaError(f"Array typedefs are not supported: '{statement}'")
        if len(tokens) < 2 or tokens[-1].kind != 'ident':
            raise SchemaError(f"Malformed typedef: '{statement}'")
        alias = tokens[-1].text
        self.typedefs[alias] = ' '.join(t.spec for t in tokens[:-1])

    def expand_typedefs(self, type_spec: str) -> str:
        for _ in range(TYPEDEF_PASSES):
            type_spec = self.typedefs.get(type_spec, type_spec)
        return type_spec

    def resolve(self, type_spec: str, dims: List[int], field_name: str = '') -> CType:
        """Resolve a type spec plus array lengths to a CType."""
        type_spec = self.expand_typedefs(type_spec)

        if dims:
            element_type = self.resolve(type_spec, dims[:-1], field_name)
            return ArrayType(element_type=element_type, length=dims[-1])

        match = STRUCT_REF_RE.match(type_spec)
        if match:
            struct_name = match.group(1)
            if struct_name not in self.known_structs:
                raise SchemaError(f"Unknown struct: '{struct_name}' (field '{field_name}')")
            return StructType(struct_name)

        match = INT_RE.match(type_spec)
        if match:
            bits = int(match.group(2))
            if bits > 0 and bits % 8 == 0:
                return IntType(length=bits // 8, signed=not match.group(1))

        match = CHAR_RE.match(type_spec)
        if match:
            return CharType(length=int(match.group(1)) // 8)

        raise SchemaError(f"Unknown type: '{type_spec}' (field '{field_name}')")
