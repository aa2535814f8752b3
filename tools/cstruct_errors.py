"""
cstruct_errors.py - Exception types shared by the schema builder and decoder.

All of them derive from ValueError so callers that already guard schema and
payload handling with ``except ValueError`` keep working.
"""


class CStructError(ValueError):
    """Base class for every schema or decode failure."""


class SchemaError(CStructError):
    """Header text (or a serialized type graph) cannot be turned into a schema."""


class DecodeError(CStructError):
    """A buffer cannot be decoded against the requested root type."""


class ShortReadError(DecodeError):
    """The input stream ended before a complete record was read."""

    def __init__(self, expected: int, actual: int, name: str = ''):
        self.expected = expected
        self.actual = actual
        self.name = name
        what = f"struct '{name}'" if name else 'record'
        super().__init__(f"Short read for {what}: need {expected} bytes, got {actual}")
