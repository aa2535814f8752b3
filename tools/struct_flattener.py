"""
struct_flattener.py - Extract named struct bodies from preprocessed header text.

Every ``struct NAME { ... }`` block is cut out of the surrounding text and
stored by name, innermost first, and the block is replaced by the forward
reference ``struct NAME``. After flattening, the remaining "global" text and
every stored body are flat lists of ``;``-separated statements.

    struct outer { struct inner { uint8_t a; } in; uint16_t b; } top;

flattens to (whitespace aside)

    bodies = {'inner': 'uint8_t a;', 'outer': 'struct inner in; uint16_t b;'}
    text   = 'struct outer top;'
"""

import re
from typing import Dict, Tuple

from cstruct_errors import SchemaError

STRUCT_OPEN_RE = re.compile(r'struct\s+([A-Za-z0-9_]+)\s*\{')


def find_closing_brace(text: str, start: int) -> int:
    """
    Index of the brace closing the block whose body starts at ``start``.

    Returns -1 if the block is never closed.
    """
    depth = 0
    for i in range(start, len(text)):
        char = text[i]
        if char == '{':
            depth += 1
        elif char == '}':
            if depth == 0:
                return i
            depth -= 1
    return -1


class StructFlattener:
    """Collects struct bodies by name; one instance per schema build."""

    def __init__(self):
        self.bodies: Dict[str, str] = {}

    def flatten(self, text: str) -> str:
        """Store every struct body found in ``text``; return the remainder."""
        out = []
        while True:
            match = STRUCT_OPEN_RE.search(text)
            if not match:
                out.append(text)
                return ''.join(out)

            name = match.group(1)
            body_start = match.end()
            body_end = find_closing_brace(text, body_start)
            if body_end == -1:
                raise SchemaError(f"Unterminated struct: '{name}'")

            # Nested definitions are registered before the enclosing struct.
            body = self.flatten(text[body_start:body_end])
            if name in self.bodies:
                raise SchemaError(f"Redefinition of struct: '{name}'")
            self.bodies[name] = body

            out.append(text[:match.start()])
            out.append(f"struct {name} ")
            text = text[body_end + 1:]


def flatten_structs(text: str) -> Tuple[Dict[str, str], str]:
    """Convenience function returning (bodies, global_text)."""
    flattener = StructFlattener()
    remainder = flattener.flatten(text)
    return flattener.bodies, remainder
