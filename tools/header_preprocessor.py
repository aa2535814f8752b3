"""
header_preprocessor.py - Minimal C preprocessor for struct headers

Strips comments, records ``#define`` macros and expands them, and turns
``#include`` and every other directive into inert markers. This is not a real
C preprocessor: includes are never followed, conditionals are ignored, and
macro expansion is bounded to two passes.

Expansion policy:
    The body is rewritten exactly twice. Each pass substitutes every macro once,
    in definition order, matching whole identifiers only (``FOO`` leaves
    ``FOOBAR`` untouched). A macro whose value
    names another macro is therefore resolved one level deep; longer chains
    stay partially expanded.

Usage:
    cstruct-tool preprocess schema.h
    cstruct-tool preprocess schema.h --directives

    from header_preprocessor import HeaderPreprocessor
    result = HeaderPreprocessor().process(text)
    print(result.text, result.macros)
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

MACRO_PASSES = 2

DEFINE_RE = re.compile(r'^#\s*define\s+([A-Za-z_][A-Za-z0-9_]*)(\([^)]*\))?(?:\s+(.*))?$')
INCLUDE_RE = re.compile(r'^#\s*include\s*[<"]([^>"]*)[>"]')


@dataclass
class Directive:
    """A preprocessor line kept as an inert marker."""
    kind: str          # 'define', 'include' or 'unknown'
    line: int
    text: str
    target: Optional[str] = None


@dataclass
class PreprocessResult:
    """Result of preprocessing a header."""
    text: str
    macros: Dict[str, str] = field(default_factory=dict)
    directives: List[Directive] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def includes(self) -> List[str]:
        return [d.target for d in self.directives if d.kind == 'include']


class HeaderPreprocessor:
    """Comment stripping, directive markers and two-pass macro expansion."""

    def __init__(self):
        self.macros: Dict[str, str] = {}
        self.directives: List[Directive] = []
        self.warnings: List[str] = []
        self._in_block_comment = False

    def process(self, source: str) -> PreprocessResult:
        """
        Preprocess header text. Never raises on malformed input.

        Each call starts from empty tables; nothing carries over between calls.
        """
        self.macros = {}
        self.directives = []
        self.warnings = []
        self._in_block_comment = False

        body = []
        for lineno, raw in enumerate(source.splitlines(), start=1):
            if not self._in_block_comment and raw.lstrip().startswith('#'):
                self._directive(raw.strip(), lineno)
                continue
            line = self._strip_comments(raw).strip()
            if line:
                body.append(line)

        if self._in_block_comment:
            self.warnings.append("Unterminated block comment at end of input")

        text = '\n'.join(body)
        for _ in range(MACRO_PASSES):
            text = self._apply_macros(text)

        return PreprocessResult(
            text=text,
            macros=dict(self.macros),
            directives=list(self.directives),
            warnings=list(self.warnings),
        )

    def _directive(self, line: str, lineno: int) -> None:
        line = self._strip_comments(line).strip()

        match = DEFINE_RE.match(line)
        if match:
            name, params, value = match.groups()
            if params is not None:
                self.warnings.append(f"Line {lineno}: function-like macro '{name}' is not expanded")
                self.directives.append(Directive('unknown', lineno, line))
                return
            self.macros[name] = (value or '').strip()
            self.directives.append(Directive('define', lineno, line, name))
            return

        match = INCLUDE_RE.match(line)
        if match:
            self.directives.append(Directive('include', lineno, line, match.group(1)))
            return

        self.warnings.append(f"Line {lineno}: unknown directive '{line}'")
        self.directives.append(Directive('unknown', lineno, line))

    def _strip_comments(self, line: str) -> str:
        """Remove comments from one line, tracking block comments across lines."""
        out = []
        pos = 0
        while pos < len(line):
            if self._in_block_comment:
                end = line.find('*/', pos)
                if end == -1:
                    break
                self._in_block_comment = False
                out.append(' ')
                pos = end + 2
                continue

            line_start = line.find('//', pos)
            block_start = line.find('/*', pos)
            if block_start != -1 and (line_start == -1 or block_start < line_start):
                out.append(line[pos:block_start])
                self._in_block_comment = True
                pos = block_start + 2
                continue

            out.append(line[pos:] if line_start == -1 else line[pos:line_start])
            break
        return ''.join(out)

    def _apply_macros(self, text: str) -> str:
        for name, value in self.macros.items():
            text = re.sub(rf'\b{re.escape(name)}\b', lambda _m, v=value: v, text)
        return text


def preprocess(source: str) -> PreprocessResult:
    """Convenience function: preprocess with a fresh preprocessor."""
    return HeaderPreprocessor().process(source)
