#!/usr/bin/env python3
"""
cstruct_tool.py - Command-line front end for C struct schemas

Usage:
    cstruct-tool preprocess schema.h                  # body after macro expansion
    cstruct-tool graph schema.h                       # type graph as JSON
    cstruct-tool graph schema.h --format yaml -o schema.graph.yaml
    cstruct-tool types schema.h -o schema_types.py    # TypedDict declarations
    cstruct-tool size schema.h                        # sizes of every struct
    cstruct-tool size schema.h --root test_t          # field layout of one struct
    cstruct-tool decode schema.h schema.bin --root test_t
    cstruct-tool decode schema.h schema.bin --root test_t --big-endian --format yaml

The header argument may also be a serialized type graph (.json/.yaml/.yml)
written by ``graph``.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from binary_decoder import StructDecoder, describe_type, to_jsonable
from cstruct_errors import CStructError
from header_preprocessor import preprocess
from schema_builder import SchemaBuilder, dump_graph
from type_generator import generate_types
from type_graph import StructType, TypeGraph, load_type_graph

GRAPH_SUFFIXES = ('.json', '.yaml', '.yml')


def load_schema(path: Path) -> TypeGraph:
    """Build a graph from a header, or load one serialized by ``graph``."""
    if path.suffix.lower() in GRAPH_SUFFIXES:
        return load_type_graph(path)

    builder = SchemaBuilder()
    graph = builder.build(path.read_text(encoding='utf-8'))
    for warning in builder.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    return graph


def write_output(text: str, output: Optional[Path]) -> None:
    if output:
        output.write_text(text, encoding='utf-8')
        print(f"Wrote: {output}", file=sys.stderr)
    else:
        print(text, end='' if text.endswith('\n') else '\n')


def cmd_preprocess(args) -> None:
    result = preprocess(args.schema.read_text(encoding='utf-8'))
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    if args.directives:
        for d in result.directives:
            print(f"{d.line:4d} {d.kind:8s} {d.text}")
    else:
        print(result.text)


def cmd_graph(args) -> None:
    graph = load_schema(args.schema)
    write_output(dump_graph(graph, args.format), args.output)


def cmd_types(args) -> None:
    graph = load_schema(args.schema)
    write_output(generate_types(graph), args.output)


def cmd_size(args) -> None:
    graph = load_schema(args.schema)
    decoder = StructDecoder(graph)

    if args.root:
        definition = decoder.get_struct(args.root)
        print(f"struct {args.root}: {decoder.size_of(StructType(args.root))} bytes")
        for f, (name, offset, size) in zip(definition.fields, decoder.field_offsets(args.root)):
            print(f"  {offset:6d}  {size:6d}  {describe_type(f.element_type)} {name}")
        return

    for name in graph.struct_names:
        print(f"{name}: {decoder.size_of(StructType(name))} bytes")


def cmd_decode(args) -> None:
    graph = load_schema(args.schema)
    if not args.data.exists():
        raise FileNotFoundError(f"Data file not found: {args.data}")

    decoder = StructDecoder(graph, little_endian=not args.big_endian)
    value = decoder.decode(args.data.read_bytes(), StructType(args.root))
    data = to_jsonable(value, bigint_as_string=args.bigint_as_string)

    if args.format == 'yaml':
        text = yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    else:
        text = json.dumps(data, indent=4, ensure_ascii=False)
    write_output(text, args.output)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='cstruct-tool',
        description='Build schemas from C struct headers and decode binary records.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    cstruct-tool graph schema.h --format yaml
    cstruct-tool decode schema.h schema.bin --root test_t
        """
    )
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('preprocess', help='Print the header after comment removal and macro expansion')
    p.add_argument('schema', type=Path, help='Header file')
    p.add_argument('--directives', action='store_true',
                   help='List recorded directives instead of the body')
    p.set_defaults(func=cmd_preprocess)

    p = sub.add_parser('graph', help='Print the type graph')
    p.add_argument('schema', type=Path, help='Header file or serialized graph')
    p.add_argument('-o', '--output', type=Path, help='Output file (default: stdout)')
    p.add_argument('--format', choices=['json', 'yaml'], default='json')
    p.set_defaults(func=cmd_graph)

    p = sub.add_parser('types', help='Generate TypedDict declarations')
    p.add_argument('schema', type=Path, help='Header file or serialized graph')
    p.add_argument('-o', '--output', type=Path, help='Output file (default: stdout)')
    p.set_defaults(func=cmd_types)

    p = sub.add_parser('size', help='Print packed struct sizes')
    p.add_argument('schema', type=Path, help='Header file or serialized graph')
    p.add_argument('--root', help='Show the field layout of this struct')
    p.set_defaults(func=cmd_size)

    p = sub.add_parser('decode', help='Decode a binary file')
    p.add_argument('schema', type=Path, help='Header file or serialized graph')
    p.add_argument('data', type=Path, help='Binary input file')
    p.add_argument('--root', required=True, help='Struct the whole file is decoded as')
    p.add_argument('--big-endian', action='store_true',
                   help='Read multi-byte values big-endian (default: little-endian)')
    p.add_argument('--format', choices=['json', 'yaml'], default='json')
    p.add_argument('--bigint-as-string', action='store_true',
                   help='Emit integers beyond 2^53 as decimal strings')
    p.add_argument('-o', '--output', type=Path, help='Output file (default: stdout)')
    p.set_defaults(func=cmd_decode)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.schema.exists():
        print(f"Error: Input file not found: {args.schema}", file=sys.stderr)
        return 1

    try:
        args.func(args)
    except (CStructError, OSError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
