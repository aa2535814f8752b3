"""
schema_builder.py - Build a type graph from C struct header text

Pipeline:
    header text -> HeaderPreprocessor -> StructFlattener -> FieldParser -> TypeGraph

Usage:
    from schema_builder import build_type_graph
    graph = build_type_graph(Path('schema.h').read_text())
"""

import json
from typing import List

import yaml

from field_parser import FieldParser
from header_preprocessor import Directive, HeaderPreprocessor
from struct_flattener import StructFlattener
from type_graph import StructDefinition, TypeGraph


class SchemaBuilder:
    """
    Turns header text into a TypeGraph.

    Macro, typedef and struct-body tables are local to each ``build`` call. The
    builder only keeps the directives and warnings of the last build.
    """

    def __init__(self):
        self.directives: List[Directive] = []
        self.warnings: List[str] = []

    def build(self, source: str) -> TypeGraph:
        pre = HeaderPreprocessor().process(source)
        self.directives = pre.directives
        self.warnings = pre.warnings

        flattener = StructFlattener()
        global_text = flattener.flatten(pre.text)

        parser = FieldParser(known_structs=flattener.bodies.keys())
        global_root = parser.parse_body(global_text)
        structs = [
            StructDefinition(name, tuple(parser.parse_body(body, f"struct '{name}'")))
            for name, body in flattener.bodies.items()
        ]
        return TypeGraph(global_root=tuple(global_root), structs=tuple(structs))


def build_type_graph(source: str) -> TypeGraph:
    """Convenience function: build a graph with a fresh builder."""
    return SchemaBuilder().build(source)


def dump_graph(graph: TypeGraph, fmt: str = 'json') -> str:
    data = graph.to_dict()
    if fmt == 'yaml':
        return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return json.dumps(data, indent=4)
