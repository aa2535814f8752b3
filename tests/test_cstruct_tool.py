"""
Tests for the cstruct-tool command line.
"""

import json
import pytest
import struct
import sys
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

from cstruct_tool import main


@pytest.fixture
def line_files(tmp_path, line_header):
    header = tmp_path / 'line.h'
    header.write_text(line_header)
    data = tmp_path / 'line.bin'
    data.write_bytes(struct.pack('<4i', 1, 2, 3, 4))
    return header, data


@pytest.fixture
def sample_file(tmp_path, sample_header):
    header = tmp_path / 'schema.h'
    header.write_text(sample_header)
    return header


class TestDecodeCommand:

    def test_json_output(self, line_files, capsys):
        header, data = line_files
        assert main(['decode', str(header), str(data), '--root', 'L']) == 0
        out = json.loads(capsys.readouterr().out)
        assert out == {'a': {'x': 1, 'y': 2}, 'b': {'x': 3, 'y': 4}}

    def test_yaml_output(self, line_files, capsys):
        header, data = line_files
        assert main(['decode', str(header), str(data), '--root', 'L', '--format', 'yaml']) == 0
        assert yaml.safe_load(capsys.readouterr().out) == {
            'a': {'x': 1, 'y': 2}, 'b': {'x': 3, 'y': 4},
        }

    def test_big_endian(self, tmp_path, line_files, capsys):
        header, _ = line_files
        data = tmp_path / 'be.bin'
        data.write_bytes(struct.pack('>2i', -7, 300))
        assert main(['decode', str(header), str(data), '--root', 'P', '--big-endian']) == 0
        assert json.loads(capsys.readouterr().out) == {'x': -7, 'y': 300}

    def test_byte_blob_as_hex(self, tmp_path, sample_file, capsys):
        data = tmp_path / 'schema.bin'
        data.write_bytes(bytes(15) + b'\xde\xad\xbe\xef\x01' + bytes(27))
        assert main(['decode', str(sample_file), str(data), '--root', 'test_t']) == 0
        captured = capsys.readouterr()
        out = json.loads(captured.out)
        assert out['arr'] == 'DEADBEEF01'
        assert out['field6']['mat'] == ['0000000000'] * 5
        assert 'Warning:' in captured.err  # the #pragma lines

    def test_bigint_as_string(self, tmp_path, capsys):
        header = tmp_path / 'big.h'
        header.write_text("struct B { uint64_t v; uint32_t small; };")
        data = tmp_path / 'big.bin'
        data.write_bytes(struct.pack('<QI', 2 ** 63 + 1, 42))

        assert main(['decode', str(header), str(data), '--root', 'B', '--bigint-as-string']) == 0
        assert json.loads(capsys.readouterr().out) == {'v': str(2 ** 63 + 1), 'small': 42}

        assert main(['decode', str(header), str(data), '--root', 'B']) == 0
        assert json.loads(capsys.readouterr().out)['v'] == 2 ** 63 + 1

    def test_output_file(self, tmp_path, line_files, capsys):
        header, data = line_files
        output = tmp_path / 'out.json'
        assert main(['decode', str(header), str(data), '--root', 'L',
                     '-o', str(output)]) == 0
        assert 'Wrote:' in capsys.readouterr().err
        assert json.loads(output.read_text())['a'] == {'x': 1, 'y': 2}

    def test_size_mismatch_is_error(self, line_files, capsys):
        header, data = line_files
        assert main(['decode', str(header), str(data), '--root', 'P']) == 1
        err = capsys.readouterr().err
        assert err.startswith('Error:')
        assert 'expected 8 bytes, got 16' in err

    def test_unknown_root(self, line_files, capsys):
        header, data = line_files
        assert main(['decode', str(header), str(data), '--root', 'Q']) == 1
        assert "Unknown struct: 'Q'" in capsys.readouterr().err

    def test_missing_data_file(self, tmp_path, line_files, capsys):
        header, _ = line_files
        assert main(['decode', str(header), str(tmp_path / 'nope.bin'), '--root', 'L']) == 1
        assert 'Data file not found' in capsys.readouterr().err


class TestOtherCommands:

    def test_missing_schema(self, tmp_path, capsys):
        assert main(['size', str(tmp_path / 'missing.h')]) == 1
        assert 'Error: Input file not found' in capsys.readouterr().err

    def test_size_lists_every_struct(self, line_files, capsys):
        header, _ = line_files
        assert main(['size', str(header)]) == 0
        assert capsys.readouterr().out.splitlines() == ['P: 8 bytes', 'L: 16 bytes']

    def test_size_layout(self, sample_file, capsys):
        assert main(['size', str(sample_file), '--root', 'test_t']) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == 'struct test_t: 47 bytes'
        assert lines[5].split() == ['15', '5', 'uint8_t[5]', 'arr']
        assert lines[6].split() == ['20', '27', 'struct', 'testa_t', 'field6']

    def test_schema_error(self, tmp_path, capsys):
        header = tmp_path / 'bad.h'
        header.write_text("struct A { float f; };")
        assert main(['graph', str(header)]) == 1
        assert "Unknown type: 'float'" in capsys.readouterr().err

    def test_graph_then_decode_from_graph(self, tmp_path, line_files, capsys):
        header, data = line_files
        graph_file = tmp_path / 'line.graph.json'
        assert main(['graph', str(header), '-o', str(graph_file)]) == 0
        assert json.loads(graph_file.read_text())['structs'][0]['name'] == 'P'

        capsys.readouterr()
        assert main(['decode', str(graph_file), str(data), '--root', 'L']) == 0
        assert json.loads(capsys.readouterr().out)['b'] == {'x': 3, 'y': 4}

    def test_graph_yaml(self, line_files, capsys):
        header, _ = line_files
        assert main(['graph', str(header), '--format', 'yaml']) == 0
        data = yaml.safe_load(capsys.readouterr().out)
        assert [s['name'] for s in data['structs']] == ['P', 'L']

    def test_invalid_graph_file(self, tmp_path, capsys):
        graph_file = tmp_path / 'broken.yaml'
        graph_file.write_text("structs: [{name: A, fields: [{name: b, elementType: {tag: struct, name: B}}]}]")
        assert main(['size', str(graph_file)]) == 1
        assert "Unknown struct: 'B'" in capsys.readouterr().err

    def test_types(self, sample_file, capsys):
        assert main(['types', str(sample_file)]) == 0
        out = capsys.readouterr().out
        assert 'class test_t(TypedDict):' in out
        assert "    field6: 'testa_t'" in out

    def test_preprocess(self, sample_file, capsys):
        assert main(['preprocess', str(sample_file)]) == 0
        out = capsys.readouterr().out
        assert 'uint8_t mat[5][5];' in out
        assert '#' not in out

    def test_preprocess_directives(self, sample_file, capsys):
        assert main(['preprocess', str(sample_file), '--directives']) == 0
        kinds = [line.split()[1] for line in capsys.readouterr().out.splitlines()]
        assert kinds == ['include', 'include', 'include', 'define', 'unknown', 'unknown']

    def test_graph_file_with_bad_length(self, tmp_path, capsys):
        graph_file = tmp_path / 'bad.graph.json'
        graph_file.write_text(json.dumps({
            'globalRoot': [],
            'structs': [{'name': 'A', 'fields': [
                {'name': 'x', 'elementType': {'tag': 'int', 'length': 'abc', 'signed': False}},
            ]}],
        }))
        assert main(['graph', str(graph_file)]) == 1
        assert capsys.readouterr().err.startswith('Error:')
