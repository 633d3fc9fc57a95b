"""Tests for AST conversion and the cdl_dump command line tool."""

import json

import pytest
import yaml
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from cdl_converter import ast_to_dict, diagram_to_yaml, diagram_to_json, load_diagram_ast
from cdl_parser import parse
from cdl_peg_parser import parse as peg_parse
from cdl_ast import ClassDecl
import cdl_dump


SHOP = """
class Order {
    -id: int
    +add(item: Item, qty: int = one): bool[]
}
interface Payable
Customer "1" --> "*" Order : "places"
"""


class TestAstToDict:
    """Test dict conversion of AST nodes."""

    def test_full_document(self):
        assert ast_to_dict(parse(SHOP)) == {
            'type': 'ROOT',
            'name': 'root',
            'entities': [
                {
                    'type': 'CLASS',
                    'name': 'Order',
                    'members': [
                        {'type': 'FIELD', 'name': 'id', 'visibility': '-', 'value_type': 'int'},
                        {
                            'type': 'METHOD',
                            'name': 'add',
                            'visibility': '+',
                            'parameters': [
                                {'type': 'FIELD', 'name': 'item', 'value_type': 'Item'},
                                {'type': 'FIELD', 'name': 'qty', 'value_type': 'int', 'default': 'one'},
                            ],
                            'return_type': 'bool[]',
                        },
                    ],
                },
                {'type': 'INTERFACE', 'name': 'Payable'},
                {
                    'type': 'RELATIONSHIP',
                    'name': 'Customer --> Order',
                    'source_class': 'Customer',
                    'target_class': 'Order',
                    'relationship_type': 'ASSOCIATION',
                    'operator': '-->',
                    'left_label': '1',
                    'middle_label': 'places',
                    'right_label': '*',
                },
            ],
        }

    def test_unset_attributes_omitted(self):
        result = ast_to_dict(parse("class A { x run() }"))
        field, method = result['entities'][0]['members']
        assert field == {'type': 'FIELD', 'name': 'x'}
        assert method == {'type': 'METHOD', 'name': 'run', 'parameters': []}

    def test_operator_direction_kept(self):
        left = ast_to_dict(parse("A <|-- B"))["entities"][0]
        right = ast_to_dict(parse("A --|> B"))["entities"][0]
        assert left["relationship_type"] == right["relationship_type"] == "INHERITANCE"
        assert left["operator"] == "<|--"
        assert right["operator"] == "--|>"
        assert left != right

    def test_single_node(self):
        assert ast_to_dict(ClassDecl(name="Empty")) == {
            'type': 'CLASS', 'name': 'Empty', 'members': []
        }

    def test_rejects_non_nodes(self):
        with pytest.raises(TypeError):
            ast_to_dict({'type': 'CLASS'})


class TestSerialization:
    """Test YAML and JSON output."""

    def test_yaml_loads_back(self):
        diagram = parse(SHOP)
        assert yaml.safe_load(diagram_to_yaml(diagram)) == ast_to_dict(diagram)

    def test_yaml_keeps_key_order(self):
        text = diagram_to_yaml(parse("class A"))
        assert text.index("type:") < text.index("entities:")

    def test_json_loads_back(self):
        diagram = parse(SHOP)
        assert json.loads(diagram_to_json(diagram)) == ast_to_dict(diagram)


class TestLoadDiagram:
    """Test loading diagrams from disk."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "shop.cdl"
        path.write_text(SHOP)
        assert load_diagram_ast(path) == parse(SHOP)

    def test_load_with_peg_parser(self, tmp_path):
        path = tmp_path / "shop.cdl"
        path.write_text(SHOP)
        assert load_diagram_ast(str(path), peg_parse) == parse(SHOP)


class TestDumpCommand:
    """Test the cdl_dump command line tool."""

    def test_dump_yaml(self, tmp_path, capsys):
        path = tmp_path / "shop.cdl"
        path.write_text(SHOP)
        with pytest.raises(SystemExit) as exc_info:
            cdl_dump.main([str(path)])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert yaml.safe_load(out) == ast_to_dict(parse(SHOP))

    def test_dump_json_with_peg_parser(self, tmp_path, capsys):
        path = tmp_path / "shop.cdl"
        path.write_text(SHOP)
        with pytest.raises(SystemExit) as exc_info:
            cdl_dump.main(["--format", "json", "--parser", "peg", str(path)])
        assert exc_info.value.code == 0
        assert json.loads(capsys.readouterr().out) == ast_to_dict(parse(SHOP))

    def test_parse_error_reported(self, tmp_path, capsys):
        path = tmp_path / "broken.cdl"
        path.write_text("class A {\n  x: int [\n}")
        with pytest.raises(SystemExit) as exc_info:
            cdl_dump.main([str(path)])
        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert f"{path}:3:1: error:" in out
        assert "1 file(s) failed to parse" in out

    def test_lexer_error_reported(self, tmp_path, capsys):
        path = tmp_path / "broken.cdl"
        path.write_text("class A @")
        assert not cdl_dump.dump_file(path)
        assert f"{path}:1:9: error:" in capsys.readouterr().out

    def test_peg_error_reported(self, tmp_path, capsys):
        path = tmp_path / "broken.cdl"
        path.write_text("A B")
        assert not cdl_dump.dump_file(path, parser_name="peg")
        assert f"{path}:1:3: error:" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        path = tmp_path / "missing.cdl"
        assert not cdl_dump.dump_file(path)
        assert "file not found" in capsys.readouterr().out

    def test_continues_after_failure(self, tmp_path, capsys):
        bad = tmp_path / "bad.cdl"
        bad.write_text("class")
        good = tmp_path / "good.cdl"
        good.write_text("interface I")
        with pytest.raises(SystemExit) as exc_info:
            cdl_dump.main([str(bad), str(good)])
        assert exc_info.value.code == 1
        assert "name: I" in capsys.readouterr().out

    def test_undecodable_file_skipped(self, tmp_path, capsys):
        bad = tmp_path / "bad.cdl"
        bad.write_bytes(b"class \xff\xfe")
        good = tmp_path / "good.cdl"
        good.write_text("interface I")
        with pytest.raises(SystemExit) as exc_info:
            cdl_dump.main([str(bad), str(good)])
        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert f"{bad}: error:" in out
        assert "name: I" in out

    def test_directory_reported(self, tmp_path, capsys):
        assert not cdl_dump.dump_file(tmp_path)
        assert f"{tmp_path}: error:" in capsys.readouterr().out

    def test_no_files_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cdl_dump.main([])
        assert exc_info.value.code == 1
        assert "usage" in capsys.readouterr().out
