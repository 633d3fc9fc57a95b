"""
Class diagram converter utilities.

Provides:
- load_diagram_ast(): Load a .cdl file and return its Diagram AST
- ast_to_dict(): Convert a Diagram AST (or any node) to plain dicts
- diagram_to_yaml() / diagram_to_json(): Serialize the dict form
"""

import json
from pathlib import Path
from typing import Any, Dict

import yaml

try:
    from .cdl_ast import (
        Diagram, ClassDecl, InterfaceDecl, FieldDecl, MethodDecl, Relationship,
    )
    from .cdl_parser import parse
except ImportError:
    from cdl_ast import (
        Diagram, ClassDecl, InterfaceDecl, FieldDecl, MethodDecl, Relationship,
    )
    from cdl_parser import parse


# =============================================================================
# AST Loading
# =============================================================================

def load_diagram_ast(path, parse_fn=parse) -> Diagram:
    """
    Load a class diagram file.

    Args:
        path: Path to the .cdl file
        parse_fn: Source-to-AST function (hand-written parser by default)

    Returns:
        Diagram AST for the file
    """
    source = Path(path).read_text(encoding='utf-8')
    return parse_fn(source)


# =============================================================================
# Dict conversion
# =============================================================================

AST_NODES = (Diagram, ClassDecl, InterfaceDecl, FieldDecl, MethodDecl, Relationship)


def ast_to_dict(node) -> Dict[str, Any]:
    """Convert an AST node to a dict keyed by attribute name.

    Every dict carries a 'type' entry with the node kind. Optional
    attributes that are unset are left out.
    """
    if not isinstance(node, AST_NODES):
        raise TypeError(f"Not an AST node: {node!r}")

    result: Dict[str, Any] = {'type': node.node_type.name}

    if isinstance(node, Diagram):
        result['name'] = node.name
        result['entities'] = [ast_to_dict(e) for e in node.entities]

    elif isinstance(node, ClassDecl):
        result['name'] = node.name
        result['members'] = [ast_to_dict(m) for m in node.members]

    elif isinstance(node, InterfaceDecl):
        result['name'] = node.name

    elif isinstance(node, FieldDecl):
        result['name'] = node.name
        if node.visibility.value:
            result['visibility'] = node.visibility.value
        if node.value_type is not None:
            result['value_type'] = node.value_type
        if node.default is not None:
            result['default'] = node.default

    elif isinstance(node, MethodDecl):
        result['name'] = node.name
        if node.visibility.value:
            result['visibility'] = node.visibility.value
        result['parameters'] = [ast_to_dict(p) for p in node.parameters]
        if node.return_type is not None:
            result['return_type'] = node.return_type

    elif isinstance(node, Relationship):
        result['name'] = node.name
        result['source_class'] = node.source_class
        result['target_class'] = node.target_class
        result['relationship_type'] = node.relationship_type.name
        result['operator'] = node.operator
        for key in ('left_label', 'middle_label', 'right_label'):
            value = getattr(node, key)
            if value is not None:
                result[key] = value

    return result


def diagram_to_yaml(diagram: Diagram) -> str:
    return yaml.safe_dump(ast_to_dict(diagram), sort_keys=False, default_flow_style=False)


def diagram_to_json(diagram: Diagram, indent: int = 2) -> str:
    return json.dumps(ast_to_dict(diagram), indent=indent)
