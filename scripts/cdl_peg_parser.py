"""
Grammar-based parser for the class diagram language using Lark.

Builds the same AST nodes as the hand-written recursive descent parser in
cdl_parser.py, from a formal grammar. The two are kept in agreement by
tests and by the fuzzer.
"""

from lark import Lark, Transformer, v_args

try:
    from .cdl_lexer import OPERATORS
    from .cdl_ast import (
        Diagram, ClassDecl, InterfaceDecl, FieldDecl, MethodDecl, Relationship,
        Visibility, RelationshipType,
    )
except ImportError:
    from cdl_lexer import OPERATORS
    from cdl_ast import (
        Diagram, ClassDecl, InterfaceDecl, FieldDecl, MethodDecl, Relationship,
        Visibility, RelationshipType,
    )


# The OPERATOR alternatives are ordered longest first, and the terminal has
# a raised priority, so that it is tried before NAME and VISIBILITY exactly
# like the hand-written lexer does.
GRAMMAR = r"""
start: entity*

?entity: class_decl
       | interface_decl
       | relationship

class_decl: CLASS NAME [class_body]
class_body: "{" member* "}"

interface_decl: INTERFACE NAME

?member: field_decl
       | method_decl

field_decl: [VISIBILITY] NAME [type_annotation] [default_value]
method_decl: [VISIBILITY] NAME "(" params ")" [type_annotation]

params: (param ","?)*
param: NAME [type_annotation] [default_value]

type_annotation: ":" NAME [array_suffix]
array_suffix: "[" "]"
default_value: "=" NAME

relationship: NAME [STRING] OPERATOR [STRING] NAME [":" STRING]

CLASS: "class"
INTERFACE: "interface"
VISIBILITY: "+" | "-" | "#" | "~"
OPERATOR.2: /<\|--|--\|>|<\|\.\.|\.\.\|>|\*--|--\*|o--|--o|<--|-->|<\.\.|\.\.>|--/
NAME: /\w+/
STRING: /"(?:[^"\\\n]|\\.)*"/
COMMENT: /\/\/[^\n]*/

WS: /[ \t\r\n]+/
%ignore WS
%ignore COMMENT
"""

OPERATOR_TYPES = {
    spelling: RelationshipType[token_type.name] for spelling, token_type in OPERATORS
}

ESCAPES = {'n': '\n', 't': '\t', '"': '"', '\\': '\\'}


@v_args(inline=True)
class DiagramTransformer(Transformer):
    """Transform Lark parse tree into our AST nodes."""

    # =========================================================================
    # Top-level
    # =========================================================================

    def start(self, *entities):
        return Diagram(entities=list(entities))

    def class_decl(self, keyword, name, members):
        return ClassDecl(
            name=str(name),
            members=members if members is not None else [],
            line=keyword.line,
            column=keyword.column,
        )

    def class_body(self, *members):
        return list(members)

    def interface_decl(self, keyword, name):
        return InterfaceDecl(name=str(name), line=keyword.line, column=keyword.column)

    def relationship(self, source, left, operator, right, target, middle):
        return Relationship(
            name=f"{source} {operator} {target}",
            source_class=str(source),
            target_class=str(target),
            relationship_type=OPERATOR_TYPES[str(operator)],
            operator=str(operator),
            left_label=self._unquote(left),
            middle_label=self._unquote(middle),
            right_label=self._unquote(right),
            line=source.line,
            column=source.column,
        )

    # =========================================================================
    # Members
    # =========================================================================

    def field_decl(self, visibility, name, value_type, default):
        start = visibility if visibility is not None else name
        return FieldDecl(
            name=str(name),
            visibility=Visibility(str(visibility)) if visibility is not None else Visibility.NONE,
            value_type=value_type,
            default=default,
            line=start.line,
            column=start.column,
        )

    def method_decl(self, visibility, name, params, return_type):
        start = visibility if visibility is not None else name
        return MethodDecl(
            name=str(name),
            visibility=Visibility(str(visibility)) if visibility is not None else Visibility.NONE,
            parameters=params,
            return_type=return_type,
            line=start.line,
            column=start.column,
        )

    def params(self, *params):
        return list(params)

    def param(self, name, value_type, default):
        return FieldDecl(
            name=str(name),
            value_type=value_type,
            default=default,
            line=name.line,
            column=name.column,
        )

    def type_annotation(self, name, array_suffix):
        return str(name) + (array_suffix or "")

    def array_suffix(self):
        return "[]"

    def default_value(self, name):
        return str(name)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _unquote(self, s):
        """Strip the quotes from a STRING token and resolve its escapes."""
        if s is None:
            return None
        body = str(s)[1:-1]
        result = ''
        i = 0
        while i < len(body):
            if body[i] == '\\' and i + 1 < len(body):
                result += ESCAPES.get(body[i + 1], body[i + 1])
                i += 2
            else:
                result += body[i]
                i += 1
        return result


# Create parser instance
_parser = None


def get_parser():
    """Get or create the Lark parser instance."""
    global _parser
    if _parser is None:
        _parser = Lark(
            GRAMMAR,
            parser='lalr',
            lexer='basic',
            maybe_placeholders=True,
        )
    return _parser


def parse(source: str) -> Diagram:
    """Parse class diagram source code into a Diagram AST."""
    parser = get_parser()
    tree = parser.parse(source)
    transformer = DiagramTransformer()
    return transformer.transform(tree)


def parse_file(path: str) -> Diagram:
    """Parse a class diagram file into a Diagram AST."""
    with open(path) as f:
        return parse(f.read())
