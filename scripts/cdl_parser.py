"""
Parser for the class diagram language.

Parses a token stream into an AST.
"""

from typing import List, Optional

try:
    from .cdl_lexer import Token, TokenType, tokenize, is_relationship_type
    from .cdl_ast import (
        Diagram, ClassDecl, InterfaceDecl, FieldDecl, MethodDecl, Relationship,
        Entity, Member, Visibility, RelationshipType,
    )
except ImportError:
    from cdl_lexer import Token, TokenType, tokenize, is_relationship_type
    from cdl_ast import (
        Diagram, ClassDecl, InterfaceDecl, FieldDecl, MethodDecl, Relationship,
        Entity, Member, Visibility, RelationshipType,
    )


class ParseError(Exception):
    """Raised when parser encounters invalid syntax."""
    def __init__(self, message: str, token: Token):
        self.token = token
        super().__init__(f"Line {token.line}, column {token.column}: {message}")


VISIBILITY_MARKERS = {
    TokenType.PLUS: Visibility.PUBLIC,
    TokenType.DASH: Visibility.PRIVATE,
    TokenType.POUND: Visibility.PROTECTED,
    TokenType.TILDE: Visibility.PACKAGE,
}

RELATIONSHIP_OPERATORS = {
    TokenType.INHERITANCE: RelationshipType.INHERITANCE,
    TokenType.COMPOSITION: RelationshipType.COMPOSITION,
    TokenType.AGGREGATION: RelationshipType.AGGREGATION,
    TokenType.ASSOCIATION: RelationshipType.ASSOCIATION,
    TokenType.DEPENDENCY: RelationshipType.DEPENDENCY,
    TokenType.REALIZATION: RelationshipType.REALIZATION,
}


def _describe(token: Token) -> str:
    return f"{token.type.name} {token.value!r}"


class Parser:
    """Recursive descent parser for the class diagram language.

    The grammar is LL(1): every decision is taken from the current token,
    and the cursor never moves backwards.
    """

    def __init__(self, tokens: List[Token]):
        if not tokens or tokens[-1].type != TokenType.EOF:
            raise ValueError("token sequence must end with an EOF token")
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> Diagram:
        """Parse the token stream into a Diagram AST."""
        diagram = Diagram()

        while not self._at_end():
            diagram.entities.append(self._parse_entity())

        return diagram

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        """Move past the current token and return the new current token.

        Stays on EOF once it is reached.
        """
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return self._current()

    def _at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        return self._current().type == token_type

    def _expect(self, token_type: TokenType, expected: str, rule: str) -> Token:
        token = self._current()
        if token.type != token_type:
            raise self._error(expected, rule)
        self._advance()
        return token

    def _error(self, expected: str, rule: str) -> ParseError:
        token = self._current()
        return ParseError(f"Expected {expected} in {rule}, got {_describe(token)}", token)

    # =========================================================================
    # Top-level declarations
    # =========================================================================

    def _parse_entity(self) -> Entity:
        token = self._current()

        if token.type == TokenType.CLASS:
            return self._parse_class()
        elif token.type == TokenType.INTERFACE:
            return self._parse_interface()
        elif token.type == TokenType.IDENTIFIER:
            return self._parse_relationship()
        raise ParseError(f"Unexpected token: {_describe(token)}", token)

    def _parse_class(self) -> ClassDecl:
        """Parse: class NAME ( { member* } )?"""
        token = self._expect(TokenType.CLASS, "'class'", "class declaration")
        name = self._expect(TokenType.IDENTIFIER, "class name", "class declaration").value
        cls = ClassDecl(name=name, line=token.line, column=token.column)

        if self._check(TokenType.LBRACE):
            self._advance()
            while not self._check(TokenType.RBRACE) and not self._at_end():
                cls.members.append(self._parse_member())
            self._expect(TokenType.RBRACE, f"'}}' to close class {name}", "class body")

        return cls

    def _parse_interface(self) -> InterfaceDecl:
        """Parse: interface NAME"""
        token = self._expect(TokenType.INTERFACE, "'interface'", "interface declaration")
        name = self._expect(TokenType.IDENTIFIER, "interface name", "interface declaration").value
        return InterfaceDecl(name=name, line=token.line, column=token.column)

    def _parse_relationship(self) -> Relationship:
        """Parse: SOURCE "label"? OPERATOR "label"? TARGET (: "label")?"""
        source = self._expect(TokenType.IDENTIFIER, "source class name", "relationship")

        left_label = self._parse_optional_label()

        operator = self._current()
        if not is_relationship_type(operator.type):
            raise self._error("relationship operator", "relationship")
        self._advance()

        right_label = self._parse_optional_label()

        target = self._expect(TokenType.IDENTIFIER, "target class name", "relationship")

        middle_label = None
        if self._check(TokenType.COLON):
            self._advance()
            middle_label = self._expect(
                TokenType.QUOTATION, "quoted label after ':'", "relationship"
            ).value

        return Relationship(
            name=f"{source.value} {operator.value} {target.value}",
            source_class=source.value,
            target_class=target.value,
            relationship_type=RELATIONSHIP_OPERATORS[operator.type],
            operator=operator.value,
            left_label=left_label,
            middle_label=middle_label,
            right_label=right_label,
            line=source.line,
            column=source.column,
        )

    def _parse_optional_label(self) -> Optional[str]:
        if self._check(TokenType.QUOTATION):
            label = self._current().value
            self._advance()
            return label
        return None

    # =========================================================================
    # Member parsing
    # =========================================================================

    def _parse_member(self) -> Member:
        """Parse a class member; the token after the name picks field or method."""
        start = self._current()
        visibility = VISIBILITY_MARKERS.get(start.type, Visibility.NONE)
        if visibility is not Visibility.NONE:
            self._advance()

        name = self._expect(TokenType.IDENTIFIER, "member name", "class body").value

        if self._check(TokenType.LPAREN):
            return self._parse_method(name, visibility, start)
        return self._parse_field(name, visibility, start)

    def _parse_field(self, name: str, visibility: Visibility, start: Token) -> FieldDecl:
        """Parse the rest of a field after its name: (: TYPE []?)? (= DEFAULT)?"""
        value_type = None
        default = None

        if self._check(TokenType.COLON):
            self._advance()
            value_type = self._parse_type(f"field {name}")

        if self._check(TokenType.EQUALS):
            self._advance()
            default = self._expect(
                TokenType.IDENTIFIER, "default value after '='", f"field {name}"
            ).value

        return FieldDecl(
            name=name, visibility=visibility, value_type=value_type,
            default=default, line=start.line, column=start.column
        )

    def _parse_method(self, name: str, visibility: Visibility, start: Token) -> MethodDecl:
        """Parse the rest of a method after its name: ( params ) (: TYPE []?)?"""
        rule = f"method {name}"
        method = MethodDecl(name=name, visibility=visibility,
                            line=start.line, column=start.column)

        self._expect(TokenType.LPAREN, "'('", rule)

        # A comma is optional after each parameter; the loop re-checks for
        # ')' before requiring the next name, so "f(x,)" is accepted.
        while not self._check(TokenType.RPAREN) and not self._at_end():
            param = self._current()
            if param.type != TokenType.IDENTIFIER:
                raise self._error("parameter name or ')'", rule)
            self._advance()
            method.parameters.append(self._parse_field(param.value, Visibility.NONE, param))
            if self._check(TokenType.COMMA):
                self._advance()

        self._expect(TokenType.RPAREN, "')' after parameters", rule)

        if self._check(TokenType.COLON):
            self._advance()
            method.return_type = self._parse_type(rule)

        return method

    # =========================================================================
    # Type parsing
    # =========================================================================

    def _parse_type(self, rule: str) -> str:
        """Parse a type: NAME or NAME[]"""
        type_name = self._expect(TokenType.IDENTIFIER, "type name after ':'", rule).value

        if self._check(TokenType.LBRACKET):
            self._advance()
            self._expect(TokenType.RBRACKET, "']' after '['", rule)
            type_name += "[]"

        return type_name


def parse_tokens(tokens: List[Token]) -> Diagram:
    """Parse a token sequence with a fresh parser."""
    parser = Parser(tokens)
    return parser.parse()


def parse(source: str) -> Diagram:
    """Convenience function to parse source code into a Diagram."""
    return parse_tokens(tokenize(source))
