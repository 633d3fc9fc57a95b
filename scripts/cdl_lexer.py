"""
Lexer for the class diagram language.

Tokenizes the input into a stream of tokens for the parser.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import List


class TokenType(Enum):
    # Keywords
    CLASS = auto()
    INTERFACE = auto()

    # Relationship operators
    INHERITANCE = auto()  # <|--  --|>
    COMPOSITION = auto()  # *--   --*
    AGGREGATION = auto()  # o--   --o
    ASSOCIATION = auto()  # <--   -->  --
    DEPENDENCY = auto()   # <..   ..>
    REALIZATION = auto()  # <|..  ..|>

    # Symbols
    LBRACE = auto()       # {
    RBRACE = auto()       # }
    LPAREN = auto()       # (
    RPAREN = auto()       # )
    LBRACKET = auto()     # [
    RBRACKET = auto()     # ]
    COLON = auto()        # :
    EQUALS = auto()       # =
    COMMA = auto()        # ,

    # Visibility markers
    POUND = auto()        # #
    PLUS = auto()         # +
    DASH = auto()         # -
    TILDE = auto()        # ~

    # Literals
    QUOTATION = auto()
    IDENTIFIER = auto()

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int = 0
    column: int = 0

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


# Keywords mapping
KEYWORDS = {
    'class': TokenType.CLASS,
    'interface': TokenType.INTERFACE,
}

# Relationship operator spellings, longest first so that the scanner always
# takes the longest match.
OPERATORS = [
    ('<|--', TokenType.INHERITANCE),
    ('--|>', TokenType.INHERITANCE),
    ('<|..', TokenType.REALIZATION),
    ('..|>', TokenType.REALIZATION),
    ('*--', TokenType.COMPOSITION),
    ('--*', TokenType.COMPOSITION),
    ('o--', TokenType.AGGREGATION),
    ('--o', TokenType.AGGREGATION),
    ('<--', TokenType.ASSOCIATION),
    ('-->', TokenType.ASSOCIATION),
    ('<..', TokenType.DEPENDENCY),
    ('..>', TokenType.DEPENDENCY),
    ('--', TokenType.ASSOCIATION),
]

RELATIONSHIP_TYPES = frozenset([
    TokenType.INHERITANCE,
    TokenType.COMPOSITION,
    TokenType.AGGREGATION,
    TokenType.ASSOCIATION,
    TokenType.DEPENDENCY,
    TokenType.REALIZATION,
])

SINGLE_CHAR_TOKENS = {
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    ':': TokenType.COLON,
    '=': TokenType.EQUALS,
    ',': TokenType.COMMA,
    '#': TokenType.POUND,
    '+': TokenType.PLUS,
    '-': TokenType.DASH,
    '~': TokenType.TILDE,
}


def is_relationship_type(token_type: TokenType) -> bool:
    return token_type in RELATIONSHIP_TYPES


class LexerError(Exception):
    """Raised when lexer encounters invalid input."""
    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, column {column}: {message}")


class Lexer:
    """Tokenizer for the class diagram language."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source and return list of tokens."""
        while not self._at_end():
            self._scan_token()

        self.tokens.append(Token(TokenType.EOF, '', self.line, self.column))
        return self.tokens

    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _peek(self) -> str:
        if self._at_end():
            return '\0'
        return self.source[self.pos]

    def _advance(self) -> str:
        char = self.source[self.pos]
        self.pos += 1
        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return char

    def _starts_with(self, text: str) -> bool:
        return self.source.startswith(text, self.pos)

    def _add_token(self, token_type: TokenType, value: str, line: int, column: int):
        self.tokens.append(Token(token_type, value, line, column))

    def _skip_whitespace(self):
        while not self._at_end():
            if self._peek() in ' \t\r\n':
                self._advance()
            elif self._starts_with('//'):
                while not self._at_end() and self._peek() != '\n':
                    self._advance()
            else:
                break

    def _scan_token(self):
        self._skip_whitespace()

        if self._at_end():
            return

        start_line = self.line
        start_column = self.column

        # Operators take precedence over the single-character tokens and
        # over the identifier "o" that starts an aggregation arrow.
        for spelling, token_type in OPERATORS:
            if self._starts_with(spelling):
                for _ in spelling:
                    self._advance()
                self._add_token(token_type, spelling, start_line, start_column)
                return

        char = self._advance()

        # Strings
        if char == '"':
            self._scan_string(start_line, start_column)
            return

        # Identifiers and keywords
        if char.isalnum() or char == '_':
            self._scan_identifier(char, start_line, start_column)
            return

        if char in SINGLE_CHAR_TOKENS:
            self._add_token(SINGLE_CHAR_TOKENS[char], char, start_line, start_column)
            return

        raise LexerError(f"Unexpected character: {char!r}", start_line, start_column)

    def _scan_string(self, start_line: int, start_column: int):
        value = ''
        while not self._at_end() and self._peek() != '"':
            if self._peek() == '\n':
                raise LexerError("Unterminated string", start_line, start_column)
            if self._peek() == '\\':
                self._advance()
                if self._at_end() or self._peek() == '\n':
                    raise LexerError("Unterminated string escape", start_line, start_column)
                escape_char = self._advance()
                escape_map = {'n': '\n', 't': '\t', '"': '"', '\\': '\\'}
                value += escape_map.get(escape_char, escape_char)
            else:
                value += self._advance()

        if self._at_end():
            raise LexerError("Unterminated string", start_line, start_column)

        self._advance()  # Closing "
        self._add_token(TokenType.QUOTATION, value, start_line, start_column)

    def _scan_identifier(self, first_char: str, start_line: int, start_column: int):
        value = first_char
        while not self._at_end() and (self._peek().isalnum() or self._peek() == '_'):
            value += self._advance()

        token_type = KEYWORDS.get(value, TokenType.IDENTIFIER)
        self._add_token(token_type, value, start_line, start_column)


def tokenize(source: str) -> List[Token]:
    """Convenience function to tokenize source code."""
    lexer = Lexer(source)
    return lexer.tokenize()
