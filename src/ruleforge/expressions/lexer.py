"""Lexer/tokenizer for the RuleForge expression language.

Converts source text into a stream of tokens for the parser.

Token types:
- Literals: NUMBER, STRING
- Names: IDENTIFIER, KEYWORD (AND, OR, NOT, TRUE, IF, WHILE, ...)
- OPERATOR: = != < <= > >= + - * / ^
- Punctuation: LPAREN, RPAREN, COMMA, SEMICOLON
- EOF: end of input

Keywords are matched without regard to case, so every word in KEYWORDS is
reserved in any spelling: `end`, `log`, `do`, `before` and `after`
cannot name a variable or a record field. The math builtin for logarithms
is therefore `ln`.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator

from ruleforge.expressions.errors import ErrorKind, LexerError


class TokenType(Enum):
    """Types of tokens in the expression language."""

    NUMBER = auto()
    STRING = auto()
    IDENTIFIER = auto()
    OPERATOR = auto()
    KEYWORD = auto()
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    COMMA = auto()       # ,
    SEMICOLON = auto()   # ;
    EOF = auto()


@dataclass(frozen=True)
class Token:
    """A single token from the lexer.

    Attributes:
        type: The token type
        value: Normalized value (number, unescaped string, canonical
            operator symbol, upper-cased keyword, identifier name)
        position: Character offset in the source string
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        lexeme: The raw source text of the token
    """

    type: TokenType
    value: str | float | None
    position: int
    line: int = 1
    column: int = 1
    lexeme: str = ""

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, pos={self.position})"


KEYWORDS = frozenset(
    {
        "AND",
        "OR",
        "NOT",
        "TRUE",
        "FALSE",
        "NULL",
        "LIKE",
        "MATCHES",
        "CONTAINS",
        "BEFORE",
        "AFTER",
        "IF",
        "THEN",
        "ELSE",
        "WHILE",
        "DO",
        "BEGIN",
        "END",
        "LOG",
    }
)

# (pattern, token type, canonical value). Order matters - longer matches first.
TOKEN_PATTERNS: list[tuple[str, TokenType | None, str | None]] = [
    # Whitespace (skip)
    (r"\s+", None, None),

    # Multi-character operators and symbolic aliases
    (r"==", TokenType.OPERATOR, "="),
    (r"!=", TokenType.OPERATOR, "!="),
    (r"<>", TokenType.OPERATOR, "!="),
    (r"<=", TokenType.OPERATOR, "<="),
    (r">=", TokenType.OPERATOR, ">="),
    (r"&&", TokenType.KEYWORD, "AND"),
    (r"\|\|", TokenType.KEYWORD, "OR"),

    # Single character operators
    (r"=", TokenType.OPERATOR, "="),
    (r"<", TokenType.OPERATOR, "<"),
    (r">", TokenType.OPERATOR, ">"),
    (r"!", TokenType.KEYWORD, "NOT"),
    (r"\+", TokenType.OPERATOR, "+"),
    (r"-", TokenType.OPERATOR, "-"),
    (r"\*", TokenType.OPERATOR, "*"),
    (r"/", TokenType.OPERATOR, "/"),
    (r"\^", TokenType.OPERATOR, "^"),

    # Punctuation
    (r"\(", TokenType.LPAREN, None),
    (r"\)", TokenType.RPAREN, None),
    (r",", TokenType.COMMA, None),
    (r";", TokenType.SEMICOLON, None),

    # Numbers
    (r"\d+\.\d+", TokenType.NUMBER, None),
    (r"\d+", TokenType.NUMBER, None),
    (r"\.\d+", TokenType.NUMBER, None),

    # Strings (double or single quoted)
    (r'"([^"\\]|\\.)*"', TokenType.STRING, None),
    (r"'([^'\\]|\\.)*'", TokenType.STRING, None),

    # Keywords and identifiers
    (r"[a-zA-Z_][a-zA-Z0-9_]*", TokenType.IDENTIFIER, None),
]

_COMPILED_PATTERNS = [
    (re.compile(pattern, re.DOTALL), token_type, canonical)
    for pattern, token_type, canonical in TOKEN_PATTERNS
]


class Lexer:
    """Tokenizer for the expression language.

    Usage:
        lexer = Lexer('status = "active" AND count > 0')
        for token in lexer:
            print(token)
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1

    def __iter__(self) -> Iterator[Token]:
        """Iterate over all tokens in the source, ending with EOF."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def next_token(self) -> Token:
        """Get the next token from the source."""
        while True:
            if self.position >= len(self.source):
                return Token(TokenType.EOF, None, self.position, self.line, self.column)

            for pattern, token_type, canonical in _COMPILED_PATTERNS:
                match = pattern.match(self.source, self.position)
                if match:
                    break
            else:
                raise self._error_at_current()

            lexeme = match.group()
            start_pos = self.position
            start_line = self.line
            start_column = self.column
            self._advance(len(lexeme))

            if token_type is None:
                continue

            value: str | float | None = canonical
            if token_type == TokenType.NUMBER:
                value = float(lexeme)
            elif token_type == TokenType.STRING:
                value = self._unescape_string(lexeme[1:-1])
            elif token_type == TokenType.IDENTIFIER:
                value = lexeme
                if lexeme.upper() in KEYWORDS:
                    token_type = TokenType.KEYWORD
                    value = lexeme.upper()

            return Token(token_type, value, start_pos, start_line, start_column, lexeme)

    def _error_at_current(self) -> LexerError:
        char = self.source[self.position]
        if char in "\"'":
            return LexerError(
                "Unterminated string literal",
                self.position,
                self.line,
                self.column,
                kind=ErrorKind.UNTERMINATED_STRING,
                character=char,
            )
        return LexerError(
            f"Unexpected character '{char}'",
            self.position,
            self.line,
            self.column,
            kind=ErrorKind.UNEXPECTED_CHARACTER,
            character=char,
        )

    def _advance(self, count: int) -> None:
        """Advance position by count characters, updating line/column."""
        for _ in range(count):
            if self.position < len(self.source):
                if self.source[self.position] == "\n":
                    self.line += 1
                    self.column = 1
                else:
                    self.column += 1
                self.position += 1

    def _unescape_string(self, s: str) -> str:
        """Process escape sequences in a string.

        A backslash makes the next character literal, except for the
        usual n, t and r control escapes.
        """
        result = []
        i = 0
        while i < len(s):
            if s[i] == "\\" and i + 1 < len(s):
                next_char = s[i + 1]
                if next_char == "n":
                    result.append("\n")
                elif next_char == "t":
                    result.append("\t")
                elif next_char == "r":
                    result.append("\r")
                else:
                    result.append(next_char)
                i += 2
            else:
                result.append(s[i])
                i += 1
        return "".join(result)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source and return the list of tokens."""
        return list(self)


def tokenize(source: str) -> list[Token]:
    """Convenience function to tokenize a source string."""
    return Lexer(source).tokenize()
