"""Error taxonomy for the RuleForge expression language.

Every failure raised by the lexer, parser or evaluator is an
ExpressionError carrying:
- stage: "lex", "parse" or "evaluate"
- kind: an ErrorKind naming the specific failure
- position: character offset into the source, when known
- line / column: 1-indexed location, when known
"""

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Machine-readable error kinds."""

    # Lexical
    UNEXPECTED_CHARACTER = "unexpected_character"
    UNTERMINATED_STRING = "unterminated_string"

    # Syntax
    UNEXPECTED_TOKEN = "unexpected_token"
    MISSING_PAREN = "missing_paren"
    TRAILING_INPUT = "trailing_input"
    MALFORMED_STATEMENT = "malformed_statement"
    EMPTY_EXPRESSION = "empty_expression"

    # Runtime
    UNDEFINED_VARIABLE = "undefined_variable"
    UNDEFINED_FUNCTION = "undefined_function"
    TYPE_MISMATCH = "type_mismatch"
    DIVISION_BY_ZERO = "division_by_zero"
    ARGUMENT_COUNT_MISMATCH = "argument_count_mismatch"
    FUNCTION_FAILED = "function_failed"
    NUMERIC_OVERFLOW = "numeric_overflow"
    NUMERIC_DOMAIN = "numeric_domain"

    # Parse or evaluate
    NESTING_TOO_DEEP = "nesting_too_deep"


class ExpressionError(Exception):
    """Base class for all expression errors."""

    stage = "expression"
    default_kind = ErrorKind.UNEXPECTED_TOKEN

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        position: int | None = None,
        line: int | None = None,
        column: int | None = None,
    ):
        self.message = message
        self.kind = kind or self.default_kind
        self.position = position
        self.line = line
        self.column = column
        super().__init__(message)

    def __str__(self) -> str:
        if self.line is not None and self.column is not None:
            return f"{self.message} at line {self.line}, column {self.column}"
        if self.position is not None:
            return f"{self.message} at position {self.position}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "kind": self.kind.value,
            "message": self.message,
            "position": self.position,
            "line": self.line,
            "column": self.column,
        }


class LexerError(ExpressionError):
    """Error during lexical analysis."""

    stage = "lex"
    default_kind = ErrorKind.UNEXPECTED_CHARACTER

    def __init__(
        self,
        message: str,
        position: int,
        line: int = 1,
        column: int = 1,
        kind: ErrorKind | None = None,
        character: str | None = None,
    ):
        self.character = character
        super().__init__(message, kind, position, line, column)


class ParseError(ExpressionError):
    """Error during parsing.

    Built from the token at which parsing failed, so the location always
    points at the offending input.
    """

    stage = "parse"
    default_kind = ErrorKind.UNEXPECTED_TOKEN

    def __init__(self, message: str, token: Any, kind: ErrorKind | None = None):
        self.token = token
        super().__init__(
            message,
            kind,
            token.position,
            token.line,
            token.column,
        )


class EvaluationError(ExpressionError):
    """Error during expression evaluation.

    Runtime errors only know the character offset of the node being
    evaluated; line and column are derived by the reporter when the
    source text is available.
    """

    stage = "evaluate"
    default_kind = ErrorKind.FUNCTION_FAILED

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        position: int | None = None,
    ):
        super().__init__(message, kind, position)


class UndefinedVariableError(EvaluationError):
    default_kind = ErrorKind.UNDEFINED_VARIABLE

    def __init__(self, name: str, position: int | None = None):
        self.name = name
        super().__init__(f"Undefined variable '{name}'", position=position)


class UndefinedFunctionError(EvaluationError):
    default_kind = ErrorKind.UNDEFINED_FUNCTION

    def __init__(self, name: str, position: int | None = None):
        self.name = name
        super().__init__(f"Unknown function: {name}", position=position)


class TypeMismatchError(EvaluationError):
    default_kind = ErrorKind.TYPE_MISMATCH

    def __init__(self, message: str, position: int | None = None):
        super().__init__(message, position=position)


class DivisionByZeroError(EvaluationError):
    default_kind = ErrorKind.DIVISION_BY_ZERO

    def __init__(self, message: str = "Division by zero", position: int | None = None):
        super().__init__(message, position=position)


class ArgumentCountError(EvaluationError):
    default_kind = ErrorKind.ARGUMENT_COUNT_MISMATCH

    def __init__(
        self,
        name: str,
        expected: str,
        received: int,
        position: int | None = None,
    ):
        self.name = name
        self.expected = expected
        self.received = received
        super().__init__(
            f"Function '{name}' expects {expected} argument(s), got {received}",
            position=position,
        )
