"""Human-readable formatting of expression errors.

Presentation only: the typed error is never altered.

    >>> print(format_error(err, "total + * 3"))
    Syntax error [unexpected_token] at line 1, column 9: Unexpected token '*'
      total + * 3
              ^
"""

from ruleforge.expressions.errors import ExpressionError

STAGE_LABELS = {
    "lex": "Lexical",
    "parse": "Syntax",
    "evaluate": "Runtime",
}


def locate(source: str, position: int) -> tuple[int, int]:
    """Convert a character offset to a 1-indexed (line, column)."""
    position = max(0, min(position, len(source)))
    line = source.count("\n", 0, position) + 1
    line_start = source.rfind("\n", 0, position) + 1
    return line, position - line_start + 1


def illustrate(source: str, position: int) -> str:
    """The source line containing position, with a caret under it."""
    line, column = locate(source, position)
    text = source.split("\n")[line - 1]
    return f"  {text}\n  {' ' * (column - 1)}^"


def format_error(error: ExpressionError, source: str | None = None) -> str:
    """Format an error with its stage, kind and location.

    Args:
        error: Any lexer, parser or evaluation error
        source: The text that was parsed; enables line/column for runtime
            errors and a caret illustration for all errors

    Returns:
        A one-line summary, followed by the illustrated source line when
        a position and the source are known
    """
    label = STAGE_LABELS.get(error.stage, "Expression")
    line, column = error.line, error.column

    if source is not None and error.position is not None and (line is None or column is None):
        line, column = locate(source, error.position)

    if line is not None and column is not None:
        location = f" at line {line}, column {column}"
    elif error.position is not None:
        location = f" at position {error.position}"
    else:
        location = ""

    message = f"{label} error [{error.kind.value}]{location}: {error.message}"

    if source is not None and error.position is not None:
        message += "\n" + illustrate(source, error.position)

    return message
