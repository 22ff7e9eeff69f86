"""Explicit success-or-error results for callers that do not want exceptions.

The lexer, parser and evaluator raise typed ExpressionErrors internally.
These helpers catch exactly those errors at the API boundary and hand
them back as values, so a calling layer can decide what to do without a
try/except around every call.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from ruleforge.config import EngineConfig
from ruleforge.expressions.context import EvaluationContext
from ruleforge.expressions.errors import ExpressionError
from ruleforge.expressions.evaluator import Evaluator
from ruleforge.expressions.nodes import ASTNode
from ruleforge.expressions.parser import Parser
from ruleforge.expressions.values import Value

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a parse or evaluation.

    Exactly one of value/error is meaningful: when error is None the
    operation succeeded (value may legitimately be None, the null value).
    """

    value: T | None = None
    error: ExpressionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ExpressionError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T | None:
        """Return the value, or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value

    def value_or(self, default: T) -> T | None:
        return default if self.error is not None else self.value


def try_parse(
    source: str,
    config: EngineConfig | None = None,
    *,
    script: bool = True,
) -> Result[ASTNode]:
    """Parse a script (or, with script=False, a single expression)."""
    try:
        parser = Parser(source, config)
        ast = parser.parse() if script else parser.parse_expression()
    except ExpressionError as e:
        return Result.failure(e)
    return Result.success(ast)


def try_evaluate(
    node: ASTNode,
    context: EvaluationContext,
    config: EngineConfig | None = None,
) -> Result[Value]:
    """Evaluate an AST, capturing any evaluation error."""
    try:
        value = Evaluator(context, config).evaluate(node)
    except ExpressionError as e:
        return Result.failure(e)
    return Result.success(value)


def run(
    source: str,
    context: EvaluationContext | None = None,
    config: EngineConfig | None = None,
) -> Result[Value]:
    """Parse and evaluate a script in one step.

    The error, if any, comes from whichever stage failed first; its
    ``stage`` attribute says which.
    """
    parsed = try_parse(source, config)
    if parsed.error is not None:
        return Result.failure(parsed.error)
    if context is None:
        context = EvaluationContext.with_builtins()
    return try_evaluate(parsed.value, context, config)
