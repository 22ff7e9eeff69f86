"""Evaluator for the RuleForge expression language.

Walks the AST and computes the result against an evaluation context
containing variables and registered functions.
"""

import logging
import math
import re
from typing import Any

from ruleforge.config import EngineConfig
from ruleforge.expressions.context import EvaluationContext
from ruleforge.expressions.errors import (
    ArgumentCountError,
    DivisionByZeroError,
    ErrorKind,
    EvaluationError,
    ExpressionError,
    TypeMismatchError,
    UndefinedFunctionError,
    UndefinedVariableError,
)
from ruleforge.expressions.nodes import (
    ASTNode,
    Assignment,
    BinaryOp,
    Call,
    Conditional,
    Literal,
    Log,
    Loop,
    Sequence,
    UnaryOp,
    VariableRef,
)
from ruleforge.expressions.parser import parse
from ruleforge.expressions.values import (
    Value,
    compare,
    contains,
    equals,
    format_number,
    is_number,
    like,
    to_datetime,
    to_text,
    to_value,
    truthy,
    type_name,
)

logger = logging.getLogger(__name__)
script_logger = logging.getLogger("ruleforge.script")


class Evaluator:
    """Evaluates an expression AST against a context.

    The evaluator borrows the context for the duration of evaluate() and
    only mutates it through assignments and LOG statements.

    Usage:
        ctx = EvaluationContext.with_builtins({"status": "active", "count": 5})
        evaluator = Evaluator(ctx)
        result = evaluator.evaluate(ast)
    """

    def __init__(self, context: EvaluationContext, config: EngineConfig | None = None):
        self.context = context
        self.config = config or EngineConfig()
        self._depth = 0

    def evaluate(self, node: ASTNode) -> Value:
        """Evaluate an AST node and return the result."""
        self._depth += 1
        try:
            if self._depth > self.config.max_depth:
                raise EvaluationError(
                    f"Expression nested deeper than {self.config.max_depth} levels",
                    ErrorKind.NESTING_TOO_DEEP,
                )
            return self._dispatch(node)
        except EvaluationError as e:
            if e.position is None:
                e.position = node.position
            raise
        finally:
            self._depth -= 1

    def _dispatch(self, node: ASTNode) -> Value:
        match node:
            case Literal(value=value):
                return value
            case VariableRef(name=name):
                if name not in self.context.variables:
                    raise UndefinedVariableError(name)
                return self.context.variables[name]
            case UnaryOp():
                return self._eval_unary(node)
            case BinaryOp():
                return self._eval_binary(node)
            case Call():
                return self._eval_call(node)
            case Conditional():
                return self._eval_conditional(node)
            case Loop():
                return self._eval_loop(node)
            case Sequence(statements=statements):
                result: Value = None
                for statement in statements:
                    result = self.evaluate(statement)
                return result
            case Assignment(name=name, value=value_node):
                value = self.evaluate(value_node)
                self.context.variables[name] = value
                return value
            case Log(expression=expression):
                value = self.evaluate(expression)
                message = to_text(value)
                self.context.log.append(message)
                script_logger.info("%s", message)
                return value
        raise EvaluationError(f"Unknown node type: {type(node).__name__}")

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_unary(self, node: UnaryOp) -> Value:
        """Evaluate a unary operation."""
        operand = self.evaluate(node.operand)

        if node.operator == "NOT":
            return not truthy(operand)

        if node.operator == "-":
            if not is_number(operand):
                raise TypeMismatchError(f"Cannot negate {type_name(operand)} value")
            return -float(operand)

        raise EvaluationError(f"Unknown unary operator: {node.operator}")

    def _eval_binary(self, node: BinaryOp) -> Value:
        """Evaluate a binary operation.

        A left-nested chain such as ``a + b + c`` or ``x = 1 OR x = 2 OR ...``
        is folded in a loop over its left spine, so its length does not count
        against max_depth. Right operands still go through evaluate().
        """
        spine = [node]
        while isinstance(spine[-1].left, BinaryOp):
            spine.append(spine[-1].left)

        result = self.evaluate(spine[-1].left)
        for step in reversed(spine):
            try:
                result = self._apply_binary(step, result)
            except EvaluationError as e:
                if e.position is None:
                    e.position = step.position
                raise
        return result

    def _apply_binary(self, node: BinaryOp, left: Value) -> Value:
        """Apply node's operator to an already evaluated left operand."""
        op = node.operator

        # Short-circuit evaluation for logical operators
        if op == "AND":
            if not truthy(left):
                return False
            return truthy(self.evaluate(node.right))

        if op == "OR":
            if truthy(left):
                return True
            return truthy(self.evaluate(node.right))

        right = self.evaluate(node.right)

        if op == "=":
            return equals(left, right)
        if op == "!=":
            return not equals(left, right)
        if op == "<":
            return compare(left, right) < 0
        if op == "<=":
            return compare(left, right) <= 0
        if op == ">":
            return compare(left, right) > 0
        if op == ">=":
            return compare(left, right) >= 0

        if op == "LIKE":
            return like(left, right)
        if op == "MATCHES":
            return self._matches(left, right)
        if op == "CONTAINS":
            return contains(left, right)
        if op in ("BEFORE", "AFTER"):
            return self._date_order(op, left, right)

        if op in ("+", "-", "*", "/", "^"):
            return self._arithmetic(op, left, right)

        raise EvaluationError(f"Unknown operator: {op}")

    def _eval_call(self, node: Call) -> Value:
        """Evaluate a function call."""
        args = [self.evaluate(arg) for arg in node.arguments]

        func_def = self.context.functions.lookup(node.name)
        if func_def is None:
            raise UndefinedFunctionError(node.name)

        if not func_def.accepts(len(args)):
            raise ArgumentCountError(node.name, func_def.arity(), len(args))

        try:
            result = func_def.implementation(*args)
        except ExpressionError:
            raise
        except Exception as e:
            raise EvaluationError(
                f"Error calling {node.name}: {e}", ErrorKind.FUNCTION_FAILED
            ) from e

        try:
            return to_value(result)
        except TypeError as e:
            raise EvaluationError(
                f"Function {node.name} returned an unsupported value: {e}",
                ErrorKind.FUNCTION_FAILED,
            ) from e

    def _eval_conditional(self, node: Conditional) -> Value:
        if truthy(self.evaluate(node.condition)):
            return self.evaluate(node.then_branch)
        if node.else_branch is not None:
            return self.evaluate(node.else_branch)
        return None

    def _eval_loop(self, node: Loop) -> Value:
        """Run a WHILE loop, stopping silently at the iteration ceiling."""
        result: Value = None
        iterations = 0

        while truthy(self.evaluate(node.condition)):
            if iterations >= self.config.max_iterations:
                logger.warning(
                    "Loop at position %s stopped after %d iterations",
                    node.position,
                    iterations,
                )
                break
            result = self.evaluate(node.body)
            iterations += 1

        return result

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _arithmetic(self, op: str, left: Any, right: Any) -> float:
        if not (is_number(left) and is_number(right)):
            raise TypeMismatchError(
                f"Operator '{op}' requires numbers, got {type_name(left)} and {type_name(right)}"
            )

        a = float(left)
        b = float(right)

        if op == "+":
            return a + b
        if op == "-":
            return a - b
        if op == "*":
            return a * b
        if op == "/":
            if b == 0:
                raise DivisionByZeroError()
            return a / b

        try:
            return math.pow(a, b)
        except OverflowError:
            raise EvaluationError(
                f"Result of {format_number(a)} ^ {format_number(b)} is too large",
                ErrorKind.NUMERIC_OVERFLOW,
            ) from None
        except ValueError:
            if a == 0:
                raise DivisionByZeroError("Zero raised to a negative power") from None
            raise EvaluationError(
                f"{format_number(a)} ^ {format_number(b)} is not a real number",
                ErrorKind.NUMERIC_DOMAIN,
            ) from None

    def _matches(self, value: Any, pattern: Any) -> bool:
        """Regular-expression search; a malformed pattern never matches."""
        if value is None or pattern is None:
            return False
        try:
            return re.search(to_text(pattern), to_text(value)) is not None
        except re.error as e:
            logger.debug("Invalid MATCHES pattern %r: %s", pattern, e)
            return False

    def _date_order(self, op: str, left: Any, right: Any) -> bool:
        left_dt = to_datetime(left)
        right_dt = to_datetime(right)
        if left_dt is None or right_dt is None:
            raise TypeMismatchError(
                f"{op} requires ISO-8601 dates, got {type_name(left)} and {type_name(right)}"
            )
        try:
            if op == "BEFORE":
                return left_dt < right_dt
            return left_dt > right_dt
        except TypeError:
            raise TypeMismatchError(
                f"{op} cannot compare a timezone-aware date with a naive one"
            ) from None


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def evaluate(
    node: ASTNode | str,
    context: EvaluationContext | None = None,
    config: EngineConfig | None = None,
) -> Value:
    """Evaluate an AST (or script text) against a context.

    This is the main entry point for evaluation. Parse once and pass the
    AST to evaluate it repeatedly against different contexts.

    Args:
        node: A parsed AST, or script text to parse first
        context: Variables and functions; an empty builtin context if omitted
        config: Optional limits; defaults apply when omitted

    Returns:
        The resulting value

    Example:
        ast = parse_expression('status = "active" AND count > 0')
        evaluate(ast, EvaluationContext.with_builtins(status="active", count=5))
        # True
    """
    if isinstance(node, str):
        node = parse(node, config)
    if context is None:
        context = EvaluationContext.with_builtins()
    return Evaluator(context, config).evaluate(node)


def evaluate_bool(
    node: ASTNode | str,
    context: EvaluationContext | None = None,
    config: EngineConfig | None = None,
) -> bool:
    """Evaluate and convert the result to a boolean."""
    return truthy(evaluate(node, context, config))
