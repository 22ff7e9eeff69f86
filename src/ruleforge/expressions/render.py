"""Render an AST back to source text.

Binary and unary operations are fully parenthesized, so precedence never
needs to be reconstructed: parsing the rendered text yields a tree equal
to the original. A left-nested chain of one precedence tier shares a
single pair of parentheses, ``(a + b - c)``, and is rendered in a loop,
so long flat chains neither recurse here nor nest when re-parsed.

Two shapes the parser itself never produces do not survive the trip:
negative number literals (they re-parse as unary minus) and an IF without
ELSE nested directly in the THEN branch of an IF with ELSE (the ELSE
re-attaches to the inner IF).
"""

from decimal import Decimal

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
from ruleforge.expressions.parser import (
    EQUALITY_OPERATORS,
    RELATIONAL_KEYWORDS,
    RELATIONAL_OPERATORS,
)
from ruleforge.expressions.values import is_number

# Precedence tiers; left-associative operators in one tier chain without
# inner parentheses. "^" is right-associative and never chains.
_TIERS = {
    "OR": 1,
    "AND": 2,
    **dict.fromkeys(EQUALITY_OPERATORS, 3),
    **dict.fromkeys(RELATIONAL_OPERATORS | RELATIONAL_KEYWORDS, 4),
    "+": 5,
    "-": 5,
    "*": 6,
    "/": 6,
}

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r"}


def render(node: ASTNode) -> str:
    """Render a script or expression.

    A top-level Sequence of two or more statements renders as
    ``a; b``; any other Sequence is wrapped in BEGIN ... END.
    """
    if isinstance(node, Sequence) and len(node.statements) >= 2:
        return "; ".join(_render(s) for s in node.statements)
    return _render(node)


def _render(node: ASTNode) -> str:
    match node:
        case Literal(value=value):
            return render_literal(value)
        case VariableRef(name=name):
            return name
        case UnaryOp(operator="NOT", operand=operand):
            return f"(NOT {_render(operand)})"
        case UnaryOp(operator=operator, operand=operand):
            return f"({operator}{_render(operand)})"
        case BinaryOp():
            return _render_binary(node)
        case Call(name=name, arguments=arguments):
            return f"{name}({', '.join(_render(a) for a in arguments)})"
        case Conditional(condition=condition, then_branch=then_branch, else_branch=else_branch):
            text = f"IF {_render(condition)} THEN {_render(then_branch)}"
            if else_branch is not None:
                text += f" ELSE {_render(else_branch)}"
            return text
        case Loop(condition=condition, body=body):
            return f"WHILE {_render(condition)} DO {_render(body)}"
        case Sequence(statements=statements):
            if not statements:
                return "BEGIN END"
            return f"BEGIN {'; '.join(_render(s) for s in statements)} END"
        case Assignment(name=name, value=value):
            return f"{name} = {_render(value)}"
        case Log(expression=expression):
            return f"LOG {_render(expression)}"
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def _render_binary(node: BinaryOp) -> str:
    spine = [node]
    while True:
        tier = _TIERS.get(spine[-1].operator)
        left = spine[-1].left
        if tier is None or not isinstance(left, BinaryOp) or _TIERS.get(left.operator) != tier:
            break
        spine.append(left)

    parts = [_render(spine[-1].left)]
    for step in reversed(spine):
        parts.append(f"{step.operator} {_render(step.right)}")
    return f"({' '.join(parts)})"


def render_literal(value: object) -> str:
    """Source text for a literal value."""
    if value is None:
        return "NULL"
    if value is True:
        return "TRUE"
    if value is False:
        return "FALSE"
    if is_number(value):
        text = repr(float(value))
        if "e" in text or "E" in text:
            text = format(Decimal(text), "f")
        if text.endswith(".0"):
            text = text[:-2]
        return text
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in str(value)) + '"'
