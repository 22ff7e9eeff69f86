"""AST node types for the RuleForge expression language.

The node set is closed: the parser only ever produces the classes below,
and the evaluator and renderer match over exactly this set. Nodes are
frozen and child sequences are tuples, so a parsed tree can be cached
and evaluated against many contexts.

Each node may carry the character offset it was parsed from. The offset
is excluded from equality, so trees parsed from differently formatted
text compare equal when their structure is equal.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Union


@dataclass(frozen=True)
class ASTNode:
    """Base class for AST nodes."""

    position: int | None = field(default=None, compare=False, repr=False, kw_only=True)


@dataclass(frozen=True)
class Literal(ASTNode):
    """A literal value (number, string, boolean, null)."""
    value: Any


@dataclass(frozen=True)
class VariableRef(ASTNode):
    """A variable reference, resolved against the context at evaluation time."""
    name: str


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    """Unary operation (NOT x, -y)."""
    operator: str
    operand: ASTNode


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    """Binary operation (a + b, x = y, name LIKE "A%")."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class Call(ASTNode):
    """Function call (len(name), max(a, b))."""
    name: str
    arguments: tuple[ASTNode, ...] = ()


@dataclass(frozen=True)
class Conditional(ASTNode):
    """IF condition THEN then_branch [ELSE else_branch]."""
    condition: ASTNode
    then_branch: ASTNode
    else_branch: ASTNode | None = None


@dataclass(frozen=True)
class Loop(ASTNode):
    """WHILE condition DO body."""
    condition: ASTNode
    body: ASTNode


@dataclass(frozen=True)
class Sequence(ASTNode):
    """Statements executed in order; the value is the last statement's."""
    statements: tuple[ASTNode, ...] = ()


@dataclass(frozen=True)
class Assignment(ASTNode):
    """name = value, storing into the evaluation context."""
    name: str
    value: ASTNode


@dataclass(frozen=True)
class Log(ASTNode):
    """LOG expression."""
    expression: ASTNode


Node = Union[
    Literal,
    VariableRef,
    UnaryOp,
    BinaryOp,
    Call,
    Conditional,
    Loop,
    Sequence,
    Assignment,
    Log,
]


def children(node: ASTNode) -> tuple[ASTNode, ...]:
    """Direct children of a node, in evaluation order."""
    match node:
        case Literal() | VariableRef():
            return ()
        case UnaryOp(operand=operand):
            return (operand,)
        case BinaryOp(left=left, right=right):
            return (left, right)
        case Call(arguments=arguments):
            return tuple(arguments)
        case Conditional(condition=condition, then_branch=then_branch, else_branch=else_branch):
            if else_branch is None:
                return (condition, then_branch)
            return (condition, then_branch, else_branch)
        case Loop(condition=condition, body=body):
            return (condition, body)
        case Sequence(statements=statements):
            return tuple(statements)
        case Assignment(value=value):
            return (value,)
        case Log(expression=expression):
            return (expression,)
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def walk(node: ASTNode) -> Iterator[ASTNode]:
    """Yield a node and all of its descendants, depth-first."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(children(current)))


def referenced_variables(node: ASTNode) -> set[str]:
    """Names read by the tree (assignment targets excluded)."""
    return {n.name for n in walk(node) if isinstance(n, VariableRef)}


def referenced_functions(node: ASTNode) -> set[str]:
    """Names of all functions called by the tree."""
    return {n.name for n in walk(node) if isinstance(n, Call)}
