"""RuleForge expression language.

This module provides:
- Lexer: Tokenizes source text
- Parser: Produces an immutable AST from tokens
- Evaluator: Evaluates an AST against an EvaluationContext
- FunctionRegistry: Functions callable from expressions
- format_error: Human-readable error reports
"""

from ruleforge.expressions.builtins import create_builtin_registry, register_builtins
from ruleforge.expressions.context import EvaluationContext
from ruleforge.expressions.errors import (
    ArgumentCountError,
    DivisionByZeroError,
    ErrorKind,
    EvaluationError,
    ExpressionError,
    LexerError,
    ParseError,
    TypeMismatchError,
    UndefinedFunctionError,
    UndefinedVariableError,
)
from ruleforge.expressions.evaluator import Evaluator, evaluate, evaluate_bool
from ruleforge.expressions.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from ruleforge.expressions.lexer import Lexer, Token, TokenType, tokenize
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
    referenced_functions,
    referenced_variables,
    walk,
)
from ruleforge.expressions.parser import Parser, parse, parse_expression
from ruleforge.expressions.render import render
from ruleforge.expressions.reporter import format_error
from ruleforge.expressions.result import Result, run, try_evaluate, try_parse
from ruleforge.expressions.values import Value

__all__ = [
    # Builtins
    "create_builtin_registry",
    "register_builtins",
    # Context
    "EvaluationContext",
    # Errors
    "ArgumentCountError",
    "DivisionByZeroError",
    "ErrorKind",
    "EvaluationError",
    "ExpressionError",
    "LexerError",
    "ParseError",
    "TypeMismatchError",
    "UndefinedFunctionError",
    "UndefinedVariableError",
    # Evaluator
    "Evaluator",
    "evaluate",
    "evaluate_bool",
    # Functions
    "FunctionCategory",
    "FunctionDefinition",
    "FunctionParameter",
    "FunctionRegistry",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    # Nodes
    "ASTNode",
    "Assignment",
    "BinaryOp",
    "Call",
    "Conditional",
    "Literal",
    "Log",
    "Loop",
    "Sequence",
    "UnaryOp",
    "VariableRef",
    "referenced_functions",
    "referenced_variables",
    "walk",
    # Parser
    "Parser",
    "parse",
    "parse_expression",
    # Presentation
    "render",
    "format_error",
    # Results
    "Result",
    "run",
    "try_evaluate",
    "try_parse",
    # Values
    "Value",
]
