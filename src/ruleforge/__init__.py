"""RuleForge: a small expression and rule language.

Usage:
    from ruleforge import EvaluationContext, evaluate, parse

    ast = parse("total * (1 - discount)")
    ctx = EvaluationContext.with_builtins(total=200, discount=0.25)
    evaluate(ast, ctx)  # 150.0
"""

from ruleforge.config import EngineConfig
from ruleforge.expressions import (
    ASTNode,
    ErrorKind,
    EvaluationContext,
    EvaluationError,
    Evaluator,
    ExpressionError,
    FunctionRegistry,
    LexerError,
    ParseError,
    Result,
    evaluate,
    evaluate_bool,
    format_error,
    parse,
    parse_expression,
    render,
    run,
    tokenize,
    try_evaluate,
    try_parse,
)
from ruleforge.rules import Filter, Rule, RuleSet, load_ruleset

__version__ = "0.1.0"

__all__ = [
    "ASTNode",
    "EngineConfig",
    "ErrorKind",
    "EvaluationContext",
    "EvaluationError",
    "Evaluator",
    "ExpressionError",
    "Filter",
    "FunctionRegistry",
    "LexerError",
    "ParseError",
    "Result",
    "Rule",
    "RuleSet",
    "evaluate",
    "evaluate_bool",
    "format_error",
    "load_ruleset",
    "parse",
    "parse_expression",
    "render",
    "run",
    "tokenize",
    "try_evaluate",
    "try_parse",
]
