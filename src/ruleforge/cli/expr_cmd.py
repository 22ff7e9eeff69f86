"""Expression CLI commands: eval, parse and tokens."""

from typing import Any

import click

from ruleforge.config import EngineConfig
from ruleforge.expressions import (
    EvaluationContext,
    ExpressionError,
    Parser,
    format_error,
    render,
    tokenize,
)
from ruleforge.expressions.evaluator import Evaluator
from ruleforge.expressions.values import to_number, to_text


def parse_var_value(raw: str) -> Any:
    """Read a --var value: numbers, true/false/null, otherwise text."""
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    number = to_number(raw)
    if number is not None:
        return number
    return raw


def _collect_vars(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> dict[str, Any]:
    variables: dict[str, Any] = {}
    for item in values:
        name, sep, raw = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME=VALUE, got '{item}'", ctx=ctx, param=param)
        variables[name.strip()] = parse_var_value(raw)
    return variables


var_option = click.option(
    "--var",
    "variables",
    multiple=True,
    callback=_collect_vars,
    metavar="NAME=VALUE",
    help="Bind a variable (repeatable).",
)

mode_option = click.option(
    "--script/--expression",
    "script",
    default=True,
    help="Parse statements (default) or a single expression, where '=' compares.",
)


def _fail(error: ExpressionError, source: str) -> None:
    click.echo(click.style(format_error(error, source), fg="red"), err=True)
    raise SystemExit(1)


@click.command("eval")
@click.argument("source")
@var_option
@mode_option
def eval_cmd(source: str, variables: dict[str, Any], script: bool):
    """Evaluate SOURCE and print the result."""
    config = EngineConfig.from_env()
    context = EvaluationContext.with_builtins(variables)

    try:
        parser = Parser(source, config)
        ast = parser.parse() if script else parser.parse_expression()
        value = Evaluator(context, config).evaluate(ast)
    except ExpressionError as e:
        _fail(e, source)
        return

    for line in context.log:
        click.echo(line)
    click.echo(to_text(value))


@click.command("parse")
@click.argument("source")
@mode_option
def parse_cmd(source: str, script: bool):
    """Parse SOURCE and print it back fully parenthesized."""
    config = EngineConfig.from_env()
    try:
        parser = Parser(source, config)
        ast = parser.parse() if script else parser.parse_expression()
    except ExpressionError as e:
        _fail(e, source)
        return

    click.echo(render(ast))


@click.command("tokens")
@click.argument("source")
def tokens_cmd(source: str):
    """Print the tokens of SOURCE, one per line."""
    try:
        tokens = tokenize(source)
    except ExpressionError as e:
        _fail(e, source)
        return

    for token in tokens:
        click.echo(f"{token.line}:{token.column}\t{token.type.name}\t{token.value!r}")
