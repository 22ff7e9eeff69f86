"""RuleForge CLI entry point."""

import logging

import click


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
def cli(verbose: int):
    """RuleForge expression and rule language tools."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


# Register subcommands
from ruleforge.cli.expr_cmd import eval_cmd, parse_cmd, tokens_cmd  # noqa: E402
from ruleforge.cli.rules_cmd import rules  # noqa: E402

cli.add_command(eval_cmd)
cli.add_command(parse_cmd)
cli.add_command(tokens_cmd)
cli.add_command(rules)
