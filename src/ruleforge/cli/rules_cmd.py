"""Rule file CLI commands: validate and run."""

from pathlib import Path
from typing import Any

import click

from ruleforge.cli.expr_cmd import var_option
from ruleforge.expressions.values import to_text
from ruleforge.rules import RuleFileError, load_ruleset


@click.group()
def rules():
    """Rule file commands."""
    pass


@rules.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(path: Path):
    """Validate a YAML rule file: shape, expressions and function names."""
    try:
        ruleset = load_ruleset(path)
    except RuleFileError as e:
        for issue in e.issues:
            click.echo(click.style(str(issue), fg="red"))
        click.echo(
            click.style(f"\n{len(e.issues)} error(s) found", fg="red", bold=True)
        )
        raise SystemExit(1)

    click.echo(f"Loaded {len(ruleset)} rule(s):")
    for rule in ruleset:
        click.echo(f"  ✓ {rule.name} (priority {rule.priority}, {len(rule.actions)} action(s))")
    click.echo(click.style("\nRule file is valid.", fg="green", bold=True))


@rules.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@var_option
@click.option("--first", is_flag=True, default=False, help="Stop after the first matching rule.")
def run(path: Path, variables: dict[str, Any], first: bool):
    """Fire the rules in PATH against the given variables."""
    try:
        ruleset = load_ruleset(path)
    except RuleFileError as e:
        for issue in e.issues:
            click.echo(click.style(str(issue), fg="red"), err=True)
        raise SystemExit(1)

    context = ruleset.create_context(variables)
    outcomes = ruleset.fire(context, stop_on_first=first)

    failed = 0
    for outcome in outcomes:
        name = outcome.rule.name
        if outcome.error is not None:
            failed += 1
            click.echo(click.style(f"  ✗ {name}: {outcome.error}", fg="red"))
        elif outcome.matched:
            assigned = ", ".join(f"{k}={to_text(v)}" for k, v in outcome.assigned.items())
            click.echo(click.style(f"  ✓ {name}" + (f": {assigned}" if assigned else ""), fg="green"))
        else:
            click.echo(f"  · {name}")

    matched = sum(1 for o in outcomes if o.matched)
    click.echo(f"\n{matched} of {len(ruleset)} rule(s) matched.")
    if failed:
        raise SystemExit(1)
