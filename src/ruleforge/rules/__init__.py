"""Rule sets and filter clauses.

Usage:
    from ruleforge.rules import Filter, load_ruleset

    ruleset = load_ruleset("rules/orders.yaml")
    ctx = ruleset.create_context({"total": 1500, "status": "open"})
    outcomes = ruleset.fire(ctx)

    open_orders = Filter('status = "open"').select(orders)
"""

from ruleforge.rules.engine import Filter, RuleSet
from ruleforge.rules.loader import load_ruleset, validate_document, validate_ruleset_file
from ruleforge.rules.types import (
    Rule,
    RuleAction,
    RuleFileError,
    RuleFileIssue,
    RuleOutcome,
)

__all__ = [
    "Filter",
    "Rule",
    "RuleAction",
    "RuleFileError",
    "RuleFileIssue",
    "RuleOutcome",
    "RuleSet",
    "load_ruleset",
    "validate_document",
    "validate_ruleset_file",
]
