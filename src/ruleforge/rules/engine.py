"""Rule sets and filter clauses built on the expression engine.

Both parse their expressions once up front and evaluate the cached ASTs
against a fresh context per record or per run.
"""

import logging
from typing import Any, Iterable, Mapping

from ruleforge.config import EngineConfig
from ruleforge.expressions.context import EvaluationContext
from ruleforge.expressions.errors import ExpressionError
from ruleforge.expressions.evaluator import Evaluator
from ruleforge.expressions.functions import FunctionRegistry
from ruleforge.expressions.builtins import create_builtin_registry
from ruleforge.expressions.nodes import referenced_variables
from ruleforge.expressions.parser import parse_expression
from ruleforge.expressions.values import Value, to_value, truthy
from ruleforge.rules.types import Rule, RuleOutcome

logger = logging.getLogger(__name__)


class Filter:
    """A filter clause matched against records.

    Usage:
        active = Filter('status = "active" AND name LIKE "A%"')
        active.matches({"status": "active", "name": "Acme"})  # True
        active.select(records)
    """

    def __init__(
        self,
        expression: str,
        functions: FunctionRegistry | None = None,
        config: EngineConfig | None = None,
        strict: bool = False,
    ):
        """
        Args:
            expression: The filter clause
            functions: Functions available to the clause; builtins if omitted
            config: Optional limits
            strict: If False, a record that raises during evaluation (for
                example a missing field) simply does not match

        Only the fields the clause reads are bound. A field holding a value
        the language has no type for (a list, a dict) is left unbound, so
        reading it behaves like a missing field.
        """
        self.expression = expression
        self.config = config or EngineConfig()
        self.ast = parse_expression(expression, self.config)
        self.fields = referenced_variables(self.ast)
        self.functions = functions if functions is not None else create_builtin_registry()
        self.strict = strict

    def matches(self, record: Mapping[str, Any]) -> bool:
        context = EvaluationContext(variables=self._bind(record), functions=self.functions)
        try:
            return truthy(Evaluator(context, self.config).evaluate(self.ast))
        except ExpressionError as e:
            if self.strict:
                raise
            logger.debug("Filter %r did not match record: %s", self.expression, e)
            return False

    def _bind(self, record: Mapping[str, Any]) -> dict[str, Value]:
        variables: dict[str, Value] = {}
        for name in self.fields:
            if name not in record:
                continue
            try:
                variables[name] = to_value(record[name])
            except TypeError as e:
                logger.debug("Filter %r leaves field %r unbound: %s", self.expression, name, e)
        return variables

    def select(self, records: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
        """Return the records that match, preserving order."""
        return [record for record in records if self.matches(record)]

    def __repr__(self) -> str:
        return f"Filter({self.expression!r})"


class RuleSet:
    """An ordered collection of rules.

    Rules are kept sorted by descending priority; rules with equal
    priority keep their declaration order.

    Example:
        rules = RuleSet([
            Rule.compile("vip", "total > 1000", actions={"discount": "0.1"}, priority=10),
            Rule.compile("default", "TRUE", actions={"discount": "coalesce(discount, 0)"}),
        ])
        ctx = EvaluationContext.with_builtins(total=1500)
        rules.fire(ctx)
        ctx.variables["discount"]  # 0.1
    """

    def __init__(
        self,
        rules: Iterable[Rule],
        config: EngineConfig | None = None,
        defaults: Mapping[str, Any] | None = None,
        name: str = "",
    ):
        self.rules = sorted(rules, key=lambda r: -r.priority)
        self.config = config or EngineConfig()
        self.defaults: dict[str, Value] = {k: to_value(v) for k, v in (defaults or {}).items()}
        self.name = name

        seen: set[str] = set()
        for rule in self.rules:
            if rule.name in seen:
                raise ValueError(f"Duplicate rule name '{rule.name}'")
            seen.add(rule.name)

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)

    def get(self, name: str) -> Rule:
        for rule in self.rules:
            if rule.name == name:
                return rule
        raise KeyError(f"Unknown rule: {name}")

    def create_context(self, variables: Mapping[str, Any] | None = None) -> EvaluationContext:
        """A builtin context holding the rule set defaults overlaid with variables."""
        merged: dict[str, Any] = dict(self.defaults)
        merged.update(variables or {})
        return EvaluationContext.with_builtins(merged)

    def evaluate(self, context: EvaluationContext) -> list[RuleOutcome]:
        """Evaluate every condition without applying any actions."""
        return [self._check(rule, context) for rule in self.rules]

    def matching(self, context: EvaluationContext) -> list[Rule]:
        return [outcome.rule for outcome in self.evaluate(context) if outcome.matched]

    def first_match(self, context: EvaluationContext) -> Rule | None:
        """The highest-priority rule whose condition holds, or None."""
        for rule in self.rules:
            outcome = self._check(rule, context)
            if outcome.matched:
                return rule
        return None

    def fire(self, context: EvaluationContext, stop_on_first: bool = False) -> list[RuleOutcome]:
        """Evaluate rules in priority order, applying the actions of each match.

        Later rules see the variables assigned by earlier ones. An error in
        one rule is recorded on its outcome and the remaining rules still run.
        """
        outcomes = []
        for rule in self.rules:
            outcome = self._check(rule, context)
            if outcome.matched:
                outcome = self._apply(rule, context)
            outcomes.append(outcome)
            if outcome.matched and stop_on_first:
                break
        return outcomes

    def _check(self, rule: Rule, context: EvaluationContext) -> RuleOutcome:
        try:
            matched = truthy(Evaluator(context, self.config).evaluate(rule.condition))
        except ExpressionError as e:
            logger.warning("Rule '%s' failed: %s", rule.name, e)
            return RuleOutcome(rule, matched=False, error=e)
        return RuleOutcome(rule, matched=matched)

    def _apply(self, rule: Rule, context: EvaluationContext) -> RuleOutcome:
        assigned: dict[str, Value] = {}
        evaluator = Evaluator(context, self.config)
        for action in rule.actions:
            try:
                value = evaluator.evaluate(action.expression)
            except ExpressionError as e:
                logger.warning("Rule '%s' action '%s' failed: %s", rule.name, action.target, e)
                return RuleOutcome(rule, matched=True, assigned=assigned, error=e)
            context.variables[action.target] = value
            assigned[action.target] = value

        logger.debug("Rule '%s' fired, assigned %s", rule.name, sorted(assigned))
        return RuleOutcome(rule, matched=True, assigned=assigned)
