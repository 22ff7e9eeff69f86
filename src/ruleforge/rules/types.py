"""Core types for RuleForge rule sets."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from ruleforge.config import EngineConfig
from ruleforge.expressions.errors import ExpressionError
from ruleforge.expressions.nodes import ASTNode
from ruleforge.expressions.parser import parse_expression
from ruleforge.expressions.values import Value


@dataclass(frozen=True)
class RuleAction:
    """Assigns the value of an expression to a variable when a rule fires."""

    target: str
    source: str
    expression: ASTNode


@dataclass(frozen=True)
class Rule:
    """A named condition with optional actions.

    Attributes:
        name: Unique rule name
        when: Condition expression source text
        condition: Parsed condition
        actions: Assignments applied, in order, when the rule fires
        priority: Higher priorities are evaluated first
        description: Human-readable description
        tags: Free-form labels for grouping rules
    """

    name: str
    when: str
    condition: ASTNode
    actions: tuple[RuleAction, ...] = ()
    priority: int = 0
    description: str = ""
    tags: tuple[str, ...] = ()

    @classmethod
    def compile(
        cls,
        name: str,
        when: str,
        *,
        actions: Mapping[str, str] | None = None,
        priority: int = 0,
        description: str = "",
        tags: tuple[str, ...] | list[str] = (),
        config: EngineConfig | None = None,
    ) -> "Rule":
        """Parse the condition and every action expression once.

        Raises:
            ExpressionError: If any expression fails to parse
        """
        condition = parse_expression(when, config)
        compiled = tuple(
            RuleAction(target, source, parse_expression(source, config))
            for target, source in (actions or {}).items()
        )
        return cls(
            name=name,
            when=when,
            condition=condition,
            actions=compiled,
            priority=priority,
            description=description,
            tags=tuple(tags),
        )


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating one rule.

    Attributes:
        rule: The rule evaluated
        matched: Whether the condition was truthy
        assigned: Values written by the rule's actions (only when fired)
        error: The evaluation error, if the rule could not be evaluated
    """

    rule: Rule
    matched: bool = False
    assigned: dict[str, Value] = field(default_factory=dict)
    error: ExpressionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule.name,
            "matched": self.matched,
            "assigned": dict(self.assigned),
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class RuleFileIssue:
    """A single problem found while loading a rule file."""

    file: Path
    message: str
    path: str = ""  # location within the document, e.g. "rules[2]/when"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[ERROR] {self.file}{loc}: {self.message}"


class RuleFileError(Exception):
    """Raised when a rule file cannot be loaded; carries every issue found."""

    def __init__(self, issues: list[RuleFileIssue]):
        self.issues = issues
        summary = "; ".join(str(issue) for issue in issues[:3])
        if len(issues) > 3:
            summary += f" (and {len(issues) - 3} more)"
        super().__init__(summary)
