"""Evaluation context: the caller-owned bindings for one evaluation run."""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from ruleforge.expressions.builtins import register_builtins
from ruleforge.expressions.errors import UndefinedVariableError
from ruleforge.expressions.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from ruleforge.expressions.values import Value, to_value


@dataclass
class EvaluationContext:
    """Context for expression evaluation.

    A context is created by the caller for a single evaluation (or a
    single script run) and is mutated by assignments. It is not
    thread-safe; concurrent evaluations of a shared AST each need their
    own context.

    Attributes:
        variables: Variable bindings (names are case-sensitive)
        functions: Functions callable from expressions
        log: Text of every LOG statement executed, in order
    """

    variables: dict[str, Value] = field(default_factory=dict)
    functions: FunctionRegistry = field(default_factory=FunctionRegistry)
    log: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.variables = {name: to_value(value) for name, value in self.variables.items()}

    @classmethod
    def with_builtins(
        cls,
        variables: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> "EvaluationContext":
        """Create a context preloaded with the built-in function library.

        Usage:
            ctx = EvaluationContext.with_builtins({"status": "active"}, count=5)
        """
        merged = dict(variables or {})
        merged.update(kwargs)
        return cls(variables=merged, functions=register_builtins(FunctionRegistry()))

    def set_variable(self, name: str, value: Any) -> None:
        """Bind a variable, normalizing host values (int -> float, date -> ISO text)."""
        self.variables[name] = to_value(value)

    def get_variable(self, name: str) -> Value:
        """Look up a variable.

        Raises:
            UndefinedVariableError: If the variable is not bound
        """
        if name not in self.variables:
            raise UndefinedVariableError(name)
        return self.variables[name]

    def has_variable(self, name: str) -> bool:
        return name in self.variables

    def update(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            self.set_variable(name, value)

    def register_function(
        self,
        name: str,
        implementation: Callable[..., Any],
        *,
        parameters: list[FunctionParameter] | None = None,
        description: str = "",
        category: FunctionCategory = FunctionCategory.CUSTOM,
    ) -> FunctionDefinition:
        """Make a host callable available to expressions under name."""
        return self.functions.register_function(
            name,
            implementation,
            parameters=parameters,
            description=description,
            category=category,
        )
