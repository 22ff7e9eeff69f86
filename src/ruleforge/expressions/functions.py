"""Function registry for the RuleForge expression language.

Functions are callable from expressions (e.g., `len(name) > 0`, `max(a, b)`).
Each function is registered with metadata used for arity checks and
documentation. A registry is an ordinary object owned by an evaluation
context; there is no process-wide registry.
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class FunctionCategory(Enum):
    """Categories for organizing functions in documentation."""

    STRING = "string"
    MATH = "math"
    DATE = "date"
    LOGIC = "logic"
    CUSTOM = "custom"


@dataclass(frozen=True)
class FunctionParameter:
    """Definition of a function parameter.

    Attributes:
        name: Parameter name
        type: Expected type ("text", "number", "boolean", "any")
        description: Human-readable description
        required: Whether this parameter is required
        variadic: If True, this parameter accepts any number of values
    """

    name: str
    type: str = "any"
    description: str = ""
    required: bool = True
    variadic: bool = False


@dataclass
class FunctionDefinition:
    """Complete definition of an expression function.

    Attributes:
        name: Function name as used in expressions
        implementation: The Python callable, invoked with positional values
        description: Human-readable description
        category: Category for documentation organization
        parameters: Parameter definitions, or None to skip arity checks
        return_type: Type of the return value
        examples: Example expressions using this function
    """

    name: str
    implementation: Callable[..., Any]
    description: str = ""
    category: FunctionCategory = FunctionCategory.CUSTOM
    parameters: list[FunctionParameter] | None = None
    return_type: str = "any"
    examples: list[str] = field(default_factory=list)

    @property
    def min_args(self) -> int:
        if self.parameters is None:
            return 0
        return sum(1 for p in self.parameters if p.required and not p.variadic)

    @property
    def max_args(self) -> int | None:
        """Upper bound on argument count, or None when unbounded."""
        if self.parameters is None:
            return None
        if any(p.variadic for p in self.parameters):
            return None
        return len(self.parameters)

    def accepts(self, count: int) -> bool:
        """Check whether the function can be called with count arguments."""
        if count < self.min_args:
            return False
        return self.max_args is None or count <= self.max_args

    def arity(self) -> str:
        """Describe the accepted argument count, e.g. "2", "1 to 3", "at least 1"."""
        low, high = self.min_args, self.max_args
        if high is None:
            return f"at least {low}"
        if low == high:
            return str(low)
        return f"{low} to {high}"

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "required": p.required,
                    "variadic": p.variadic,
                }
                for p in (self.parameters or [])
            ],
            "returnType": self.return_type,
            "examples": self.examples,
        }


class FunctionRegistry:
    """Registry for expression functions.

    Example:
        registry = FunctionRegistry()
        registry.register_function("double", lambda x: x * 2)

        func = registry.get("double")
        result = func.implementation(21.0)  # Returns 42.0
    """

    def __init__(self) -> None:
        self._functions: dict[str, FunctionDefinition] = {}

    def register(self, func_def: FunctionDefinition) -> None:
        """Register a function definition, replacing any existing one.

        Args:
            func_def: Complete function definition with implementation
        """
        self._functions[func_def.name] = func_def

    def register_function(
        self,
        name: str,
        implementation: Callable[..., Any],
        *,
        parameters: list[FunctionParameter] | None = None,
        description: str = "",
        category: FunctionCategory = FunctionCategory.CUSTOM,
        return_type: str = "any",
        examples: list[str] | None = None,
    ) -> FunctionDefinition:
        """Register a plain callable.

        When parameters are not given they are read from the callable's
        signature, so arity is still checked before the call.
        """
        if parameters is None:
            parameters = _parameters_from_signature(implementation)

        func_def = FunctionDefinition(
            name=name,
            implementation=implementation,
            description=description,
            category=category,
            parameters=parameters,
            return_type=return_type,
            examples=list(examples or []),
        )
        self.register(func_def)
        return func_def

    def get(self, name: str) -> FunctionDefinition:
        """Get a function definition by name.

        Raises:
            KeyError: If function is not registered
        """
        if name not in self._functions:
            raise KeyError(f"Unknown function: {name}")
        return self._functions[name]

    def lookup(self, name: str) -> FunctionDefinition | None:
        """Get a function definition by name, or None."""
        return self._functions.get(name)

    def is_registered(self, name: str) -> bool:
        """Check if a function is registered."""
        return name in self._functions

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    def unregister(self, name: str) -> None:
        self._functions.pop(name, None)

    def names(self) -> list[str]:
        return sorted(self._functions)

    def list_all(self) -> list[FunctionDefinition]:
        """List all registered functions."""
        return list(self._functions.values())

    def list_by_category(self, category: FunctionCategory) -> list[FunctionDefinition]:
        """List functions in a specific category."""
        return [f for f in self._functions.values() if f.category == category]

    def copy(self) -> "FunctionRegistry":
        """Shallow copy, so a caller can extend a shared base registry."""
        clone = FunctionRegistry()
        clone._functions = dict(self._functions)
        return clone

    def export_documentation(self) -> dict[str, Any]:
        """Export full registry for documentation.

        Returns:
            Dict with all function definitions organized by category
        """
        by_category: dict[str, list[dict[str, Any]]] = {}
        for func_def in self._functions.values():
            by_category.setdefault(func_def.category.value, []).append(func_def.to_dict())

        return {
            "functions": {name: f.to_dict() for name, f in self._functions.items()},
            "byCategory": by_category,
        }


def _parameters_from_signature(implementation: Callable[..., Any]) -> list[FunctionParameter] | None:
    try:
        signature = inspect.signature(implementation)
    except (TypeError, ValueError):
        return None

    parameters = []
    for param in signature.parameters.values():
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            parameters.append(FunctionParameter(param.name, variadic=True, required=False))
        elif param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            parameters.append(
                FunctionParameter(param.name, required=param.default is inspect.Parameter.empty)
            )
    return parameters
