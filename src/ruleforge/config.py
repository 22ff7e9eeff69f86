"""Engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

DEFAULT_MAX_ITERATIONS = 1000
DEFAULT_MAX_DEPTH = 256
DEFAULT_MAX_NESTING = 64


@dataclass(frozen=True)
class EngineConfig:
    """Limits applied while parsing and evaluating.

    Attributes:
        max_iterations: Iteration ceiling for a single WHILE loop. Hitting it
            stops the loop and execution continues after it.
        max_depth: Deepest AST node the evaluator will descend into. The
            left spine of a chain like ``a + b + c`` is walked in a loop
            and does not add depth.
        max_nesting: Deepest nesting of parentheses, unary operators and
            statements the parser will accept.
    """

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_depth: int = DEFAULT_MAX_DEPTH
    max_nesting: int = DEFAULT_MAX_NESTING

    def __post_init__(self) -> None:
        for name in ("max_iterations", "max_depth", "max_nesting"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create config from environment variables.

        Reads RULEFORGE_MAX_ITERATIONS, RULEFORGE_MAX_DEPTH and
        RULEFORGE_MAX_NESTING; unset variables keep their defaults.
        """
        return cls(
            max_iterations=_env_int("RULEFORGE_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS),
            max_depth=_env_int("RULEFORGE_MAX_DEPTH", DEFAULT_MAX_DEPTH),
            max_nesting=_env_int("RULEFORGE_MAX_NESTING", DEFAULT_MAX_NESTING),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> EngineConfig:
        """Create config from the ``engine:`` block of a rule file."""
        if not data:
            return cls()
        unknown = set(data) - {"max_iterations", "max_depth", "max_nesting"}
        if unknown:
            raise ValueError(f"Unknown engine setting(s): {', '.join(sorted(unknown))}")
        return cls(**dict(data))


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
