"""
Load RuleForge rule sets from YAML files.

A rule file looks like:

    name: orders
    engine:
      max_iterations: 500
    variables:
      threshold: 1000
    rules:
      - name: vip
        when: total > threshold AND NOT (status = "cancelled")
        priority: 10
        set:
          discount: 0.1
          label: '"vip"'

Loading happens in three passes, each collecting every problem it finds:
1. YAML parsing; unquoted dates come back as ISO text
2. JSON Schema validation of the document shape
3. Compilation of every expression, plus a check that each called
   function exists in the registry the rules will run with
"""
from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from ruleforge.config import EngineConfig
from ruleforge.expressions.builtins import create_builtin_registry
from ruleforge.expressions.errors import ExpressionError
from ruleforge.expressions.functions import FunctionRegistry
from ruleforge.expressions.nodes import referenced_functions
from ruleforge.expressions.render import render_literal
from ruleforge.rules.engine import RuleSet
from ruleforge.rules.types import Rule, RuleFileError, RuleFileIssue

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).parent / "schemas" / "ruleset.schema.json"


def _load_schema() -> dict[str, Any]:
    with _SCHEMA_PATH.open() as fh:
        return json.load(fh)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def _read_yaml(path: Path) -> tuple[Any, list[RuleFileIssue]]:
    try:
        with path.open() as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return None, [RuleFileIssue(file=path, message=f"YAML parse error: {exc}")]
    except OSError as exc:
        return None, [RuleFileIssue(file=path, message=f"Cannot read file: {exc}")]

    if raw is None:
        return None, [RuleFileIssue(file=path, message="File is empty or contains only whitespace")]
    return _dates_to_text(raw), []


def _dates_to_text(raw: Any) -> Any:
    """Turn the dates PyYAML reads from unquoted `2024-01-01` back into text.

    Variable defaults become ISO text. Values under `set:` are expression
    source, so a date there becomes a text literal rather than `2024 - 1 - 1`.
    """
    if not isinstance(raw, dict):
        return raw

    variables = raw.get("variables")
    if isinstance(variables, dict):
        raw["variables"] = {
            name: value.isoformat() if isinstance(value, date) else value
            for name, value in variables.items()
        }

    rules = raw.get("rules")
    for entry in rules if isinstance(rules, list) else []:
        actions = entry.get("set") if isinstance(entry, dict) else None
        if isinstance(actions, dict):
            entry["set"] = {
                target: render_literal(source.isoformat()) if isinstance(source, date) else source
                for target, source in actions.items()
            }
    return raw


def validate_document(doc: Any, path: Path) -> list[RuleFileIssue]:
    """Validate a parsed rule document against the JSON Schema."""
    validator = Draft202012Validator(_load_schema())
    return [
        RuleFileIssue(file=path, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(doc), key=lambda e: list(e.path))
    ]


def _compile_rules(
    doc: dict[str, Any],
    path: Path,
    config: EngineConfig,
    functions: FunctionRegistry,
) -> tuple[list[Rule], list[RuleFileIssue]]:
    rules: list[Rule] = []
    issues: list[RuleFileIssue] = []
    seen: set[str] = set()

    for index, entry in enumerate(doc.get("rules", [])):
        name = entry["name"]
        location = f"rules[{index}]"

        if name in seen:
            issues.append(RuleFileIssue(path, f"Duplicate rule name '{name}'", location))
            continue
        seen.add(name)

        # YAML turns unquoted `discount: 0.1` into a float; read it back as source
        actions = {
            target: source if isinstance(source, str) else render_literal(source)
            for target, source in (entry.get("set") or {}).items()
        }

        try:
            rule = Rule.compile(
                name,
                entry["when"],
                actions=actions,
                priority=entry.get("priority", 0),
                description=entry.get("description", ""),
                tags=entry.get("tags", []),
                config=config,
            )
        except ExpressionError as e:
            issues.append(RuleFileIssue(path, f"Rule '{name}': {e}", location))
            continue

        called: set[str] = referenced_functions(rule.condition)
        for action in rule.actions:
            called |= referenced_functions(action.expression)
        for func_name in sorted(called):
            if func_name not in functions:
                issues.append(
                    RuleFileIssue(path, f"Rule '{name}' calls unknown function '{func_name}'", location)
                )

        rules.append(rule)

    return rules, issues


def validate_ruleset_file(
    path: Path,
    functions: FunctionRegistry | None = None,
) -> list[RuleFileIssue]:
    """
    Check a rule file without building a RuleSet.

    Returns:
        A list of :class:`RuleFileIssue` objects (empty on success).
    """
    try:
        load_ruleset(path, functions)
    except RuleFileError as e:
        return e.issues
    return []


def load_ruleset(
    path: Path | str,
    functions: FunctionRegistry | None = None,
) -> RuleSet:
    """
    Load, validate and compile a rule file.

    Args:
        path:      Path to the YAML rule file.
        functions: Registry the rules will be evaluated with; used to report
                   calls to unknown functions. Builtins if omitted.

    Raises:
        RuleFileError: Carrying every issue found.
    """
    path = Path(path)
    functions = functions if functions is not None else create_builtin_registry()

    doc, issues = _read_yaml(path)
    if issues:
        raise RuleFileError(issues)

    issues = validate_document(doc, path)
    if issues:
        raise RuleFileError(issues)

    config = EngineConfig.from_mapping(doc.get("engine"))
    rules, issues = _compile_rules(doc, path, config, functions)
    if issues:
        raise RuleFileError(issues)

    ruleset = RuleSet(
        rules,
        config=config,
        defaults=doc.get("variables"),
        name=doc.get("name", path.stem),
    )
    logger.info("Loaded %d rule(s) from %s", len(ruleset), path)
    return ruleset
