"""Tests for rule sets, filters and the YAML rule file loader."""

import logging
from pathlib import Path

import pytest

from ruleforge.config import EngineConfig
from ruleforge.expressions import (
    DivisionByZeroError,
    EvaluationContext,
    ParseError,
    UndefinedVariableError,
    create_builtin_registry,
)
from ruleforge.rules import (
    Filter,
    Rule,
    RuleFileError,
    RuleSet,
    load_ruleset,
    validate_document,
    validate_ruleset_file,
)


ORDERS_YAML = """\
name: orders
engine:
  max_iterations: 50
variables:
  threshold: 1000
  discount: 0
rules:
  - name: default_label
    when: "TRUE"
    set:
      label: '"standard"'
  - name: vip
    description: Large orders
    when: total > threshold AND NOT (status = "cancelled")
    priority: 10
    tags: [pricing]
    set:
      discount: 0.1
      label: '"vip"'
  - name: free_shipping
    when: discount > 0
    priority: 5
    set:
      shipping: 0
"""


def write(tmp_path: Path, text: str, name: str = "rules.yaml") -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


class TestFilter:
    """Tests for filter clauses over records."""

    RECORDS = [
        {"name": "Acme", "status": "active", "score": 90},
        {"name": "Bolt", "status": "inactive", "score": 40},
        {"name": "Apex", "status": "active", "score": 55},
    ]

    def test_select(self):
        active = Filter('status = "active" AND name LIKE "A%"')
        assert [r["name"] for r in active.select(self.RECORDS)] == ["Acme", "Apex"]

    def test_matches_with_functions(self):
        assert Filter("len(name) = 4 AND score >= 90").matches(self.RECORDS[0])

    def test_missing_field_does_not_match(self):
        assert Filter("region = 'EU'").matches(self.RECORDS[0]) is False

    def test_strict_filter_raises(self):
        with pytest.raises(UndefinedVariableError):
            Filter("region = 'EU'", strict=True).matches(self.RECORDS[0])

    def test_equals_compares(self):
        # '=' in a filter clause is always a comparison
        assert Filter("score = 55").select(self.RECORDS) == [self.RECORDS[2]]

    def test_invalid_clause_fails_up_front(self):
        with pytest.raises(ParseError):
            Filter("status = ")

    def test_unread_list_field_is_ignored(self):
        records = [{"status": "open", "tags": ["a", "b"]}, {"status": "closed", "meta": {}}]
        assert Filter('status = "open"').select(records) == [records[0]]

    def test_reading_list_field_does_not_match(self):
        record = {"status": "open", "tags": ["a", "b"]}

        assert Filter('tags CONTAINS "a"').matches(record) is False
        with pytest.raises(UndefinedVariableError):
            Filter('tags CONTAINS "a"', strict=True).matches(record)

    @pytest.mark.parametrize("field", ["end", "log", "do", "before", "after"])
    def test_keyword_cannot_name_a_field(self, field):
        with pytest.raises(ParseError):
            Filter(f"{field} = 1")


class TestRuleSet:
    """Tests for rule evaluation and firing."""

    @pytest.fixture
    def ruleset(self) -> RuleSet:
        return RuleSet(
            [
                Rule.compile("default", "TRUE", actions={"discount": "coalesce(discount, 0)"}),
                Rule.compile("vip", "total > 1000", actions={"discount": "0.1"}, priority=10),
                Rule.compile("big_discount", "discount >= 0.1", priority=5),
            ]
        )

    def test_sorted_by_priority(self, ruleset):
        assert [r.name for r in ruleset] == ["vip", "big_discount", "default"]

    def test_fire_applies_actions_in_order(self, ruleset):
        ctx = EvaluationContext.with_builtins(total=1500, discount=None)
        outcomes = ruleset.fire(ctx)

        assert [o.matched for o in outcomes] == [True, True, True]
        assert outcomes[0].assigned == {"discount": 0.1}
        assert ctx.variables["discount"] == 0.1

    def test_fire_stop_on_first(self, ruleset):
        ctx = EvaluationContext.with_builtins(total=1500, discount=None)
        outcomes = ruleset.fire(ctx, stop_on_first=True)
        assert [o.rule.name for o in outcomes] == ["vip"]

    def test_evaluate_does_not_apply_actions(self, ruleset):
        ctx = EvaluationContext.with_builtins(total=1500, discount=0)
        outcomes = ruleset.evaluate(ctx)

        assert [o.matched for o in outcomes] == [True, False, True]
        assert ctx.variables["discount"] == 0

    def test_matching_and_first_match(self, ruleset):
        ctx = EvaluationContext.with_builtins(total=10, discount=0)

        assert [r.name for r in ruleset.matching(ctx)] == ["default"]
        assert ruleset.first_match(ctx).name == "default"

    def test_errors_are_captured_per_rule(self, caplog):
        ruleset = RuleSet(
            [
                Rule.compile("broken", "1 / zero > 1", priority=1),
                Rule.compile("fine", "TRUE", actions={"ok": "TRUE"}),
            ]
        )
        ctx = EvaluationContext.with_builtins(zero=0)

        with caplog.at_level(logging.WARNING, logger="ruleforge.rules.engine"):
            outcomes = ruleset.fire(ctx)

        assert isinstance(outcomes[0].error, DivisionByZeroError)
        assert not outcomes[0].ok
        assert outcomes[1].matched
        assert ctx.variables["ok"] is True
        assert "Rule 'broken' failed" in caplog.text

    def test_action_error(self):
        ruleset = RuleSet([Rule.compile("r", "TRUE", actions={"a": "1", "b": "missing"})])
        ctx = EvaluationContext.with_builtins()

        outcome = ruleset.fire(ctx)[0]

        assert outcome.matched
        assert outcome.assigned == {"a": 1}
        assert isinstance(outcome.error, UndefinedVariableError)

    def test_duplicate_names(self):
        with pytest.raises(ValueError, match="Duplicate rule name"):
            RuleSet([Rule.compile("a", "TRUE"), Rule.compile("a", "FALSE")])

    def test_outcome_to_dict(self, ruleset):
        ctx = EvaluationContext.with_builtins(total=1500, discount=None)
        data = ruleset.fire(ctx)[0].to_dict()

        assert data == {"rule": "vip", "matched": True, "assigned": {"discount": 0.1}, "error": None}

    def test_create_context_overlays_defaults(self):
        ruleset = RuleSet([], defaults={"a": 1, "b": 2})
        ctx = ruleset.create_context({"b": 3})
        assert ctx.variables == {"a": 1, "b": 3}

    def test_get(self, ruleset):
        assert ruleset.get("vip").priority == 10
        with pytest.raises(KeyError):
            ruleset.get("nope")


class TestRuleLoader:
    """Tests for loading YAML rule files."""

    def test_load_valid_file(self, tmp_path):
        ruleset = load_ruleset(write(tmp_path, ORDERS_YAML))

        assert ruleset.name == "orders"
        assert len(ruleset) == 3
        assert ruleset.config == EngineConfig(max_iterations=50)
        assert [r.name for r in ruleset] == ["vip", "free_shipping", "default_label"]

        vip = ruleset.get("vip")
        assert vip.description == "Large orders"
        assert vip.tags == ("pricing",)
        assert [a.source for a in vip.actions] == ["0.1", '"vip"']

    def test_fire_loaded_rules(self, tmp_path):
        ruleset = load_ruleset(write(tmp_path, ORDERS_YAML))
        ctx = ruleset.create_context({"total": 2500, "status": "open"})

        ruleset.fire(ctx)

        assert ctx.variables["discount"] == 0.1
        assert ctx.variables["shipping"] == 0
        assert ctx.variables["label"] == "standard"

    def test_name_defaults_to_file_stem(self, tmp_path):
        path = write(tmp_path, "rules:\n  - name: a\n    when: 'TRUE'\n", name="checks.yaml")
        assert load_ruleset(path).name == "checks"

    def test_missing_when(self, tmp_path):
        path = write(tmp_path, "rules:\n  - name: a\n")

        with pytest.raises(RuleFileError) as exc_info:
            load_ruleset(path)

        issue = exc_info.value.issues[0]
        assert issue.path == "rules[0]"
        assert "'when' is a required property" in issue.message

    def test_unknown_top_level_key(self, tmp_path):
        path = write(tmp_path, "rulez: []\nrules: []\n")
        issues = validate_ruleset_file(path)
        assert len(issues) == 1
        assert "rulez" in issues[0].message

    def test_bad_expression(self, tmp_path):
        path = write(tmp_path, "rules:\n  - name: a\n    when: 'total >'\n")

        issues = validate_ruleset_file(path)

        assert len(issues) == 1
        assert issues[0].message.startswith("Rule 'a': ")
        assert str(issues[0]).startswith(f"[ERROR] {path} at rules[0]: Rule 'a'")

    def test_unknown_function(self, tmp_path):
        path = write(tmp_path, "rules:\n  - name: a\n    when: 'shout(x)'\n")
        issues = validate_ruleset_file(path)
        assert issues[0].message == "Rule 'a' calls unknown function 'shout'"

    def test_custom_functions_are_known(self, tmp_path):
        path = write(tmp_path, "rules:\n  - name: a\n    when: 'shout(x)'\n")
        functions = create_builtin_registry()
        functions.register_function("shout", lambda x: str(x).upper())

        assert validate_ruleset_file(path, functions) == []

    def test_duplicate_names(self, tmp_path):
        path = write(
            tmp_path,
            "rules:\n  - name: a\n    when: 'TRUE'\n  - name: a\n    when: 'FALSE'\n",
        )
        issues = validate_ruleset_file(path)
        assert issues[0].message == "Duplicate rule name 'a'"
        assert issues[0].path == "rules[1]"

    def test_every_issue_is_reported(self, tmp_path):
        path = write(
            tmp_path,
            "rules:\n  - name: a\n    when: '(1'\n  - name: b\n    when: 'nope()'\n",
        )
        assert len(validate_ruleset_file(path)) == 2

    def test_empty_file(self, tmp_path):
        issues = validate_ruleset_file(write(tmp_path, "\n"))
        assert issues[0].message == "File is empty or contains only whitespace"

    def test_invalid_yaml(self, tmp_path):
        issues = validate_ruleset_file(write(tmp_path, "rules: [\n"))
        assert issues[0].message.startswith("YAML parse error")

    def test_validate_document(self):
        issues = validate_document({"rules": [{"name": "9bad", "when": "x"}]}, Path("inline"))
        assert issues[0].path == "rules[0]/name"

    def test_unquoted_dates_are_text(self, tmp_path):
        path = write(
            tmp_path,
            "variables:\n"
            "  opened: 2024-01-01\n"
            "rules:\n"
            "  - name: due\n"
            "    when: opened BEFORE '2024-06-01'\n"
            "    set:\n"
            "      due: 2024-02-01\n",
        )
        ruleset = load_ruleset(path)
        ctx = ruleset.create_context()

        ruleset.fire(ctx)

        assert ruleset.defaults == {"opened": "2024-01-01"}
        assert ruleset.get("due").actions[0].source == '"2024-02-01"'
        assert ctx.variables["due"] == "2024-02-01"
