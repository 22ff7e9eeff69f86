"""Tests for the tree-walking evaluator."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from ruleforge.config import EngineConfig
from ruleforge.expressions import (
    ArgumentCountError,
    DivisionByZeroError,
    ErrorKind,
    EvaluationContext,
    EvaluationError,
    Evaluator,
    TypeMismatchError,
    UndefinedFunctionError,
    UndefinedVariableError,
    evaluate,
    evaluate_bool,
    parse,
    parse_expression,
)


@pytest.fixture
def ctx() -> EvaluationContext:
    return EvaluationContext.with_builtins()


def run_script(source: str, context: EvaluationContext, config: EngineConfig | None = None):
    return Evaluator(context, config).evaluate(parse(source, config))


class TestArithmetic:
    """Tests for numeric operators."""

    def test_precedence(self, ctx):
        assert evaluate("2 + 3 * 4", ctx) == 14

    def test_grouping(self, ctx):
        assert evaluate("(2 + 3) * 4", ctx) == 20

    def test_right_associative_power(self, ctx):
        assert evaluate("2 ^ 3 ^ 2", ctx) == 512

    def test_division_is_floating_point(self, ctx):
        assert evaluate("10 / 4", ctx) == 2.5

    def test_unary_minus(self, ctx):
        assert evaluate("-2 ^ 2", ctx) == 4
        assert evaluate("-(2 ^ 2)", ctx) == -4
        assert evaluate("--3", ctx) == 3

    def test_results_are_floats(self, ctx):
        assert isinstance(evaluate("1 + 1", ctx), float)

    def test_division_by_zero(self, ctx):
        with pytest.raises(DivisionByZeroError) as exc_info:
            evaluate("5 / 0", ctx)
        assert exc_info.value.kind == ErrorKind.DIVISION_BY_ZERO
        assert exc_info.value.position == 2

    def test_zero_to_negative_power(self, ctx):
        with pytest.raises(DivisionByZeroError):
            evaluate("0 ^ -1", ctx)

    def test_overflow(self, ctx):
        with pytest.raises(EvaluationError) as exc_info:
            evaluate("10 ^ 400", ctx)
        assert exc_info.value.kind == ErrorKind.NUMERIC_OVERFLOW

    def test_fractional_power_of_negative(self, ctx):
        with pytest.raises(EvaluationError) as exc_info:
            evaluate("(-8) ^ 0.5", ctx)
        assert exc_info.value.kind == ErrorKind.NUMERIC_DOMAIN

    def test_text_in_arithmetic(self, ctx):
        with pytest.raises(TypeMismatchError) as exc_info:
            evaluate('"a" + 1', ctx)
        assert "requires numbers" in exc_info.value.message

    def test_negating_text(self, ctx):
        with pytest.raises(TypeMismatchError):
            evaluate('-"a"', ctx)


class TestLogic:
    """Tests for logical operators and short-circuiting."""

    def test_or_short_circuits(self, ctx):
        assert evaluate("TRUE OR undefined_var", ctx) is True

    def test_and_short_circuits(self, ctx):
        assert evaluate("FALSE AND undefined_var", ctx) is False

    def test_right_side_evaluated_when_needed(self, ctx):
        with pytest.raises(UndefinedVariableError):
            evaluate("FALSE OR undefined_var", ctx)

    def test_short_circuit_skips_function_calls(self, ctx):
        calls = []
        ctx.register_function("touch", lambda: calls.append(1) or True)

        assert evaluate("TRUE OR touch()", ctx) is True
        assert evaluate("FALSE AND touch()", ctx) is False
        assert calls == []

        assert evaluate("FALSE OR touch()", ctx) is True
        assert calls == [1]

    def test_logical_results_are_booleans(self, ctx):
        assert evaluate("1 AND 'x'", ctx) is True
        assert evaluate("0 OR ''", ctx) is False

    def test_not(self, ctx):
        assert evaluate("NOT 0", ctx) is True
        assert evaluate("NOT 'x'", ctx) is False
        assert evaluate("NOT NULL", ctx) is True

    def test_evaluate_bool(self, ctx):
        assert evaluate_bool("'x'", ctx) is True
        assert evaluate_bool("NULL", ctx) is False


class TestComparison:
    """Tests for equality and ordering."""

    def test_numeric_comparison(self, ctx):
        assert evaluate("3 < 10", ctx) is True
        assert evaluate("3 >= 3", ctx) is True

    def test_numeric_text_compares_numerically(self, ctx):
        assert evaluate('"3" < "10"', ctx) is True
        assert evaluate('"007" = 7', ctx) is True

    def test_text_comparison(self, ctx):
        assert evaluate('"apple" < "banana"', ctx) is True
        assert evaluate('"abc" = "abc"', ctx) is True
        assert evaluate('"abc" != "abd"', ctx) is True

    def test_mixed_falls_back_to_text(self, ctx):
        assert evaluate('"b" > 1', ctx) is True

    def test_null_equality(self, ctx):
        assert evaluate("NULL = NULL", ctx) is True
        assert evaluate("NULL = 0", ctx) is False
        assert evaluate("NULL != ''", ctx) is True

    def test_boolean_equality(self, ctx):
        assert evaluate("TRUE = TRUE", ctx) is True
        assert evaluate("TRUE = 1", ctx) is False

    def test_ordering_null(self, ctx):
        with pytest.raises(TypeMismatchError):
            evaluate("NULL < 1", ctx)

    def test_ordering_boolean(self, ctx):
        with pytest.raises(TypeMismatchError):
            evaluate("TRUE > FALSE", ctx)


class TestPatternOperators:
    """Tests for LIKE, MATCHES, CONTAINS, BEFORE and AFTER."""

    @pytest.mark.parametrize(
        "text,pattern,expected",
        [
            ("xxfooyy", "%foo%", True),
            ("foobar", "foo%", True),
            ("xfoobar", "foo%", False),
            ("barfoo", "%foo", True),
            ("foo", "foo", True),
            ("food", "foo", False),
        ],
    )
    def test_like(self, ctx, text, pattern, expected):
        ctx.update({"text": text, "pattern": pattern})
        assert evaluate("text LIKE pattern", ctx) is expected

    def test_like_null(self, ctx):
        assert evaluate('NULL LIKE "%"', ctx) is False

    def test_matches(self, ctx):
        assert evaluate('"abc123" MATCHES "[0-9]+"', ctx) is True
        assert evaluate('"abc" MATCHES "^[0-9]+$"', ctx) is False

    def test_matches_invalid_pattern_is_false(self, ctx):
        assert evaluate('"abc" MATCHES "[unclosed"', ctx) is False

    def test_contains(self, ctx):
        assert evaluate('"hello world" CONTAINS "lo w"', ctx) is True
        assert evaluate('"hello" CONTAINS "z"', ctx) is False
        assert evaluate('NULL CONTAINS "a"', ctx) is False

    def test_before_after(self, ctx):
        assert evaluate('"2024-01-01" BEFORE "2024-02-01"', ctx) is True
        assert evaluate('"2024-03-01T10:00:00" AFTER "2024-03-01"', ctx) is True

    def test_before_with_host_date(self, ctx):
        ctx.set_variable("due", date(2024, 5, 1))
        assert evaluate('due BEFORE "2024-06-01"', ctx) is True

    def test_before_requires_dates(self, ctx):
        with pytest.raises(TypeMismatchError):
            evaluate('"soon" BEFORE "2024-01-01"', ctx)


class TestVariablesAndFunctions:
    """Tests for variable lookup and function calls."""

    def test_variable_lookup(self):
        ctx = EvaluationContext.with_builtins({"status": "active"}, count=5)
        assert evaluate('status = "active" AND count > 0', ctx) is True

    def test_undefined_variable(self, ctx):
        with pytest.raises(UndefinedVariableError) as exc_info:
            evaluate("1 + missing", ctx)
        assert exc_info.value.name == "missing"
        assert exc_info.value.position == 4

    def test_names_are_case_sensitive(self):
        ctx = EvaluationContext.with_builtins(Total=1)
        with pytest.raises(UndefinedVariableError):
            evaluate("total", ctx)

    def test_builtin_call(self, ctx):
        assert evaluate("max(1, 5, 3)", ctx) == 5

    def test_unknown_function(self, ctx):
        with pytest.raises(UndefinedFunctionError) as exc_info:
            evaluate("nosuch(1)", ctx)
        assert exc_info.value.kind == ErrorKind.UNDEFINED_FUNCTION

    def test_arguments_evaluated_before_lookup(self, ctx):
        with pytest.raises(UndefinedVariableError):
            evaluate("nosuch(undefined_var)", ctx)

    def test_wrong_argument_count(self, ctx):
        with pytest.raises(ArgumentCountError) as exc_info:
            evaluate("sqrt()", ctx)
        assert exc_info.value.received == 0
        assert exc_info.value.expected == "1"

    def test_host_function(self, ctx):
        ctx.register_function("double", lambda x: x * 2)
        assert evaluate("double(21)", ctx) == 42

        with pytest.raises(ArgumentCountError):
            evaluate("double(1, 2)", ctx)

    def test_function_failure_is_wrapped(self, ctx):
        with pytest.raises(EvaluationError) as exc_info:
            evaluate("sqrt(-1)", ctx)
        assert exc_info.value.kind == ErrorKind.FUNCTION_FAILED
        assert "sqrt" in exc_info.value.message

    def test_function_returning_unsupported_value(self, ctx):
        ctx.register_function("items", lambda: [1, 2])
        with pytest.raises(EvaluationError) as exc_info:
            evaluate("items()", ctx)
        assert exc_info.value.kind == ErrorKind.FUNCTION_FAILED

    def test_function_results_are_normalized(self, ctx):
        ctx.register_function("three", lambda: 3)
        assert isinstance(evaluate("three()", ctx), float)

    def test_contexts_do_not_share_functions(self):
        first = EvaluationContext.with_builtins()
        second = EvaluationContext.with_builtins()
        first.register_function("only_here", lambda: 1)

        assert "only_here" in first.functions
        assert "only_here" not in second.functions


class TestStatements:
    """Tests for assignment, conditionals, loops and sequences."""

    def test_assignment_updates_context(self, ctx):
        assert run_script("x = 2 * 21", ctx) == 42
        assert ctx.variables["x"] == 42

    def test_sequence_value_is_last_statement(self, ctx):
        assert run_script("a = 1; b = 2; a + b", ctx) == 3

    def test_conditional(self):
        ctx = EvaluationContext.with_builtins(x=5)
        assert run_script("IF x > 1 THEN 'big' ELSE 'small'", ctx) == "big"

        ctx.set_variable("x", 0)
        assert run_script("IF x > 1 THEN 'big' ELSE 'small'", ctx) == "small"

    def test_conditional_without_else(self, ctx):
        assert run_script("IF FALSE THEN 1", ctx) is None

    def test_while_loop(self, ctx):
        assert run_script("x = 0; WHILE x < 5 DO x = x + 1; x", ctx) == 5

    def test_loop_condition_checked_first(self, ctx):
        run_script("x = 10; WHILE x < 5 DO x = x + 1", ctx)
        assert ctx.variables["x"] == 10

    def test_loop_ceiling(self, caplog):
        ctx = EvaluationContext.with_builtins(x=0)
        with caplog.at_level(logging.WARNING, logger="ruleforge.expressions.evaluator"):
            run_script("WHILE TRUE DO x = x + 1", ctx)

        assert ctx.variables["x"] == 1000
        assert "stopped after 1000 iterations" in caplog.text

    def test_loop_ceiling_is_configurable(self):
        ctx = EvaluationContext.with_builtins(x=0)
        run_script("WHILE TRUE DO x = x + 1", ctx, EngineConfig(max_iterations=10))
        assert ctx.variables["x"] == 10

    def test_execution_continues_after_ceiling(self):
        ctx = EvaluationContext.with_builtins(x=0)
        run_script("WHILE TRUE DO x = x + 1; y = 'done'", ctx, EngineConfig(max_iterations=3))
        assert ctx.variables["y"] == "done"

    def test_log_statements(self, ctx, caplog):
        with caplog.at_level(logging.INFO, logger="ruleforge.script"):
            run_script("LOG 'hi'; LOG 1 + 1", ctx)

        assert ctx.log == ["hi", "2"]
        assert "hi" in caplog.text

    def test_block_in_loop(self, ctx):
        run_script("i = 0; total = 0; WHILE i < 4 DO BEGIN i = i + 1; total = total + i END", ctx)
        assert ctx.variables["total"] == 10


class TestEvaluatorLimits:
    """Tests for depth limits and AST reuse."""

    def test_depth_limit(self, ctx):
        ast = parse_expression("-(-(-(-(-(-(-1))))))")
        with pytest.raises(EvaluationError) as exc_info:
            Evaluator(ctx, EngineConfig(max_depth=5)).evaluate(ast)
        assert exc_info.value.kind == ErrorKind.NESTING_TOO_DEEP

    def test_long_flat_chain(self, ctx):
        ast = parse_expression(" + ".join(["1"] * 500))
        assert Evaluator(ctx, EngineConfig(max_depth=5)).evaluate(ast) == 500

    def test_long_or_chain(self):
        source = " OR ".join(f"id = {n}" for n in range(500))
        ast = parse_expression(source)

        assert evaluate(ast, EvaluationContext(variables={"id": 499})) is True
        assert evaluate(ast, EvaluationContext(variables={"id": 500})) is False

    def test_long_chain_still_short_circuits(self):
        source = " AND ".join(["x > 0"] + ["1 / x > 0"] * 300)
        assert evaluate(parse_expression(source), EvaluationContext(variables={"x": 0})) is False

    def test_error_in_chain_reports_its_operator(self, ctx):
        with pytest.raises(TypeMismatchError) as exc_info:
            evaluate(parse_expression("1 + 2 + NULL + 4"), ctx)
        assert exc_info.value.position == 6

    def test_ast_reused_across_contexts(self):
        ast = parse_expression("price * qty")

        assert evaluate(ast, EvaluationContext.with_builtins(price=2, qty=3)) == 6
        assert evaluate(ast, EvaluationContext.with_builtins(price=5, qty=5)) == 25

    def test_shared_ast_concurrently(self):
        ast = parse("total = 0; i = 0; WHILE i < n DO BEGIN i = i + 1; total = total + i END; total")

        def run(n):
            return evaluate(ast, EvaluationContext.with_builtins(n=n))

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(run, range(1, 21)))

        assert results == [n * (n + 1) / 2 for n in range(1, 21)]

    def test_evaluate_text_uses_builtin_context(self):
        assert evaluate("round(2.5) + 1") == 4


class TestContext:
    """Tests for EvaluationContext."""

    def test_host_values_are_normalized(self):
        ctx = EvaluationContext(variables={"n": 3, "d": date(2024, 1, 2)})
        assert ctx.variables["n"] == 3.0
        assert isinstance(ctx.variables["n"], float)
        assert ctx.variables["d"] == "2024-01-02"

    def test_unsupported_host_value(self):
        ctx = EvaluationContext()
        with pytest.raises(TypeError):
            ctx.set_variable("x", [1])

    def test_get_variable(self):
        ctx = EvaluationContext(variables={"a": "x"})
        assert ctx.get_variable("a") == "x"
        assert ctx.has_variable("a")
        with pytest.raises(UndefinedVariableError):
            ctx.get_variable("b")

    def test_empty_context_has_no_functions(self):
        ctx = EvaluationContext()
        with pytest.raises(UndefinedFunctionError):
            evaluate("abs(1)", ctx)
